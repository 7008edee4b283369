"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)


@pytest.fixture
def now():
    """Fixed reference time for age calculations"""
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def days_ago(now):
    """Return a helper building timestamps relative to `now`"""
    def _days_ago(days: float) -> datetime:
        return now - timedelta(days=days)
    return _days_ago
