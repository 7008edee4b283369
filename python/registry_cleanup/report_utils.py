"""
Utility functions for saving cleanup reports.
"""
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

from registry_cleanup.logging_utils import get_logger

logger = get_logger(__name__)


def get_timestamp_suffix() -> str:
    """
    Generate a timestamp suffix for report filenames.

    Returns:
        String in format: YYYY-MM-DD-HH-MM-SS
    """
    return datetime.now().strftime("%Y-%m-%d-%H-%M-%S")


def add_timestamp_to_path(path: str) -> str:
    """
    Add a timestamp to a file path before the extension.

    e.g. 'reports/cleanup.json' -> 'reports/cleanup-2026-01-15-14-30-00.json'
    """
    p = Path(path)
    return str(p.parent / f"{p.stem}-{get_timestamp_suffix()}{p.suffix}")


def _normalize(data: Any) -> Any:
    """Recursively convert values json can't serialize."""
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, (set, frozenset, tuple)):
        return [_normalize(item) for item in data]
    if isinstance(data, list):
        return [_normalize(item) for item in data]
    if isinstance(data, dict):
        return {str(key): _normalize(value) for key, value in data.items()}
    return data


def save_json(path: str, data: Any, timestamp: bool = False) -> str:
    """
    Write JSON data to a file with indentation.

    Args:
        path: Path to save the JSON file
        data: Data to save
        timestamp: If True, add timestamp to filename (default: False)

    Returns:
        Path to the saved file
    """
    if timestamp:
        path = add_timestamp_to_path(path)

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(_normalize(data), f, indent=2)

    logger.info(f"Saved report to {path}")
    return path
