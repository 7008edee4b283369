"""
GitLab container registry cleanup.

This package provides the building blocks for the cleanup tool:
- Tag and policy models
- The tag filter pipeline that selects deletion candidates
- Configuration loading, the GitLab API client and the cleanup orchestrator
"""

from registry_cleanup.filters import DEFAULT_STAGES, FilterPipeline, RegexCompilationError, filter_tags
from registry_cleanup.models import FilterConfig, Tag

__all__ = [
    "DEFAULT_STAGES",
    "FilterConfig",
    "FilterPipeline",
    "RegexCompilationError",
    "Tag",
    "filter_tags",
]
