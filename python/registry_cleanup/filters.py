"""
Tag filter pipeline.

Selects the tags of a single registry repository that a retention policy
marks for deletion. The pipeline is a list of stages, each a pure
transformation over an ordered list of tags:

- ExcludeLatestFilter: never delete the `latest` tag
- IncludeFilter: keep only tags whose name matches `include`
- OrderedFilter: sort oldest first
- KeepFilter: spare the newest `keep` tags
- AgeFilter: keep only tags older than `age` days
- ExcludeFilter: spare tags whose name matches `exclude`

Stages never mutate their input and never invent tags, so the result is
always a subset of the input. The only failure is an invalid include or
exclude pattern, raised as RegexCompilationError.
"""

import functools
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from registry_cleanup.error_utils import RegexCompilationError
from registry_cleanup.logging_utils import get_logger
from registry_cleanup.models import FilterConfig, Tag

logger = get_logger(__name__)

LATEST_TAG = "latest"


def _created_before(a: Tag, b: Tag) -> bool:
    """Single ordering rule for tags: a tag without a timestamp is never
    before or after anything."""
    if a.created_at is None or b.created_at is None:
        return False
    return a.created_at < b.created_at


def _compare_created(a: Tag, b: Tag) -> int:
    if _created_before(a, b):
        return -1
    if _created_before(b, a):
        return 1
    return 0


class FilterStage(ABC):
    """A single pipeline stage: (tags, config) -> tags"""

    name = "FilterStage"

    @abstractmethod
    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        """Return a new list; must not modify `tags`."""

    def __call__(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        return self.apply(tags, config)

    def __repr__(self) -> str:
        return self.name


class ExcludeLatestFilter(FilterStage):
    name = "ExcludeLatestFilter"

    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        filtered = []
        for tag in tags:
            if tag.name == LATEST_TAG:
                logger.debug(f"{self.name}: Skipping tag {tag.name}")
                continue
            filtered.append(tag)
        return filtered


class _RegexFilter(FilterStage):
    """Shared pattern compilation for the include and exclude stages"""

    def _compile(self, pattern: str) -> "re.Pattern":
        try:
            return re.compile(pattern)
        except re.error as e:
            raise RegexCompilationError(self.name, pattern, e) from e


class IncludeFilter(_RegexFilter):
    """Keeps tags whose name matches `config.include`.

    An empty include pattern selects nothing: a policy must opt tags in.
    """

    name = "IncludeFilter"

    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        if not config.include:
            logger.debug(f"{self.name}: No include pattern, no tags selected")
            return []

        regex = self._compile(config.include)
        filtered = []
        for tag in tags:
            if regex.search(tag.name):
                logger.debug(f"{self.name}: Including matched tag {tag.name}")
                filtered.append(tag)
        return filtered


class OrderedFilter(FilterStage):
    """Stable sort by creation time, oldest first."""

    name = "OrderedFilter"

    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        logger.debug(f"{self.name}: Ordering {len(tags)} tags")
        return sorted(tags, key=functools.cmp_to_key(_compare_created))


def is_oldest_first(tags: Sequence[Tag]) -> bool:
    """True if the timestamped tags in `tags` appear in ascending order.

    Tags without a timestamp are ignored.
    """
    previous = None
    for tag in tags:
        if tag.created_at is None:
            continue
        if previous is not None and _created_before(tag, previous):
            return False
        previous = tag
    return True


class KeepFilter(FilterStage):
    """Removes the newest `config.keep` tags from the candidates.

    Precondition: `tags` is ordered oldest first (OrderedFilter has run).
    This stage does not sort; an unordered input is logged as a warning
    and the last `keep` entries are still the ones spared.
    """

    name = "KeepFilter"

    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        if not is_oldest_first(tags):
            logger.warning(f"{self.name}: Input is not ordered oldest first, newest tags may not be the ones kept")

        keep = max(0, config.keep)
        if keep == 0:
            candidates = list(tags)
        elif keep >= len(tags):
            candidates = []
        else:
            candidates = list(tags[:len(tags) - keep])

        for tag in tags[len(candidates):]:
            logger.debug(f"{self.name}: Keeping tag {tag.name}")
        return candidates


class AgeFilter(FilterStage):
    """Keeps tags created more than `config.age` days ago.

    With `age` < 1 the check is disabled and every tag passes. With the check
    enabled, a tag without a timestamp never passes.
    """

    name = "AgeFilter"

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self._now = now or (lambda: datetime.now(timezone.utc))

    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        if config.age < 1:
            return list(tags)

        cutoff = self._now() - timedelta(days=config.age)
        filtered = []
        for tag in tags:
            if tag.created_at is not None and tag.created_at < cutoff:
                logger.debug(f"{self.name}: Including aged tag {tag.name}")
                filtered.append(tag)
        return filtered


class ExcludeFilter(_RegexFilter):
    """Drops tags whose name matches `config.exclude`.

    An empty exclude pattern drops nothing.
    """

    name = "ExcludeFilter"

    def apply(self, tags: List[Tag], config: FilterConfig) -> List[Tag]:
        if not config.exclude:
            return list(tags)

        regex = self._compile(config.exclude)
        filtered = []
        for tag in tags:
            if regex.search(tag.name):
                logger.debug(f"{self.name}: Excluding matched tag {tag.name}")
                continue
            filtered.append(tag)
        return filtered


# Include runs before Keep/Age so both only count included tags; Ordered
# runs before Keep; Exclude runs last and has the final veto.
DEFAULT_STAGES = (
    ExcludeLatestFilter(),
    IncludeFilter(),
    OrderedFilter(),
    KeepFilter(),
    AgeFilter(),
    ExcludeFilter(),
)


class FilterPipeline:
    """Runs tags of one repository through an ordered list of stages"""

    def __init__(self, tags: Sequence[Tag], config: FilterConfig):
        self.tags = list(tags or [])
        self.config = config

    def execute(self, stages: Sequence[FilterStage] = DEFAULT_STAGES) -> List[Tag]:
        """Apply `stages` in order and return the deletion candidates.

        The first stage error propagates unchanged and no partial result is
        returned. No stages returns a copy of the input.
        """
        filtered = list(self.tags)
        for stage in stages:
            before = len(filtered)
            filtered = stage(filtered, self.config)
            logger.debug(f"{stage!r}: {before} -> {len(filtered)} tags")
        return filtered


def filter_tags(tags: Sequence[Tag], config: FilterConfig) -> List[Tag]:
    """Run the standard six-stage pipeline over `tags`."""
    return FilterPipeline(tags, config).execute(DEFAULT_STAGES)
