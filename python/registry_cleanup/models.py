"""
Data classes shared by the filter pipeline, the GitLab client and the config layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an API timestamp into a timezone-aware datetime.

    Args:
        value: ISO 8601 string (may end with 'Z'), datetime, or None

    Returns:
        datetime in UTC-aware form, or None if missing or unparseable
    """
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    # Naive timestamps are taken as UTC so they compare against aware ones
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class Tag:
    """A single registry tag as seen by the filter pipeline.

    `created_at` is None when the API returned no creation metadata.
    """

    name: str
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.created_at, datetime) and self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", parse_timestamp(self.created_at))

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Tag":
        return cls(name=data["name"], created_at=parse_timestamp(data.get("created_at")))


def _pattern(value) -> Optional[str]:
    return str(value) if value not in (None, "") else None


@dataclass(frozen=True)
class FilterConfig:
    """Retention policy applied to the tags of one repository.

    Attributes:
        include: Regex a tag name must match to be considered; empty matches nothing
        exclude: Regex that vetoes deletion of matching tags; empty vetoes nothing
        keep: Number of newest candidate tags to retain
        age: Minimum age in days before a tag may be deleted; 0 disables the check
    """

    include: Optional[str] = None
    exclude: Optional[str] = None
    keep: int = 0
    age: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "FilterConfig":
        data = data or {}
        return cls(
            include=_pattern(data.get("include")),
            exclude=_pattern(data.get("exclude")),
            keep=int(data.get("keep") or 0),
            age=int(data.get("age") or 0),
        )


@dataclass(frozen=True)
class PolicyConfig:
    """Named retention policy"""

    name: str
    filter: FilterConfig = field(default_factory=FilterConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolicyConfig":
        return cls(name=data.get("name", ""), filter=FilterConfig.from_dict(data.get("filter")))


@dataclass(frozen=True)
class RepositoryConfig:
    """Selects registry repositories and the policies applied to them.

    `project` and `group` of 0 match any project/group. `images` of None
    matches every registry repository of a selected project.
    """

    project: int = 0
    group: int = 0
    recurse: bool = False
    images: Optional[Tuple[str, ...]] = None
    policies: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepositoryConfig":
        images = data.get("images")
        return cls(
            project=int(data.get("project") or 0),
            group=int(data.get("group") or 0),
            recurse=bool(data.get("recurse", False)),
            images=tuple(images) if images is not None else None,
            policies=tuple(data.get("policies") or ()),
        )

    def matches_image(self, path: str) -> bool:
        return self.images is None or path in self.images


def tag_names(tags: List[Tag]) -> List[str]:
    return [tag.name for tag in tags]
