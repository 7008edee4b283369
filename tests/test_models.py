"""Unit tests for registry_cleanup/models.py"""

from datetime import datetime, timedelta, timezone

import pytest

from registry_cleanup.models import FilterConfig, PolicyConfig, RepositoryConfig, Tag, parse_timestamp


class TestParseTimestamp:
    """Tests for parse_timestamp"""

    def test_parses_offset(self):
        ts = parse_timestamp("2024-01-15T10:30:00.000+02:00")
        assert ts == datetime(2024, 1, 15, 8, 30, tzinfo=timezone.utc)

    def test_parses_z_suffix(self):
        assert parse_timestamp("2024-01-15T10:30:00Z") == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        ts = parse_timestamp("2024-01-15T10:30:00")
        assert ts.tzinfo is not None
        assert ts.utcoffset() == timedelta(0)

    @pytest.mark.parametrize("value", [None, "", "invalid", 12345])
    def test_invalid_values(self, value):
        assert parse_timestamp(value) is None


class TestTag:
    """Tests for Tag"""

    def test_from_api(self):
        tag = Tag.from_api({"name": "v1", "path": "group/app:v1", "created_at": "2024-01-15T10:30:00Z"})
        assert tag.name == "v1"
        assert tag.created_at.year == 2024

    def test_from_api_without_created_at(self):
        assert Tag.from_api({"name": "v1"}) == Tag("v1")

    def test_naive_created_at_is_utc(self):
        tag = Tag("v1", datetime(2024, 1, 15, 10, 30))
        assert tag.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_aware_created_at_is_unchanged(self):
        ts = datetime(2024, 1, 15, 10, 30, tzinfo=timezone(timedelta(hours=2)))
        assert Tag("v1", ts).created_at is ts

    def test_immutable(self):
        tag = Tag("v1")
        with pytest.raises(AttributeError):
            tag.name = "v2"


class TestConfigModels:
    """Tests for FilterConfig, PolicyConfig and RepositoryConfig parsing"""

    def test_filter_config_defaults(self):
        assert FilterConfig.from_dict(None) == FilterConfig(include=None, exclude=None, keep=0, age=0)

    def test_empty_patterns_become_none(self):
        config = FilterConfig.from_dict({"include": "", "exclude": "", "keep": None})
        assert config.include is None
        assert config.exclude is None
        assert config.keep == 0

    def test_policy_config(self):
        policy = PolicyConfig.from_dict({"name": "p", "filter": {"include": "v", "age": 7}})
        assert policy == PolicyConfig("p", FilterConfig(include="v", age=7))

    def test_repository_config_without_images_matches_everything(self):
        config = RepositoryConfig.from_dict({"group": 4, "policies": ["p"]})
        assert config.images is None
        assert config.matches_image("any/path")

    def test_repository_config_with_empty_images_matches_nothing(self):
        config = RepositoryConfig.from_dict({"project": 1, "images": []})
        assert not config.matches_image("any/path")
