"""Unit tests for registry_cleanup/gitlab_client.py"""

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from registry_cleanup.error_utils import ActionableError, ErrorCategory, GitLabAPIError
from registry_cleanup.gitlab_client import GitLabClient
from registry_cleanup.models import Tag


def make_response(status=200, json_data=None, headers=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = json_data
    response.headers = headers or {}
    response.text = text
    return response


@pytest.fixture
def session():
    mock = MagicMock()
    mock.headers = {}
    return mock


@pytest.fixture
def client(session):
    return GitLabClient(
        "https://gitlab.example.com/",
        "secret-token",
        timeout=10,
        per_page=2,
        max_retries=2,
        initial_delay=0.01,
        jitter=False,
        session=session,
    )


class TestGitLabClientInitialization:
    """Tests for GitLabClient construction"""

    def test_sets_token_header(self, client, session):
        assert session.headers["PRIVATE-TOKEN"] == "secret-token"
        assert client.api_url == "https://gitlab.example.com/api/v4"

    def test_from_config(self):
        config_manager = MagicMock()
        config_manager.get_gitlab_url.return_value = "https://git.internal"
        config_manager.get_access_token.return_value = "tok"
        config_manager.get_timeout.return_value = 5
        config_manager.get_per_page.return_value = 50
        config_manager.get_max_retries.return_value = 1
        config_manager.get_retry_initial_delay.return_value = 0.5
        config_manager.get_retry_max_delay.return_value = 2.0
        config_manager.get_retry_exponential_base.return_value = 2.0
        config_manager.get_retry_jitter.return_value = False

        client = GitLabClient.from_config(config_manager)

        assert client.api_url == "https://git.internal/api/v4"
        assert client.timeout == 5
        assert client.per_page == 50
        assert client.retry_settings["max_retries"] == 1
        assert client.session.headers["PRIVATE-TOKEN"] == "tok"


class TestPagination:
    """Tests for list endpoints"""

    def test_follows_total_pages(self, client, session):
        session.request.side_effect = [
            make_response(json_data=[{"id": 1}, {"id": 2}], headers={"X-Total-Pages": "2"}),
            make_response(json_data=[{"id": 3}], headers={"X-Total-Pages": "2"}),
        ]

        projects = client.list_projects()

        assert [p["id"] for p in projects] == [1, 2, 3]
        assert session.request.call_count == 2
        first_params = session.request.call_args_list[0].kwargs["params"]
        second_params = session.request.call_args_list[1].kwargs["params"]
        assert first_params == {"page": 1, "per_page": 2}
        assert second_params == {"page": 2, "per_page": 2}

    def test_falls_back_to_next_page_header(self, client, session):
        session.request.side_effect = [
            make_response(json_data=[{"id": 1}], headers={"X-Next-Page": "2"}),
            make_response(json_data=[{"id": 2}], headers={"X-Next-Page": ""}),
        ]

        assert [p["id"] for p in client.list_projects()] == [1, 2]

    def test_single_page(self, client, session):
        session.request.return_value = make_response(json_data=[], headers={"X-Total-Pages": "1"})

        assert client.list_registry_repositories(7) == []
        args = session.request.call_args
        assert args.args == ("GET", "https://gitlab.example.com/api/v4/projects/7/registry/repositories")
        assert args.kwargs["timeout"] == 10

    def test_page_requests_logged_on_module_logger(self, client, session, caplog):
        session.request.return_value = make_response(json_data=[], headers={"X-Total-Pages": "1"})

        with caplog.at_level(logging.DEBUG, logger="registry_cleanup.gitlab_client"):
            client.list_projects()

        assert [r.name for r in caplog.records if "page 1" in r.getMessage()] == ["registry_cleanup.gitlab_client"]

    def test_list_registry_tags_url(self, client, session):
        session.request.return_value = make_response(json_data=[{"name": "v1"}], headers={"X-Total-Pages": "1"})

        assert client.list_registry_tags(7, 3) == [{"name": "v1"}]
        assert session.request.call_args.args[1].endswith("/projects/7/registry/repositories/3/tags")


class TestTags:
    """Tests for tag detail and deletion"""

    def test_get_registry_tag_parses_created_at(self, client, session):
        session.request.return_value = make_response(
            json_data={"name": "v1", "created_at": "2024-01-15T10:30:00.000+00:00"}
        )

        tag = client.get_registry_tag(7, 3, "v1")

        assert tag == Tag("v1", datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))

    def test_get_registry_tag_without_created_at(self, client, session):
        session.request.return_value = make_response(json_data={"name": "v1", "created_at": None})

        assert client.get_registry_tag(7, 3, "v1") == Tag("v1", None)

    def test_delete_registry_tag(self, client, session):
        session.request.return_value = make_response(status=200)

        assert client.delete_registry_tag(7, 3, "v1.0") is True
        method, url = session.request.call_args.args
        assert method == "DELETE"
        assert url == "https://gitlab.example.com/api/v4/projects/7/registry/repositories/3/tags/v1.0"

    def test_get_namespace(self, client, session):
        session.request.return_value = make_response(json_data={"id": 4, "parent_id": 2})

        assert client.get_namespace(4)["parent_id"] == 2


class TestErrorHandling:
    """Tests for retries and error translation"""

    @pytest.fixture(autouse=True)
    def no_sleep(self):
        with patch("registry_cleanup.retry_utils.time.sleep"):
            yield

    def test_retries_server_errors(self, client, session):
        session.request.side_effect = [
            make_response(status=502),
            make_response(json_data={"id": 4, "parent_id": None}),
        ]

        assert client.get_namespace(4)["id"] == 4
        assert session.request.call_count == 2

    def test_gives_up_after_max_retries(self, client, session):
        session.request.return_value = make_response(status=503)

        with pytest.raises(GitLabAPIError) as exc_info:
            client.get_namespace(4)

        assert exc_info.value.status_code == 503
        assert session.request.call_count == 3

    def test_not_found_is_not_retried(self, client, session):
        session.request.return_value = make_response(status=404, text="404 Tag Not Found")

        with pytest.raises(GitLabAPIError) as exc_info:
            client.delete_registry_tag(7, 3, "gone")

        assert exc_info.value.status_code == 404
        assert session.request.call_count == 1

    def test_unauthorized_becomes_actionable_error(self, client, session):
        session.request.return_value = make_response(status=401)

        with pytest.raises(ActionableError) as exc_info:
            client.list_projects()

        assert exc_info.value.category == ErrorCategory.AUTHENTICATION
        assert session.request.call_count == 1

    def test_forbidden_is_permission_error(self, client, session):
        session.request.return_value = make_response(status=403)

        with pytest.raises(ActionableError) as exc_info:
            client.delete_registry_tag(7, 3, "v1")

        assert exc_info.value.category == ErrorCategory.PERMISSION

    def test_connection_error_becomes_actionable_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("Connection refused")

        with pytest.raises(ActionableError) as exc_info:
            client.list_projects()

        assert exc_info.value.category == ErrorCategory.CONNECTION
        assert session.request.call_count == 3
