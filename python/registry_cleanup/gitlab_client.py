"""
GitLab REST API client for container registry operations.

Wraps the handful of /api/v4 endpoints the cleanup needs behind a
requests.Session, with page-by-page listing and retries on transient
failures.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from registry_cleanup.error_utils import (
    GitLabAPIError,
    create_gitlab_auth_error,
    create_gitlab_connection_error,
)
from registry_cleanup.logging_utils import get_logger
from registry_cleanup.models import Tag
from registry_cleanup.retry_utils import retry_with_backoff

logger = get_logger(__name__)


class GitLabClient:
    """Minimal GitLab API client for registry cleanup"""

    def __init__(
        self,
        url: str,
        access_token: Optional[str],
        timeout: int = 30,
        per_page: int = 100,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.api_url = f"{self.url}/api/v4"
        self.timeout = timeout
        self.per_page = per_page
        self.retry_settings = {
            "max_retries": max_retries,
            "initial_delay": initial_delay,
            "max_delay": max_delay,
            "exponential_base": exponential_base,
            "jitter": jitter,
        }
        self.session = session or requests.Session()
        if access_token:
            self.session.headers["PRIVATE-TOKEN"] = access_token

    @classmethod
    def from_config(cls, config_manager) -> "GitLabClient":
        return cls(
            config_manager.get_gitlab_url(),
            config_manager.get_access_token(),
            timeout=config_manager.get_timeout(),
            per_page=config_manager.get_per_page(),
            max_retries=config_manager.get_max_retries(),
            initial_delay=config_manager.get_retry_initial_delay(),
            max_delay=config_manager.get_retry_max_delay(),
            exponential_base=config_manager.get_retry_exponential_base(),
            jitter=config_manager.get_retry_jitter(),
        )

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Send one API request, retrying transient failures."""
        url = f"{self.api_url}{path}"

        @retry_with_backoff(**self.retry_settings)
        def _execute():
            response = self.session.request(method, url, params=params, timeout=self.timeout)
            if response.status_code >= 400:
                raise GitLabAPIError(response.status_code, url, response.text or "")
            return response

        try:
            return _execute()
        except GitLabAPIError as e:
            if e.status_code in (401, 403):
                raise create_gitlab_auth_error(self.url, e) from e
            raise
        except (requests.ConnectionError, requests.Timeout) as e:
            raise create_gitlab_connection_error(self.url, e) from e

    def _get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items = []
        page = 1
        while True:
            logger.debug(f"Retrieving {path} page {page}")
            page_params = dict(params or {})
            page_params.update({"page": page, "per_page": self.per_page})
            response = self._request("GET", path, params=page_params)
            items.extend(response.json() or [])

            total_pages = response.headers.get("X-Total-Pages")
            if total_pages:
                if page >= int(total_pages):
                    break
            elif not response.headers.get("X-Next-Page"):
                # GitLab omits the totals on very large collections
                break
            page += 1
        return items

    def list_projects(self) -> List[Dict[str, Any]]:
        """List all projects visible to the token."""
        return self._get_all("/projects")

    def get_namespace(self, namespace_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/namespaces/{namespace_id}").json()

    def list_registry_repositories(self, project_id: int) -> List[Dict[str, Any]]:
        return self._get_all(f"/projects/{project_id}/registry/repositories")

    def list_registry_tags(self, project_id: int, repository_id: int) -> List[Dict[str, Any]]:
        """List tag summaries (name, path, location) of a registry repository."""
        return self._get_all(f"/projects/{project_id}/registry/repositories/{repository_id}/tags")

    def get_registry_tag(self, project_id: int, repository_id: int, tag_name: str) -> Tag:
        """Fetch tag details; only the detail endpoint carries created_at."""
        path = f"/projects/{project_id}/registry/repositories/{repository_id}/tags/{quote(tag_name, safe='')}"
        return Tag.from_api(self._request("GET", path).json())

    def delete_registry_tag(self, project_id: int, repository_id: int, tag_name: str) -> bool:
        path = f"/projects/{project_id}/registry/repositories/{repository_id}/tags/{quote(tag_name, safe='')}"
        self._request("DELETE", path)
        return True
