"""
Error message utilities for providing actionable guidance to users.

This module provides functions to create helpful error messages with
suggested fixes and troubleshooting steps.
"""

from typing import List, Optional, Dict, Any
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class RegexCompilationError(ActionableError):
    """Raised by a filter stage when a policy regex cannot be compiled"""

    def __init__(self, stage: str, pattern: str, error: Exception):
        self.stage = stage
        self.pattern = pattern
        super().__init__(
            message=f"{stage}: invalid regular expression {pattern!r}: {error}",
            category=ErrorCategory.CONFIGURATION,
            suggestions=[
                "Check the include/exclude patterns of the policy in the config file",
                "Patterns use Python regular expression syntax and are matched anywhere in the tag name",
            ],
            details={"stage": stage, "pattern": pattern},
        )


class GitLabAPIError(Exception):
    """Raised when the GitLab API answers with an error status"""

    def __init__(self, status_code: int, url: str, body: str = ""):
        self.status_code = status_code
        self.url = url
        self.body = body
        super().__init__(f"GitLab API returned {status_code} for {url}: {body[:200]}")


def create_gitlab_connection_error(gitlab_url: str, error: Exception) -> ActionableError:
    """Create actionable error for GitLab connection failures"""
    error_str = str(error).lower()

    suggestions = [
        f"Verify the GitLab URL is correct: {gitlab_url}",
        "Check network connectivity to the GitLab instance",
        "Verify proxy and firewall settings allow HTTPS access",
    ]

    if "timeout" in error_str or "timed out" in error_str:
        suggestions.insert(1, "Increase gitlab.timeout in the config file")

    if "name resolution" in error_str or "dns" in error_str:
        suggestions.insert(1, "Verify DNS resolution for the GitLab hostname")

    return ActionableError(
        message=f"Failed to connect to GitLab at {gitlab_url}",
        category=ErrorCategory.CONNECTION,
        suggestions=suggestions,
        details={
            "gitlab_url": gitlab_url,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_gitlab_auth_error(gitlab_url: str, error: Exception) -> ActionableError:
    """Create actionable error for GitLab authentication failures"""
    suggestions = [
        "Verify GITLAB_ACCESS_TOKEN or gitlab.access_token is set correctly",
        "Check the token has not expired or been revoked",
        "The token needs the 'api' scope to delete registry tags",
    ]

    status = getattr(error, "status_code", None)
    if status == 403:
        suggestions.insert(0, "The token owner needs at least Maintainer access to delete tags")

    return ActionableError(
        message=f"Failed to authenticate with GitLab at {gitlab_url}",
        category=ErrorCategory.PERMISSION if status == 403 else ErrorCategory.AUTHENTICATION,
        suggestions=suggestions,
        details={
            "gitlab_url": gitlab_url,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_config_error(field: str, value: Any, reason: str) -> ActionableError:
    """Create actionable error for configuration validation failures"""
    suggestions = [
        f"Check the '{field}' value in the config file",
        "Verify the value matches the expected format",
    ]

    if field.endswith("keep") or field.endswith("age"):
        suggestions.insert(1, "keep and age must be non-negative integers")
    elif "url" in field.lower():
        suggestions.insert(1, "URL should be in format: https://hostname")

    return ActionableError(
        message=f"Configuration error: Invalid value for '{field}'",
        category=ErrorCategory.CONFIGURATION,
        suggestions=suggestions,
        details={
            "field": field,
            "value": value,
            "reason": reason
        }
    )
