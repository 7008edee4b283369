#!/usr/bin/env python3
"""
Configuration Manager for GitLab Registry Cleanup

This module handles loading and managing configuration from config.yml
and environment variables.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import yaml

from registry_cleanup.error_utils import ActionableError, create_config_error
from registry_cleanup.models import PolicyConfig, RepositoryConfig

DEFAULT_CONFIG_FILE = "config.yml"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""


class ConfigManager:
    """Manages configuration for the registry cleanup tool"""

    def __init__(self, config_file: str = None, validate: bool = True):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to CONFIG_FILE env var or config.yml)
            validate: If True, validate configuration on initialization
        """
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", DEFAULT_CONFIG_FILE)
        self.config_file = config_file
        self.config = self._load_config()

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        default_config = {
            "gitlab": {"url": "https://gitlab.com", "access_token": "", "timeout": 30, "per_page": 100},
            "retry": {
                "max_retries": 3,
                "initial_delay": 1.0,
                "max_delay": 60.0,
                "exponential_base": 2.0,
                "jitter": True,
            },
            "policies": [],
            "repositories": [],
        }

        if not os.path.exists(self.config_file):
            logging.warning(f"Config file {self.config_file} not found, using defaults")
            return default_config

        try:
            with open(self.config_file, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigValidationError(f"Failed to load/parse config file {self.config_file}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigValidationError(f"Config file {self.config_file} must contain a mapping at the top level")

        logging.info(f"Using config file: {self.config_file}")
        return self._merge_config(default_config, user_config)

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = default.copy()
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    # GitLab configuration
    def get_gitlab_url(self) -> str:
        """Get GitLab URL from environment or config"""
        return (os.environ.get("GITLAB_URL") or self.config["gitlab"]["url"] or "").rstrip("/")

    def get_access_token(self) -> Optional[str]:
        """Get access token from environment or config"""
        return os.environ.get("GITLAB_ACCESS_TOKEN") or self.config["gitlab"].get("access_token") or None

    def get_timeout(self) -> int:
        """Get HTTP timeout from config, with type coercion"""
        timeout = self.config["gitlab"].get("timeout", 30)
        try:
            return int(timeout)
        except (ValueError, TypeError):
            raise ConfigValidationError(f"gitlab.timeout must be an integer, got: {timeout} (type: {type(timeout).__name__})")

    def get_per_page(self) -> int:
        """Get page size for list endpoints, with type coercion"""
        per_page = self.config["gitlab"].get("per_page", 100)
        try:
            return int(per_page)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"gitlab.per_page must be an integer, got: {per_page} (type: {type(per_page).__name__})"
            )

    # Retry configuration
    def get_max_retries(self) -> int:
        """Get max retries from config, with type coercion"""
        retries = self.config.get("retry", {}).get("max_retries", 3)
        try:
            return int(retries)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"retry.max_retries must be an integer, got: {retries} (type: {type(retries).__name__})"
            )

    def get_retry_initial_delay(self) -> float:
        """Get initial retry delay from config, with type coercion"""
        delay = self.config.get("retry", {}).get("initial_delay", 1.0)
        try:
            return float(delay)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"retry.initial_delay must be a number, got: {delay} (type: {type(delay).__name__})"
            )

    def get_retry_max_delay(self) -> float:
        """Get max retry delay from config, with type coercion"""
        delay = self.config.get("retry", {}).get("max_delay", 60.0)
        try:
            return float(delay)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"retry.max_delay must be a number, got: {delay} (type: {type(delay).__name__})"
            )

    def get_retry_exponential_base(self) -> float:
        """Get exponential base for retry backoff from config, with type coercion"""
        base = self.config.get("retry", {}).get("exponential_base", 2.0)
        try:
            return float(base)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"retry.exponential_base must be a number, got: {base} (type: {type(base).__name__})"
            )

    def get_retry_jitter(self) -> bool:
        """Get whether to use jitter in retry delays from config"""
        return bool(self.config.get("retry", {}).get("jitter", True))

    # Policies and repositories
    def get_policies(self) -> List[PolicyConfig]:
        """Get typed policy definitions

        Raises:
            ActionableError: If keep or age of a policy is not a non-negative integer
        """
        policies = []
        for i, raw in enumerate(self.config.get("policies") or []):
            raw_filter = (raw or {}).get("filter") or {}
            for key in ("keep", "age"):
                value = raw_filter.get(key, 0)
                if value is None:
                    continue
                if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                    raise create_config_error(f"policies[{i}].filter.{key}", value, "must be a non-negative integer")
            policies.append(PolicyConfig.from_dict(raw or {}))
        return policies

    def get_repositories(self) -> List[RepositoryConfig]:
        """Get typed repository selections"""
        return [RepositoryConfig.from_dict(raw or {}) for raw in self.config.get("repositories") or []]

    def get_policy_config(self, name: str) -> PolicyConfig:
        """Look up a policy by name

        Raises:
            ConfigValidationError: If no policy has that name
        """
        for policy in self.get_policies():
            if policy.name == name:
                return policy
        raise ConfigValidationError(f"Cannot find policy {name}")

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        errors = []
        warnings = []

        gitlab_url = self.get_gitlab_url()
        if not gitlab_url:
            errors.append("GitLab URL is required and cannot be empty")
        elif not self._is_valid_gitlab_url(gitlab_url):
            errors.append(f"GitLab URL '{gitlab_url}' is invalid (expected format: http(s)://hostname[:port][/path])")

        if not self.get_access_token():
            errors.append("GitLab access token is required (gitlab.access_token or GITLAB_ACCESS_TOKEN)")

        for name, getter in (("gitlab.timeout", self.get_timeout), ("gitlab.per_page", self.get_per_page)):
            try:
                value = getter()
            except ConfigValidationError as e:
                errors.append(str(e))
                continue
            if value < 1:
                errors.append(f"{name} must be a positive integer, got: {value}")

        try:
            max_retries = self.get_max_retries()
            initial_delay = self.get_retry_initial_delay()
            max_delay = self.get_retry_max_delay()
            exponential_base = self.get_retry_exponential_base()
        except ConfigValidationError as e:
            errors.append(str(e))
        else:
            if max_retries < 0:
                errors.append(f"retry.max_retries must be a non-negative integer, got: {max_retries}")
            elif max_retries > 10:
                warnings.append(f"max_retries is very high ({max_retries}), operations may take a long time")
            if initial_delay < 0:
                errors.append(f"retry.initial_delay must be a non-negative number, got: {initial_delay}")
            if max_delay < initial_delay:
                errors.append(f"retry.max_delay ({max_delay}) must be >= retry.initial_delay ({initial_delay})")
            if exponential_base < 1.0:
                errors.append(f"retry.exponential_base must be >= 1.0, got: {exponential_base}")

        policy_names = set()
        try:
            policies = self.get_policies()
        except ActionableError as e:
            errors.append(f"{e.message}: {e.details.get('reason')}")
            policies = []
        for i, policy in enumerate(policies):
            if not policy.name:
                errors.append(f"policies[{i}] has no name")
            elif policy.name in policy_names:
                errors.append(f"Policy name '{policy.name}' is defined more than once")
            policy_names.add(policy.name)
            if not policy.filter.include:
                warnings.append(f"Policy '{policy.name}' has no include pattern and will never select tags")

        repositories = []
        for i, raw in enumerate(self.config.get("repositories") or []):
            raw = raw or {}
            list_errors = [
                f"repositories[{i}].{key} must be a list, got: {raw[key]!r}"
                for key in ("images", "policies")
                if raw.get(key) is not None and not isinstance(raw[key], list)
            ]
            if list_errors:
                errors.extend(list_errors)
                continue
            repositories.append(RepositoryConfig.from_dict(raw))
        if not self.config.get("repositories"):
            warnings.append("No repositories configured, nothing will be cleaned up")
        for i, repository in enumerate(repositories):
            if not repository.policies:
                warnings.append(f"repositories[{i}] references no policies")
            for name in repository.policies:
                if name not in policy_names:
                    errors.append(f"repositories[{i}] references unknown policy '{name}'")
            if repository.recurse and not repository.group:
                warnings.append(f"repositories[{i}] sets recurse without a group, recurse has no effect")

        for warning in warnings:
            logging.warning(f"Configuration warning: {warning}")

        if errors:
            error_msg = "Configuration validation failed:\n  " + "\n  ".join(errors)
            logging.error(error_msg)
            raise ConfigValidationError(error_msg)

    def _is_valid_gitlab_url(self, url: str) -> bool:
        """Validate GitLab URL format"""
        pattern = r"^https?://[a-zA-Z0-9]([a-zA-Z0-9\-\.]*[a-zA-Z0-9])?(:[0-9]{1,5})?(/\S*)?$"
        return bool(re.match(pattern, url))

    def print_config(self):
        """Print current configuration"""
        print("Current Configuration:")
        print(f"  Config File: {self.config_file}")
        print(f"  GitLab URL: {self.get_gitlab_url()}")
        token = self.get_access_token()
        print(f"  Access Token: {'*' * len(token) if token else 'Not set'}")
        print(f"  Timeout: {self.get_timeout()}")
        print(f"  Max Retries: {self.get_max_retries()}")
        print(f"  Policies: {', '.join(p.name for p in self.get_policies()) or 'None'}")
        print(f"  Repositories: {len(self.get_repositories())}")
