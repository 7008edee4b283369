"""Retry utilities for GitLab API calls with exponential backoff"""

import logging
import random
import time
from enum import Enum
from functools import wraps
from typing import Callable, List, Optional, Tuple, TypeVar

import requests

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableErrorType(Enum):
    """Types of errors that should trigger retries"""

    NETWORK = "network"  # Connection errors, timeouts
    TEMPORARY = "temporary"  # 5xx errors, rate limiting
    PERMANENT = "permanent"  # 4xx errors (except rate limiting), auth failures


def is_retryable_error(error: Exception) -> Tuple[bool, RetryableErrorType]:
    """Determine if an error is retryable and what type it is

    Args:
        error: The exception that occurred

    Returns:
        Tuple of (is_retryable, error_type)
    """
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True, RetryableErrorType.NETWORK

    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)

    if status is not None:
        # Rate limiting and server errors - retryable
        if status == 429 or status >= 500:
            return True, RetryableErrorType.TEMPORARY
        # Everything else from the API won't fix itself
        return False, RetryableErrorType.PERMANENT

    error_str = str(error).lower()
    network_indicators = [
        "connection",
        "timeout",
        "timed out",
        "reset",
        "broken pipe",
        "temporary failure",
    ]
    if any(indicator in error_str for indicator in network_indicators):
        return True, RetryableErrorType.NETWORK

    return False, RetryableErrorType.PERMANENT


def _backoff_delay(attempt: int, initial_delay: float, max_delay: float, exponential_base: float, jitter: bool) -> float:
    delay = min(initial_delay * (exponential_base**attempt), max_delay)
    if jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay = delay + random.uniform(-jitter_amount, jitter_amount)
        delay = max(0.1, delay)
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_errors: Optional[List[RetryableErrorType]] = None,
) -> Callable:
    """Decorator for retrying functions with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Initial delay in seconds before first retry (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add random jitter to prevent thundering herd (default: True)
        retryable_errors: List of error types to retry (None = retry all retryable types)

    Returns:
        Decorator function
    """
    if retryable_errors is None:
        retryable_errors = [RetryableErrorType.NETWORK, RetryableErrorType.TEMPORARY]

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_retries + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 0:
                        logger.info(f"{func.__name__} succeeded on attempt {attempt + 1}")
                    return result
                except Exception as e:
                    is_retryable, error_type = is_retryable_error(e)

                    if not is_retryable or error_type not in retryable_errors:
                        logger.debug(f"{func.__name__} failed with non-retryable error ({error_type.value}): {e}")
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            f"{func.__name__} failed after {max_retries + 1} attempts. "
                            f"Last error ({error_type.value}): {e}"
                        )
                        raise

                    delay = _backoff_delay(attempt, initial_delay, max_delay, exponential_base, jitter)
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt + 1}/{max_retries + 1} "
                        f"({error_type.value} error: {e}). "
                        f"Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)

        return wrapper

    return decorator
