"""
Retry utilities for network calls.

Exponential backoff with jitter for transient failures; permanent
client errors are raised immediately.
"""

import logging
from typing import Any, Callable, Optional, Tuple, Type

import requests
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .errors import (
    AuthenticationError,
    ConnectionError,
    InvalidRequestError,
    NetworkError,
    NonRetryableError,
    RateLimitError,
    RetryableError,
    ServerError,
    TimeoutError,
)

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        max_wait_seconds: float = 30,
        min_wait_seconds: float = 1,
        jitter: bool = True,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including initial)
            max_wait_seconds: Maximum wait time between retries
            min_wait_seconds: Minimum wait time between retries
            jitter: Whether to add jitter to wait times
        """
        self.max_attempts = max_attempts
        self.max_wait_seconds = max_wait_seconds
        self.min_wait_seconds = min_wait_seconds
        self.jitter = jitter


DEFAULT_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=30,
    min_wait_seconds=1,
    jitter=True,
)

# Minimal delays for tests
TEST_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=0.01,
    min_wait_seconds=0.001,
    jitter=False,
)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log a failed attempt before tenacity sleeps."""
    if retry_state.outcome and retry_state.outcome.failed:
        exception = retry_state.outcome.exception()
        logger.warning(
            "Retry attempt %d failed: %s: %s",
            retry_state.attempt_number,
            type(exception).__name__,
            exception,
        )


def with_retry(
    config: Optional[RetryConfig] = None,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator adding exponential backoff retries.

    Args:
        config: Retry configuration (DEFAULT_RETRY_CONFIG if None)
        retry_on: Exception types to retry on (all RetryableError if None)

    Returns:
        Decorator that wraps a callable with retry logic
    """
    config = config or DEFAULT_RETRY_CONFIG
    retry_on = retry_on or (RetryableError,)

    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential_jitter(
            multiplier=config.min_wait_seconds,
            max=config.max_wait_seconds,
            jitter=config.max_wait_seconds if config.jitter else 0,
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=log_retry_attempt,
        reraise=True,
    )


def classify_http_error(status_code: int, error_message: str = "") -> NetworkError:
    """Classify an HTTP status into a retryable or permanent error.

    Example:
        if not response.ok:
            raise classify_http_error(response.status_code, url)
    """
    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded: {error_message}")

    if 500 <= status_code < 600:
        return ServerError(f"Server error (HTTP {status_code}): {error_message}")

    if status_code == 408:
        return TimeoutError(f"Request timeout: {error_message}")

    if status_code in (401, 403):
        return AuthenticationError(
            f"Authentication failed (HTTP {status_code}): {error_message}"
        )

    if 400 <= status_code < 500:
        return InvalidRequestError(
            f"Invalid request (HTTP {status_code}): {error_message}"
        )

    return NonRetryableError(f"HTTP error {status_code}: {error_message}")


def classify_requests_error(
    error: requests.exceptions.RequestException,
) -> NetworkError:
    """Translate a requests exception into our network error types."""
    if isinstance(error, requests.exceptions.Timeout):
        return TimeoutError(str(error))
    if isinstance(error, requests.exceptions.ConnectionError):
        return ConnectionError(str(error))
    # Raised by iter_content when the connection drops mid-body.
    if isinstance(
        error,
        (
            requests.exceptions.ChunkedEncodingError,
            requests.exceptions.ContentDecodingError,
        ),
    ):
        return ConnectionError(str(error))
    response = getattr(error, "response", None)
    if response is not None:
        return classify_http_error(response.status_code, str(error))
    return NonRetryableError(str(error))
