"""
Exception hierarchy for podsync.

Network errors are split into retryable and non-retryable branches so
the retry layer can decide from the type alone.
"""


class PodsyncError(Exception):
    """Base exception for all podsync errors."""


class ConfigError(PodsyncError):
    """Configuration-related errors."""


class InvalidConfigError(ConfigError):
    """Invalid configuration data."""


class ConfigNotFoundError(ConfigError):
    """Configuration file not found."""


class FeedError(PodsyncError):
    """Feed listing errors."""


class FeedParseError(FeedError):
    """Feed document could not be parsed."""


class TransferError(PodsyncError):
    """Episode transfer failed outside the network layer."""


class NetworkError(PodsyncError):
    """Network-related errors."""


class RetryableError(NetworkError):
    """Errors that should trigger a retry."""


class RateLimitError(RetryableError):
    """Server asked us to slow down (HTTP 429)."""


class TimeoutError(RetryableError):  # pylint: disable=redefined-builtin
    """Request timeout."""


class ConnectionError(RetryableError):  # pylint: disable=redefined-builtin
    """Network connection error."""


class ServerError(RetryableError):
    """Server-side error (5xx)."""


class NonRetryableError(NetworkError):
    """Errors that should NOT trigger a retry."""


class AuthenticationError(NonRetryableError):
    """Feed or enclosure host refused our credentials (401/403)."""


class InvalidRequestError(NonRetryableError):
    """Permanent client error (4xx)."""
