"""
Rate limiting exceptions for the trading simulation.
"""

from datetime import UTC, datetime
from typing import Any


class RateLimitError(Exception):
    """Base exception for all rate limiting errors."""

    error_code = "RATE_LIMIT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(UTC)


class RateLimitExceeded(RateLimitError):
    """Raised when an operation class quota is exhausted for a client."""

    error_code = "RATE_LIMITED"

    def __init__(
        self,
        message: str,
        limit: int,
        window_size: str,
        current_count: int,
        retry_after: int | None = None,
        operation_class: str | None = None,
        identifier: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, kwargs)
        self.limit = limit
        self.window_size = window_size
        self.current_count = current_count
        self.retry_after = retry_after
        self.operation_class = operation_class
        self.identifier = identifier

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            "limit": self.limit,
            "window_size": self.window_size,
            "current_count": self.current_count,
            "retry_after": self.retry_after,
            "operation_class": self.operation_class,
            "identifier": self.identifier,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }


class RateLimitConfigError(RateLimitError):
    """Raised when rate limit configuration is invalid."""

    error_code = "RATE_LIMIT_CONFIG_ERROR"

    def __init__(self, message: str, config_field: str | None = None, **kwargs: Any) -> None:
        super().__init__(message, kwargs)
        self.config_field = config_field
