"""
Rate Limiter Interface Definition
"""

from abc import abstractmethod
from typing import Protocol


class IRateLimiter(Protocol):
    """Per-operation-class request throttle keyed by client identity."""

    @abstractmethod
    def enforce(self, operation_class: str, identifier: str) -> None:
        """
        Count one request for the client or reject it.

        Raises:
            RateLimitExceeded: If the quota for the class is used up; carries
                ``retry_after`` in seconds
        """
        ...
