"""
Rate limit manager: one limiter per operation class, keyed by client identity.
"""

import logging
import threading
from dataclasses import dataclass

from .algorithms import Clock, RateLimitAlgorithm, RateLimitResult, create_rate_limiter
from .config import OperationClass, RateLimitSettings
from .exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Usage of one operation class by one client."""

    operation_class: str
    identifier: str
    current_count: int
    limit: int
    remaining: int
    window: str


class RateLimitManager:
    """
    Checks requests against their operation class quota and the global quota.

    Exceeding a quota rejects the request immediately with
    ``RateLimitExceeded``; nothing is queued or delayed.
    """

    def __init__(self, settings: RateLimitSettings | None = None, clock: Clock | None = None) -> None:
        self.settings = settings or RateLimitSettings()
        self._limiters: dict[OperationClass, RateLimitAlgorithm] = {}
        self._limiter_lock = threading.RLock()

        for operation_class, rule in self.settings.rules.items():
            if rule.enabled:
                self._limiters[operation_class] = create_rate_limiter(rule, clock)

        logger.info(
            "RateLimitManager initialized",
            extra={"operation_classes": [c.value for c in self._limiters]},
        )

    def check(self, operation_class: OperationClass | str, identifier: str) -> RateLimitResult:
        """
        Count one request and report whether it is allowed.

        The global quota is consulted before the operation class quota; a
        request denied by the global quota does not consume a class slot.
        """
        result, _ = self._check(OperationClass.parse(operation_class), identifier)
        return result

    def enforce(self, operation_class: OperationClass | str, identifier: str) -> None:
        """
        Count one request or raise.

        Raises:
            RateLimitExceeded: If the client has used up its quota
        """
        result, denied_by = self._check(OperationClass.parse(operation_class), identifier)
        if result.allowed:
            return

        rule = self.settings.rules[denied_by]
        raise RateLimitExceeded(
            f"Too many {denied_by.value} requests, please try again later",
            limit=result.limit,
            window_size=str(rule.window),
            current_count=result.current_count,
            retry_after=result.retry_after,
            operation_class=denied_by.value,
            identifier=identifier,
        )

    def _check(
        self, operation_class: OperationClass, identifier: str
    ) -> tuple[RateLimitResult, OperationClass]:
        result = RateLimitResult(True, 0, 0, 0, None)
        if not self.settings.enabled:
            return result, operation_class

        chain = dict.fromkeys(
            c for c in (OperationClass.GLOBAL, operation_class) if c in self._limiters
        )
        with self._limiter_lock:
            for current in chain:
                result = self._limiters[current].check_rate_limit(f"{current.value}:{identifier}")
                if not result.allowed:
                    logger.warning(
                        f"Rate limit exceeded for {current.value}",
                        extra={
                            "operation_class": current.value,
                            "identifier": identifier,
                            "retry_after": result.retry_after,
                        },
                    )
                    return result, current
        return result, operation_class

    def get_status(self, operation_class: OperationClass | str, identifier: str) -> RateLimitStatus:
        op = OperationClass.parse(operation_class)
        limiter = self._limiters.get(op)
        if limiter is None:
            return RateLimitStatus(op.value, identifier, 0, 0, 0, "")
        used = limiter.get_current_usage(f"{op.value}:{identifier}")
        return RateLimitStatus(
            operation_class=op.value,
            identifier=identifier,
            current_count=used,
            limit=limiter.rule.limit,
            remaining=max(0, limiter.rule.limit - used),
            window=str(limiter.rule.window),
        )

    def reset(self, identifier: str) -> None:
        """Clear every quota for a client."""
        with self._limiter_lock:
            for operation_class, limiter in self._limiters.items():
                limiter.reset_limit(f"{operation_class.value}:{identifier}")

    def cleanup_expired(self) -> int:
        with self._limiter_lock:
            return sum(limiter.cleanup_expired() for limiter in self._limiters.values())
