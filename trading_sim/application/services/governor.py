"""
Governor - request throttling and credit metering for paid operations

Throttling is delegated to an ``IRateLimiter``. Credits live in the
account store: a paid operation needs a positive balance before it runs and
is charged exactly one credit only after it succeeds. Charges carry an
idempotency key so a retried decrement is never applied twice.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from ...domain.exceptions import InsufficientCreditsException, InsufficientTierException
from ..interfaces.accounts import AccountProfile, IAccountStore, SubscriptionTier
from ..interfaces.rate_limiter import IRateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

AI_ANALYSIS_CREDITS = "ai_analysis"


@dataclass(frozen=True)
class ChargedResult(Generic[T]):
    """Result of a metered operation and whether the credit was taken."""

    value: T
    credit_charged: bool
    remaining_credits: int | None = None


class Governor:
    """Rate limits, credit checks and subscription tier checks."""

    def __init__(
        self,
        account_store: IAccountStore,
        rate_limiter: IRateLimiter | None = None,
        enforce_credits: bool = True,
    ) -> None:
        self._account_store = account_store
        self._rate_limiter = rate_limiter
        self._enforce_credits = enforce_credits
        self._user_locks: dict[str, asyncio.Lock] = {}
        self._user_lock_waiters: dict[str, int] = {}

    def throttle(self, operation_class: str, identifier: str | None) -> None:
        """
        Count a request against its operation class quota.

        Raises:
            RateLimitExceeded: If the client is over quota
        """
        if self._rate_limiter is None or not identifier:
            return
        self._rate_limiter.enforce(operation_class, identifier)

    async def require_tier(self, user_id: str, required: SubscriptionTier) -> AccountProfile:
        """
        Raises:
            UserNotFoundException: Unknown user
            InsufficientTierException: Tier below ``required``
        """
        profile = await self._account_store.load(user_id)
        if not profile.subscription_tier.includes(required):
            raise InsufficientTierException(
                user_id, required.value, profile.subscription_tier.value
            )
        return profile

    async def run_metered(
        self,
        user_id: str,
        operation: Callable[[], Awaitable[T]],
        idempotency_key: str,
        credit_field: str = AI_ANALYSIS_CREDITS,
    ) -> ChargedResult[T]:
        """
        Run ``operation`` if the user has credit, then charge one credit.

        Calls for one user are serialized so two concurrent requests cannot
        both spend the last credit. A failed operation charges nothing. A
        failed charge after a successful operation is logged and the result
        is still returned with ``credit_charged=False``.

        Raises:
            UserNotFoundException: Unknown user
            InsufficientCreditsException: No credit left
        """
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._user_lock_waiters[user_id] = self._user_lock_waiters.get(user_id, 0) + 1
        try:
            async with lock:
                if self._enforce_credits:
                    profile = await self._account_store.load(user_id)
                    available = profile.credit_balance(credit_field)
                    if available <= 0:
                        raise InsufficientCreditsException(user_id, credit_field, available)

                value = await operation()

                if not self._enforce_credits:
                    return ChargedResult(value=value, credit_charged=False)

                try:
                    remaining = await self._account_store.decrement_credit(
                        user_id, credit_field, 1, idempotency_key
                    )
                except Exception as e:
                    logger.error(
                        f"Credit charge failed after successful operation: {e}",
                        extra={
                            "user_id": user_id,
                            "credit_field": credit_field,
                            "idempotency_key": idempotency_key,
                        },
                        exc_info=True,
                    )
                    return ChargedResult(value=value, credit_charged=False)
        finally:
            self._release_user_lock(user_id)

        logger.info(
            "Credit charged",
            extra={
                "user_id": user_id,
                "credit_field": credit_field,
                "remaining": remaining,
                "idempotency_key": idempotency_key,
            },
        )
        return ChargedResult(value=value, credit_charged=True, remaining_credits=remaining)

    def _release_user_lock(self, user_id: str) -> None:
        # Dropped only once no caller holds or waits on it
        self._user_lock_waiters[user_id] -= 1
        if not self._user_lock_waiters[user_id]:
            del self._user_lock_waiters[user_id]
            del self._user_locks[user_id]
