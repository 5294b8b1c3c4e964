"""
In-memory account store

Holds account profiles and credit counters for a single process. Credit
decrements are serialized and idempotent per key.
"""

import asyncio
import logging
from dataclasses import replace
from decimal import Decimal

from trading_sim.application.interfaces.accounts import AccountProfile, SubscriptionTier
from trading_sim.domain.exceptions import (
    InsufficientCreditsException,
    InvalidInputException,
    UserNotFoundException,
)

logger = logging.getLogger(__name__)


class InMemoryAccountStore:
    """``IAccountStore`` implementation backed by a dict."""

    def __init__(self, profiles: list[AccountProfile] | None = None) -> None:
        self._profiles: dict[str, AccountProfile] = {p.user_id: p for p in profiles or []}
        self._applied_keys: dict[str, int] = {}
        self._lock = asyncio.Lock()

    def add_account(
        self,
        user_id: str,
        initial_balance: Decimal | int | str = Decimal("100000"),
        max_positions: int = 10,
        credits: dict[str, int] | None = None,
        subscription_tier: SubscriptionTier = SubscriptionTier.FREE,
    ) -> AccountProfile:
        profile = AccountProfile(
            user_id=user_id,
            initial_balance=Decimal(str(initial_balance)),
            max_positions=max_positions,
            credits=dict(credits or {}),
            subscription_tier=subscription_tier,
        )
        self._profiles[user_id] = profile
        return profile

    def set_credits(self, user_id: str, credit_field: str, amount: int) -> None:
        profile = self._require(user_id)
        self._profiles[user_id] = replace(
            profile, credits={**profile.credits, credit_field: amount}
        )

    def _require(self, user_id: str) -> AccountProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise UserNotFoundException(user_id)
        return profile

    async def load(self, user_id: str) -> AccountProfile:
        return self._require(user_id)

    async def decrement_credit(
        self,
        user_id: str,
        credit_field: str,
        amount: int = 1,
        idempotency_key: str | None = None,
    ) -> int:
        if amount <= 0:
            raise InvalidInputException("Credit amount must be positive", "amount", amount)

        async with self._lock:
            profile = self._require(user_id)

            if idempotency_key is not None and idempotency_key in self._applied_keys:
                logger.debug(
                    "Duplicate credit charge ignored",
                    extra={"user_id": user_id, "idempotency_key": idempotency_key},
                )
                return profile.credit_balance(credit_field)

            available = profile.credit_balance(credit_field)
            if available < amount:
                raise InsufficientCreditsException(user_id, credit_field, available)

            remaining = available - amount
            self._profiles[user_id] = replace(
                profile, credits={**profile.credits, credit_field: remaining}
            )
            if idempotency_key is not None:
                self._applied_keys[idempotency_key] = amount
            return remaining
