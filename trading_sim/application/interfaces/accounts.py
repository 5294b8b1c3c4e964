"""
User/Account Store Interface Definitions
"""

from abc import abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Protocol


class SubscriptionTier(Enum):
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return {"free": 0, "premium": 1, "enterprise": 2}[self.value]

    def includes(self, required: "SubscriptionTier") -> bool:
        return self.rank >= required.rank


@dataclass(frozen=True)
class AccountProfile:
    """Account configuration the core reads when creating an engine."""

    user_id: str
    initial_balance: Decimal = Decimal("100000")
    max_positions: int = 10
    credits: dict[str, int] = field(default_factory=dict)
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE

    def credit_balance(self, credit_field: str) -> int:
        return self.credits.get(credit_field, 0)


class IAccountStore(Protocol):
    """User/account store interface."""

    @abstractmethod
    async def load(self, user_id: str) -> AccountProfile:
        """
        Load a user's account configuration.

        Raises:
            UserNotFoundException: If no such user exists
        """
        ...

    @abstractmethod
    async def decrement_credit(
        self,
        user_id: str,
        credit_field: str,
        amount: int = 1,
        idempotency_key: str | None = None,
    ) -> int:
        """
        Atomically decrement a credit counter.

        A given ``idempotency_key`` is applied at most once; repeating it
        returns the current balance without charging again.

        Returns:
            The remaining balance for ``credit_field``

        Raises:
            UserNotFoundException: If no such user exists
        """
        ...
