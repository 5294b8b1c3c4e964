"""
Domain-level exceptions for the trading simulation.

Every exception carries a stable ``error_code`` so that the use case layer
can report typed failures without inspecting exception classes.
"""

from decimal import Decimal
from typing import Any


class DomainException(Exception):
    """Base exception for all domain-level errors."""

    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "details": self.details}


# ============================================================================
# Input Validation
# ============================================================================


class InvalidInputException(DomainException):
    """Raised for malformed input such as a bad symbol or date range."""

    error_code = "INVALID_INPUT"

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidQuantityException(InvalidInputException):
    """Raised when a position quantity is not strictly positive."""

    error_code = "INVALID_QUANTITY"

    def __init__(self, quantity: Any) -> None:
        super().__init__(
            f"Quantity must be greater than 0, got {quantity}", field="quantity", value=quantity
        )
        self.quantity = quantity


# ============================================================================
# Position Lifecycle
# ============================================================================


class PositionException(DomainException):
    """Base exception for position lifecycle errors."""

    error_code = "POSITION_ERROR"

    def __init__(self, message: str, symbol: str | None = None, **kwargs: Any) -> None:
        details = dict(kwargs)
        if symbol:
            details["symbol"] = symbol
        super().__init__(message, details)
        self.symbol = symbol


class PositionNotFoundException(PositionException):
    """Raised when closing a symbol that has no open position."""

    error_code = "POSITION_NOT_FOUND"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"No open position found for {symbol}", symbol=symbol)


class PositionAlreadyOpenException(PositionException):
    """Raised when opening a symbol that already has an open position."""

    error_code = "POSITION_ALREADY_OPEN"

    def __init__(self, symbol: str) -> None:
        super().__init__(f"Position already exists for {symbol}", symbol=symbol)


class PositionLimitExceededException(PositionException):
    """Raised when the engine already holds its maximum number of positions."""

    error_code = "POSITION_LIMIT_EXCEEDED"

    def __init__(self, current_positions: int, max_positions: int) -> None:
        super().__init__(
            f"Maximum positions limit reached ({current_positions}/{max_positions})",
            current_positions=current_positions,
            max_positions=max_positions,
        )
        self.current_positions = current_positions
        self.max_positions = max_positions


# ============================================================================
# Accounts and Credits
# ============================================================================


class UserNotFoundException(DomainException):
    """Raised when the account store has no record for a user."""

    error_code = "USER_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found", {"user_id": user_id})
        self.user_id = user_id


class InsufficientCreditsException(DomainException):
    """Raised when a paid operation is attempted without credits left."""

    error_code = "INSUFFICIENT_CREDITS"

    def __init__(self, user_id: str, credit_field: str, available: int | Decimal = 0) -> None:
        super().__init__(
            f"Insufficient {credit_field} credits for user {user_id}",
            {"user_id": user_id, "credit_field": credit_field, "available": str(available)},
        )
        self.user_id = user_id
        self.credit_field = credit_field
        self.available = available


class InsufficientTierException(DomainException):
    """Raised when an operation needs a higher subscription tier."""

    error_code = "SUBSCRIPTION_UPGRADE_REQUIRED"

    def __init__(self, user_id: str, required_tier: str, current_tier: str) -> None:
        super().__init__(
            f"Subscription tier '{required_tier}' required, user has '{current_tier}'",
            {"user_id": user_id, "required_tier": required_tier, "current_tier": current_tier},
        )
        self.required_tier = required_tier
        self.current_tier = current_tier


# ============================================================================
# Simulation
# ============================================================================


class BacktestException(DomainException):
    """Raised when a backtest cannot be run at all."""

    error_code = "BACKTEST_ERROR"

    def __init__(self, message: str, symbol: str | None = None, **kwargs: Any) -> None:
        details = dict(kwargs)
        if symbol:
            details["symbol"] = symbol
        super().__init__(message, details)
        self.symbol = symbol


class InternalFaultException(DomainException):
    """Raised on an unexpected collaborator failure or invariant violation."""

    error_code = "INTERNAL_FAULT"
