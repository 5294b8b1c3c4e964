"""
Position Entity - Represents one open exposure with P&L and exit-rule tracking
"""

# Standard library imports
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from ..exceptions import InvalidInputException, InvalidQuantityException

DEFAULT_STOP_LOSS = Decimal("0.02")
DEFAULT_TAKE_PROFIT = Decimal("0.06")
MAX_STOP_LOSS = Decimal("0.5")
MAX_TAKE_PROFIT = Decimal("2.0")
MAX_TRAILING_STOP = Decimal("0.5")


class PositionSide(Enum):
    """Position side enumeration"""

    LONG = "long"
    SHORT = "short"

    @property
    def direction(self) -> int:
        return 1 if self is PositionSide.LONG else -1

    @classmethod
    def parse(cls, value: "PositionSide | str") -> "PositionSide":
        if isinstance(value, PositionSide):
            return value
        try:
            return cls(str(value).lower().strip())
        except ValueError:
            raise InvalidInputException(
                "Side must be 'long' or 'short'", field="side", value=value
            ) from None


def calculate_pnl(
    side: PositionSide, quantity: Decimal, entry_price: Decimal, exit_price: Decimal
) -> Decimal:
    """Signed P&L: (exit - entry) * quantity for long, (entry - exit) * quantity for short."""
    return (exit_price - entry_price) * quantity * side.direction


@dataclass(frozen=True)
class RiskParameters:
    """Exit thresholds attached to a position, expressed as fractions of entry value."""

    stop_loss: Decimal = DEFAULT_STOP_LOSS
    take_profit: Decimal = DEFAULT_TAKE_PROFIT
    trailing_stop: Decimal | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "stop_loss", Decimal(str(self.stop_loss)))
        object.__setattr__(self, "take_profit", Decimal(str(self.take_profit)))
        if self.trailing_stop is not None:
            object.__setattr__(self, "trailing_stop", Decimal(str(self.trailing_stop)))

        if not (Decimal("0") < self.stop_loss <= MAX_STOP_LOSS):
            raise InvalidInputException(
                f"Stop loss must be in (0, {MAX_STOP_LOSS}]", field="stop_loss", value=self.stop_loss
            )
        if not (Decimal("0") < self.take_profit <= MAX_TAKE_PROFIT):
            raise InvalidInputException(
                f"Take profit must be in (0, {MAX_TAKE_PROFIT}]",
                field="take_profit",
                value=self.take_profit,
            )
        if self.trailing_stop is not None and not (
            Decimal("0") < self.trailing_stop <= MAX_TRAILING_STOP
        ):
            raise InvalidInputException(
                f"Trailing stop must be in (0, {MAX_TRAILING_STOP}]",
                field="trailing_stop",
                value=self.trailing_stop,
            )

    @classmethod
    def from_options(
        cls,
        stop_loss: Any = None,
        take_profit: Any = None,
        trailing_stop: Any = None,
    ) -> "RiskParameters":
        """Build parameters from optional caller values, filling in defaults."""
        return cls(
            stop_loss=DEFAULT_STOP_LOSS if stop_loss is None else Decimal(str(stop_loss)),
            take_profit=DEFAULT_TAKE_PROFIT if take_profit is None else Decimal(str(take_profit)),
            trailing_stop=None if trailing_stop is None else Decimal(str(trailing_stop)),
        )


@dataclass
class Position:
    """
    Position entity representing an open trading position.

    A position exists only while open. Closing it is done by the ledger,
    which removes it and records a close trade; the object itself is never
    reopened. The only in-place mutation is the trailing-stop ratchet.
    """

    # Identity
    symbol: str
    side: PositionSide

    # Position details
    quantity: Decimal
    entry_price: Decimal
    entry_time: datetime = field(default_factory=lambda: datetime.now(UTC))

    # Risk management
    risk: RiskParameters = field(default_factory=RiskParameters)
    extreme_price: Decimal | None = None

    def __post_init__(self) -> None:
        """Validate position after initialization"""
        self._validate()
        if self.extreme_price is None:
            self.extreme_price = self.entry_price

    def _validate(self) -> None:
        if not self.symbol:
            raise InvalidInputException("Position symbol cannot be empty", field="symbol")
        if self.quantity <= 0:
            raise InvalidQuantityException(self.quantity)
        if self.entry_price <= 0:
            raise InvalidInputException(
                "Entry price must be positive", field="entry_price", value=self.entry_price
            )

    @classmethod
    def open_position(
        cls,
        symbol: str,
        side: PositionSide | str,
        quantity: Decimal | int | float | str,
        entry_price: Decimal,
        risk: RiskParameters | None = None,
        entry_time: datetime | None = None,
    ) -> "Position":
        """Factory method to open a new position."""
        qty = Decimal(str(quantity))
        if qty <= 0:
            raise InvalidQuantityException(quantity)
        return cls(
            symbol=symbol,
            side=PositionSide.parse(side),
            quantity=qty,
            entry_price=Decimal(str(entry_price)),
            entry_time=entry_time or datetime.now(UTC),
            risk=risk or RiskParameters(),
        )

    # ------------------------------------------------------------------
    # P&L
    # ------------------------------------------------------------------

    @property
    def cost_basis(self) -> Decimal:
        return self.entry_price * self.quantity

    def calculate_pnl(self, current_price: Decimal) -> Decimal:
        """Unrealized P&L at the given price. Does not mutate the position."""
        return calculate_pnl(self.side, self.quantity, self.entry_price, current_price)

    def pnl_fraction(self, current_price: Decimal) -> Decimal:
        """P&L as a fraction of the entry value."""
        return self.calculate_pnl(current_price) / self.cost_basis

    # ------------------------------------------------------------------
    # Exit rules
    # ------------------------------------------------------------------

    def should_stop_loss(self, current_price: Decimal) -> bool:
        return self.pnl_fraction(current_price) <= -self.risk.stop_loss

    def should_take_profit(self, current_price: Decimal) -> bool:
        return self.pnl_fraction(current_price) >= self.risk.take_profit

    def update_extreme_price(self, current_price: Decimal) -> None:
        """Ratchet the most favourable price seen; never moves backwards."""
        if self.extreme_price is None:
            self.extreme_price = current_price
        elif self.side is PositionSide.LONG and current_price > self.extreme_price:
            self.extreme_price = current_price
        elif self.side is PositionSide.SHORT and current_price < self.extreme_price:
            self.extreme_price = current_price

    def trailing_stop_price(self) -> Decimal | None:
        if self.risk.trailing_stop is None or self.extreme_price is None:
            return None
        if self.side is PositionSide.LONG:
            return self.extreme_price * (Decimal("1") - self.risk.trailing_stop)
        return self.extreme_price * (Decimal("1") + self.risk.trailing_stop)

    def should_trailing_stop(self, current_price: Decimal) -> bool:
        level = self.trailing_stop_price()
        if level is None:
            return False
        if self.side is PositionSide.LONG:
            return current_price <= level
        return current_price >= level

    def to_dict(self, current_price: Decimal | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": str(self.quantity),
            "entry_price": str(self.entry_price),
            "entry_time": self.entry_time.isoformat(),
            "stop_loss": str(self.risk.stop_loss),
            "take_profit": str(self.risk.take_profit),
            "trailing_stop": (
                str(self.risk.trailing_stop) if self.risk.trailing_stop is not None else None
            ),
        }
        if current_price is not None:
            data["current_price"] = str(current_price)
            data["unrealized_pnl"] = str(self.calculate_pnl(current_price))
            data["unrealized_pnl_percent"] = str(self.pnl_fraction(current_price) * 100)
        return data

    def __str__(self) -> str:
        return f"{self.side.value} {self.quantity} {self.symbol} @ {self.entry_price}"
