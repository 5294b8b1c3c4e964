"""
Trade Entity - Immutable record of a position lifecycle event
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from .position import Position, PositionSide, calculate_pnl


class TradeType(Enum):
    OPEN = "open"
    CLOSE = "close"


class TradeReason(Enum):
    """Why a trade happened."""

    MANUAL = "manual"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    BACKTEST = "backtest"
    BACKTEST_END = "backtest_end"


@dataclass(frozen=True)
class Trade:
    """
    Immutable trade record.

    Open trades carry entry data only. Close trades additionally carry the
    exit price, exit time and the P&L fixed at close time.
    """

    symbol: str
    trade_type: TradeType
    side: PositionSide
    quantity: Decimal
    entry_price: Decimal
    entry_time: datetime
    exit_price: Decimal | None = None
    exit_time: datetime | None = None
    pnl: Decimal | None = None
    reason: TradeReason | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.trade_type is TradeType.CLOSE:
            if self.exit_price is None or self.exit_time is None or self.pnl is None:
                raise ValueError("Close trade requires exit price, exit time and pnl")
        elif self.pnl is not None:
            raise ValueError("Open trade cannot carry pnl")

    @classmethod
    def opened(cls, position: Position, reason: TradeReason | None = None) -> "Trade":
        return cls(
            symbol=position.symbol,
            trade_type=TradeType.OPEN,
            side=position.side,
            quantity=position.quantity,
            entry_price=position.entry_price,
            entry_time=position.entry_time,
            reason=reason,
        )

    @classmethod
    def closed(
        cls,
        position: Position,
        exit_price: Decimal,
        exit_time: datetime,
        reason: TradeReason,
    ) -> "Trade":
        return cls(
            symbol=position.symbol,
            trade_type=TradeType.CLOSE,
            side=position.side,
            quantity=position.quantity,
            entry_price=position.entry_price,
            entry_time=position.entry_time,
            exit_price=exit_price,
            exit_time=exit_time,
            pnl=calculate_pnl(position.side, position.quantity, position.entry_price, exit_price),
            reason=reason,
        )

    @property
    def is_close(self) -> bool:
        return self.trade_type is TradeType.CLOSE

    @property
    def is_winner(self) -> bool:
        return self.pnl is not None and self.pnl > 0

    @property
    def timestamp(self) -> datetime:
        """Time of the event: exit time for closes, entry time for opens."""
        return self.exit_time or self.entry_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "symbol": self.symbol,
            "type": self.trade_type.value,
            "side": self.side.value,
            "quantity": str(self.quantity),
            "entry_price": str(self.entry_price),
            "entry_time": self.entry_time.isoformat(),
            "exit_price": str(self.exit_price) if self.exit_price is not None else None,
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "pnl": str(self.pnl) if self.pnl is not None else None,
            "reason": self.reason.value if self.reason else None,
        }
