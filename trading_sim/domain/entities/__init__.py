"""Domain entities with business logic."""

from .ledger import PositionLedger
from .position import Position, PositionSide, RiskParameters, calculate_pnl
from .trade import Trade, TradeReason, TradeType
from .trade_log import TradeLog, TradePage

__all__ = [
    "Position",
    "PositionLedger",
    "PositionSide",
    "RiskParameters",
    "Trade",
    "TradeLog",
    "TradePage",
    "TradeReason",
    "TradeType",
    "calculate_pnl",
]
