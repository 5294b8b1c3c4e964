"""
Exit rule evaluation for open positions.
"""

from dataclasses import dataclass
from decimal import Decimal

from ..entities.position import Position
from ..entities.trade import TradeReason


@dataclass(frozen=True)
class ExitDecision:
    symbol: str
    reason: TradeReason
    price: Decimal
    pnl_fraction: Decimal


class ExitRuleService:
    """
    Decides whether a position should be closed at a given price.

    Stop-loss is checked first, then take-profit, then the trailing stop.
    Evaluating ratchets the trailing-stop extreme before testing it.
    """

    def evaluate(self, position: Position, current_price: Decimal) -> ExitDecision | None:
        fraction = position.pnl_fraction(current_price)

        if position.should_stop_loss(current_price):
            return ExitDecision(position.symbol, TradeReason.STOP_LOSS, current_price, fraction)
        if position.should_take_profit(current_price):
            return ExitDecision(position.symbol, TradeReason.TAKE_PROFIT, current_price, fraction)

        position.update_extreme_price(current_price)
        if position.should_trailing_stop(current_price):
            return ExitDecision(
                position.symbol, TradeReason.TRAILING_STOP, current_price, fraction
            )
        return None

    @staticmethod
    def breaches_thresholds(
        position: Position, current_price: Decimal, stop_loss: Decimal, take_profit: Decimal
    ) -> bool:
        """True when fractional P&L is at or beyond either fixed threshold."""
        fraction = position.pnl_fraction(current_price)
        return fraction <= -stop_loss or fraction >= take_profit
