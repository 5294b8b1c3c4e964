"""
Trade Analytics Service

Pure calculations over a sequence of trades: monthly returns, drawdown,
Sharpe-style ratio and a combined performance summary. Nothing here mutates
the trades it is given.
"""

import statistics
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..entities.trade import Trade

ZERO = Decimal("0")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class MonthlyReturn:
    """Summed P&L for one calendar month of exits."""

    month: str  # YYYY-MM
    pnl: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"month": self.month, "pnl": str(self.pnl)}


@dataclass(frozen=True)
class DrawdownResult:
    """Drawdown figures as fractions of the running peak."""

    max_drawdown: Decimal = ZERO
    current_drawdown: Decimal = ZERO

    def as_percent(self) -> dict[str, Decimal]:
        return {
            "max_drawdown": self.max_drawdown * HUNDRED,
            "current_drawdown": self.current_drawdown * HUNDRED,
        }


@dataclass
class PerformanceSummary:
    """Aggregate performance over closed trades."""

    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: Decimal = ZERO
    average_win: Decimal = ZERO
    average_loss: Decimal = ZERO
    profit_factor: Decimal | None = None
    largest_win: Decimal = ZERO
    largest_loss: Decimal = ZERO
    total_pnl: Decimal = ZERO
    sharpe_ratio: float = 0.0
    drawdown: DrawdownResult = field(default_factory=DrawdownResult)
    monthly_returns: list[MonthlyReturn] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        drawdown = self.drawdown.as_percent()
        return {
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": str(self.win_rate),
            "average_win": str(self.average_win),
            "average_loss": str(self.average_loss),
            "profit_factor": str(self.profit_factor) if self.profit_factor is not None else None,
            "largest_win": str(self.largest_win),
            "largest_loss": str(self.largest_loss),
            "total_pnl": str(self.total_pnl),
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": str(drawdown["max_drawdown"]),
            "current_drawdown": str(drawdown["current_drawdown"]),
            "monthly_returns": [m.to_dict() for m in self.monthly_returns],
        }


class TradeAnalyticsService:
    """
    Service for deriving portfolio metrics from closed trades.

    All methods are pure: the same input always gives the same result and
    the trades are only read.
    """

    def monthly_returns(self, trades: Iterable[Trade]) -> list[MonthlyReturn]:
        """
        Group closed trades by exit month and sum their P&L.

        Trades without an exit time or P&L are ignored.

        Returns:
            One entry per month, sorted ascending by ``YYYY-MM`` key
        """
        totals: dict[str, Decimal] = {}
        for trade in trades:
            if trade.exit_time is None or trade.pnl is None:
                continue
            key = trade.exit_time.strftime("%Y-%m")
            totals[key] = totals.get(key, ZERO) + trade.pnl
        return [MonthlyReturn(month=key, pnl=totals[key]) for key in sorted(totals)]

    def drawdown(self, trades: Iterable[Trade]) -> DrawdownResult:
        """
        Walk trades in the given order accumulating P&L and track the decline
        from the running peak.

        A drawdown value is only computed while the peak is positive, so a
        cumulative value that never rises above zero yields zero drawdown.
        """
        peak = ZERO
        current_value = ZERO
        max_drawdown = ZERO
        current_drawdown = ZERO

        for trade in trades:
            if trade.pnl is None:
                continue
            current_value += trade.pnl
            if current_value > peak:
                peak = current_value
            current_drawdown = (peak - current_value) / peak if peak > 0 else ZERO
            if current_drawdown > max_drawdown:
                max_drawdown = current_drawdown

        return DrawdownResult(max_drawdown=max_drawdown, current_drawdown=current_drawdown)

    def sharpe_ratio(self, trades: Sequence[Trade], initial_balance: Decimal) -> float:
        """
        Mean over standard deviation of per-trade returns on the initial balance.

        Returns 0.0 with fewer than two priced trades or zero dispersion.
        """
        if initial_balance <= 0:
            return 0.0
        returns = [float(t.pnl / initial_balance) for t in trades if t.pnl is not None]
        if len(returns) < 2:
            return 0.0
        std = statistics.pstdev(returns)
        if std == 0:
            return 0.0
        return statistics.fmean(returns) / std

    def performance(self, trades: Sequence[Trade], initial_balance: Decimal) -> PerformanceSummary:
        """Build the full performance summary for the closed trades given."""
        closed = [t for t in trades if t.pnl is not None]
        wins = [t.pnl for t in closed if t.pnl is not None and t.pnl > 0]
        losses = [t.pnl for t in closed if t.pnl is not None and t.pnl <= 0]

        gross_profit = sum(wins, ZERO)
        gross_loss = abs(sum(losses, ZERO))

        summary = PerformanceSummary(
            total_trades=len(closed),
            winning_trades=len(wins),
            losing_trades=len(losses),
            total_pnl=gross_profit - gross_loss,
            sharpe_ratio=self.sharpe_ratio(closed, initial_balance),
            drawdown=self.drawdown(closed),
            monthly_returns=self.monthly_returns(closed),
        )
        if closed:
            summary.win_rate = Decimal(len(wins)) / Decimal(len(closed)) * HUNDRED
        if wins:
            summary.average_win = gross_profit / len(wins)
            summary.largest_win = max(wins)
        if losses:
            summary.average_loss = gross_loss / len(losses)
            summary.largest_loss = min(losses)
        if gross_loss > 0:
            summary.profit_factor = gross_profit / gross_loss
        return summary
