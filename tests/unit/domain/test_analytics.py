"""
Tests for TradeAnalyticsService: monthly returns, drawdown walk, Sharpe-style
ratio and the performance summary.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from trading_sim.domain.entities import Position, PositionSide, Trade, TradeReason
from trading_sim.domain.services import DrawdownResult, TradeAnalyticsService


def closed_trade(pnl: str | int, exit_time: datetime) -> Trade:
    """Long 1 unit at 1000 closed so that P&L equals ``pnl``."""
    entry = Decimal("1000")
    position = Position.open_position(
        "ABC", PositionSide.LONG, 1, entry, entry_time=datetime(2023, 12, 1, tzinfo=UTC)
    )
    return Trade.closed(position, entry + Decimal(str(pnl)), exit_time, TradeReason.MANUAL)


def walk(*pnls: int) -> list[Trade]:
    return [closed_trade(p, datetime(2024, 1, i + 1, tzinfo=UTC)) for i, p in enumerate(pnls)]


@pytest.fixture
def analytics() -> TradeAnalyticsService:
    return TradeAnalyticsService()


class TestMonthlyReturns:
    def test_grouped_and_sorted(self, analytics):
        trades = [
            closed_trade(50, datetime(2024, 3, 5, tzinfo=UTC)),
            closed_trade(-20, datetime(2024, 1, 9, tzinfo=UTC)),
            closed_trade(10, datetime(2024, 3, 28, tzinfo=UTC)),
        ]

        months = analytics.monthly_returns(trades)

        assert [m.month for m in months] == ["2024-01", "2024-03"]
        assert [m.pnl for m in months] == [Decimal("-20"), Decimal("60")]
        assert sum(m.pnl for m in months) == sum(t.pnl for t in trades)

    def test_open_trades_ignored(self, analytics):
        position = Position.open_position("ABC", "long", 1, Decimal("10"))
        assert analytics.monthly_returns([Trade.opened(position)]) == []


class TestDrawdown:
    def test_empty(self, analytics):
        assert analytics.drawdown([]) == DrawdownResult(Decimal("0"), Decimal("0"))

    def test_exact_walk(self, analytics):
        # Cumulative 100, 50, 80, -120 against a peak of 100
        result = analytics.drawdown(walk(100, -50, 30, -200))

        assert result.max_drawdown == Decimal("2.2")
        assert result.current_drawdown == Decimal("2.2")

    def test_recovery_lowers_current(self, analytics):
        result = analytics.drawdown(walk(100, -50, 30))

        assert result.max_drawdown == Decimal("0.5")
        assert result.current_drawdown == Decimal("0.2")

    def test_never_positive_peak(self, analytics):
        result = analytics.drawdown(walk(-10, -20, 5))

        assert result.max_drawdown == Decimal("0")
        assert result.current_drawdown == Decimal("0")

    def test_as_percent(self):
        pct = DrawdownResult(Decimal("0.25"), Decimal("0.1")).as_percent()
        assert pct == {"max_drawdown": Decimal("25.00"), "current_drawdown": Decimal("10.0")}


class TestSharpeRatio:
    def test_fewer_than_two_trades(self, analytics):
        assert analytics.sharpe_ratio(walk(100), Decimal("1000")) == 0.0

    def test_zero_dispersion(self, analytics):
        assert analytics.sharpe_ratio(walk(10, 10, 10), Decimal("1000")) == 0.0

    def test_mean_over_population_std(self, analytics):
        # Returns 0.1 and -0.05: mean 0.025, population std 0.075
        assert analytics.sharpe_ratio(walk(100, -50), Decimal("1000")) == pytest.approx(1 / 3)


class TestPerformance:
    def test_summary(self, analytics):
        summary = analytics.performance(walk(100, -50, 30, -200), Decimal("1000"))

        assert summary.total_trades == 4
        assert summary.winning_trades == 2
        assert summary.losing_trades == 2
        assert summary.win_rate == Decimal("50")
        assert summary.average_win == Decimal("65")
        assert summary.average_loss == Decimal("125")
        assert summary.profit_factor == Decimal("0.52")
        assert summary.largest_win == Decimal("100")
        assert summary.largest_loss == Decimal("-200")
        assert summary.total_pnl == Decimal("-120")

    def test_no_losses_has_no_profit_factor(self, analytics):
        summary = analytics.performance(walk(10, 20), Decimal("1000"))

        assert summary.profit_factor is None
        assert summary.to_dict()["profit_factor"] is None

    def test_empty(self, analytics):
        summary = analytics.performance([], Decimal("1000"))

        assert summary.total_trades == 0
        assert summary.win_rate == Decimal("0")
        assert summary.to_dict()["max_drawdown"] == "0"
