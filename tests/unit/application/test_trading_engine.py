"""
Tests for TradingEngine: position lifecycle, portfolio status, exit-rule
sweeps and collaborator delegation.
"""

import asyncio
from decimal import Decimal

import pytest

from tests.fakes import FakeSignalProvider, buy, make_bars
from trading_sim.application.interfaces.market_data import (
    MarketDataError,
    MarketDataUnavailableError,
)
from trading_sim.application.interfaces.signals import AnalysisError, AnalysisOptions, SignalType
from trading_sim.domain.entities import Position, TradeReason, TradeType
from trading_sim.domain.exceptions import (
    InvalidInputException,
    InvalidQuantityException,
    PositionAlreadyOpenException,
    PositionLimitExceededException,
    PositionNotFoundException,
)


class TestOpenPosition:
    """Test opening positions"""

    @pytest.mark.asyncio
    async def test_open_uses_latest_quote(self, engine):
        position = await engine.open_position("abc", "long", 10)

        assert position.symbol == "ABC"
        assert position.entry_price == Decimal("100")
        assert engine.ledger.has_position("ABC")
        assert len(engine.trade_log) == 1
        assert engine.trade_log[0].trade_type is TradeType.OPEN

    @pytest.mark.asyncio
    async def test_open_with_custom_risk(self, engine):
        position = await engine.open_position(
            "ABC", "short", 5, stop_loss=0.05, take_profit=0.1, trailing_stop=0.03
        )

        assert position.risk.stop_loss == Decimal("0.05")
        assert position.risk.take_profit == Decimal("0.1")
        assert position.risk.trailing_stop == Decimal("0.03")

    @pytest.mark.asyncio
    async def test_duplicate_symbol(self, engine):
        await engine.open_position("ABC", "long", 10)

        with pytest.raises(PositionAlreadyOpenException):
            await engine.open_position("ABC", "short", 1)
        assert len(engine.trade_log) == 1

    @pytest.mark.asyncio
    async def test_position_limit(self, engine, market_data):
        market_data.prices["DEF"] = Decimal("10")
        for symbol in ("ABC", "XYZ", "AAPL"):
            await engine.open_position(symbol, "long", 1)

        with pytest.raises(PositionLimitExceededException):
            await engine.open_position("DEF", "long", 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -1, "abc", "NaN"])
    async def test_invalid_quantity(self, engine, quantity):
        with pytest.raises(InvalidQuantityException):
            await engine.open_position("ABC", "long", quantity)
        assert engine.ledger.is_flat()

    @pytest.mark.asyncio
    async def test_invalid_symbol(self, engine):
        with pytest.raises(InvalidInputException):
            await engine.open_position("not a symbol!", "long", 1)

    @pytest.mark.asyncio
    async def test_quote_failure_is_unavailable(self, engine, market_data):
        market_data.failing.add("ABC")

        with pytest.raises(MarketDataUnavailableError):
            await engine.open_position("ABC", "long", 1)
        assert engine.ledger.is_flat()
        assert len(engine.trade_log) == 0

    @pytest.mark.asyncio
    async def test_concurrent_opens_same_symbol(self, engine):
        results = await asyncio.gather(
            engine.open_position("ABC", "long", 1),
            engine.open_position("ABC", "long", 1),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], PositionAlreadyOpenException)
        assert len(engine.ledger) == 1


class TestClosePosition:
    """Test closing positions"""

    @pytest.mark.asyncio
    async def test_long_round_trip(self, engine, market_data):
        await engine.open_position("ABC", "long", 10)
        market_data.prices["ABC"] = Decimal("110")

        trade = await engine.close_position("ABC")

        assert trade.pnl == Decimal("100")
        assert trade.reason is TradeReason.MANUAL
        assert not engine.ledger.has_position("ABC")

    @pytest.mark.asyncio
    async def test_short_round_trip_with_override(self, engine):
        await engine.open_position("ABC", "short", 10)

        trade = await engine.close_position("ABC", "stop_loss", price_override=Decimal("90"))

        assert trade.pnl == Decimal("100")
        assert trade.reason is TradeReason.STOP_LOSS

    @pytest.mark.asyncio
    async def test_close_missing_appends_nothing(self, engine):
        with pytest.raises(PositionNotFoundException):
            await engine.close_position("ABC")
        assert len(engine.trade_log) == 0

    @pytest.mark.asyncio
    async def test_unknown_reason(self, engine):
        await engine.open_position("ABC", "long", 1)
        with pytest.raises(InvalidInputException):
            await engine.close_position("ABC", "bored")

    @pytest.mark.asyncio
    async def test_reopen_after_close(self, engine):
        await engine.open_position("ABC", "long", 1)
        await engine.close_position("ABC")
        await engine.open_position("ABC", "short", 2)

        assert [t.trade_type for t in engine.trade_log] == [
            TradeType.OPEN,
            TradeType.CLOSE,
            TradeType.OPEN,
        ]

    @pytest.mark.asyncio
    async def test_balance_unchanged(self, engine):
        await engine.open_position("ABC", "long", 10)
        await engine.close_position("ABC", price_override=Decimal("120"))

        assert engine.balance == Decimal("100000")

    def test_calculate_position_pnl(self, engine):
        position = Position.open_position("ABC", "short", 10, Decimal("100"))
        assert engine.calculate_position_pnl(position, Decimal("90")) == Decimal("100")


class TestPortfolioStatus:
    """Test portfolio snapshot"""

    @pytest.mark.asyncio
    async def test_flat_portfolio(self, engine):
        status = await engine.get_portfolio_status()

        assert status.total_portfolio_value == Decimal("100000")
        assert status.total_return == Decimal("0")
        assert status.open_positions == 0

    @pytest.mark.asyncio
    async def test_realized_and_unrealized(self, engine, market_data):
        await engine.open_position("ABC", "long", 10)
        await engine.close_position("ABC", price_override=Decimal("110"))
        await engine.open_position("XYZ", "short", 10)
        market_data.prices["XYZ"] = Decimal("45")

        status = await engine.get_portfolio_status()

        assert status.realized_pnl == Decimal("100")
        assert status.unrealized_pnl == Decimal("50")
        assert status.total_portfolio_value == Decimal("100150")
        assert status.total_return == Decimal("100150") / Decimal("100000") - 1
        assert status.daily_pnl == Decimal("100")
        assert status.positions[0]["current_price"] == "45"

    @pytest.mark.asyncio
    async def test_quote_failure_marks_unavailable(self, engine, market_data):
        await engine.open_position("ABC", "long", 10)
        await engine.open_position("XYZ", "long", 10)
        market_data.failing.add("XYZ")

        status = await engine.get_portfolio_status()

        assert status.unavailable_symbols == ["XYZ"]
        assert status.unrealized_pnl is None
        assert status.total_portfolio_value is None
        assert status.total_return is None
        assert status.to_dict()["unrealized_pnl"] is None

    @pytest.mark.asyncio
    async def test_price_map_skips_fetch(self, engine, market_data):
        await engine.open_position("ABC", "long", 10)
        market_data.price_calls.clear()

        status = await engine.get_portfolio_status(prices={"ABC": Decimal("90")})

        assert status.unrealized_pnl == Decimal("-100")
        assert market_data.price_calls == []


class TestExitRuleSweep:
    @pytest.mark.asyncio
    async def test_closes_breached_positions(self, engine):
        await engine.open_position("ABC", "long", 10)
        await engine.open_position("XYZ", "long", 10)

        closed = await engine.check_exit_rules(
            prices={"ABC": Decimal("97"), "XYZ": Decimal("50.5")}
        )

        assert [t.reason for t in closed] == [TradeReason.STOP_LOSS]
        assert engine.ledger.symbols() == ["XYZ"]

    @pytest.mark.asyncio
    async def test_failed_quote_skipped(self, engine, market_data):
        await engine.open_position("ABC", "long", 10)
        market_data.failing.add("ABC")

        assert await engine.check_exit_rules() == []
        assert engine.ledger.has_position("ABC")


class TestCollaborators:
    @pytest.mark.asyncio
    async def test_analysis_passed_through(self, engine, signal_provider):
        signal_provider.signals = [buy("0.4")]

        result = await engine.analyze_symbol_with_ai("abc", AnalysisOptions(model="claude-3-opus"))

        assert result.signal is SignalType.BUY
        assert result.confidence == Decimal("0.4")
        assert signal_provider.calls[0][0] == "ABC"

    @pytest.mark.asyncio
    async def test_analysis_error_propagates(self, engine):
        engine.signal_provider = FakeSignalProvider([AnalysisError("down")])

        with pytest.raises(AnalysisError):
            await engine.analyze_symbol_with_ai("ABC")

    @pytest.mark.asyncio
    async def test_unsupported_model(self, engine):
        with pytest.raises(InvalidInputException):
            await engine.analyze_symbol_with_ai("ABC", AnalysisOptions(model="gpt-2"))

    @pytest.mark.asyncio
    async def test_market_data_sorted(self, engine, market_data):
        market_data.bars = list(reversed(make_bars([1, 2, 3])))

        bars = await engine.get_real_market_data("ABC", "1d", "1mo")

        assert [b.close for b in bars] == [Decimal("1"), Decimal("2"), Decimal("3")]

    @pytest.mark.asyncio
    async def test_market_data_empty(self, engine):
        with pytest.raises(MarketDataError):
            await engine.get_real_market_data("ABC")

    @pytest.mark.asyncio
    async def test_market_data_bad_timeframe(self, engine):
        with pytest.raises(InvalidInputException):
            await engine.get_real_market_data("ABC", timeframe="7m")


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_stop_keeps_positions(self, engine):
        await engine.start()
        await engine.open_position("ABC", "long", 1)
        await engine.stop()

        assert not engine.is_active
        assert engine.ledger.has_position("ABC")
