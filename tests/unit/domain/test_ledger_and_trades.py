"""
Tests for the PositionLedger, Trade records and the TradeLog.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from trading_sim.domain.entities import (
    Position,
    PositionLedger,
    PositionSide,
    Trade,
    TradeLog,
    TradeReason,
    TradeType,
)
from trading_sim.domain.exceptions import (
    InternalFaultException,
    InvalidInputException,
    PositionAlreadyOpenException,
    PositionLimitExceededException,
    PositionNotFoundException,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def position(symbol: str = "ABC", price: str = "100", when: datetime = T0) -> Position:
    return Position.open_position(symbol, PositionSide.LONG, 10, Decimal(price), entry_time=when)


class TestPositionLedger:
    """Test ledger uniqueness and capacity rules"""

    def test_add_and_get(self):
        ledger = PositionLedger(max_positions=2)
        ledger.add(position("ABC"))

        assert ledger.has_position("ABC")
        assert "ABC" in ledger
        assert ledger.get("ABC").symbol == "ABC"
        assert len(ledger) == 1
        assert not ledger.is_flat()

    def test_duplicate_symbol_rejected(self):
        ledger = PositionLedger()
        ledger.add(position("ABC"))

        with pytest.raises(PositionAlreadyOpenException) as exc_info:
            ledger.add(position("ABC"))
        assert exc_info.value.error_code == "POSITION_ALREADY_OPEN"
        assert len(ledger) == 1

    def test_limit_enforced(self):
        ledger = PositionLedger(max_positions=1)
        ledger.add(position("ABC"))

        assert ledger.is_position_limit_reached()
        with pytest.raises(PositionLimitExceededException):
            ledger.add(position("XYZ"))

    def test_remove_missing(self):
        with pytest.raises(PositionNotFoundException):
            PositionLedger().remove("ABC")

    def test_remove_frees_slot(self):
        ledger = PositionLedger(max_positions=1)
        ledger.add(position("ABC"))
        ledger.remove("ABC")
        ledger.add(position("XYZ"))

        assert ledger.symbols() == ["XYZ"]

    def test_iteration_is_snapshot(self):
        ledger = PositionLedger()
        ledger.add(position("ABC"))
        ledger.add(position("XYZ"))

        for p in ledger:
            ledger.remove(p.symbol)

        assert ledger.is_flat()

    def test_invalid_capacity(self):
        with pytest.raises(InvalidInputException):
            PositionLedger(max_positions=0)


class TestTrade:
    """Test trade record construction"""

    def test_closed_trade_pnl_fixed_at_close(self):
        p = position()
        trade = Trade.closed(p, Decimal("110"), T0 + timedelta(days=1), TradeReason.MANUAL)

        assert trade.trade_type is TradeType.CLOSE
        assert trade.pnl == Decimal("100")
        assert trade.is_winner
        assert trade.timestamp == T0 + timedelta(days=1)

    def test_open_trade_has_no_pnl(self):
        trade = Trade.opened(position())

        assert trade.pnl is None
        assert trade.exit_price is None
        assert trade.timestamp == T0

    def test_close_requires_exit_fields(self):
        with pytest.raises(ValueError):
            Trade(
                symbol="ABC",
                trade_type=TradeType.CLOSE,
                side=PositionSide.LONG,
                quantity=Decimal("1"),
                entry_price=Decimal("1"),
                entry_time=T0,
            )

    def test_trade_is_immutable(self):
        trade = Trade.opened(position())
        with pytest.raises(AttributeError):
            trade.quantity = Decimal("5")  # type: ignore[misc]

    def test_to_dict(self):
        data = Trade.closed(position(), Decimal("90"), T0, TradeReason.STOP_LOSS).to_dict()

        assert data["type"] == "close"
        assert data["pnl"] == "-100"
        assert data["reason"] == "stop_loss"


class TestTradeLog:
    """Test append rules, aggregation and paginated queries"""

    @pytest.fixture
    def log(self) -> TradeLog:
        log = TradeLog()
        for day, symbol, exit_price in [(0, "ABC", "110"), (1, "XYZ", "95"), (2, "ABC", "105")]:
            p = position(symbol, when=T0 + timedelta(days=day))
            log.append(Trade.opened(p))
            log.append(
                Trade.closed(
                    p, Decimal(exit_price), T0 + timedelta(days=day, hours=6), TradeReason.MANUAL
                )
            )
        return log

    def test_close_without_open_rejected(self):
        log = TradeLog()
        trade = Trade.closed(position(), Decimal("110"), T0, TradeReason.MANUAL)

        with pytest.raises(InternalFaultException):
            log.append(trade)
        assert len(log) == 0

    def test_second_close_for_one_open_rejected(self):
        log = TradeLog()
        p = position()
        log.append(Trade.opened(p))
        log.append(Trade.closed(p, Decimal("101"), T0, TradeReason.MANUAL))

        with pytest.raises(InternalFaultException):
            log.append(Trade.closed(p, Decimal("102"), T0, TradeReason.MANUAL))

    def test_realized_pnl(self, log):
        assert log.realized_pnl() == Decimal("100") - Decimal("50") + Decimal("50")
        assert len(log.closed_trades()) == 3

    def test_realized_pnl_on_day(self, log):
        assert log.realized_pnl_on((T0 + timedelta(days=1)).date()) == Decimal("-50")

    def test_query_newest_first(self, log):
        page = log.query()

        timestamps = [t.timestamp for t in page.trades]
        assert timestamps == sorted(timestamps, reverse=True)
        assert page.total == 6

    def test_query_filters(self, log):
        page = log.query(symbol="abc", trade_type="close")

        assert page.total == 2
        assert all(t.symbol == "ABC" and t.is_close for t in page.trades)

    def test_query_pagination(self, log):
        page = log.query(page=2, limit=4)

        assert len(page.trades) == 2
        assert page.pages == 2
        assert page.to_dict()["pagination"] == {"page": 2, "limit": 4, "total": 6, "pages": 2}

    def test_query_ties_newest_appended_first(self):
        log = TradeLog()
        first = position("ABC")
        second = position("XYZ")
        log.append(Trade.opened(first))
        log.append(Trade.opened(second))

        assert [t.symbol for t in log.query().trades] == ["XYZ", "ABC"]

    @pytest.mark.parametrize("kwargs", [{"page": 0}, {"limit": 0}, {"limit": 501}, {"trade_type": "x"}])
    def test_query_invalid_arguments(self, log, kwargs):
        with pytest.raises(InvalidInputException):
            log.query(**kwargs)
