"""
TradingEngine - per-user trading simulation state and operations

Owns one PositionLedger and one TradeLog. Mutations (open, close and
exit-rule sweeps) are serialized with a per-engine asyncio lock so that
concurrent requests for the same user cannot open two positions in one
symbol. Prices and signals come from the injected collaborators.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from ...domain.entities.ledger import PositionLedger
from ...domain.entities.position import Position, PositionSide, RiskParameters
from ...domain.entities.trade import Trade, TradeReason
from ...domain.entities.trade_log import TradeLog
from ...domain.exceptions import InvalidInputException, InvalidQuantityException
from ...domain.services.analytics import PerformanceSummary, TradeAnalyticsService
from ...domain.services.exit_rules import ExitRuleService
from ...domain.value_objects.symbol import Symbol
from ..interfaces.market_data import (
    PERIOD_DAYS,
    SUPPORTED_TIMEFRAMES,
    Bar,
    IMarketDataProvider,
    MarketDataError,
    MarketDataUnavailableError,
)
from ..interfaces.signals import SUPPORTED_MODELS, AnalysisOptions, ISignalProvider, SignalResult

logger = logging.getLogger(__name__)


@dataclass
class PortfolioStatus:
    """
    Snapshot of an engine's portfolio.

    When any open position could not be priced, ``unrealized_pnl``,
    ``total_portfolio_value`` and ``total_return`` are ``None`` and the
    affected symbols are listed in ``unavailable_symbols``.
    """

    engine_id: str
    balance: Decimal
    initial_balance: Decimal
    realized_pnl: Decimal
    unrealized_pnl: Decimal | None
    total_portfolio_value: Decimal | None
    total_return: Decimal | None
    daily_pnl: Decimal
    open_positions: int
    max_positions: int
    is_active: bool
    positions: list[dict[str, Any]] = field(default_factory=list)
    unavailable_symbols: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        def fmt(value: Decimal | None) -> str | None:
            return str(value) if value is not None else None

        return {
            "engine_id": self.engine_id,
            "balance": str(self.balance),
            "initial_balance": str(self.initial_balance),
            "realized_pnl": str(self.realized_pnl),
            "unrealized_pnl": fmt(self.unrealized_pnl),
            "total_portfolio_value": fmt(self.total_portfolio_value),
            "total_return": fmt(self.total_return),
            "daily_pnl": str(self.daily_pnl),
            "open_positions": self.open_positions,
            "max_positions": self.max_positions,
            "is_active": self.is_active,
            "positions": self.positions,
            "unavailable_symbols": self.unavailable_symbols,
        }


class TradingEngine:
    """
    Trading engine for a single user or a single backtest run.

    Balance is the configured starting cash and is not moved by opening or
    closing positions; portfolio value is balance plus realized plus
    unrealized P&L.
    """

    def __init__(
        self,
        engine_id: str,
        market_data: IMarketDataProvider,
        signal_provider: ISignalProvider | None = None,
        initial_balance: Decimal = Decimal("100000"),
        max_positions: int = 10,
        default_risk: RiskParameters | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if initial_balance <= 0:
            raise InvalidInputException(
                "Initial balance must be positive", field="initial_balance", value=initial_balance
            )
        self.engine_id = engine_id
        self.market_data = market_data
        self.signal_provider = signal_provider
        self.initial_balance = Decimal(str(initial_balance))
        self.balance = self.initial_balance
        self.default_risk = default_risk or RiskParameters()

        self.ledger = PositionLedger(max_positions=max_positions)
        self.trade_log = TradeLog()

        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = asyncio.Lock()
        self._exit_rules = ExitRuleService()
        self._analytics = TradeAnalyticsService()
        self._active = False
        self.last_activity = time.monotonic()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def max_positions(self) -> int:
        return self.ledger.max_positions

    async def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._touch()
        logger.info("Trading engine started", extra={"engine_id": self.engine_id})

    async def stop(self) -> None:
        """Deactivate the engine. Open positions are left untouched."""
        if not self._active:
            return
        self._active = False
        logger.info(
            "Trading engine stopped",
            extra={"engine_id": self.engine_id, "open_positions": len(self.ledger)},
        )

    def _touch(self) -> None:
        self.last_activity = time.monotonic()

    # ------------------------------------------------------------------
    # Position lifecycle
    # ------------------------------------------------------------------

    async def open_position(
        self,
        symbol: str,
        side: PositionSide | str,
        quantity: Decimal | int | float | str,
        stop_loss: Decimal | float | None = None,
        take_profit: Decimal | float | None = None,
        trailing_stop: Decimal | float | None = None,
        price_override: Decimal | None = None,
        entry_time: datetime | None = None,
        reason: TradeReason | None = None,
    ) -> Position:
        """
        Open a position at the latest quote (or ``price_override``).

        Raises:
            InvalidInputException: Bad symbol, side or risk parameters
            InvalidQuantityException: Quantity not greater than zero
            PositionAlreadyOpenException: Symbol already held
            PositionLimitExceededException: Ledger is full
            MarketDataUnavailableError: Quote could not be fetched
        """
        normalized = Symbol.normalize(symbol)
        position_side = PositionSide.parse(side)
        qty = self._parse_quantity(quantity)
        risk = RiskParameters.from_options(
            stop_loss if stop_loss is not None else self.default_risk.stop_loss,
            take_profit if take_profit is not None else self.default_risk.take_profit,
            trailing_stop if trailing_stop is not None else self.default_risk.trailing_stop,
        )

        async with self._lock:
            self._touch()
            self.ledger.ensure_can_open(normalized)

            entry_price = (
                Decimal(str(price_override))
                if price_override is not None
                else await self._latest_price(normalized)
            )
            position = Position.open_position(
                symbol=normalized,
                side=position_side,
                quantity=qty,
                entry_price=entry_price,
                risk=risk,
                entry_time=entry_time or self._clock(),
            )
            self.ledger.add(position)
            self.trade_log.append(Trade.opened(position, reason))

        logger.info(
            "Position opened",
            extra={
                "engine_id": self.engine_id,
                "symbol": normalized,
                "side": position_side.value,
                "quantity": str(qty),
                "entry_price": str(entry_price),
            },
        )
        return position

    async def close_position(
        self,
        symbol: str,
        reason: TradeReason | str = TradeReason.MANUAL,
        price_override: Decimal | None = None,
        exit_time: datetime | None = None,
    ) -> Trade:
        """
        Close the open position in ``symbol`` and record the close trade.

        Raises:
            PositionNotFoundException: No open position in the symbol
            MarketDataUnavailableError: Quote could not be fetched
        """
        normalized = Symbol.normalize(symbol)
        trade_reason = self._parse_reason(reason)

        async with self._lock:
            self._touch()
            position = self.ledger.get(normalized)
            exit_price = (
                Decimal(str(price_override))
                if price_override is not None
                else await self._latest_price(normalized)
            )
            trade = self._close_locked(position, exit_price, exit_time, trade_reason)
        return trade

    def _close_locked(
        self,
        position: Position,
        exit_price: Decimal,
        exit_time: datetime | None,
        reason: TradeReason,
    ) -> Trade:
        if exit_price <= 0:
            raise InvalidInputException(
                f"Invalid exit price for {position.symbol}: {exit_price}",
                field="exit_price",
                value=exit_price,
            )
        trade = Trade.closed(position, exit_price, exit_time or self._clock(), reason)
        self.ledger.remove(position.symbol)
        self.trade_log.append(trade)

        logger.info(
            "Position closed",
            extra={
                "engine_id": self.engine_id,
                "symbol": position.symbol,
                "reason": reason.value,
                "exit_price": str(exit_price),
                "pnl": str(trade.pnl),
            },
        )
        return trade

    def calculate_position_pnl(self, position: Position, current_price: Decimal) -> Decimal:
        return position.calculate_pnl(Decimal(str(current_price)))

    async def check_exit_rules(self, prices: Mapping[str, Decimal] | None = None) -> list[Trade]:
        """
        Close every position whose stop-loss, take-profit or trailing stop is hit.

        Prices come from ``prices`` when given, else the latest quote. A symbol
        whose quote fails is skipped for this sweep.
        """
        closed: list[Trade] = []
        async with self._lock:
            self._touch()
            for position in self.ledger:
                try:
                    price = (
                        Decimal(str(prices[position.symbol]))
                        if prices and position.symbol in prices
                        else await self._latest_price(position.symbol)
                    )
                except MarketDataError as e:
                    logger.warning(
                        f"Skipping exit check for {position.symbol}: {e}",
                        extra={"engine_id": self.engine_id, "symbol": position.symbol},
                    )
                    continue

                decision = self._exit_rules.evaluate(position, price)
                if decision is not None:
                    closed.append(self._close_locked(position, price, None, decision.reason))
        return closed

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------

    async def get_portfolio_status(
        self, prices: Mapping[str, Decimal] | None = None
    ) -> PortfolioStatus:
        """Price every open position and summarize the portfolio. Read-only."""
        async with self._lock:
            positions = self.ledger.get_open_positions()
            realized = self.trade_log.realized_pnl()
            daily = self.trade_log.realized_pnl_on(self._clock().date())

        quotes = await self._price_positions(positions, prices or {})

        details: list[dict[str, Any]] = []
        unavailable: list[str] = []
        unrealized = Decimal("0")
        for position in positions:
            price = quotes.get(position.symbol)
            if price is None:
                unavailable.append(position.symbol)
                details.append(position.to_dict())
                continue
            unrealized += position.calculate_pnl(price)
            details.append(position.to_dict(price))

        if unavailable:
            unrealized_pnl = total_value = total_return = None
        else:
            unrealized_pnl = unrealized
            total_value = self.balance + realized + unrealized
            total_return = total_value / self.initial_balance - 1

        return PortfolioStatus(
            engine_id=self.engine_id,
            balance=self.balance,
            initial_balance=self.initial_balance,
            realized_pnl=realized,
            unrealized_pnl=unrealized_pnl,
            total_portfolio_value=total_value,
            total_return=total_return,
            daily_pnl=daily,
            open_positions=len(positions),
            max_positions=self.max_positions,
            is_active=self._active,
            positions=details,
            unavailable_symbols=unavailable,
        )

    async def _price_positions(
        self, positions: Sequence[Position], prices: Mapping[str, Decimal]
    ) -> dict[str, Decimal]:
        quotes: dict[str, Decimal] = {}
        to_fetch: list[str] = []
        for position in positions:
            if position.symbol in prices:
                quotes[position.symbol] = Decimal(str(prices[position.symbol]))
            else:
                to_fetch.append(position.symbol)

        results = await asyncio.gather(
            *(self._latest_price(symbol) for symbol in to_fetch), return_exceptions=True
        )
        for symbol, result in zip(to_fetch, results, strict=True):
            if isinstance(result, MarketDataError):
                logger.warning(
                    f"Price unavailable for {symbol}: {result}",
                    extra={"engine_id": self.engine_id, "symbol": symbol},
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                quotes[symbol] = result
        return quotes

    def performance_summary(self) -> PerformanceSummary:
        return self._analytics.performance(self.trade_log.closed_trades(), self.initial_balance)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def analyze_symbol_with_ai(
        self,
        symbol: str,
        options: AnalysisOptions | None = None,
        bars: Sequence[Bar] | None = None,
    ) -> SignalResult:
        """
        Ask the signal provider for a signal. The result is returned as is.

        Raises:
            InvalidInputException: Bad symbol, model or timeframe
            AnalysisError: Provider failure
        """
        if self.signal_provider is None:
            raise InvalidInputException("No signal provider configured for this engine")
        normalized = Symbol.normalize(symbol)
        opts = options or AnalysisOptions()
        if opts.model not in SUPPORTED_MODELS:
            raise InvalidInputException(f"Unsupported model: {opts.model}", field="model")
        if opts.timeframe not in SUPPORTED_TIMEFRAMES:
            raise InvalidInputException(
                f"Unsupported timeframe: {opts.timeframe}", field="timeframe"
            )

        self._touch()
        return await self.signal_provider.analyze(normalized, opts, bars)

    async def get_real_market_data(
        self, symbol: str, timeframe: str = "1d", period: str = "1mo"
    ) -> list[Bar]:
        """
        Fetch chronological OHLCV bars for a symbol.

        Raises:
            InvalidInputException: Bad symbol, timeframe or period
            MarketDataError: Provider failure or no data returned
        """
        normalized = Symbol.normalize(symbol)
        if timeframe not in SUPPORTED_TIMEFRAMES:
            raise InvalidInputException(f"Unsupported timeframe: {timeframe}", field="timeframe")
        if period not in PERIOD_DAYS:
            raise InvalidInputException(f"Unsupported period: {period}", field="period")

        self._touch()
        bars = await self.market_data.fetch(normalized, timeframe, period)
        if not bars:
            raise MarketDataError(f"No market data returned for {normalized}")
        return sorted(bars, key=lambda bar: bar.timestamp)

    async def _latest_price(self, symbol: str) -> Decimal:
        try:
            price = await self.market_data.get_latest_price(symbol)
        except MarketDataUnavailableError:
            raise
        except MarketDataError as e:
            raise MarketDataUnavailableError(f"Could not get price for {symbol}: {e}") from e
        if price is None or price <= 0:
            raise MarketDataUnavailableError(f"Invalid price for {symbol}: {price}")
        return Decimal(str(price))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_quantity(quantity: Decimal | int | float | str) -> Decimal:
        try:
            qty = Decimal(str(quantity))
        except ArithmeticError:
            raise InvalidQuantityException(quantity) from None
        if not qty.is_finite() or qty <= 0:
            raise InvalidQuantityException(quantity)
        return qty

    @staticmethod
    def _parse_reason(reason: TradeReason | str) -> TradeReason:
        if isinstance(reason, TradeReason):
            return reason
        try:
            return TradeReason(reason)
        except ValueError:
            raise InvalidInputException(
                f"Unknown close reason: {reason}", field="reason", value=reason
            ) from None

    def __repr__(self) -> str:
        return (
            f"TradingEngine(engine_id={self.engine_id!r}, positions={len(self.ledger)}, "
            f"trades={len(self.trade_log)})"
        )
