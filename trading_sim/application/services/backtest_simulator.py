"""
BacktestSimulator - replays historical bars through an isolated TradingEngine

Every run builds its own engine, so a backtest can never touch a live
user's positions or trades. The walk records an explicit outcome for each
bar; a collaborator failure on one bar is recorded and the walk moves on.
"""

import logging
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time as dt_time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

import pandas as pd

from ...domain.entities.position import PositionSide, RiskParameters
from ...domain.entities.trade import Trade, TradeReason
from ...domain.exceptions import InvalidInputException
from ...domain.services import indicators
from ...domain.services.analytics import TradeAnalyticsService
from ...domain.services.exit_rules import ExitRuleService
from ...domain.value_objects.symbol import Symbol
from ..config import BacktestConfig
from ..interfaces.market_data import Bar, IMarketDataProvider, MarketDataError
from ..interfaces.signals import (
    SUPPORTED_MODELS,
    AnalysisError,
    AnalysisOptions,
    ISignalProvider,
    SignalResult,
    SignalType,
)
from .trading_engine import TradingEngine

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    AnalysisError,
    MarketDataError,
    TimeoutError,
    ConnectionError,
)


class BacktestStrategy(Enum):
    AI_SIGNALS = "ai-signals"
    TECHNICAL = "technical"
    HYBRID = "hybrid"

    @property
    def uses_ai(self) -> bool:
        return self is not BacktestStrategy.TECHNICAL

    @property
    def uses_technical(self) -> bool:
        return self is not BacktestStrategy.AI_SIGNALS


class StepAction(Enum):
    NONE = "none"
    OPENED = "opened"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass(frozen=True)
class BarStep:
    """Outcome of one walked bar."""

    index: int
    timestamp: datetime
    actions: tuple[StepAction, ...] = (StepAction.NONE,)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class EquityPoint:
    timestamp: datetime
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    equity: Decimal


@dataclass
class BacktestParameters:
    symbol: str
    start_date: datetime | date
    end_date: datetime | date
    strategy: BacktestStrategy | str = BacktestStrategy.AI_SIGNALS
    model: str = "gpt-4"
    initial_balance: Decimal | None = None
    owner_id: str = "anonymous"


@dataclass
class BacktestReport:
    """Summary of one backtest run. Drawdown and returns are fractions."""

    engine_id: str
    symbol: str
    strategy: BacktestStrategy
    model: str
    period: str
    initial_balance: Decimal
    final_balance: Decimal
    total_return: Decimal
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    max_drawdown: Decimal = Decimal("0")
    sharpe_ratio: float = 0.0
    win_rate: Decimal = Decimal("0")
    profit_factor: Decimal | None = None
    bars_processed: int = 0
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    steps: list[BarStep] = field(default_factory=list)

    @property
    def failed_steps(self) -> int:
        return sum(1 for step in self.steps if step.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "engine_id": self.engine_id,
            "symbol": self.symbol,
            "strategy": self.strategy.value,
            "model": self.model,
            "period": self.period,
            "initial_balance": str(self.initial_balance),
            "final_balance": str(self.final_balance),
            "total_return": str(self.total_return),
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": str(self.win_rate),
            "profit_factor": str(self.profit_factor) if self.profit_factor is not None else None,
            "max_drawdown": str(self.max_drawdown),
            "sharpe_ratio": self.sharpe_ratio,
            "bars_processed": self.bars_processed,
            "failed_steps": self.failed_steps,
            "trades": [trade.to_dict() for trade in self.trades],
            "equity_curve": [
                {
                    "timestamp": point.timestamp.isoformat(),
                    "realized_pnl": str(point.realized_pnl),
                    "unrealized_pnl": str(point.unrealized_pnl),
                    "equity": str(point.equity),
                }
                for point in self.equity_curve
            ],
        }


def lookback_period(start: datetime | date, end: datetime | date) -> str:
    """Coarse history window large enough to cover ``start``..``end``."""
    span = abs(_as_utc(end) - _as_utc(start))
    days = math.ceil(span.total_seconds() / 86400)
    if days <= 7:
        return "1wk"
    if days <= 30:
        return "1mo"
    if days <= 90:
        return "3mo"
    if days <= 180:
        return "6mo"
    if days <= 365:
        return "1y"
    return "2y"


def technical_signal(bars: Sequence[Bar]) -> SignalResult:
    """RSI(14) and MACD(12, 26, 9) rule over closing prices."""
    closes = pd.Series([float(bar.close) for bar in bars], dtype="float64")
    symbol = bars[-1].symbol if bars else ""
    rsi_value = indicators.rsi(closes, 14)
    macd_value = indicators.macd(closes)
    details: dict[str, Any] = {
        "rsi": rsi_value,
        "macd": macd_value.macd if macd_value else None,
        "macd_histogram": macd_value.histogram if macd_value else None,
    }

    if rsi_value is None or macd_value is None:
        return SignalResult(SignalType.HOLD, Decimal("0"), symbol, details)
    if rsi_value < 30 and macd_value.macd > 0:
        return SignalResult(SignalType.BUY, Decimal("0.75"), symbol, details)
    if rsi_value > 70 and macd_value.macd < 0:
        return SignalResult(SignalType.SELL, Decimal("0.75"), symbol, details)
    return SignalResult(SignalType.HOLD, Decimal("0.5"), symbol, details)


def _as_utc(value: datetime | date, end_of_day: bool = False) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, dt_time.max if end_of_day else dt_time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class BacktestSimulator:
    """
    Drives an isolated engine through historical bars.

    Walk order per bar: consult the strategy (only while flat), then apply
    the fixed stop-loss / take-profit thresholds at the bar's close. After
    the walk any open position is closed at the last bar's close.
    """

    def __init__(
        self,
        market_data: IMarketDataProvider,
        signal_provider: ISignalProvider | None,
        config: BacktestConfig | None = None,
    ) -> None:
        self.market_data = market_data
        self.signal_provider = signal_provider
        self.config = config or BacktestConfig()
        self._analytics = TradeAnalyticsService()

    def validate(self, params: BacktestParameters) -> BacktestStrategy:
        """
        Raises:
            InvalidInputException: Bad symbol, strategy, model, balance or date range
        """
        Symbol.normalize(params.symbol)
        try:
            strategy = BacktestStrategy(params.strategy)
        except ValueError:
            raise InvalidInputException(
                f"Unknown strategy: {params.strategy}", field="strategy", value=params.strategy
            ) from None
        if params.model not in SUPPORTED_MODELS:
            raise InvalidInputException(
                f"Unsupported model: {params.model}", field="model", value=params.model
            )
        if _as_utc(params.start_date) >= _as_utc(params.end_date):
            raise InvalidInputException("Start date must be before end date", field="start_date")
        if params.initial_balance is not None and params.initial_balance <= 0:
            raise InvalidInputException(
                "Initial balance must be positive",
                field="initial_balance",
                value=params.initial_balance,
            )
        if strategy.uses_ai and self.signal_provider is None:
            raise InvalidInputException(f"Strategy '{strategy.value}' needs a signal provider")
        return strategy

    async def run(self, params: BacktestParameters) -> BacktestReport:
        """
        Run one backtest.

        Raises:
            InvalidInputException: Invalid parameters
            MarketDataError: History could not be fetched
            InternalFaultException: Engine bookkeeping broke during the walk
        """
        strategy = self.validate(params)
        symbol = Symbol.normalize(params.symbol)
        initial_balance = Decimal(
            str(params.initial_balance or self.config.default_initial_balance)
        )
        period = lookback_period(params.start_date, params.end_date)

        history = await self.market_data.fetch(symbol, "1d", period)
        start = _as_utc(params.start_date)
        end = _as_utc(params.end_date, end_of_day=True)
        bars = sorted(
            (bar for bar in history if start <= _as_utc(bar.timestamp) <= end),
            key=lambda bar: _as_utc(bar.timestamp),
        )

        engine_id = f"backtest_{params.owner_id}_{int(time.time() * 1000)}_{uuid4().hex[:8]}"
        engine = TradingEngine(
            engine_id=engine_id,
            market_data=self.market_data,
            signal_provider=self.signal_provider,
            initial_balance=initial_balance,
            max_positions=1,
            default_risk=RiskParameters(
                stop_loss=self.config.stop_loss, take_profit=self.config.take_profit
            ),
        )
        await engine.start()

        report = BacktestReport(
            engine_id=engine_id,
            symbol=symbol,
            strategy=strategy,
            model=params.model,
            period=period,
            initial_balance=initial_balance,
            final_balance=initial_balance,
            total_return=Decimal("0"),
        )
        logger.info(
            "Backtest started",
            extra={
                "engine_id": engine_id,
                "symbol": symbol,
                "strategy": strategy.value,
                "bars": len(bars),
                "period": period,
            },
        )

        for index in range(self.config.warmup_bars, len(bars) - 1):
            step = await self._step(engine, report, bars, index, strategy, params.model)
            report.steps.append(step)
            report.equity_curve.append(self._equity_point(engine, bars[index]))
            if step.failed:
                logger.warning(
                    f"Backtest step {index} failed: {step.error}",
                    extra={"engine_id": engine_id, "symbol": symbol, "bar_index": index},
                )
        report.bars_processed = len(report.steps)

        if bars:
            last = bars[-1]
            for position in engine.ledger.get_open_positions():
                trade = await engine.close_position(
                    position.symbol,
                    TradeReason.BACKTEST_END,
                    price_override=last.close,
                    exit_time=last.timestamp,
                )
                report.trades.append(trade)
            report.equity_curve.append(self._equity_point(engine, last))

        status = await engine.get_portfolio_status(prices={symbol: bars[-1].close} if bars else {})
        await engine.stop()

        if status.total_portfolio_value is not None and status.total_return is not None:
            report.final_balance = status.total_portfolio_value
            report.total_return = status.total_return
        report.max_drawdown = self._analytics.drawdown(report.trades).max_drawdown
        report.sharpe_ratio = self._analytics.sharpe_ratio(report.trades, initial_balance)
        summary = self._analytics.performance(report.trades, initial_balance)
        report.win_rate = summary.win_rate
        report.profit_factor = summary.profit_factor

        logger.info(
            "Backtest finished",
            extra={
                "engine_id": engine_id,
                "symbol": symbol,
                "total_trades": report.total_trades,
                "total_return": str(report.total_return),
                "failed_steps": report.failed_steps,
            },
        )
        return report

    async def _step(
        self,
        engine: TradingEngine,
        report: BacktestReport,
        bars: Sequence[Bar],
        index: int,
        strategy: BacktestStrategy,
        model: str,
    ) -> BarStep:
        bar = bars[index]
        actions: list[StepAction] = []
        try:
            if engine.ledger.is_flat():
                signal = await self._decide(engine, bars[: index + 1], strategy, model)
                if (
                    signal.signal is SignalType.BUY
                    and signal.confidence > self.config.signal_confidence_threshold
                ):
                    await engine.open_position(
                        bar.symbol,
                        PositionSide.LONG,
                        self.config.simulated_quantity,
                        price_override=bar.close,
                        entry_time=bar.timestamp,
                        reason=TradeReason.BACKTEST,
                    )
                    report.total_trades += 1
                    actions.append(StepAction.OPENED)

            for position in engine.ledger.get_open_positions():
                if ExitRuleService.breaches_thresholds(
                    position, bar.close, self.config.stop_loss, self.config.take_profit
                ):
                    trade = await engine.close_position(
                        position.symbol,
                        TradeReason.BACKTEST,
                        price_override=bar.close,
                        exit_time=bar.timestamp,
                    )
                    report.trades.append(trade)
                    if trade.is_winner:
                        report.winning_trades += 1
                    else:
                        report.losing_trades += 1
                    actions.append(StepAction.CLOSED)
        except TRANSIENT_ERRORS as e:
            return BarStep(index, bar.timestamp, (*actions, StepAction.FAILED), str(e))

        return BarStep(index, bar.timestamp, tuple(actions) or (StepAction.NONE,))

    async def _decide(
        self,
        engine: TradingEngine,
        observed: Sequence[Bar],
        strategy: BacktestStrategy,
        model: str,
    ) -> SignalResult:
        symbol = observed[-1].symbol
        technical = technical_signal(observed) if strategy.uses_technical else None
        if strategy is BacktestStrategy.TECHNICAL and technical is not None:
            return technical

        ai = await engine.analyze_symbol_with_ai(
            symbol,
            AnalysisOptions(
                model=model,
                timeframe=self.config.signal_timeframe,
                include_ml=True,
                include_sentiment=False,
            ),
            bars=observed,
        )
        if technical is not None and technical.signal is SignalType.SELL:
            return SignalResult(SignalType.HOLD, Decimal("0"), symbol, {"vetoed_by": "technical"})
        return ai

    @staticmethod
    def _equity_point(engine: TradingEngine, bar: Bar) -> EquityPoint:
        realized = engine.trade_log.realized_pnl()
        unrealized = sum(
            (p.calculate_pnl(bar.close) for p in engine.ledger.get_open_positions()),
            Decimal("0"),
        )
        return EquityPoint(
            timestamp=bar.timestamp,
            realized_pnl=realized,
            unrealized_pnl=unrealized,
            equity=engine.initial_balance + realized + unrealized,
        )
