"""
Trading Use Cases

Caller-facing operations on a user's trading engine: opening and closing
positions, portfolio status, trade history, performance, market data and
AI analysis.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from ...domain.entities.trade import TradeReason
from ...domain.value_objects.symbol import Symbol
from ..interfaces.signals import AnalysisOptions
from ..services.engine_registry import EngineRegistry
from ..services.governor import AI_ANALYSIS_CREDITS, Governor
from .base import UseCase, UseCaseRequest, UseCaseResponse


def _symbol_error(symbol: str) -> str | None:
    if not Symbol.validate(symbol):
        return f"Invalid symbol: {symbol}"
    return None


# Request/Response DTOs
@dataclass
class UserRequest(UseCaseRequest):
    """Request scoped to one user's engine."""

    user_id: str


@dataclass
class OpenPositionRequest(UserRequest):
    symbol: str
    side: str
    quantity: Decimal
    stop_loss: Decimal | None = None
    take_profit: Decimal | None = None
    trailing_stop: Decimal | None = None


@dataclass
class OpenPositionResponse(UseCaseResponse):
    position: dict[str, Any] | None = None


@dataclass
class ClosePositionRequest(UserRequest):
    symbol: str
    reason: str = TradeReason.MANUAL.value


@dataclass
class ClosePositionResponse(UseCaseResponse):
    trade: dict[str, Any] | None = None


@dataclass
class PortfolioStatusRequest(UserRequest):
    pass


@dataclass
class TradeHistoryRequest(UserRequest):
    symbol: str | None = None
    trade_type: str | None = None
    page: int = 1
    limit: int = 50


@dataclass
class PerformanceRequest(UserRequest):
    pass


@dataclass
class MarketDataRequest(UserRequest):
    symbol: str
    timeframe: str = "1d"
    period: str = "1mo"


@dataclass
class AnalyzeSymbolRequest(UserRequest):
    symbol: str
    model: str = "gpt-4"
    timeframe: str = "1d"
    include_ml: bool = True
    include_sentiment: bool = True


@dataclass
class AnalyzeSymbolResponse(UseCaseResponse):
    credit_charged: bool = False
    remaining_credits: int | None = None


@dataclass
class ExitRulesRequest(UserRequest):
    prices: dict[str, Decimal] = field(default_factory=dict)


# Use Case Implementations
class _EngineUseCase(UseCase):
    def __init__(self, registry: EngineRegistry, governor: Governor | None = None) -> None:
        super().__init__(governor=governor)
        self.registry = registry

    async def validate(self, request: UserRequest) -> str | None:  # type: ignore[override]
        if not request.user_id:
            return "User id is required"
        return None


class OpenPositionUseCase(_EngineUseCase):
    """Opens a position at the latest quote."""

    operation_class = "trading"
    response_class = OpenPositionResponse

    async def validate(self, request: OpenPositionRequest) -> str | None:  # type: ignore[override]
        error = await super().validate(request)
        if error:
            return error
        if request.side not in ("long", "short"):
            return "Side must be 'long' or 'short'"
        return _symbol_error(request.symbol)

    async def process(self, request: OpenPositionRequest) -> OpenPositionResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        position = await engine.open_position(
            request.symbol,
            request.side,
            request.quantity,
            stop_loss=request.stop_loss,
            take_profit=request.take_profit,
            trailing_stop=request.trailing_stop,
        )
        self.logger.info(
            f"Opened {position}",
            extra={"user_id": request.user_id, "symbol": position.symbol},
        )
        data = position.to_dict()
        return OpenPositionResponse(
            success=True, data=data, position=data, request_id=request.request_id
        )


class ClosePositionUseCase(_EngineUseCase):
    """Closes a position at the latest quote."""

    operation_class = "trading"
    response_class = ClosePositionResponse

    async def validate(self, request: ClosePositionRequest) -> str | None:  # type: ignore[override]
        error = await super().validate(request)
        if error:
            return error
        if request.reason not in {r.value for r in TradeReason}:
            return f"Unknown close reason: {request.reason}"
        return _symbol_error(request.symbol)

    async def process(self, request: ClosePositionRequest) -> ClosePositionResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        trade = await engine.close_position(request.symbol, request.reason)
        data = trade.to_dict()
        return ClosePositionResponse(
            success=True, data=data, trade=data, request_id=request.request_id
        )


class GetPortfolioStatusUseCase(_EngineUseCase):
    """Returns the portfolio snapshot; unpriced positions mark unrealized figures unavailable."""

    operation_class = "global"

    async def process(self, request: PortfolioStatusRequest) -> UseCaseResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        status = await engine.get_portfolio_status()
        return UseCaseResponse.success_response(status.to_dict(), request.request_id)


class GetTradeHistoryUseCase(_EngineUseCase):
    operation_class = "global"

    async def validate(self, request: TradeHistoryRequest) -> str | None:  # type: ignore[override]
        error = await super().validate(request)
        if error:
            return error
        if request.page < 1:
            return "Page must be at least 1"
        if not 1 <= request.limit <= 500:
            return "Limit must be between 1 and 500"
        if request.trade_type is not None and request.trade_type not in ("open", "close"):
            return "Type must be 'open' or 'close'"
        return None

    async def process(self, request: TradeHistoryRequest) -> UseCaseResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        page = engine.trade_log.query(
            symbol=request.symbol,
            trade_type=request.trade_type,
            page=request.page,
            limit=request.limit,
        )
        return UseCaseResponse.success_response(page.to_dict(), request.request_id)


class GetPerformanceUseCase(_EngineUseCase):
    """Win rate, profit factor, drawdown and monthly returns over closed trades."""

    operation_class = "global"

    async def process(self, request: PerformanceRequest) -> UseCaseResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        summary = engine.performance_summary()
        return UseCaseResponse.success_response(summary.to_dict(), request.request_id)


class GetMarketDataUseCase(_EngineUseCase):
    operation_class = "market_data"

    async def validate(self, request: MarketDataRequest) -> str | None:  # type: ignore[override]
        error = await super().validate(request)
        return error or _symbol_error(request.symbol)

    async def process(self, request: MarketDataRequest) -> UseCaseResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        bars = await engine.get_real_market_data(request.symbol, request.timeframe, request.period)
        return UseCaseResponse.success_response(
            {
                "symbol": Symbol.normalize(request.symbol),
                "timeframe": request.timeframe,
                "period": request.period,
                "bars": [bar.to_dict() for bar in bars],
            },
            request.request_id,
        )


class AnalyzeSymbolUseCase(_EngineUseCase):
    """
    Runs an AI analysis and charges one analysis credit on success.

    The request id is the idempotency key for the charge.
    """

    operation_class = "analysis"
    response_class = AnalyzeSymbolResponse

    def __init__(self, registry: EngineRegistry, governor: Governor) -> None:
        super().__init__(registry, governor)
        self.metering = governor

    async def validate(self, request: AnalyzeSymbolRequest) -> str | None:  # type: ignore[override]
        error = await super().validate(request)
        return error or _symbol_error(request.symbol)

    async def process(self, request: AnalyzeSymbolRequest) -> AnalyzeSymbolResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        options = AnalysisOptions(
            model=request.model,
            timeframe=request.timeframe,
            include_ml=request.include_ml,
            include_sentiment=request.include_sentiment,
        )
        charged = await self.metering.run_metered(
            request.user_id,
            lambda: engine.analyze_symbol_with_ai(request.symbol, options),
            idempotency_key=str(request.request_id),
            credit_field=AI_ANALYSIS_CREDITS,
        )
        return AnalyzeSymbolResponse(
            success=True,
            data=charged.value.to_dict(),
            credit_charged=charged.credit_charged,
            remaining_credits=charged.remaining_credits,
            request_id=request.request_id,
        )


class CheckExitRulesUseCase(_EngineUseCase):
    """Closes positions whose stop-loss, take-profit or trailing stop has been hit."""

    operation_class = "trading"

    async def validate(self, request: ExitRulesRequest) -> str | None:  # type: ignore[override]
        error = await super().validate(request)
        if error:
            return error
        try:
            if any(Decimal(str(p)) <= 0 for p in request.prices.values()):
                return "Prices must be positive"
        except InvalidOperation:
            return "Prices must be numeric"
        return None

    async def process(self, request: ExitRulesRequest) -> UseCaseResponse:  # type: ignore[override]
        engine = await self.registry.get_or_create(request.user_id)
        prices = {Symbol.normalize(s): Decimal(str(p)) for s, p in request.prices.items()}
        trades = await engine.check_exit_rules(prices or None)
        return UseCaseResponse.success_response(
            {"closed": [trade.to_dict() for trade in trades]}, request.request_id
        )
