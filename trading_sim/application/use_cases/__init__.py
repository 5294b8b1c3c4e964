"""Use cases exposed to the routing layer."""

from .backtest import RunBacktestRequest, RunBacktestResponse, RunBacktestUseCase
from .base import UseCase, UseCaseRequest, UseCaseResponse
from .trading import (
    AnalyzeSymbolRequest,
    AnalyzeSymbolResponse,
    AnalyzeSymbolUseCase,
    CheckExitRulesUseCase,
    ClosePositionRequest,
    ClosePositionResponse,
    ClosePositionUseCase,
    ExitRulesRequest,
    GetMarketDataUseCase,
    GetPerformanceUseCase,
    GetPortfolioStatusUseCase,
    GetTradeHistoryUseCase,
    MarketDataRequest,
    OpenPositionRequest,
    OpenPositionResponse,
    OpenPositionUseCase,
    PerformanceRequest,
    PortfolioStatusRequest,
    TradeHistoryRequest,
)

__all__ = [
    "AnalyzeSymbolRequest",
    "AnalyzeSymbolResponse",
    "AnalyzeSymbolUseCase",
    "CheckExitRulesUseCase",
    "ClosePositionRequest",
    "ClosePositionResponse",
    "ClosePositionUseCase",
    "ExitRulesRequest",
    "GetMarketDataUseCase",
    "GetPerformanceUseCase",
    "GetPortfolioStatusUseCase",
    "GetTradeHistoryUseCase",
    "MarketDataRequest",
    "OpenPositionRequest",
    "OpenPositionResponse",
    "OpenPositionUseCase",
    "PerformanceRequest",
    "PortfolioStatusRequest",
    "RunBacktestRequest",
    "RunBacktestResponse",
    "RunBacktestUseCase",
    "TradeHistoryRequest",
    "UseCase",
    "UseCaseRequest",
    "UseCaseResponse",
]
