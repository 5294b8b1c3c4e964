"""Application services."""

from .backtest_simulator import BacktestReport, BacktestSimulator, BacktestStrategy
from .engine_registry import EngineRegistry
from .governor import ChargedResult, Governor
from .trading_engine import PortfolioStatus, TradingEngine

__all__ = [
    "BacktestReport",
    "BacktestSimulator",
    "BacktestStrategy",
    "ChargedResult",
    "EngineRegistry",
    "Governor",
    "PortfolioStatus",
    "TradingEngine",
]
