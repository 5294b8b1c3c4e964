"""Contracts for the collaborators the trading core depends on."""

from .accounts import AccountProfile, IAccountStore, SubscriptionTier
from .market_data import (
    Bar,
    IMarketDataProvider,
    InvalidTimeframeError,
    MarketDataError,
    MarketDataUnavailableError,
    SymbolNotFoundError,
)
from .rate_limiter import IRateLimiter
from .signals import AnalysisError, AnalysisOptions, ISignalProvider, SignalResult, SignalType

__all__ = [
    "AccountProfile",
    "AnalysisError",
    "AnalysisOptions",
    "Bar",
    "IAccountStore",
    "IMarketDataProvider",
    "IRateLimiter",
    "ISignalProvider",
    "InvalidTimeframeError",
    "MarketDataError",
    "MarketDataUnavailableError",
    "SignalResult",
    "SignalType",
    "SubscriptionTier",
    "SymbolNotFoundError",
]
