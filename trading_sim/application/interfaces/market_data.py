"""
Market Data Interface Definitions

Defines the contract the trading core needs from a market data provider and
the bar structure it returns.
"""

# Standard library imports
from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

SUPPORTED_TIMEFRAMES = ("1m", "5m", "15m", "30m", "1h", "1d", "1wk", "1mo")

# Lookback period -> calendar days
PERIOD_DAYS: dict[str, int] = {
    "1d": 1,
    "5d": 5,
    "1wk": 7,
    "1mo": 30,
    "3mo": 90,
    "6mo": 180,
    "1y": 365,
    "2y": 730,
    "5y": 1825,
}


@dataclass(frozen=True)
class Bar:
    """
    Represents a single OHLCV bar for market data.

    Attributes:
        symbol: The trading symbol
        timestamp: Bar timestamp (start of period)
        open: Opening price for the period
        high: Highest price during the period
        low: Lowest price during the period
        close: Closing price for the period
        volume: Trading volume during the period
    """

    symbol: str
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int = 0

    def __post_init__(self) -> None:
        """Validate bar data after initialization."""
        if self.high < self.low:
            raise ValueError(f"High price {self.high} cannot be less than low price {self.low}")
        if self.close <= 0:
            raise ValueError(f"Close price must be positive: {self.close}")
        if self.volume < 0:
            raise ValueError(f"Volume cannot be negative: {self.volume}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp.isoformat(),
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "volume": self.volume,
        }


class IMarketDataProvider(Protocol):
    """
    Market data provider interface.

    Implementations enforce their own call timeout and surface it as
    ``MarketDataUnavailableError``; the core never retries.
    """

    @abstractmethod
    async def fetch(self, symbol: str, timeframe: str = "1d", period: str = "1mo") -> list[Bar]:
        """
        Get historical bars for a symbol.

        Args:
            symbol: The trading symbol (e.g., "AAPL", "BTC-USD")
            timeframe: Bar interval, one of ``SUPPORTED_TIMEFRAMES``
            period: Lookback, one of ``PERIOD_DAYS``

        Returns:
            Bars ordered by timestamp (ascending)

        Raises:
            MarketDataError: If the symbol is invalid or nothing was returned
            MarketDataUnavailableError: If the provider is unreachable or timed out
        """
        ...

    @abstractmethod
    async def get_latest_price(self, symbol: str) -> Decimal:
        """
        Get the latest traded price for a symbol.

        Raises:
            MarketDataError: If no price is available for the symbol
            MarketDataUnavailableError: If the provider is unreachable or timed out
        """
        ...


# Market Data Errors
class MarketDataError(Exception):
    """Base exception for market data operations."""

    error_code = "MARKET_DATA_ERROR"


class SymbolNotFoundError(MarketDataError):
    """Exception raised when a symbol is not found or invalid."""

    error_code = "SYMBOL_NOT_FOUND"


class InvalidTimeframeError(MarketDataError):
    """Exception raised when an invalid timeframe is specified."""

    error_code = "INVALID_TIMEFRAME"


class MarketDataUnavailableError(MarketDataError):
    """Exception raised when the provider cannot be reached in time."""

    error_code = "MARKET_DATA_UNAVAILABLE"
