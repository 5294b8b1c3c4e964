"""
Yahoo Finance market data provider.

yfinance is blocking, so every call runs in a worker thread and is bounded
by ``timeout_seconds``. A timeout or transport failure surfaces as
``MarketDataUnavailableError``; an empty result as ``MarketDataError``.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar

import pandas as pd
import yfinance as yf

from trading_sim.application.interfaces.market_data import (
    PERIOD_DAYS,
    Bar,
    MarketDataError,
    MarketDataUnavailableError,
)
from trading_sim.infrastructure.monitoring.logging import log_trading_operation

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Requested timeframe -> yfinance interval; hourly bars are served as daily
INTERVALS = {
    "1m": "1m",
    "2m": "2m",
    "5m": "5m",
    "15m": "15m",
    "30m": "30m",
    "1h": "1d",
    "1d": "1d",
    "1wk": "1wk",
    "1mo": "1mo",
}
DEFAULT_PERIOD_DAYS = 30


def to_interval(timeframe: str) -> str:
    return INTERVALS.get(timeframe, "1d")


def period_start(period: str, now: datetime | None = None) -> datetime:
    now = now or datetime.now(UTC)
    return now - timedelta(days=PERIOD_DAYS.get(period, DEFAULT_PERIOD_DAYS))


def frame_to_bars(symbol: str, frame: pd.DataFrame) -> list[Bar]:
    """Convert a yfinance history frame into chronological bars, skipping incomplete rows."""
    if frame is None or frame.empty:
        return []

    bars: list[Bar] = []
    for timestamp, row in frame.sort_index().iterrows():
        if pd.isna(row.get("Close")) or pd.isna(row.get("Open")):
            continue
        ts = pd.Timestamp(timestamp)
        ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
        volume = row.get("Volume", 0)
        bars.append(
            Bar(
                symbol=symbol,
                timestamp=ts.to_pydatetime(),
                open=Decimal(str(row["Open"])),
                high=Decimal(str(row["High"])),
                low=Decimal(str(row["Low"])),
                close=Decimal(str(row["Close"])),
                volume=0 if pd.isna(volume) else int(volume),
            )
        )
    return bars


class YahooMarketDataProvider:
    """``IMarketDataProvider`` backed by yfinance."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        ticker_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._ticker_factory = ticker_factory or yf.Ticker

    async def _call(self, symbol: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func), timeout=self.timeout_seconds)
        except TimeoutError:
            raise MarketDataUnavailableError(
                f"Market data request for {symbol} timed out after {self.timeout_seconds}s"
            ) from None
        except MarketDataError:
            raise
        except (ConnectionError, OSError) as e:
            raise MarketDataUnavailableError(f"Market data provider unreachable: {e}") from e
        except Exception as e:
            raise MarketDataError(f"Failed to fetch market data for {symbol}: {e}") from e

    @log_trading_operation("market_data")
    async def fetch(self, symbol: str, timeframe: str = "1d", period: str = "1mo") -> list[Bar]:
        start = period_start(period)
        interval = to_interval(timeframe)
        ticker = self._ticker_factory(symbol)

        frame = await self._call(
            symbol,
            lambda: ticker.history(start=start, end=datetime.now(UTC), interval=interval),
        )
        bars = frame_to_bars(symbol, frame)
        if not bars:
            raise MarketDataError(f"No market data returned for {symbol}")

        logger.debug(
            f"Fetched {len(bars)} bars",
            extra={"symbol": symbol, "interval": interval, "period": period},
        )
        return bars

    async def get_latest_price(self, symbol: str) -> Decimal:
        ticker = self._ticker_factory(symbol)
        frame = await self._call(symbol, lambda: ticker.history(period="5d", interval="1d"))
        bars = frame_to_bars(symbol, frame)
        if not bars:
            raise MarketDataError(f"No price available for {symbol}")
        return bars[-1].close
