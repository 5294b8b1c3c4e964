"""
Technical indicators over closing prices.

Computed with pandas over a ``pd.Series`` of closes; each indicator returns
``None`` when there is not enough history for the requested period.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import pandas as pd


def to_series(values: Sequence[float] | pd.Series) -> pd.Series:
    if isinstance(values, pd.Series):
        return values.astype("float64").reset_index(drop=True)
    return pd.Series(list(values), dtype="float64")


def ema(prices: pd.Series, span: int) -> pd.Series:
    """Exponential moving average, seeded with the first price."""
    return prices.ewm(span=span, adjust=False).mean()


def rsi(values: Sequence[float] | pd.Series, period: int = 14) -> float | None:
    """Wilder's relative strength index of the latest close."""
    prices = to_series(values)
    if period <= 0 or len(prices) < period + 1:
        return None

    delta = prices.diff()
    gain = delta.where(delta > 0, 0.0).ewm(alpha=1 / period, adjust=False).mean()
    loss = (-delta.where(delta < 0, 0.0)).ewm(alpha=1 / period, adjust=False).mean()

    avg_gain, avg_loss = float(gain.iloc[-1]), float(loss.iloc[-1])
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else 50.0
    return 100 - 100 / (1 + avg_gain / avg_loss)


@dataclass(frozen=True)
class MACDResult:
    macd: float
    signal: float

    @property
    def histogram(self) -> float:
        return self.macd - self.signal


def macd(
    values: Sequence[float] | pd.Series, fast: int = 12, slow: int = 26, signal_period: int = 9
) -> MACDResult | None:
    """Latest MACD line and signal line; ``None`` with fewer than ``slow`` closes."""
    prices = to_series(values)
    if len(prices) < slow:
        return None

    line = ema(prices, fast) - ema(prices, slow)
    signal = ema(line, signal_period)
    return MACDResult(macd=float(line.iloc[-1]), signal=float(signal.iloc[-1]))
