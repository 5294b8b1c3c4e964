"""
AI Signal Interface Definitions

The trading core treats signal generation as a black box: it passes a
symbol and options in and receives a signal with a confidence back.
"""

from abc import abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol

from .market_data import Bar

SUPPORTED_MODELS = ("gpt-4", "gpt-4-turbo", "claude-3-sonnet", "claude-3-opus")


class SignalType(Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


@dataclass(frozen=True)
class AnalysisOptions:
    """Options forwarded to the signal provider."""

    model: str = "gpt-4"
    timeframe: str = "1d"
    include_ml: bool = True
    include_sentiment: bool = True


@dataclass(frozen=True)
class SignalResult:
    """
    Outcome of one analysis call.

    ``details`` carries whatever else the provider returned; the core passes
    it through untouched.
    """

    signal: SignalType
    confidence: Decimal
    symbol: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        confidence = Decimal(str(self.confidence))
        if not Decimal("0") <= confidence <= Decimal("1"):
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")
        object.__setattr__(self, "confidence", confidence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "signal": self.signal.value,
            "confidence": str(self.confidence),
            **self.details,
        }


class ISignalProvider(Protocol):
    """AI signal provider interface."""

    @abstractmethod
    async def analyze(
        self,
        symbol: str,
        options: AnalysisOptions,
        bars: Sequence[Bar] | None = None,
    ) -> SignalResult:
        """
        Produce a trading signal for a symbol.

        Args:
            symbol: The trading symbol
            options: Model, timeframe and feature switches
            bars: History observed so far, supplied during backtests

        Returns:
            Signal with confidence in [0, 1]; may differ between calls

        Raises:
            AnalysisError: If the provider fails
        """
        ...


class AnalysisError(Exception):
    """Raised when the signal provider cannot produce a result."""

    error_code = "ANALYSIS_ERROR"
