"""Symbol value object for representing trading symbols."""

# Standard library imports
import re
from typing import ClassVar

from ..exceptions import InvalidInputException


class Symbol:
    """Immutable value object representing a trading symbol."""

    # Valid symbol patterns
    _PATTERNS: ClassVar[dict[str, re.Pattern[str]]] = {
        "ticker": re.compile(r"^[A-Z0-9]{1,10}$"),  # AAPL, BRK, 0700
        "ticker_exchange": re.compile(r"^[A-Z0-9]{1,10}\.[A-Z]{1,4}$"),  # SHOP.TO
        "crypto": re.compile(r"^[A-Z0-9]{2,10}-[A-Z]{2,5}$"),  # BTC-USD
    }

    def __init__(self, value: str) -> None:
        """Initialize Symbol with validation.

        Args:
            value: The symbol string

        Raises:
            InvalidInputException: If symbol format is invalid
        """
        if not value or not isinstance(value, str):
            raise InvalidInputException("Symbol cannot be empty", field="symbol")

        normalized = value.upper().strip()

        if not self._is_valid_format(normalized):
            raise InvalidInputException(
                f"Invalid symbol format: {value}", field="symbol", value=value
            )

        self._value = normalized

    def _is_valid_format(self, symbol: str) -> bool:
        return any(pattern.match(symbol) for pattern in self._PATTERNS.values())

    @property
    def value(self) -> str:
        """Get the full symbol value."""
        return self._value

    def is_crypto(self) -> bool:
        return bool(self._PATTERNS["crypto"].match(self._value))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self._value == other.upper().strip()
        if not isinstance(other, Symbol):
            return False
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Symbol('{self._value}')"

    def __str__(self) -> str:
        return self._value

    @classmethod
    def normalize(cls, value: str) -> str:
        """Validate a raw symbol and return its canonical string form."""
        return cls(value).value

    @classmethod
    def validate(cls, value: str) -> bool:
        """Check if a string is a valid symbol without creating instance."""
        try:
            cls(value)
            return True
        except InvalidInputException:
            return False
