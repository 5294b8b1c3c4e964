"""
Rate limit rules per operation class.

Each operation class has its own quota and window. Defaults mirror the
limits the service has always run with; any rule can be overridden with a
``"<limit>/<window>"`` string such as ``"10/1min"``.
"""

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from .exceptions import RateLimitConfigError

_WINDOW_PATTERN = re.compile(r"^(\d+)\s*(s|sec|m|min|h|hour|d|day)$")
_UNIT_SECONDS = {
    "s": 1,
    "sec": 1,
    "m": 60,
    "min": 60,
    "h": 3600,
    "hour": 3600,
    "d": 86400,
    "day": 86400,
}


class RateLimitAlgorithm(Enum):
    """Available rate limiting algorithms."""

    SLIDING_WINDOW = "sliding_window"
    FIXED_WINDOW = "fixed_window"


class OperationClass(Enum):
    """Groups of operations that share a quota."""

    AUTHENTICATION = "authentication"
    LOGIN = "login"
    TRADING = "trading"
    ANALYSIS = "analysis"
    SUBSCRIPTION = "subscription"
    MARKET_DATA = "market_data"
    GLOBAL = "global"

    @classmethod
    def parse(cls, value: "OperationClass | str") -> "OperationClass":
        if isinstance(value, OperationClass):
            return value
        try:
            return cls(value.lower())
        except ValueError:
            raise RateLimitConfigError(
                f"Unknown operation class: {value}", config_field="operation_class"
            ) from None


class TimeWindow:
    """Time window specification such as ``15min``, ``30s`` or ``1h``."""

    def __init__(self, value: "str | int | timedelta | TimeWindow") -> None:
        if isinstance(value, TimeWindow):
            self.seconds = value.seconds
        elif isinstance(value, str):
            match = _WINDOW_PATTERN.match(value.lower().strip())
            if not match:
                raise RateLimitConfigError(f"Invalid time window format: {value}", "window")
            number, unit = match.groups()
            self.seconds = int(number) * _UNIT_SECONDS[unit]
        elif isinstance(value, int):
            self.seconds = value
        elif isinstance(value, timedelta):
            self.seconds = int(value.total_seconds())
        else:
            raise RateLimitConfigError(f"Invalid time window value: {value}", "window")

        if self.seconds <= 0:
            raise RateLimitConfigError("Time window must be positive", "window")

    def __str__(self) -> str:
        if self.seconds % 86400 == 0:
            return f"{self.seconds // 86400}d"
        if self.seconds % 3600 == 0:
            return f"{self.seconds // 3600}h"
        if self.seconds % 60 == 0:
            return f"{self.seconds // 60}min"
        return f"{self.seconds}s"

    def __repr__(self) -> str:
        return f"TimeWindow({self.seconds}s)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, TimeWindow) and other.seconds == self.seconds

    def __hash__(self) -> int:
        return hash(self.seconds)


@dataclass
class RateLimitRule:
    """Quota for one operation class."""

    limit: int
    window: TimeWindow
    algorithm: RateLimitAlgorithm = RateLimitAlgorithm.SLIDING_WINDOW
    description: str | None = None
    enabled: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.window, TimeWindow):
            self.window = TimeWindow(self.window)
        if self.limit <= 0:
            raise RateLimitConfigError("Rate limit must be positive", "limit")

    @classmethod
    def parse(cls, spec: str, description: str | None = None) -> "RateLimitRule":
        """Build a rule from ``"<limit>/<window>"``."""
        limit_text, sep, window_text = spec.partition("/")
        if not sep or not limit_text.strip().isdigit():
            raise RateLimitConfigError(f"Invalid rate limit spec: {spec}", "rate_limits")
        return cls(limit=int(limit_text), window=TimeWindow(window_text), description=description)


def default_rules() -> dict[OperationClass, RateLimitRule]:
    return {
        OperationClass.AUTHENTICATION: RateLimitRule(
            5, TimeWindow("15min"), description="Authentication attempts"
        ),
        OperationClass.LOGIN: RateLimitRule(3, TimeWindow("15min"), description="Login attempts"),
        OperationClass.TRADING: RateLimitRule(
            10, TimeWindow("1min"), description="Position open/close requests"
        ),
        OperationClass.ANALYSIS: RateLimitRule(
            20, TimeWindow("1min"), description="AI analysis requests"
        ),
        OperationClass.SUBSCRIPTION: RateLimitRule(
            20, TimeWindow("15min"), description="Subscription changes"
        ),
        OperationClass.MARKET_DATA: RateLimitRule(
            100, TimeWindow("1min"), description="Market data requests"
        ),
        OperationClass.GLOBAL: RateLimitRule(
            100, TimeWindow("15min"), description="All requests per client"
        ),
    }


@dataclass
class RateLimitSettings:
    """All rate limit rules plus the master switch."""

    enabled: bool = True
    rules: dict[OperationClass, RateLimitRule] = field(default_factory=default_rules)

    @classmethod
    def from_overrides(
        cls, overrides: dict[str, str] | None = None, enabled: bool = True
    ) -> "RateLimitSettings":
        """Start from the defaults and replace the rules named in ``overrides``."""
        settings = cls(enabled=enabled)
        for name, spec in (overrides or {}).items():
            operation_class = OperationClass.parse(name)
            settings.rules[operation_class] = RateLimitRule.parse(
                spec, description=settings.rules[operation_class].description
            )
        return settings
