"""
Rate limiting algorithms.

Both algorithms take an injectable monotonic clock so that windows can be
advanced deterministically.
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .config import RateLimitAlgorithm as AlgorithmType
from .config import RateLimitRule
from .exceptions import RateLimitConfigError

Clock = Callable[[], float]


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    current_count: int
    limit: int
    remaining: int
    retry_after: int | None  # Seconds to wait before retry


class RateLimitAlgorithm(ABC):
    """Abstract base class for rate limiting algorithms."""

    def __init__(self, rule: RateLimitRule, clock: Clock | None = None) -> None:
        self.rule = rule
        self.clock = clock or time.monotonic
        self.lock = threading.RLock()

    @property
    def window_seconds(self) -> int:
        return self.rule.window.seconds

    def _result(self, allowed: bool, count: int, retry_after: float | None) -> RateLimitResult:
        return RateLimitResult(
            allowed=allowed,
            current_count=count,
            limit=self.rule.limit,
            remaining=max(0, self.rule.limit - count),
            retry_after=max(1, math.ceil(retry_after)) if retry_after is not None else None,
        )

    @abstractmethod
    def check_rate_limit(self, identifier: str, tokens: int = 1) -> RateLimitResult:
        """Consume ``tokens`` for ``identifier`` if the quota allows it."""

    @abstractmethod
    def get_current_usage(self, identifier: str) -> int:
        """Requests counted against ``identifier`` in the current window."""

    @abstractmethod
    def reset_limit(self, identifier: str) -> None:
        """Forget all usage for ``identifier``."""

    @abstractmethod
    def cleanup_expired(self) -> int:
        """Drop state that no longer affects any decision; returns entries removed."""


class SlidingWindowRateLimit(RateLimitAlgorithm):
    """
    Sliding Window rate limiting algorithm.

    Keeps the timestamp of every admitted request inside the window, so the
    limit holds over any interval of the window's length.
    """

    def __init__(self, rule: RateLimitRule, clock: Clock | None = None) -> None:
        super().__init__(rule, clock)
        self._windows: dict[str, deque[float]] = {}

    def _prune(self, window: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def check_rate_limit(self, identifier: str, tokens: int = 1) -> RateLimitResult:
        with self.lock:
            now = self.clock()
            window = self._windows.setdefault(identifier, deque())
            self._prune(window, now)

            if len(window) + tokens <= self.rule.limit:
                window.extend([now] * tokens)
                return self._result(True, len(window), None)

            retry_after = (window[0] + self.window_seconds - now) if window else self.window_seconds
            return self._result(False, len(window), retry_after)

    def get_current_usage(self, identifier: str) -> int:
        with self.lock:
            window = self._windows.get(identifier)
            if not window:
                return 0
            self._prune(window, self.clock())
            return len(window)

    def reset_limit(self, identifier: str) -> None:
        with self.lock:
            self._windows.pop(identifier, None)

    def cleanup_expired(self) -> int:
        with self.lock:
            now = self.clock()
            removed = 0
            for identifier, window in list(self._windows.items()):
                before = len(window)
                self._prune(window, now)
                removed += before - len(window)
                if not window:
                    del self._windows[identifier]
            return removed


class FixedWindowRateLimit(RateLimitAlgorithm):
    """
    Fixed Window rate limiting algorithm.

    Counts requests per aligned window; the count resets when a new window
    starts.
    """

    def __init__(self, rule: RateLimitRule, clock: Clock | None = None) -> None:
        super().__init__(rule, clock)
        # identifier -> (window_start, count)
        self._windows: dict[str, tuple[float, int]] = {}

    def _window_start(self, now: float) -> float:
        return (now // self.window_seconds) * self.window_seconds

    def check_rate_limit(self, identifier: str, tokens: int = 1) -> RateLimitResult:
        with self.lock:
            now = self.clock()
            start = self._window_start(now)
            stored_start, count = self._windows.get(identifier, (start, 0))
            if stored_start < start:
                count = 0

            if count + tokens <= self.rule.limit:
                count += tokens
                self._windows[identifier] = (start, count)
                return self._result(True, count, None)

            self._windows[identifier] = (start, count)
            return self._result(False, count, start + self.window_seconds - now)

    def get_current_usage(self, identifier: str) -> int:
        with self.lock:
            if identifier not in self._windows:
                return 0
            stored_start, count = self._windows[identifier]
            return count if stored_start >= self._window_start(self.clock()) else 0

    def reset_limit(self, identifier: str) -> None:
        with self.lock:
            self._windows.pop(identifier, None)

    def cleanup_expired(self) -> int:
        with self.lock:
            current = self._window_start(self.clock())
            expired = [key for key, (start, _) in self._windows.items() if start < current]
            for key in expired:
                del self._windows[key]
            return len(expired)


def create_rate_limiter(rule: RateLimitRule, clock: Clock | None = None) -> RateLimitAlgorithm:
    """Factory function to create appropriate rate limiter."""
    if rule.algorithm is AlgorithmType.SLIDING_WINDOW:
        return SlidingWindowRateLimit(rule, clock)
    if rule.algorithm is AlgorithmType.FIXED_WINDOW:
        return FixedWindowRateLimit(rule, clock)
    raise RateLimitConfigError(f"Unknown algorithm: {rule.algorithm}")
