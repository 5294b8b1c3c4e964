"""
Per-operation-class rate limiting.
"""

from .algorithms import (
    FixedWindowRateLimit,
    RateLimitAlgorithm,
    RateLimitResult,
    SlidingWindowRateLimit,
    create_rate_limiter,
)
from .config import OperationClass, RateLimitRule, RateLimitSettings, TimeWindow, default_rules
from .exceptions import RateLimitConfigError, RateLimitError, RateLimitExceeded
from .manager import RateLimitManager, RateLimitStatus

__all__ = [
    "FixedWindowRateLimit",
    "OperationClass",
    "RateLimitAlgorithm",
    "RateLimitConfigError",
    "RateLimitError",
    "RateLimitExceeded",
    "RateLimitManager",
    "RateLimitResult",
    "RateLimitRule",
    "RateLimitSettings",
    "RateLimitStatus",
    "SlidingWindowRateLimit",
    "TimeWindow",
    "create_rate_limiter",
    "default_rules",
]
