"""Logging and observability helpers."""

from .logging import (
    SensitiveDataMasker,
    TradingContextFilter,
    TradingJSONFormatter,
    correlation_context,
    get_correlation_id,
    log_trading_operation,
    setup_structured_logging,
    user_context,
)

__all__ = [
    "SensitiveDataMasker",
    "TradingContextFilter",
    "TradingJSONFormatter",
    "correlation_context",
    "get_correlation_id",
    "log_trading_operation",
    "setup_structured_logging",
    "user_context",
]
