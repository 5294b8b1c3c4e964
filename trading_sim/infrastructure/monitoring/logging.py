"""
Structured Logging for the trading simulation

JSON structured logs with correlation and user ids carried through
context variables, OpenTelemetry trace ids when a span is active, masking
of secret-looking fields, and a decorator that times trading operations.
"""

import inspect
import json
import logging
import re
import sys
import time
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from functools import wraps
from typing import Any

from opentelemetry import trace

from trading_sim.application.config import LoggingConfig

# Context variables for correlation tracking
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)

MASK = "***MASKED***"
_SENSITIVE_KEY = re.compile(
    r"(api[_-]?key|secret|password|passwd|token|authorization|private[_-]?key)", re.IGNORECASE
)
_SENSITIVE_INLINE = re.compile(
    r"((?:api[_-]?key|secret|password|token)\s*[=:]\s*)(\"[^\"]*\"|\S+)", re.IGNORECASE
)

# Attributes every LogRecord has; anything else came in through ``extra``
_STANDARD_FIELDS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "correlation_id", "user_id", "trace_id", "span_id"}

_TRADING_FIELDS = ("symbol", "engine_id", "operation_type", "strategy")


class SensitiveDataMasker:
    """Masks secret-looking values in messages and extra fields."""

    def mask_message(self, message: str) -> str:
        return _SENSITIVE_INLINE.sub(lambda m: f"{m.group(1)}{MASK}", message)

    def mask_extra_fields(self, extra: dict[str, Any]) -> dict[str, Any]:
        masked: dict[str, Any] = {}
        for key, value in extra.items():
            if _SENSITIVE_KEY.search(key):
                masked[key] = MASK
            elif isinstance(value, str):
                masked[key] = self.mask_message(value)
            elif isinstance(value, dict):
                masked[key] = self.mask_extra_fields(value)
            else:
                masked[key] = value
        return masked


class TradingContextFilter(logging.Filter):
    """Attaches correlation, user and trace ids to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        if getattr(record, "user_id", None) is None:
            record.user_id = user_id_var.get()

        span = trace.get_current_span()
        if span.is_recording():
            span_context = span.get_span_context()
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = None
            record.span_id = None
        return True


class TradingJSONFormatter(logging.Formatter):
    """JSON formatter for structured trading logs."""

    def __init__(self, include_extra: bool = True, sort_keys: bool = True) -> None:
        super().__init__()
        self.include_extra = include_extra
        self.sort_keys = sort_keys
        self.masker = SensitiveDataMasker()

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masker.mask_message(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in ("correlation_id", "user_id", "trace_id", "span_id"):
            value = getattr(record, name, None)
            if value:
                log_entry[name] = value

        trading = {
            name: getattr(record, name) for name in _TRADING_FIELDS if getattr(record, name, None)
        }
        if trading:
            log_entry["trading"] = trading

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra = {
                key: value
                for key, value in record.__dict__.items()
                if key not in _STANDARD_FIELDS
                and key not in _TRADING_FIELDS
                and not key.startswith("_")
            }
            if extra:
                log_entry["extra"] = self.masker.mask_extra_fields(extra)

        return json.dumps(log_entry, sort_keys=self.sort_keys, default=self._serialize_value)

    @staticmethod
    def _serialize_value(value: Any) -> Any:
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, (set, frozenset, tuple)):
            return list(value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        return str(value)


# Correlation ID management
@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Context manager for correlation ID scope."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)


@contextmanager
def user_context(user_id: str) -> Generator[None, None, None]:
    """Context manager for user context scope."""
    token = user_id_var.set(user_id)
    try:
        yield
    finally:
        user_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def log_trading_operation(operation_type: str, level: int = logging.INFO) -> Any:
    """Decorator that logs duration and outcome of a sync or async operation."""

    def decorator(func: Any) -> Any:
        logger = logging.getLogger(func.__module__)

        def _log(start: float, error: Exception | None) -> None:
            extra = {
                "operation_type": operation_type,
                "duration_ms": (time.perf_counter() - start) * 1000,
                "status": "error" if error else "success",
            }
            if error is None:
                logger.log(level, f"Trading operation {operation_type} completed", extra=extra)
            else:
                extra["error_type"] = type(error).__name__
                logger.warning(f"Trading operation {operation_type} failed: {error}", extra=extra)

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log(start, e)
                raise
            _log(start, None)
            return result

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log(start, e)
                raise
            _log(start, None)
            return result

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator


def setup_structured_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure the root logger.

    ``format`` ``json`` uses TradingJSONFormatter; ``text`` a plain
    line format. Existing root handlers are replaced.
    """
    config = config or LoggingConfig()
    if config.format == "json":
        formatter: logging.Formatter = TradingJSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    context_filter = TradingContextFilter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    logging.getLogger(__name__).info("Structured logging configured")
