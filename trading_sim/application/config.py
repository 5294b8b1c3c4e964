"""
Application Configuration - Central configuration management.

This module provides configuration management for the trading simulation,
including engine defaults, backtest parameters, logging, rate-limit
overrides and feature flags.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

RATE_LIMIT_ENV_PREFIX = "RATE_LIMIT_"


class Environment(Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class EngineConfig:
    """Defaults for per-user trading engines."""

    initial_balance: Decimal = Decimal("100000")
    max_positions: int = 10
    default_stop_loss: Decimal = Decimal("0.02")
    default_take_profit: Decimal = Decimal("0.06")
    quote_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create configuration from environment variables."""
        return cls(
            initial_balance=Decimal(os.getenv("ENGINE_INITIAL_BALANCE", "100000")),
            max_positions=int(os.getenv("ENGINE_MAX_POSITIONS", "10")),
            default_stop_loss=Decimal(os.getenv("ENGINE_DEFAULT_STOP_LOSS", "0.02")),
            default_take_profit=Decimal(os.getenv("ENGINE_DEFAULT_TAKE_PROFIT", "0.06")),
            quote_timeout_seconds=float(os.getenv("ENGINE_QUOTE_TIMEOUT", "10")),
        )


@dataclass
class BacktestConfig:
    """Backtest simulation parameters."""

    warmup_bars: int = 20
    signal_confidence_threshold: Decimal = Decimal("0.7")
    simulated_quantity: Decimal = Decimal("100")
    stop_loss: Decimal = Decimal("0.02")
    take_profit: Decimal = Decimal("0.06")
    default_initial_balance: Decimal = Decimal("100000")
    signal_timeframe: str = "1d"

    @classmethod
    def from_env(cls) -> "BacktestConfig":
        """Create configuration from environment variables."""
        return cls(
            warmup_bars=int(os.getenv("BACKTEST_WARMUP_BARS", "20")),
            signal_confidence_threshold=Decimal(
                os.getenv("BACKTEST_CONFIDENCE_THRESHOLD", "0.7")
            ),
            simulated_quantity=Decimal(os.getenv("BACKTEST_QUANTITY", "100")),
            stop_loss=Decimal(os.getenv("BACKTEST_STOP_LOSS", "0.02")),
            take_profit=Decimal(os.getenv("BACKTEST_TAKE_PROFIT", "0.06")),
            default_initial_balance=Decimal(os.getenv("BACKTEST_INITIAL_BALANCE", "100000")),
            signal_timeframe=os.getenv("BACKTEST_SIGNAL_TIMEFRAME", "1d"),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"  # json | text
    file: str | None = None

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """Create configuration from environment variables."""
        file_path = os.getenv("LOG_FILE")
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            format=os.getenv("LOG_FORMAT", "json"),
            file=file_path if file_path else None,
        )


@dataclass
class FeatureFlags:
    """Feature flags for the application."""

    enable_rate_limiting: bool = True
    enable_credit_checks: bool = True

    @classmethod
    def from_env(cls) -> "FeatureFlags":
        """Create configuration from environment variables."""
        return cls(
            enable_rate_limiting=os.getenv("FEATURE_RATE_LIMITING", "true").lower() == "true",
            enable_credit_checks=os.getenv("FEATURE_CREDIT_CHECKS", "true").lower() == "true",
        )


def rate_limit_overrides_from_env() -> dict[str, str]:
    """Collect ``RATE_LIMIT_<CLASS>=<limit>/<window>`` variables."""
    return {
        key[len(RATE_LIMIT_ENV_PREFIX) :].lower(): value
        for key, value in os.environ.items()
        if key.startswith(RATE_LIMIT_ENV_PREFIX) and value
    }


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    environment: Environment = Environment.DEVELOPMENT
    engine: EngineConfig = field(default_factory=EngineConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    features: FeatureFlags = field(default_factory=FeatureFlags)
    # Operation class -> "<limit>/<window>", e.g. {"trading": "10/1min"}
    rate_limits: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "environment": self.environment.value,
            "engine": {
                "initial_balance": str(self.engine.initial_balance),
                "max_positions": self.engine.max_positions,
                "default_stop_loss": str(self.engine.default_stop_loss),
                "default_take_profit": str(self.engine.default_take_profit),
                "quote_timeout_seconds": self.engine.quote_timeout_seconds,
            },
            "backtest": {
                "warmup_bars": self.backtest.warmup_bars,
                "signal_confidence_threshold": str(self.backtest.signal_confidence_threshold),
                "simulated_quantity": str(self.backtest.simulated_quantity),
                "stop_loss": str(self.backtest.stop_loss),
                "take_profit": str(self.backtest.take_profit),
                "default_initial_balance": str(self.backtest.default_initial_balance),
                "signal_timeframe": self.backtest.signal_timeframe,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "file": self.logging.file,
            },
            "features": {
                "enable_rate_limiting": self.features.enable_rate_limiting,
                "enable_credit_checks": self.features.enable_credit_checks,
            },
            "rate_limits": dict(self.rate_limits),
        }

    def validate(self) -> bool:
        """
        Validate the configuration.

        Returns:
            True if valid, raises exception otherwise
        """
        if self.engine.initial_balance <= 0:
            raise ValueError("Initial balance must be positive")
        if self.engine.max_positions <= 0:
            raise ValueError("Max positions must be positive")
        if self.engine.quote_timeout_seconds <= 0:
            raise ValueError("Quote timeout must be positive")
        if not Decimal("0") < self.engine.default_stop_loss <= Decimal("0.5"):
            raise ValueError("Default stop loss must be in (0, 0.5]")
        if not Decimal("0") < self.engine.default_take_profit <= Decimal("2.0"):
            raise ValueError("Default take profit must be in (0, 2.0]")

        if self.backtest.warmup_bars < 0:
            raise ValueError("Warm-up bars cannot be negative")
        if not Decimal("0") <= self.backtest.signal_confidence_threshold <= Decimal("1"):
            raise ValueError("Signal confidence threshold must be within [0, 1]")
        if self.backtest.simulated_quantity <= 0:
            raise ValueError("Simulated quantity must be positive")

        if self.logging.format not in ("json", "text"):
            raise ValueError(f"Unknown log format: {self.logging.format}")

        return True
