"""
Configuration Loader - Handles IO operations for configuration management.

This module is responsible for loading configuration from YAML files and
environment variables while keeping the ApplicationConfig class focused on
data representation and validation.
"""

import os
from decimal import Decimal

import yaml

from trading_sim.application.config import (
    ApplicationConfig,
    BacktestConfig,
    EngineConfig,
    Environment,
    FeatureFlags,
    LoggingConfig,
    rate_limit_overrides_from_env,
)


class ConfigLoader:
    """Handles loading and saving of configuration from various sources."""

    @classmethod
    def from_env(cls) -> ApplicationConfig:
        """
        Create configuration from environment variables.

        Returns:
            ApplicationConfig: Configuration loaded from environment

        Raises:
            ValueError: If any value is invalid
        """
        env_str = os.getenv("ENVIRONMENT", "development")
        try:
            environment = Environment(env_str)
        except ValueError:
            raise ValueError(f"Invalid environment: {env_str}")

        config = ApplicationConfig(
            environment=environment,
            engine=EngineConfig.from_env(),
            backtest=BacktestConfig.from_env(),
            logging=LoggingConfig.from_env(),
            features=FeatureFlags.from_env(),
            rate_limits=rate_limit_overrides_from_env(),
        )
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: str) -> ApplicationConfig:
        """
        Load configuration from YAML file.

        Missing sections and keys keep their defaults.

        Args:
            path: Path to YAML configuration file

        Returns:
            ApplicationConfig: Configuration loaded from YAML file
        """
        with open(path) as f:
            data = yaml.safe_load(f)

        config = ApplicationConfig()

        # Handle empty or null YAML files
        if not data:
            return config

        if "environment" in data:
            config.environment = Environment(data["environment"])

        if "engine" in data:
            engine_data = data["engine"]
            config.engine = EngineConfig(
                initial_balance=Decimal(
                    str(engine_data.get("initial_balance", config.engine.initial_balance))
                ),
                max_positions=int(engine_data.get("max_positions", config.engine.max_positions)),
                default_stop_loss=Decimal(
                    str(engine_data.get("default_stop_loss", config.engine.default_stop_loss))
                ),
                default_take_profit=Decimal(
                    str(engine_data.get("default_take_profit", config.engine.default_take_profit))
                ),
                quote_timeout_seconds=float(
                    engine_data.get("quote_timeout_seconds", config.engine.quote_timeout_seconds)
                ),
            )

        if "backtest" in data:
            bt_data = data["backtest"]
            config.backtest = BacktestConfig(
                warmup_bars=int(bt_data.get("warmup_bars", config.backtest.warmup_bars)),
                signal_confidence_threshold=Decimal(
                    str(
                        bt_data.get(
                            "signal_confidence_threshold",
                            config.backtest.signal_confidence_threshold,
                        )
                    )
                ),
                simulated_quantity=Decimal(
                    str(bt_data.get("simulated_quantity", config.backtest.simulated_quantity))
                ),
                stop_loss=Decimal(str(bt_data.get("stop_loss", config.backtest.stop_loss))),
                take_profit=Decimal(str(bt_data.get("take_profit", config.backtest.take_profit))),
                default_initial_balance=Decimal(
                    str(
                        bt_data.get(
                            "default_initial_balance", config.backtest.default_initial_balance
                        )
                    )
                ),
                signal_timeframe=bt_data.get("signal_timeframe", config.backtest.signal_timeframe),
            )

        if "logging" in data:
            log_data = data["logging"]
            config.logging = LoggingConfig(
                level=log_data.get("level", config.logging.level),
                format=log_data.get("format", config.logging.format),
                file=log_data.get("file", config.logging.file),
            )

        if "features" in data:
            feat_data = data["features"]
            config.features = FeatureFlags(
                enable_rate_limiting=feat_data.get(
                    "enable_rate_limiting", config.features.enable_rate_limiting
                ),
                enable_credit_checks=feat_data.get(
                    "enable_credit_checks", config.features.enable_credit_checks
                ),
            )

        if "rate_limits" in data:
            config.rate_limits = {
                str(name).lower(): str(value) for name, value in (data["rate_limits"] or {}).items()
            }

        config.validate()
        return config

    @classmethod
    def to_yaml(cls, config: ApplicationConfig) -> str:
        """Convert configuration to YAML string."""
        return yaml.dump(config.to_dict(), default_flow_style=False)
