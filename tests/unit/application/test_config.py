"""
Unit tests for configuration loading and validation.
"""

from decimal import Decimal

import pytest
import yaml

from trading_sim.application.config import ApplicationConfig, Environment
from trading_sim.application.config_loader import ConfigLoader


class TestApplicationConfig:
    def test_defaults_are_valid(self):
        config = ApplicationConfig()

        assert config.validate() is True
        assert config.engine.initial_balance == Decimal("100000")
        assert config.backtest.warmup_bars == 20
        assert config.features.enable_rate_limiting

    @pytest.mark.parametrize(
        "section,attr,value",
        [
            ("engine", "initial_balance", Decimal("0")),
            ("engine", "max_positions", 0),
            ("engine", "default_stop_loss", Decimal("0.9")),
            ("backtest", "signal_confidence_threshold", Decimal("1.5")),
            ("backtest", "simulated_quantity", Decimal("-1")),
            ("logging", "format", "xml"),
        ],
    )
    def test_invalid_values(self, section, attr, value):
        config = ApplicationConfig()
        setattr(getattr(config, section), attr, value)

        with pytest.raises(ValueError):
            config.validate()

    def test_to_dict_serializes_decimals(self):
        data = ApplicationConfig(rate_limits={"trading": "5/1min"}).to_dict()

        assert data["engine"]["default_stop_loss"] == "0.02"
        assert data["rate_limits"] == {"trading": "5/1min"}


class TestConfigLoader:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "testing")
        monkeypatch.setenv("ENGINE_MAX_POSITIONS", "4")
        monkeypatch.setenv("BACKTEST_WARMUP_BARS", "30")
        monkeypatch.setenv("FEATURE_CREDIT_CHECKS", "false")
        monkeypatch.setenv("RATE_LIMIT_TRADING", "5/1min")

        config = ConfigLoader.from_env()

        assert config.environment is Environment.TESTING
        assert config.engine.max_positions == 4
        assert config.backtest.warmup_bars == 30
        assert not config.features.enable_credit_checks
        assert config.rate_limits["trading"] == "5/1min"

    def test_from_env_rejects_unknown_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "moon")

        with pytest.raises(ValueError, match="Invalid environment"):
            ConfigLoader.from_env()

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump(
                {
                    "environment": "staging",
                    "engine": {"max_positions": 3, "default_take_profit": "0.1"},
                    "logging": {"format": "text"},
                    "rate_limits": {"Analysis": "2/1min"},
                }
            )
        )

        config = ConfigLoader.from_yaml(str(path))

        assert config.environment is Environment.STAGING
        assert config.engine.max_positions == 3
        assert config.engine.default_take_profit == Decimal("0.1")
        assert config.engine.default_stop_loss == Decimal("0.02")
        assert config.logging.format == "text"
        assert config.rate_limits == {"analysis": "2/1min"}

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert ConfigLoader.from_yaml(str(path)) == ApplicationConfig()

    def test_invalid_yaml_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"engine": {"initial_balance": -5}}))

        with pytest.raises(ValueError):
            ConfigLoader.from_yaml(str(path))

    def test_yaml_round_trip(self, tmp_path):
        config = ApplicationConfig(rate_limits={"trading": "5/1min"})
        path = tmp_path / "out.yaml"
        path.write_text(ConfigLoader.to_yaml(config))

        assert ConfigLoader.from_yaml(str(path)) == config
