"""AI trading simulation core: per-user engines, analytics and backtesting."""

__version__ = "0.1.0"
