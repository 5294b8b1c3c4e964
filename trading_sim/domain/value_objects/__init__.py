"""Value objects for the trading simulation domain."""

from .symbol import Symbol

__all__ = ["Symbol"]
