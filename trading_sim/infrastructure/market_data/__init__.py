"""Concrete market data providers."""

from .yahoo_provider import YahooMarketDataProvider

__all__ = ["YahooMarketDataProvider"]
