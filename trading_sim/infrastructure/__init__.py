"""Infrastructure adapters: market data, account storage, rate limiting and logging."""
