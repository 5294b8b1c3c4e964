"""
Domain Layer - Pure Business Logic

This layer contains:
- Entities: positions, trades, the position ledger and the trade log
- Value Objects: Immutable objects without identity
- Services: analytics, exit rules and technical indicators

No external dependencies allowed in this layer.
"""
