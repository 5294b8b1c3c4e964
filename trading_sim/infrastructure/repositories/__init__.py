"""Account storage implementations."""

from .account_store import InMemoryAccountStore

__all__ = ["InMemoryAccountStore"]
