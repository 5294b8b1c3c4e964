"""
EngineRegistry - owns exactly one TradingEngine per user

Lookups of existing engines never wait. First access for a user takes a
per-user creation lock so concurrent callers share a single engine and the
account store is loaded once.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from ..interfaces.accounts import AccountProfile, IAccountStore
from .trading_engine import TradingEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[str, AccountProfile], TradingEngine]


class EngineRegistry:
    """
    Registry of live per-user trading engines.

    Engines live until ``shutdown``. ``evict_idle`` is available for callers
    that want to release flat, idle engines; it is never run implicitly.
    """

    def __init__(self, account_store: IAccountStore, engine_factory: EngineFactory) -> None:
        self._account_store = account_store
        self._engine_factory = engine_factory
        self._engines: dict[str, TradingEngine] = {}
        self._creation_locks: dict[str, asyncio.Lock] = {}
        self._creation_waiters: dict[str, int] = {}

    async def get_or_create(self, user_id: str) -> TradingEngine:
        """
        Return the user's engine, creating and starting it on first access.

        Raises:
            UserNotFoundException: If the account store has no such user
        """
        engine = self._engines.get(user_id)
        if engine is not None:
            return engine

        lock = self._creation_locks.setdefault(user_id, asyncio.Lock())
        self._creation_waiters[user_id] = self._creation_waiters.get(user_id, 0) + 1
        try:
            async with lock:
                # Double-check after acquiring lock
                engine = self._engines.get(user_id)
                if engine is not None:
                    return engine

                profile = await self._account_store.load(user_id)
                engine = self._engine_factory(user_id, profile)
                await engine.start()
                self._engines[user_id] = engine
        finally:
            # Last caller out drops the lock, whether or not creation succeeded
            self._creation_waiters[user_id] -= 1
            if not self._creation_waiters[user_id]:
                del self._creation_waiters[user_id]
                del self._creation_locks[user_id]

        logger.info(
            "Trading engine created",
            extra={
                "user_id": user_id,
                "initial_balance": str(profile.initial_balance),
                "max_positions": profile.max_positions,
            },
        )
        return engine

    def get(self, user_id: str) -> TradingEngine | None:
        return self._engines.get(user_id)

    def user_ids(self) -> list[str]:
        return list(self._engines)

    def __len__(self) -> int:
        return len(self._engines)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._engines

    async def evict_idle(self, max_idle_seconds: float, now: float | None = None) -> list[str]:
        """
        Stop and drop engines idle for longer than ``max_idle_seconds``.

        Engines that still hold open positions are kept.
        """
        current = time.monotonic() if now is None else now
        evicted: list[str] = []
        for user_id, engine in list(self._engines.items()):
            if current - engine.last_activity <= max_idle_seconds:
                continue
            if not engine.ledger.is_flat():
                continue
            if self._engines.get(user_id) is engine:
                del self._engines[user_id]
                await engine.stop()
                evicted.append(user_id)

        if evicted:
            logger.info("Evicted idle trading engines", extra={"user_ids": evicted})
        return evicted

    async def shutdown(self) -> None:
        """Stop every engine and clear the registry."""
        engines = list(self._engines.values())
        self._engines.clear()
        for engine in engines:
            await engine.stop()
        logger.info("Engine registry shut down", extra={"engines": len(engines)})
