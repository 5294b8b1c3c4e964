"""
Dependency Injection Container - composition root for the trading simulation.

Wires configuration, collaborators, the engine registry, the governor and
the use cases. The registry is owned by the container instance; there is no
module-level engine map.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar, cast

from trading_sim.application.config import ApplicationConfig
from trading_sim.application.interfaces.accounts import (
    AccountProfile,
    IAccountStore,
    SubscriptionTier,
)
from trading_sim.application.interfaces.market_data import IMarketDataProvider
from trading_sim.application.interfaces.signals import ISignalProvider
from trading_sim.application.services.backtest_simulator import BacktestSimulator
from trading_sim.application.services.engine_registry import EngineRegistry
from trading_sim.application.services.governor import Governor
from trading_sim.application.services.trading_engine import TradingEngine
from trading_sim.application.use_cases import (
    AnalyzeSymbolUseCase,
    CheckExitRulesUseCase,
    ClosePositionUseCase,
    GetMarketDataUseCase,
    GetPerformanceUseCase,
    GetPortfolioStatusUseCase,
    GetTradeHistoryUseCase,
    OpenPositionUseCase,
    RunBacktestUseCase,
)
from trading_sim.domain.entities.position import RiskParameters
from trading_sim.infrastructure.market_data import YahooMarketDataProvider
from trading_sim.infrastructure.rate_limiting import RateLimitManager, RateLimitSettings
from trading_sim.infrastructure.repositories import InMemoryAccountStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ENGINE_USE_CASES = (
    OpenPositionUseCase,
    ClosePositionUseCase,
    GetPortfolioStatusUseCase,
    GetTradeHistoryUseCase,
    GetPerformanceUseCase,
    GetMarketDataUseCase,
    AnalyzeSymbolUseCase,
    CheckExitRulesUseCase,
)


@dataclass
class ContainerConfig:
    """Collaborators supplied by the host; anything left as None gets a default."""

    application: ApplicationConfig | None = None
    market_data: IMarketDataProvider | None = None
    signal_provider: ISignalProvider | None = None
    account_store: IAccountStore | None = None
    clock: Callable[[], datetime] | None = None
    backtest_tier: SubscriptionTier | None = SubscriptionTier.PREMIUM


class TradingContainer:
    """
    Dependency container for the trading simulation.

    Infrastructure and services are singletons; use cases are created per
    ``get`` call and share those singletons.
    """

    def __init__(self, config: ContainerConfig | None = None) -> None:
        self.config = config or ContainerConfig()
        self.app_config = self.config.application or ApplicationConfig()
        self._singletons: dict[type[Any], Any] = {}
        self._factories: dict[type[Any], Callable[[], Any]] = {}
        self._singleton_types: set[type[Any]] = set()

        self._register_infrastructure()
        self._register_application_services()
        self._register_use_cases()

        logger.info(
            "Trading container initialized",
            extra={"environment": self.app_config.environment.value},
        )

    def _register_infrastructure(self) -> None:
        engine_config = self.app_config.engine

        self.register(
            IMarketDataProvider,  # type: ignore[type-abstract]
            self.config.market_data
            or YahooMarketDataProvider(timeout_seconds=engine_config.quote_timeout_seconds),
        )
        self.register(
            IAccountStore,  # type: ignore[type-abstract]
            self.config.account_store or InMemoryAccountStore(),
        )
        self._register_singleton(
            RateLimitManager,
            lambda: RateLimitManager(
                RateLimitSettings.from_overrides(
                    self.app_config.rate_limits,
                    enabled=self.app_config.features.enable_rate_limiting,
                )
            ),
        )

    def _register_application_services(self) -> None:
        self._register_singleton(
            Governor,
            lambda: Governor(
                self.get(IAccountStore),  # type: ignore[type-abstract]
                rate_limiter=(
                    self.get(RateLimitManager)
                    if self.app_config.features.enable_rate_limiting
                    else None
                ),
                enforce_credits=self.app_config.features.enable_credit_checks,
            ),
        )
        self._register_singleton(
            EngineRegistry,
            lambda: EngineRegistry(
                self.get(IAccountStore),  # type: ignore[type-abstract]
                self.create_engine,
            ),
        )
        self._register_singleton(
            BacktestSimulator,
            lambda: BacktestSimulator(
                self.get(IMarketDataProvider),  # type: ignore[type-abstract]
                self.config.signal_provider,
                self.app_config.backtest,
            ),
        )

    def _register_use_cases(self) -> None:
        for use_case in _ENGINE_USE_CASES:
            self._register_factory(
                use_case,
                lambda cls=use_case: cls(self.get(EngineRegistry), self.get(Governor)),
            )
        self._register_factory(
            RunBacktestUseCase,
            lambda: RunBacktestUseCase(
                self.get(BacktestSimulator),
                self.get(Governor),
                required_tier=self.config.backtest_tier,
            ),
        )

    def create_engine(self, user_id: str, profile: AccountProfile) -> TradingEngine:
        """Engine factory handed to the registry."""
        engine_config = self.app_config.engine
        return TradingEngine(
            engine_id=f"engine_{user_id}",
            market_data=self.get(IMarketDataProvider),  # type: ignore[type-abstract]
            signal_provider=self.config.signal_provider,
            initial_balance=profile.initial_balance,
            max_positions=profile.max_positions,
            default_risk=RiskParameters(
                stop_loss=engine_config.default_stop_loss,
                take_profit=engine_config.default_take_profit,
            ),
            clock=self.config.clock or (lambda: datetime.now(UTC)),
        )

    def _register_singleton(self, cls: type[T], factory: Callable[[], Any]) -> None:
        self._factories[cls] = factory
        self._singletons.pop(cls, None)
        self._singleton_types.add(cls)

    def _register_factory(self, cls: type[T], factory: Callable[[], Any]) -> None:
        self._factories[cls] = factory

    def get(self, cls: type[T]) -> T:
        """
        Get an instance of a registered component.

        Raises:
            KeyError: If the class is not registered
        """
        if cls in self._singletons:
            return cast(T, self._singletons[cls])

        if cls not in self._factories:
            raise KeyError(f"No registration found for {cls.__name__}")

        instance = self._factories[cls]()
        if cls in self._singleton_types:
            self._singletons[cls] = instance
        return cast(T, instance)

    def has(self, cls: type[T]) -> bool:
        return cls in self._factories

    def register(self, cls: type[T], instance: T) -> None:
        """Register a pre-created instance."""
        self._singletons[cls] = instance
        self._factories[cls] = lambda: instance

    @property
    def registry(self) -> EngineRegistry:
        return self.get(EngineRegistry)

    def purge_rate_limits(self) -> int:
        """
        Drop expired rate limit windows.

        Hosts that run for long periods should call this on a schedule;
        ``cleanup`` calls it once on the way out.
        """
        if RateLimitManager not in self._singletons:
            return 0
        purged = self._singletons[RateLimitManager].cleanup_expired()
        logger.debug(f"Purged {purged} expired rate limit windows")
        return purged

    async def cleanup(self) -> None:
        """Stop every live engine, then drop cached singletons."""
        if EngineRegistry in self._singletons:
            await self._singletons[EngineRegistry].shutdown()
        self.purge_rate_limits()
        self._singletons.clear()
        logger.info("Trading container cleaned up")
