"""Global pytest configuration and fixtures."""

# Standard library imports
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

# Load test environment variables
from dotenv import load_dotenv

test_env_path = Path(__file__).parent.parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)

# Third-party imports
import pytest

# Local imports
from tests.fakes import FakeMarketData, FakeSignalProvider
from trading_sim.application.interfaces.accounts import SubscriptionTier
from trading_sim.application.services.trading_engine import TradingEngine
from trading_sim.infrastructure.repositories import InMemoryAccountStore

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def market_data() -> FakeMarketData:
    """Quotes for a few symbols."""
    return FakeMarketData(
        prices={"ABC": Decimal("100"), "XYZ": Decimal("50"), "AAPL": Decimal("150")}
    )


@pytest.fixture
def signal_provider() -> FakeSignalProvider:
    return FakeSignalProvider()


@pytest.fixture
def engine(market_data, signal_provider) -> TradingEngine:
    """Engine with a fixed clock and 100k starting balance."""
    return TradingEngine(
        engine_id="engine_test",
        market_data=market_data,
        signal_provider=signal_provider,
        initial_balance=Decimal("100000"),
        max_positions=3,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    store = InMemoryAccountStore()
    store.add_account("user-1", credits={"ai_analysis": 2})
    store.add_account(
        "premium-user",
        credits={"ai_analysis": 10},
        subscription_tier=SubscriptionTier.PREMIUM,
    )
    return store
