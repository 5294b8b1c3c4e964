"""
Tests for the caller-facing use cases: validation, typed error responses,
credit metering and rate limiting.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from tests.fakes import FakeMarketData, FakeSignalProvider, buy, make_bars
from trading_sim.application.config import ApplicationConfig
from trading_sim.application.interfaces.signals import AnalysisError
from trading_sim.application.use_cases import (
    AnalyzeSymbolRequest,
    AnalyzeSymbolUseCase,
    ClosePositionRequest,
    ClosePositionUseCase,
    ExitRulesRequest,
    CheckExitRulesUseCase,
    GetMarketDataUseCase,
    GetPerformanceUseCase,
    GetPortfolioStatusUseCase,
    GetTradeHistoryUseCase,
    MarketDataRequest,
    OpenPositionRequest,
    OpenPositionUseCase,
    PerformanceRequest,
    PortfolioStatusRequest,
    RunBacktestRequest,
    RunBacktestUseCase,
    TradeHistoryRequest,
)
from trading_sim.application.use_cases.base import UseCase, UseCaseRequest, UseCaseResponse
from trading_sim.infrastructure.container import ContainerConfig, TradingContainer


@pytest.fixture
def market() -> FakeMarketData:
    return FakeMarketData(
        prices={"ABC": Decimal("100"), "XYZ": Decimal("50")},
        bars=make_bars([100] * 22 + [107] * 3),
    )


@pytest.fixture
def provider() -> FakeSignalProvider:
    return FakeSignalProvider([buy()])


@pytest.fixture
def container(market, provider, account_store) -> TradingContainer:
    return TradingContainer(
        ContainerConfig(
            application=ApplicationConfig(),
            market_data=market,
            signal_provider=provider,
            account_store=account_store,
        )
    )


class TestUseCaseBase:
    """Test the execute template"""

    class _Echo(UseCase):
        async def validate(self, request):
            return None

        async def process(self, request):
            raise RuntimeError("unexpected")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal_fault(self):
        response = await self._Echo().execute(UseCaseRequest())

        assert not response.success
        assert response.error_code == "INTERNAL_FAULT"
        assert response.error == "unexpected"

    def test_request_defaults(self):
        request = UseCaseRequest()

        assert request.request_id is not None
        assert request.metadata == {}
        assert request.client_id is None

    def test_response_helpers(self):
        ok = UseCaseResponse.success_response({"a": 1}, UseCaseRequest().request_id)
        assert ok.success and ok.data == {"a": 1}


class TestPositionUseCases:
    @pytest.mark.asyncio
    async def test_open_and_close(self, container, market):
        opened = await container.get(OpenPositionUseCase).execute(
            OpenPositionRequest(user_id="user-1", symbol="abc", side="long", quantity=Decimal("10"))
        )
        market.prices["ABC"] = Decimal("110")
        closed = await container.get(ClosePositionUseCase).execute(
            ClosePositionRequest(user_id="user-1", symbol="ABC")
        )

        assert opened.success
        assert opened.position["symbol"] == "ABC"
        assert closed.success
        assert closed.trade["pnl"] == "100"

    @pytest.mark.asyncio
    async def test_invalid_side(self, container):
        response = await container.get(OpenPositionUseCase).execute(
            OpenPositionRequest(user_id="user-1", symbol="ABC", side="up", quantity=Decimal("1"))
        )

        assert not response.success
        assert response.error_code == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_close_missing_position(self, container):
        response = await container.get(ClosePositionUseCase).execute(
            ClosePositionRequest(user_id="user-1", symbol="ABC")
        )

        assert response.error_code == "POSITION_NOT_FOUND"
        assert response.error_details == {"symbol": "ABC"}

    @pytest.mark.asyncio
    async def test_unknown_user(self, container):
        response = await container.get(OpenPositionUseCase).execute(
            OpenPositionRequest(user_id="ghost", symbol="ABC", side="long", quantity=Decimal("1"))
        )

        assert response.error_code == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_quote_failure(self, container, market):
        market.failing.add("ABC")

        response = await container.get(OpenPositionUseCase).execute(
            OpenPositionRequest(user_id="user-1", symbol="ABC", side="long", quantity=Decimal("1"))
        )

        assert response.error_code == "MARKET_DATA_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_exit_rules(self, container):
        await container.get(OpenPositionUseCase).execute(
            OpenPositionRequest(user_id="user-1", symbol="ABC", side="long", quantity=Decimal("1"))
        )

        response = await container.get(CheckExitRulesUseCase).execute(
            ExitRulesRequest(user_id="user-1", prices={"abc": Decimal("90")})
        )

        assert response.success
        assert response.data["closed"][0]["reason"] == "stop_loss"


class TestQueryUseCases:
    @pytest.mark.asyncio
    async def test_portfolio_history_and_performance(self, container):
        for symbol in ("ABC", "XYZ"):
            await container.get(OpenPositionUseCase).execute(
                OpenPositionRequest(
                    user_id="user-1", symbol=symbol, side="long", quantity=Decimal("1")
                )
            )
        await container.get(ClosePositionUseCase).execute(
            ClosePositionRequest(user_id="user-1", symbol="XYZ")
        )

        status = await container.get(GetPortfolioStatusUseCase).execute(
            PortfolioStatusRequest(user_id="user-1")
        )
        history = await container.get(GetTradeHistoryUseCase).execute(
            TradeHistoryRequest(user_id="user-1", trade_type="open", limit=1)
        )
        performance = await container.get(GetPerformanceUseCase).execute(
            PerformanceRequest(user_id="user-1")
        )

        assert status.data["open_positions"] == 1
        assert history.data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
        assert performance.data["total_trades"] == 1

    @pytest.mark.asyncio
    async def test_history_bad_limit(self, container):
        response = await container.get(GetTradeHistoryUseCase).execute(
            TradeHistoryRequest(user_id="user-1", limit=1000)
        )
        assert response.error_code == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_market_data(self, container):
        response = await container.get(GetMarketDataUseCase).execute(
            MarketDataRequest(user_id="user-1", symbol="abc")
        )

        assert response.success
        assert response.data["symbol"] == "ABC"
        assert len(response.data["bars"]) == 25


class TestAnalyzeSymbolUseCase:
    @pytest.mark.asyncio
    async def test_success_charges_credit(self, container, account_store):
        response = await container.get(AnalyzeSymbolUseCase).execute(
            AnalyzeSymbolRequest(user_id="user-1", symbol="ABC")
        )

        assert response.success
        assert response.data["signal"] == "BUY"
        assert response.credit_charged
        assert response.remaining_credits == 1

    @pytest.mark.asyncio
    async def test_failure_not_charged(self, container, provider, account_store):
        provider.signals = [AnalysisError("model down")]

        response = await container.get(AnalyzeSymbolUseCase).execute(
            AnalyzeSymbolRequest(user_id="user-1", symbol="ABC")
        )

        assert response.error_code == "ANALYSIS_ERROR"
        assert not response.credit_charged
        assert (await account_store.load("user-1")).credit_balance("ai_analysis") == 2

    @pytest.mark.asyncio
    async def test_out_of_credits(self, container, account_store):
        account_store.set_credits("user-1", "ai_analysis", 0)

        response = await container.get(AnalyzeSymbolUseCase).execute(
            AnalyzeSymbolRequest(user_id="user-1", symbol="ABC")
        )

        assert response.error_code == "INSUFFICIENT_CREDITS"


class TestRunBacktestUseCase:
    def request(self, user_id: str) -> RunBacktestRequest:
        return RunBacktestRequest(
            user_id=user_id,
            symbol="ABC",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
        )

    @pytest.mark.asyncio
    async def test_premium_user(self, container):
        response = await container.get(RunBacktestUseCase).execute(self.request("premium-user"))

        assert response.success
        assert response.total_trades == 2
        assert response.data["engine_id"].startswith("backtest_premium-user_")
        assert "premium-user" not in container.registry

    @pytest.mark.asyncio
    async def test_free_user_needs_upgrade(self, container):
        response = await container.get(RunBacktestUseCase).execute(self.request("user-1"))

        assert response.error_code == "SUBSCRIPTION_UPGRADE_REQUIRED"

    @pytest.mark.asyncio
    async def test_bad_strategy(self, container):
        request = self.request("premium-user")
        request.strategy = "momentum"

        response = await container.get(RunBacktestUseCase).execute(request)

        assert response.error_code == "INVALID_INPUT"


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_trading_quota(self, container):
        use_case = container.get(ClosePositionUseCase)
        responses = [
            await use_case.execute(
                ClosePositionRequest(user_id="user-1", symbol="ABC", client_id="10.0.0.1")
            )
            for _ in range(11)
        ]

        assert [r.error_code for r in responses[:10]] == ["POSITION_NOT_FOUND"] * 10
        assert responses[10].error_code == "RATE_LIMITED"
        assert responses[10].error_details["retry_after"] >= 1

    @pytest.mark.asyncio
    async def test_rate_limiting_disabled(self, market, provider, account_store):
        config = ApplicationConfig()
        config.features.enable_rate_limiting = False
        container = TradingContainer(
            ContainerConfig(
                application=config,
                market_data=market,
                signal_provider=provider,
                account_store=account_store,
            )
        )
        use_case = container.get(ClosePositionUseCase)

        for _ in range(15):
            response = await use_case.execute(
                ClosePositionRequest(user_id="user-1", symbol="ABC", client_id="10.0.0.1")
            )
            assert response.error_code == "POSITION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_throttle_runs_before_validation(self, container):
        governor = MagicMock()
        use_case = OpenPositionUseCase(container.registry, governor)

        await use_case.execute(
            OpenPositionRequest(user_id="", symbol="ABC", side="long", quantity=Decimal("1"))
        )

        governor.throttle.assert_called_once()
