"""
Backtest Use Case

Runs a strategy over historical data in an isolated engine. Backtests are a
premium feature and count against the analysis quota.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from ...domain.value_objects.symbol import Symbol
from ..interfaces.accounts import SubscriptionTier
from ..interfaces.signals import SUPPORTED_MODELS
from ..services.backtest_simulator import BacktestParameters, BacktestSimulator, BacktestStrategy
from ..services.governor import Governor
from .base import UseCase, UseCaseRequest, UseCaseResponse


@dataclass
class RunBacktestRequest(UseCaseRequest):
    user_id: str
    symbol: str
    start_date: datetime | date
    end_date: datetime | date
    strategy: str = BacktestStrategy.AI_SIGNALS.value
    model: str = "gpt-4"
    initial_balance: Decimal = Decimal("100000")


@dataclass
class RunBacktestResponse(UseCaseResponse):
    total_trades: int = 0
    total_return: Decimal | None = None


class RunBacktestUseCase(UseCase[RunBacktestRequest, RunBacktestResponse]):
    operation_class = "analysis"
    response_class = RunBacktestResponse

    def __init__(
        self,
        simulator: BacktestSimulator,
        governor: Governor | None = None,
        required_tier: SubscriptionTier | None = SubscriptionTier.PREMIUM,
    ) -> None:
        super().__init__(governor=governor)
        self.simulator = simulator
        self.required_tier = required_tier

    async def validate(self, request: RunBacktestRequest) -> str | None:
        if not request.user_id:
            return "User id is required"
        if not Symbol.validate(request.symbol):
            return f"Invalid symbol: {request.symbol}"
        if request.strategy not in {s.value for s in BacktestStrategy}:
            return f"Strategy must be one of: {', '.join(s.value for s in BacktestStrategy)}"
        if request.model not in SUPPORTED_MODELS:
            return f"Unsupported model: {request.model}"
        if request.initial_balance <= 0:
            return "Initial balance must be positive"
        return None

    async def process(self, request: RunBacktestRequest) -> RunBacktestResponse:
        if self.governor is not None and self.required_tier is not None:
            await self.governor.require_tier(request.user_id, self.required_tier)

        report = await self.simulator.run(
            BacktestParameters(
                symbol=request.symbol,
                start_date=request.start_date,
                end_date=request.end_date,
                strategy=request.strategy,
                model=request.model,
                initial_balance=request.initial_balance,
                owner_id=request.user_id,
            )
        )
        self.logger.info(
            f"Backtest {report.engine_id} completed with {report.total_trades} trades",
            extra={"user_id": request.user_id, "symbol": report.symbol},
        )
        return RunBacktestResponse(
            success=True,
            data=report.to_dict(),
            total_trades=report.total_trades,
            total_return=report.total_return,
            request_id=request.request_id,
        )
