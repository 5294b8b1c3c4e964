"""Domain services."""

from .analytics import DrawdownResult, MonthlyReturn, PerformanceSummary, TradeAnalyticsService
from .exit_rules import ExitDecision, ExitRuleService

__all__ = [
    "DrawdownResult",
    "ExitDecision",
    "ExitRuleService",
    "MonthlyReturn",
    "PerformanceSummary",
    "TradeAnalyticsService",
]
