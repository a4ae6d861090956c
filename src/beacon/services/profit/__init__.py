"""Profit scenarios, cost model and break-even analysis."""

from .costs import CostBreakdown, calculate_costs
from .engine import ProfitScenarioEngine, estimate_seller_count
from .models import (
    BreakEvenAnalysis,
    OptimalStrategy,
    ProfitInputs,
    ProfitPrediction,
    ProfitScenario,
    RiskAssessment,
    RiskLevel,
    ScenarioName,
    StrategyAction,
)

__all__ = [
    "BreakEvenAnalysis",
    "CostBreakdown",
    "OptimalStrategy",
    "ProfitInputs",
    "ProfitPrediction",
    "ProfitScenario",
    "ProfitScenarioEngine",
    "RiskAssessment",
    "RiskLevel",
    "ScenarioName",
    "StrategyAction",
    "calculate_costs",
    "estimate_seller_count",
]
