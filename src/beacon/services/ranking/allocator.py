"""Cross-product ranking and greedy budget allocation."""

from typing import List, Optional, Sequence

from ...config.logging import get_logger
from ...exceptions import InputValidationError
from ..profit.models import ProfitPrediction, StrategyAction
from .models import (
    PortfolioAllocation,
    PortfolioOptimization,
    ProductRanking,
    RankingPreferences,
)

logger = get_logger(__name__)

# Floor for the ROI used to back out a product's cost from its profit
MIN_COST_ROI = 0.1


class RankingAndAllocator:
    """
    Ranks profit projections and fills a budget greedily by ROI.

    The allocation is a heuristic: it walks products in rank order and keeps
    every ``buy`` that still fits, which is not an optimal knapsack.
    """

    def __init__(self):
        self.logger = logger.bind(component="ranking_allocator")

    def rank(
        self,
        predictions: Sequence[ProfitPrediction],
        preferences: Optional[RankingPreferences] = None,
    ) -> List[ProductRanking]:
        """Rank by descending expected ROI after preference filters; stable on ties."""
        preferences = preferences or RankingPreferences()
        eligible = [p for p in predictions if self._passes(p, preferences)]
        ordered = sorted(
            eligible, key=lambda p: p.optimal_strategy.expected_roi, reverse=True
        )

        return [
            ProductRanking(
                product_id=p.product_id,
                rank=position,
                expected_profit=p.optimal_strategy.expected_profit,
                expected_roi=p.optimal_strategy.expected_roi,
                risk_level=p.risk_assessment.overall_risk,
                confidence=p.metadata.confidence,
                recommendation=p.optimal_strategy.action,
            )
            for position, p in enumerate(ordered, start=1)
        ]

    def _passes(
        self, prediction: ProfitPrediction, preferences: RankingPreferences
    ) -> bool:
        risk = prediction.risk_assessment.overall_risk
        if preferences.max_risk_level and risk.rank > preferences.max_risk_level.rank:
            return False
        if (
            preferences.min_roi is not None
            and prediction.optimal_strategy.expected_roi < preferences.min_roi
        ):
            return False
        return True

    def allocate(
        self,
        rankings: Sequence[ProductRanking],
        budget: float,
        preferences: Optional[RankingPreferences] = None,
    ) -> PortfolioOptimization:
        """
        Admit ``buy`` recommendations in rank order while they fit the budget.

        Raises:
            InputValidationError: budget is negative
        """
        if budget < 0:
            raise InputValidationError(
                "Budget cannot be negative", {"budget": "must be >= 0"}
            )

        preferences = preferences or RankingPreferences()
        per_product_cap = budget
        if preferences.diversification_level:
            per_product_cap = budget * preferences.diversification_level.max_share

        portfolio = PortfolioOptimization(budget=budget)
        remaining = budget

        for ranking in rankings:
            if ranking.recommendation != StrategyAction.BUY:
                continue

            cost = ranking.expected_profit / max(ranking.expected_roi, MIN_COST_ROI)
            if cost <= 0 or cost > remaining or cost > per_product_cap:
                continue

            portfolio.selected_products.append(
                PortfolioAllocation(
                    product_id=ranking.product_id,
                    estimated_cost=cost,
                    expected_profit=ranking.expected_profit,
                    expected_roi=ranking.expected_roi,
                    risk_level=ranking.risk_level,
                )
            )
            remaining -= cost
            portfolio.total_investment += cost
            portfolio.total_expected_profit += ranking.expected_profit
            level = ranking.risk_level.value
            distribution = portfolio.risk_distribution
            distribution[level] = distribution.get(level, 0) + 1

        if portfolio.total_investment > 0:
            portfolio.total_expected_roi = (
                portfolio.total_expected_profit / portfolio.total_investment
            )

        self.logger.info(
            "Portfolio allocated",
            budget=budget,
            candidates=len(rankings),
            selected=len(portfolio.selected_products),
            total_expected_roi=round(portfolio.total_expected_roi, 4),
        )

        return portfolio
