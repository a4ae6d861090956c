"""Tests for product ranking and greedy portfolio allocation."""

import sys
from unittest.mock import Mock

import pytest

sys.path.append("src")
from beacon.exceptions import InputValidationError
from beacon.services.profit import RiskLevel, StrategyAction
from beacon.services.ranking import (
    DiversificationLevel,
    ProductRanking,
    RankingAndAllocator,
    RankingPreferences,
)


@pytest.fixture
def allocator():
    return RankingAndAllocator()


def make_prediction(
    product_id, roi, profit, risk=RiskLevel.LOW, action=StrategyAction.BUY
):
    """Minimal stand-in for a ProfitPrediction."""
    prediction = Mock()
    prediction.product_id = product_id
    prediction.optimal_strategy.expected_roi = roi
    prediction.optimal_strategy.expected_profit = profit
    prediction.optimal_strategy.action = action
    prediction.risk_assessment.overall_risk = risk
    prediction.metadata.confidence = 0.7
    return prediction


def make_ranking(
    product_id, roi, profit, risk=RiskLevel.LOW, action=StrategyAction.BUY, rank=1
):
    return ProductRanking(
        product_id=product_id,
        rank=rank,
        expected_profit=profit,
        expected_roi=roi,
        risk_level=risk,
        confidence=0.7,
        recommendation=action,
    )


class TestRank:
    """Ranking by expected ROI with preference filters."""

    def test_descending_roi(self, allocator):
        predictions = [
            make_prediction("A", 0.1, 100),
            make_prediction("B", 0.5, 500),
            make_prediction("C", 0.3, 300),
        ]

        rankings = allocator.rank(predictions)

        assert [r.product_id for r in rankings] == ["B", "C", "A"]
        assert [r.rank for r in rankings] == [1, 2, 3]

    def test_ties_keep_input_order(self, allocator):
        predictions = [make_prediction(pid, 0.2, 200) for pid in ("X", "Y", "Z")]

        rankings = allocator.rank(predictions)

        assert [r.product_id for r in rankings] == ["X", "Y", "Z"]

    def test_filters(self, allocator):
        predictions = [
            make_prediction("A", 0.5, 500, risk=RiskLevel.HIGH),
            make_prediction("B", 0.05, 50),
            make_prediction("C", 0.3, 300, risk=RiskLevel.MEDIUM),
        ]
        preferences = RankingPreferences(max_risk_level=RiskLevel.MEDIUM, min_roi=0.1)

        rankings = allocator.rank(predictions, preferences)

        assert [r.product_id for r in rankings] == ["C"]
        assert rankings[0].rank == 1


class TestAllocate:
    """Greedy budget allocation."""

    def test_zero_budget_selects_nothing(self, allocator):
        rankings = [make_ranking("A", 0.5, 500)]

        portfolio = allocator.allocate(rankings, 0)

        assert portfolio.selected_products == []
        assert portfolio.total_expected_roi == 0
        assert portfolio.total_investment == 0

    def test_negative_budget_rejected(self, allocator):
        with pytest.raises(InputValidationError):
            allocator.allocate([], -1)

    def test_admits_in_rank_order_while_budget_allows(self, allocator):
        rankings = [
            make_ranking("A", 0.5, 500, rank=1),
            make_ranking("B", 0.4, 400, rank=2),
            make_ranking("C", 0.3, 300, rank=3),
        ]

        portfolio = allocator.allocate(rankings, 2500)

        assert [a.product_id for a in portfolio.selected_products] == ["A", "B"]
        assert portfolio.total_investment == pytest.approx(2000)
        assert portfolio.total_expected_profit == pytest.approx(900)
        assert portfolio.total_expected_roi == pytest.approx(0.45)
        assert portfolio.remaining_budget == pytest.approx(500)

    def test_later_cheaper_product_still_fits(self, allocator):
        """Greedy keeps walking after a product that does not fit."""
        rankings = [
            make_ranking("A", 0.5, 1000),  # cost 2000
            make_ranking("B", 0.4, 200),  # cost 500
        ]

        portfolio = allocator.allocate(rankings, 600)

        assert [a.product_id for a in portfolio.selected_products] == ["B"]

    def test_only_buy_recommendations(self, allocator):
        rankings = [
            make_ranking("A", 0.5, 500, action=StrategyAction.HOLD),
            make_ranking("B", 0.4, 400, action=StrategyAction.AVOID),
            make_ranking("C", 0.3, 300),
        ]

        portfolio = allocator.allocate(rankings, 10000)

        assert [a.product_id for a in portfolio.selected_products] == ["C"]

    def test_low_roi_cost_floor(self, allocator):
        """ROI below 0.1 is floored when backing out the cost."""
        portfolio = allocator.allocate([make_ranking("A", 0.02, 50)], 10000)

        assert portfolio.selected_products[0].estimated_cost == pytest.approx(500)

    def test_risk_distribution(self, allocator):
        rankings = [
            make_ranking("A", 0.5, 50, risk=RiskLevel.LOW),
            make_ranking("B", 0.5, 50, risk=RiskLevel.MEDIUM),
            make_ranking("C", 0.5, 50, risk=RiskLevel.LOW),
        ]

        portfolio = allocator.allocate(rankings, 10000)

        assert portfolio.risk_distribution == {"low": 2, "medium": 1}

    def test_diversification_caps_single_product(self, allocator):
        rankings = [
            make_ranking("A", 0.5, 750),  # cost 1500
            make_ranking("B", 0.5, 500),  # cost 1000
        ]
        preferences = RankingPreferences(
            diversification_level=DiversificationLevel.HIGH
        )

        portfolio = allocator.allocate(rankings, 4000, preferences)

        assert [a.product_id for a in portfolio.selected_products] == ["B"]


class TestConservativeFiltering:
    """Tightening the filters never worsens the portfolio ROI."""

    @pytest.mark.parametrize("min_roi", [0.0, 0.1, 0.2, 0.4])
    def test_min_roi_filter_does_not_lower_roi(self, allocator, min_roi):
        predictions = [
            make_prediction("A", 0.5, 500),
            make_prediction("B", 0.3, 300),
            make_prediction("C", 0.05, 100),
        ]

        baseline = allocator.allocate(allocator.rank(predictions), 5000)
        filtered = allocator.allocate(
            allocator.rank(predictions, RankingPreferences(min_roi=min_roi)), 5000
        )

        assert filtered.total_expected_roi >= baseline.total_expected_roi

    def test_risk_filter_does_not_lower_roi(self, allocator):
        predictions = [
            make_prediction("A", 0.6, 600, risk=RiskLevel.LOW),
            make_prediction("B", 0.2, 200, risk=RiskLevel.HIGH),
        ]

        baseline = allocator.allocate(allocator.rank(predictions), 5000)
        filtered = allocator.allocate(
            allocator.rank(
                predictions, RankingPreferences(max_risk_level=RiskLevel.LOW)
            ),
            5000,
        )

        assert filtered.total_expected_roi >= baseline.total_expected_roi
        assert [a.product_id for a in filtered.selected_products] == ["A"]
