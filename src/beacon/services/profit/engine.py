"""Three-scenario profit projection with risk scoring."""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from ...config.logging import get_logger
from ...exceptions import InputValidationError
from ...upstream.models import ProductListing
from ...utils.clock import utcnow
from ..analysis.models import AnalysisResult, Trend
from .costs import calculate_costs, top_level_category
from .models import (
    BreakEvenAnalysis,
    MarketFactor,
    OptimalStrategy,
    PredictionMetadata,
    ProfitInputs,
    ProfitPrediction,
    ProfitRecommendation,
    ProfitScenario,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    ScenarioName,
    StrategyAction,
    TimeWindow,
    WorstCase,
)

logger = get_logger(__name__)

DEFAULT_VOLUME = 10
DEFAULT_BUY_RATIO = 0.8
UNRANKED = 999_999
MAX_SELLER_ESTIMATE = 50

BUY_WINDOW_DAYS = 7
SELL_WINDOW_DAYS = 14

TREND_IMPACT = {
    Trend.RISING: 25,
    Trend.STABLE: 5,
    Trend.FALLING: -30,
    Trend.VOLATILE: -15,
}

SCENARIO_ASSUMPTIONS = {
    ScenarioName.CONSERVATIVE: [
        "Price falls 5%",
        "Demand holds steady",
        "No new competitors",
    ],
    ScenarioName.REALISTIC: [
        "Sells at today's price",
        "Normal demand fluctuation",
        "Expected level of competition",
    ],
    ScenarioName.OPTIMISTIC: [
        "Price or demand rises",
        "Favourable seasonal conditions",
        "Competitors drop out",
    ],
}

SCENARIO_RISKS = {
    ScenarioName.CONSERVATIVE: [
        "Price may keep falling",
        "More sellers may compress prices",
    ],
    ScenarioName.OPTIMISTIC: [
        "Expected price rise may not happen",
        "Demand may not grow as hoped",
    ],
}


def estimate_seller_count(listing: ProductListing) -> int:
    """One listing plus every new and used offer, capped."""
    return min(
        MAX_SELLER_ESTIMATE, 1 + listing.new_offer_count + listing.used_offer_count
    )


def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


class ProfitScenarioEngine:
    """Builds conservative/realistic/optimistic projections for one product."""

    def __init__(self):
        self.logger = logger.bind(component="profit_scenario_engine")

    def predict(
        self,
        listing: ProductListing,
        analysis: AnalysisResult,
        average_price: Optional[float],
        inputs: Optional[ProfitInputs] = None,
        now: Optional[datetime] = None,
    ) -> ProfitPrediction:
        """
        Project profit for ``listing`` under three scenarios.

        Missing prices degrade to the other available price (or zero) rather
        than failing; only explicit, non-positive caller inputs are rejected.

        Raises:
            InputValidationError: intended buy price or volume is not positive
        """
        inputs = inputs or ProfitInputs()
        self._validate_inputs(inputs)
        now = now or utcnow()

        scenarios = self.build_scenarios(listing, average_price, inputs)
        strategy = self.choose_optimal_strategy(scenarios, analysis.trend, now)
        risk = self.assess_risk(listing, analysis, scenarios)

        prediction = ProfitPrediction(
            product_id=listing.product_id,
            scenarios=scenarios,
            optimal_strategy=strategy,
            risk_assessment=risk,
            market_factors=self.market_factors(listing, analysis, now),
            recommendations=self.recommendations(scenarios, strategy, risk),
            metadata=PredictionMetadata(
                confidence=self.overall_confidence(scenarios, risk),
                analysis_date=now,
                data_quality=self.data_quality(listing, analysis),
            ),
        )

        self.logger.info(
            "Profit projection built",
            product_id=listing.product_id,
            action=strategy.action.value,
            expected_roi=round(strategy.expected_roi, 4),
            overall_risk=risk.overall_risk.value,
        )

        return prediction

    def _validate_inputs(self, inputs: ProfitInputs) -> None:
        errors = {}
        if inputs.intended_buy_price is not None and inputs.intended_buy_price <= 0:
            errors["intended_buy_price"] = "must be > 0"
        if inputs.intended_volume is not None and inputs.intended_volume <= 0:
            errors["intended_volume"] = "must be > 0"
        if inputs.holding_period_days is not None and inputs.holding_period_days <= 0:
            errors["holding_period_days"] = "must be > 0"

        if errors:
            raise InputValidationError("Invalid profit inputs", errors)

    def build_scenarios(
        self,
        listing: ProductListing,
        average_price: Optional[float],
        inputs: ProfitInputs,
    ) -> List[ProfitScenario]:
        current = float(listing.current_price or average_price or 0)
        average = float(average_price or current)

        buy_price = inputs.intended_buy_price or average * DEFAULT_BUY_RATIO
        volume = inputs.intended_volume or DEFAULT_VOLUME

        extra_assumptions = []
        if inputs.holding_period_days:
            extra_assumptions.append(
                f"Holding period of {inputs.holding_period_days} days"
            )
        if inputs.risk_tolerance:
            extra_assumptions.append(f"Risk tolerance: {inputs.risk_tolerance.value}")

        plan = (
            (ScenarioName.CONSERVATIVE, 30, current * 0.95, 0.7),
            (ScenarioName.REALISTIC, 21, current, 0.6),
            (ScenarioName.OPTIMISTIC, 14, max(average, current * 1.1), 0.3),
        )

        return [
            self._build_scenario(
                name,
                days,
                buy_price,
                sell,
                volume,
                listing,
                probability,
                extra_assumptions,
            )
            for name, days, sell, probability in plan
        ]

    def _build_scenario(
        self,
        name: ScenarioName,
        timeframe_days: int,
        buy_price: float,
        sell_price: float,
        volume: int,
        listing: ProductListing,
        probability: float,
        extra_assumptions: List[str],
    ) -> ProfitScenario:
        costs = calculate_costs(buy_price, listing).total
        net_profit = (sell_price - buy_price - costs) * volume

        risks = list(SCENARIO_RISKS.get(name, []))
        if _safe_ratio(sell_price - buy_price, buy_price) < 0.2:
            risks.append("Thin margin leaves little room for cost increases")

        return ProfitScenario(
            name=name,
            timeframe_days=timeframe_days,
            buy_price=buy_price,
            sell_price=sell_price,
            volume=volume,
            gross_profit=(sell_price - buy_price) * volume,
            net_profit=net_profit,
            profit_margin=_safe_ratio(net_profit, sell_price * volume),
            roi=_safe_ratio(net_profit, buy_price * volume),
            probability=probability,
            assumptions=SCENARIO_ASSUMPTIONS[name] + extra_assumptions,
            risks=risks,
        )

    def choose_optimal_strategy(
        self, scenarios: List[ProfitScenario], trend: Trend, now: datetime
    ) -> OptimalStrategy:
        """Pick the best risk-adjusted scenario; the earliest wins ties."""
        best = scenarios[0]
        for scenario in scenarios[1:]:
            if scenario.roi * scenario.probability > best.roi * best.probability:
                best = scenario

        reasoning = []
        if best.net_profit > 0 and best.probability > 0.5:
            action = StrategyAction.BUY
            reasoning.append(
                f"The {best.name.value} scenario is expected to be profitable"
            )
            reasoning.append(f"Expected ROI: {best.roi * 100:.1f}%")
        elif best.net_profit < 0:
            action = StrategyAction.AVOID
            reasoning.append("The best risk-adjusted scenario still loses money")
        elif trend == Trend.FALLING:
            action = StrategyAction.SELL
            reasoning.append("Prices are trending down; selling is preferred")
        else:
            action = StrategyAction.HOLD

        buy_window, sell_window = self.strategy_windows(best.timeframe_days, now)

        return OptimalStrategy(
            scenario=best.name,
            action=action,
            buy_price=best.buy_price,
            sell_price=best.sell_price,
            buy_window=buy_window,
            sell_window=sell_window,
            expected_profit=best.net_profit,
            expected_roi=best.roi,
            confidence=best.probability,
            reasoning=reasoning,
        )

    @staticmethod
    def strategy_windows(
        timeframe_days: int, now: datetime
    ) -> Tuple[TimeWindow, TimeWindow]:
        sell_start = now + timedelta(days=timeframe_days)
        return (
            TimeWindow(start=now, end=now + timedelta(days=BUY_WINDOW_DAYS)),
            TimeWindow(
                start=sell_start, end=sell_start + timedelta(days=SELL_WINDOW_DAYS)
            ),
        )

    def reanchor_windows(
        self, prediction: ProfitPrediction, now: datetime
    ) -> ProfitPrediction:
        """Restart the optimal strategy's buy and sell windows at ``now``."""
        strategy = prediction.optimal_strategy
        timeframe = next(
            s.timeframe_days
            for s in prediction.scenarios
            if s.name == strategy.scenario
        )
        windows = self.strategy_windows(timeframe, now)
        strategy.buy_window, strategy.sell_window = windows
        return prediction

    def assess_risk(
        self,
        listing: ProductListing,
        analysis: AnalysisResult,
        scenarios: List[ProfitScenario],
    ) -> RiskAssessment:
        factors = []

        if analysis.volatility > 20:
            factors.append(
                RiskFactor(
                    factor="price_volatility",
                    impact=RiskLevel.HIGH,
                    probability=0.7,
                    mitigation="Trade short-term or set a stop-loss",
                )
            )

        if estimate_seller_count(listing) > 15:
            factors.append(
                RiskFactor(
                    factor="competition_increase",
                    impact=RiskLevel.MEDIUM,
                    probability=0.8,
                    mitigation="Keep pricing competitive",
                )
            )

        sales_rank = listing.sales_rank or UNRANKED
        if listing.review_count > 10000 and sales_rank > 50000:
            factors.append(
                RiskFactor(
                    factor="market_saturation",
                    impact=RiskLevel.MEDIUM,
                    probability=0.6,
                    mitigation="Shift toward a niche segment",
                )
            )

        high = sum(1 for f in factors if f.impact == RiskLevel.HIGH)
        medium = sum(1 for f in factors if f.impact == RiskLevel.MEDIUM)
        if high > 0:
            overall = RiskLevel.HIGH
        elif medium > 1:
            overall = RiskLevel.MEDIUM
        else:
            overall = RiskLevel.LOW

        worst = min(scenarios, key=lambda s: s.net_profit)
        conservative = scenarios[0]

        return RiskAssessment(
            overall_risk=overall,
            risk_factors=factors,
            max_potential_loss=abs(min(0.0, worst.net_profit)),
            break_even_price=conservative.buy_price
            + calculate_costs(conservative.buy_price, listing).total,
            worst_case_scenario=WorstCase(
                probability=worst.probability,
                loss=abs(worst.net_profit),
                description=f"Largest loss occurs in the {worst.name.value} scenario",
            ),
        )

    def market_factors(
        self, listing: ProductListing, analysis: AnalysisResult, now: datetime
    ) -> List[MarketFactor]:
        sales_rank = listing.sales_rank or UNRANKED
        if sales_rank < 1000:
            demand = 30
        elif sales_rank < 10000:
            demand = 15
        elif sales_rank > 100000:
            demand = -20
        else:
            demand = 0

        sellers = estimate_seller_count(listing)
        if sellers < 3:
            competition = 20
        elif sellers > 15:
            competition = -25
        else:
            competition = -5 * (sellers - 3)

        factors = [
            MarketFactor(
                "demand", demand, f"Demand implied by sales rank {sales_rank:,}", 0.8
            ),
            MarketFactor(
                "competition", competition, f"About {sellers} competing sellers", 0.6
            ),
            MarketFactor(
                "trend",
                TREND_IMPACT[analysis.trend],
                f"Price trend is {analysis.trend.value}",
                0.7,
            ),
        ]

        seasonal = self._seasonal_impact(listing.category, now)
        if seasonal:
            factors.append(
                MarketFactor("seasonality", seasonal, "Seasonal demand shift", 0.8)
            )

        return factors

    def _seasonal_impact(self, category: str, now: datetime) -> int:
        if now.month != 12:
            return 0

        name = top_level_category(category)
        if "toy" in name or "game" in name:
            return 30
        if name == "electronics":
            return 15
        return 0

    def recommendations(
        self,
        scenarios: List[ProfitScenario],
        strategy: OptimalStrategy,
        risk: RiskAssessment,
    ) -> List[ProfitRecommendation]:
        recommendations = []

        if strategy.action == StrategyAction.BUY:
            recommendations.append(
                ProfitRecommendation(
                    type="entry",
                    action=f"Buy at or below {strategy.buy_price:,.0f}",
                    reasoning="Buying in the optimal price band supports a high ROI",
                    expected_impact=f"Expected profit: {strategy.expected_profit:,.0f}",
                    urgency="medium",
                    confidence=strategy.confidence,
                )
            )

        target = next(
            (s for s in scenarios if s.name == ScenarioName.REALISTIC), scenarios[0]
        )
        recommendations.append(
            ProfitRecommendation(
                type="exit",
                action=f"Set a sell target of {target.sell_price:,.0f}",
                reasoning="Lock in profit at a risk-aware sell price",
                expected_impact=f"Profit margin: {target.profit_margin * 100:.1f}%",
                urgency="low",
                confidence=0.7,
            )
        )

        if risk.overall_risk == RiskLevel.HIGH:
            recommendations.append(
                ProfitRecommendation(
                    type="risk_management",
                    action="Set a stop-loss level",
                    reasoning="Risk is high enough to need a loss limit",
                    expected_impact=f"Caps the loss at {risk.max_potential_loss:,.0f}",
                    urgency="high",
                    confidence=0.9,
                )
            )

        if any(s.roi > 0.2 for s in scenarios):
            recommendations.append(
                ProfitRecommendation(
                    type="optimization",
                    action="Consider a larger purchase volume",
                    reasoning="ROI above 20% makes scaling up worthwhile",
                    expected_impact="Higher total profit",
                    urgency="medium",
                    confidence=0.6,
                )
            )

        return recommendations

    def overall_confidence(
        self, scenarios: List[ProfitScenario], risk: RiskAssessment
    ) -> float:
        average = sum(s.probability for s in scenarios) / len(scenarios)
        adjustments = {RiskLevel.LOW: 0.1, RiskLevel.HIGH: -0.2}
        adjustment = adjustments.get(risk.overall_risk, 0.0)
        return max(0.1, min(1.0, average + adjustment))

    def data_quality(self, listing: ProductListing, analysis: AnalysisResult) -> str:
        has_listing = (
            listing.current_price is not None or listing.sales_rank is not None
        )
        has_history = analysis.data_points > 30

        if has_listing and has_history and listing.review_count > 0:
            return "high"
        if has_listing and has_history:
            return "medium"
        return "low"

    def break_even(
        self, listing: ProductListing, buy_price: float
    ) -> BreakEvenAnalysis:
        """
        Break-even and safety margin for buying one unit at ``buy_price``.

        Raises:
            InputValidationError: buy_price is not positive
        """
        if buy_price is None or buy_price <= 0:
            raise InputValidationError(
                "Buy price must be positive", {"buy_price": "must be > 0"}
            )

        current = float(listing.current_price or 0)
        costs = calculate_costs(buy_price, listing).total
        break_even_price = buy_price + costs
        profit_now = current - break_even_price
        margin_of_safety = _safe_ratio(current - break_even_price, current) * 100

        return BreakEvenAnalysis(
            product_id=listing.product_id,
            buy_price=buy_price,
            total_costs=costs,
            break_even_price=break_even_price,
            minimum_sell_price=break_even_price * 1.1,
            profit_at_current_price=profit_now,
            margin_of_safety=margin_of_safety,
            notes=[
                f"Buy price: {buy_price:,.0f}",
                f"Total costs: {costs:,.0f}",
                f"Break-even price: {break_even_price:,.0f}",
                f"Profit at current price: {profit_now:,.0f}",
                f"Margin of safety: {margin_of_safety:.1f}%",
            ],
        )
