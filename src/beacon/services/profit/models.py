"""Data models for profit scenarios and risk assessment."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ScenarioName(Enum):
    CONSERVATIVE = "conservative"
    REALISTIC = "realistic"
    OPTIMISTIC = "optimistic"


class StrategyAction(Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"
    AVOID = "avoid"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


@dataclass
class ProfitInputs:
    """Optional caller overrides for a profit projection."""

    intended_buy_price: Optional[float] = None
    intended_volume: Optional[int] = None
    holding_period_days: Optional[int] = None
    risk_tolerance: Optional[RiskLevel] = None


@dataclass
class ProfitScenario:
    name: ScenarioName
    timeframe_days: int
    buy_price: float
    sell_price: float
    volume: int
    gross_profit: float
    net_profit: float
    profit_margin: float
    roi: float
    probability: float
    assumptions: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)


@dataclass
class TimeWindow:
    start: datetime
    end: datetime


@dataclass
class OptimalStrategy:
    scenario: ScenarioName
    action: StrategyAction
    buy_price: float
    sell_price: float
    buy_window: TimeWindow
    sell_window: TimeWindow
    expected_profit: float
    expected_roi: float
    confidence: float
    reasoning: List[str] = field(default_factory=list)


@dataclass
class RiskFactor:
    factor: str
    impact: RiskLevel
    probability: float
    mitigation: str


@dataclass
class WorstCase:
    probability: float
    loss: float
    description: str


@dataclass
class RiskAssessment:
    overall_risk: RiskLevel
    risk_factors: List[RiskFactor]
    max_potential_loss: float
    break_even_price: float
    worst_case_scenario: WorstCase


@dataclass
class MarketFactor:
    """Signed influence (-100..100) of one market condition."""

    factor: str  # 'demand', 'competition', 'trend' or 'seasonality'
    impact: int
    description: str
    reliability: float


@dataclass
class ProfitRecommendation:
    type: str  # 'entry', 'exit', 'risk_management' or 'optimization'
    action: str
    reasoning: str
    expected_impact: str
    urgency: str
    confidence: float


@dataclass
class PredictionMetadata:
    confidence: float
    analysis_date: datetime
    data_quality: str  # 'high', 'medium' or 'low'


@dataclass
class ProfitPrediction:
    product_id: str
    scenarios: List[ProfitScenario]
    optimal_strategy: OptimalStrategy
    risk_assessment: RiskAssessment
    market_factors: List[MarketFactor]
    recommendations: List[ProfitRecommendation]
    metadata: PredictionMetadata


@dataclass
class BreakEvenAnalysis:
    product_id: str
    buy_price: float
    total_costs: float
    break_even_price: float
    minimum_sell_price: float
    profit_at_current_price: float
    margin_of_safety: float  # percent of current price
    notes: List[str] = field(default_factory=list)
