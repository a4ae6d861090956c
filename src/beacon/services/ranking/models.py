"""Data models for product ranking and portfolio allocation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..profit.models import RiskLevel, StrategyAction


class DiversificationLevel(Enum):
    """Largest share of the budget a single product may take."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def max_share(self) -> float:
        return {"low": 1.0, "medium": 0.5, "high": 0.25}[self.value]


@dataclass
class RankingPreferences:
    max_risk_level: Optional[RiskLevel] = None
    min_roi: Optional[float] = None
    diversification_level: Optional[DiversificationLevel] = None


@dataclass
class ProductRanking:
    product_id: str
    rank: int
    expected_profit: float
    expected_roi: float
    risk_level: RiskLevel
    confidence: float
    recommendation: StrategyAction


@dataclass
class PortfolioAllocation:
    product_id: str
    estimated_cost: float
    expected_profit: float
    expected_roi: float
    risk_level: RiskLevel


@dataclass
class PortfolioOptimization:
    budget: float
    selected_products: List[PortfolioAllocation] = field(default_factory=list)
    total_investment: float = 0.0
    total_expected_profit: float = 0.0
    total_expected_roi: float = 0.0
    risk_distribution: Dict[str, int] = field(default_factory=dict)

    @property
    def remaining_budget(self) -> float:
        return self.budget - self.total_investment


@dataclass
class ProductComparison:
    rankings: List[ProductRanking]
    portfolio: PortfolioOptimization
    skipped_products: List[str] = field(default_factory=list)
