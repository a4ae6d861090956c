"""Data models for time-series analysis results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Trend(Enum):
    """Direction of the most recent price movement."""

    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"
    VOLATILE = "volatile"


class AnomalyType(Enum):
    SPIKE = "spike"
    DROP = "drop"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SeasonalityPattern:
    """A recurring pattern; periods are calendar month names."""

    period: str
    strength: float
    peak_periods: List[str]
    low_periods: List[str]


@dataclass(frozen=True)
class PriceAnomaly:
    timestamp: datetime
    price: int
    type: AnomalyType
    severity: Severity
    possible_cause: Optional[str] = None


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float


@dataclass(frozen=True)
class PricePrediction:
    timestamp: datetime
    predicted_price: float
    confidence_interval: ConfidenceInterval
    probability: float


@dataclass(frozen=True)
class ActionRecommendation:
    """Plain-language action derived from the price history."""

    type: str  # 'buy', 'sell', 'hold' or 'watch'
    reason: str
    risk_level: str
    timeframe: str
    confidence: float


@dataclass(frozen=True)
class AnalysisResult:
    """Statistics over one product's price series. Recomputed, never mutated."""

    product_id: str
    trend: Trend
    trend_strength: float  # 0..1
    volatility: float  # coefficient of variation, percent
    seasonality: List[SeasonalityPattern]
    anomalies: List[PriceAnomaly]
    predictions: List[PricePrediction]
    confidence_score: float  # 0..1, grows with data volume
    data_points: int
    analyzed_at: datetime
    average_price: Optional[float] = None
    insights: List[str] = field(default_factory=list)
    recommendations: List[ActionRecommendation] = field(default_factory=list)
