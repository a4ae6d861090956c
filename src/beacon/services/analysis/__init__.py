"""Price time-series analysis."""

from .analyzer import TimeSeriesAnalyzer
from .models import (
    ActionRecommendation,
    AnalysisResult,
    AnomalyType,
    ConfidenceInterval,
    PriceAnomaly,
    PricePrediction,
    SeasonalityPattern,
    Severity,
    Trend,
)
from .service import AnalysisService

__all__ = [
    "ActionRecommendation",
    "AnalysisResult",
    "AnalysisService",
    "AnomalyType",
    "ConfidenceInterval",
    "PriceAnomaly",
    "PricePrediction",
    "SeasonalityPattern",
    "Severity",
    "TimeSeriesAnalyzer",
    "Trend",
]
