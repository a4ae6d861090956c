"""Likelihood that an alert's target price is reached soon."""

import math
from typing import Optional

from ...config.logging import get_logger
from ...utils.clock import utcnow
from ..analysis.models import AnalysisResult, PricePrediction
from ..analysis.service import AnalysisService
from .models import Alert, AlertPredictions, ConfidenceLevel

logger = get_logger(__name__)

PREDICTION_WINDOW_DAYS = 90
INSUFFICIENT_DATA_REASON = "Not enough price history for a detailed forecast"


def placeholder_predictions(reason: str = INSUFFICIENT_DATA_REASON) -> AlertPredictions:
    """Fixed low-confidence estimate used whenever a real one cannot be made."""
    return AlertPredictions(
        probability_of_trigger=0.5,
        confidence_level=ConfidenceLevel.LOW,
        reasoning=[reason],
        generated_at=utcnow(),
    )


def confidence_level(score: float) -> ConfidenceLevel:
    if score > 0.8:
        return ConfidenceLevel.HIGH
    if score > 0.6:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def probability_at_or_below(target: float, prediction: PricePrediction) -> float:
    """
    P(price <= target) at the prediction horizon.

    Treats the forecast as normal with the interval half-width as one standard
    deviation, then shrinks toward 0.5 by the forecast's own confidence.
    """
    mean = prediction.predicted_price
    sigma = prediction.confidence_interval.upper - mean

    if sigma <= 0:
        raw = 1.0 if target >= mean else 0.0
    else:
        raw = 0.5 * (1 + math.erf((target - mean) / (sigma * math.sqrt(2))))

    weight = prediction.probability
    return weight * raw + (1 - weight) * 0.5


class AlertPredictor:
    """Derives AlertPredictions from the product's analyzed price series."""

    def __init__(self, analysis_service: AnalysisService):
        self.analysis_service = analysis_service
        self.logger = logger.bind(component="alert_predictor")

    async def generate(self, alert: Alert) -> AlertPredictions:
        """Never raises; falls back to the placeholder estimate."""
        try:
            analysis = await self.analysis_service.analyze(
                alert.product_id, PREDICTION_WINDOW_DAYS, alert.channel
            )
        except Exception as e:
            self.logger.warning(
                "Prediction fell back to placeholder",
                alert_id=alert.alert_id,
                error=str(e),
            )
            return placeholder_predictions()

        return self.from_analysis(alert, analysis)

    def from_analysis(self, alert: Alert, analysis: AnalysisResult) -> AlertPredictions:
        if not analysis.predictions:
            return placeholder_predictions()

        current = alert.current_price
        if current is not None and current <= alert.desired_price:
            probability: float = 1.0
            estimated_days: Optional[int] = 0
        else:
            probability = 0.0
            estimated_days = None
            for prediction in analysis.predictions:
                chance = probability_at_or_below(alert.desired_price, prediction)
                probability = max(probability, chance)
                if estimated_days is None and chance >= 0.5:
                    estimated_days = (prediction.timestamp - analysis.analyzed_at).days

        nearest = analysis.predictions[0]
        interval = nearest.confidence_interval
        reasoning = [
            f"Price trend is {analysis.trend.value}",
            f"Volatility is {analysis.volatility:.1f}%",
            f"Forecast in {(nearest.timestamp - analysis.analyzed_at).days} days: "
            f"{nearest.predicted_price:,.0f} "
            f"({interval.lower:,.0f} to {interval.upper:,.0f})",
            *analysis.insights,
        ]

        return AlertPredictions(
            probability_of_trigger=round(probability, 4),
            confidence_level=confidence_level(analysis.confidence_score),
            reasoning=reasoning,
            estimated_days_to_trigger=estimated_days,
            generated_at=utcnow(),
        )
