"""Trend, volatility, seasonality and anomaly statistics for price series."""

import calendar
import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import pandas as pd

from ...config.logging import get_logger
from ...upstream.models import PricePoint
from ...utils.clock import utcnow
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

logger = get_logger(__name__)

TREND_WINDOW = 10
VOLATILE_THRESHOLD = 25.0
TREND_CHANGE_THRESHOLD = 5.0
SEASONALITY_MIN_POINTS = 52
SEASONALITY_CV_THRESHOLD = 0.15
ANOMALY_MIN_POINTS = 10
ANOMALY_Z_THRESHOLD = 2.5
PREDICTION_MIN_POINTS = 10
PREDICTION_HORIZONS = (30, 60, 90)

SEASONAL_CAUSES = {
    12: "Year-end shopping surge",
    7: "Summer bonus period",
}


def _prices(points: Sequence[PricePoint]) -> pd.Series:
    return pd.Series([p.price for p in points], dtype="float64")


def _volatility(prices: pd.Series) -> float:
    """Population coefficient of variation in percent."""
    if len(prices) < 2:
        return 0.0

    mean = prices.mean()
    if mean == 0:
        return 0.0

    return float(prices.std(ddof=0) / mean * 100)


class TimeSeriesAnalyzer:
    """Pure statistics over a price series; never raises for short input."""

    def __init__(self):
        self.logger = logger.bind(component="time_series_analyzer")

    def analyze(
        self,
        product_id: str,
        points: Sequence[PricePoint],
        days: int,
        as_of: Optional[datetime] = None,
    ) -> AnalysisResult:
        """
        Analyze the last ``days`` days of a series.

        The window is anchored at the most recent point rather than the wall
        clock, so a stale history still yields its statistics.

        Args:
            product_id: Product the series belongs to
            points: Price points in any order
            days: Window length in days
            as_of: Reference time for prediction timestamps (defaults to now)

        Returns:
            AnalysisResult for the window
        """
        as_of = as_of or utcnow()
        window = self.select_window(points, days)

        result = AnalysisResult(
            product_id=product_id,
            trend=self.calculate_trend(window),
            trend_strength=self.calculate_trend_strength(window),
            volatility=self.calculate_volatility(window),
            seasonality=self.detect_seasonality(window),
            anomalies=self.detect_anomalies(window),
            predictions=self.generate_predictions(window, as_of),
            confidence_score=self.calculate_confidence(window),
            data_points=len(window),
            average_price=self.average_price(window),
            analyzed_at=as_of,
            insights=self.generate_insights(window),
            recommendations=self.generate_recommendations(window),
        )

        self.logger.debug(
            "Series analyzed",
            product_id=product_id,
            data_points=result.data_points,
            trend=result.trend.value,
            volatility=round(result.volatility, 2),
        )

        return result

    def select_window(
        self, points: Sequence[PricePoint], days: int
    ) -> List[PricePoint]:
        ordered = sorted(points, key=lambda p: p.timestamp)
        if not ordered or days <= 0:
            return ordered

        cutoff = ordered[-1].timestamp - timedelta(days=days)
        return [p for p in ordered if p.timestamp >= cutoff]

    def average_price(self, points: Sequence[PricePoint]) -> Optional[float]:
        if not points:
            return None
        return float(_prices(points).mean())

    def calculate_trend(self, points: Sequence[PricePoint]) -> Trend:
        if len(points) < 2:
            return Trend.STABLE

        recent = _prices(points[-TREND_WINDOW:])
        first, last = recent.iloc[0], recent.iloc[-1]
        change = (last - first) / first * 100 if first else 0.0

        if _volatility(recent) > VOLATILE_THRESHOLD:
            return Trend.VOLATILE
        if change > TREND_CHANGE_THRESHOLD:
            return Trend.RISING
        if change < -TREND_CHANGE_THRESHOLD:
            return Trend.FALLING
        return Trend.STABLE

    def calculate_trend_strength(self, points: Sequence[PricePoint]) -> float:
        """Least-squares slope over the window relative to the mean, capped at 1."""
        if len(points) < 3:
            return 0.0

        prices = _prices(points)
        mean = prices.mean()
        if mean == 0:
            return 0.0

        index = pd.Series(range(len(prices)), dtype="float64")
        dx = index - index.mean()
        slope = (dx * (prices - mean)).sum() / (dx**2).sum()

        return float(min(abs(slope) / mean, 1.0))

    def calculate_volatility(self, points: Sequence[PricePoint]) -> float:
        return _volatility(_prices(points))

    def detect_seasonality(
        self, points: Sequence[PricePoint]
    ) -> List[SeasonalityPattern]:
        if len(points) < SEASONALITY_MIN_POINTS:
            return []

        frame = pd.DataFrame(
            {
                "month": [p.timestamp.month for p in points],
                "price": [p.price for p in points],
            }
        )
        monthly = frame.groupby("month")["price"].mean()
        if len(monthly) < 2 or monthly.mean() == 0:
            return []

        variation = float(monthly.std(ddof=0) / monthly.mean())
        if variation <= SEASONALITY_CV_THRESHOLD:
            return []

        month_names = calendar.month_name
        return [
            SeasonalityPattern(
                period="yearly",
                strength=variation,
                peak_periods=[month_names[m] for m in monthly.nlargest(2).index],
                low_periods=[month_names[m] for m in monthly.nsmallest(2).index],
            )
        ]

    def detect_anomalies(self, points: Sequence[PricePoint]) -> List[PriceAnomaly]:
        if len(points) < ANOMALY_MIN_POINTS:
            return []

        prices = _prices(points)
        mean = prices.mean()
        std = prices.std(ddof=0)
        if std == 0:
            return []

        anomalies = []
        for point, z in zip(points, ((prices - mean).abs() / std)):
            if z <= ANOMALY_Z_THRESHOLD:
                continue

            if z > 3.0:
                severity = Severity.HIGH
            elif z > 2.8:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW

            anomalies.append(
                PriceAnomaly(
                    timestamp=point.timestamp,
                    price=point.price,
                    type=AnomalyType.SPIKE if point.price > mean else AnomalyType.DROP,
                    severity=severity,
                    possible_cause=SEASONAL_CAUSES.get(point.timestamp.month),
                )
            )

        return anomalies

    def generate_predictions(
        self, points: Sequence[PricePoint], as_of: datetime
    ) -> List[PricePrediction]:
        if len(points) < PREDICTION_MIN_POINTS:
            return []

        last_price = float(points[-1].price)
        strength = self.calculate_trend_strength(points)
        volatility = self.calculate_volatility(points)
        confidence = max(0.1, 1 - volatility / 100)

        predictions = []
        for days in PREDICTION_HORIZONS:
            predicted = last_price * (1 + strength * (days / 30) * 0.1)
            half_width = last_price * (volatility / 100) * math.sqrt(days / 30)

            predictions.append(
                PricePrediction(
                    timestamp=as_of + timedelta(days=days),
                    predicted_price=predicted,
                    confidence_interval=ConfidenceInterval(
                        lower=predicted - half_width, upper=predicted + half_width
                    ),
                    probability=confidence,
                )
            )

        return predictions

    def calculate_confidence(self, points: Sequence[PricePoint]) -> float:
        if len(points) < 10:
            return 0.3
        if len(points) < 30:
            return 0.6
        return 0.9

    def generate_insights(self, points: Sequence[PricePoint]) -> List[str]:
        if not points:
            return ["Not enough price data for a detailed analysis"]

        recent = _prices(points[-TREND_WINDOW:])
        average = recent.mean()
        current = recent.iloc[-1]

        insights = []
        if current < average * 0.9:
            insights.append(
                "Current price is more than 10% below the recent average; "
                "possible buying opportunity"
            )
        elif current > average * 1.1:
            insights.append(
                "Current price is more than 10% above the recent average; "
                "possible selling opportunity"
            )

        volatility = _volatility(recent)
        if volatility > 20:
            insights.append("Large price swings; timing needs care")
        elif volatility < 5:
            insights.append("Stable pricing; forecasts are more reliable")

        return insights

    def generate_recommendations(
        self, points: Sequence[PricePoint]
    ) -> List[ActionRecommendation]:
        if not points:
            return []

        average = _prices(points).mean()
        if points[-1].price < average * 0.9:
            return [
                ActionRecommendation(
                    type="buy",
                    reason="Current price is more than 10% below the average price",
                    risk_level="low",
                    timeframe="within 7 days",
                    confidence=0.8,
                )
            ]

        return []
