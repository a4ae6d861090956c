"""Price alerts with smart triggers, snoozing and predictive notifications."""

from .engine import AlertEngine
from .models import (
    Alert,
    AlertAnalytics,
    AlertPredictions,
    ConfidenceLevel,
    EvaluationOutcome,
    SmartSnoozing,
    SmartTriggerConditions,
    SnoozeCondition,
    SweepSummary,
)
from .predictions import AlertPredictor, placeholder_predictions

__all__ = [
    "Alert",
    "AlertAnalytics",
    "AlertEngine",
    "AlertPredictions",
    "AlertPredictor",
    "ConfidenceLevel",
    "EvaluationOutcome",
    "SmartSnoozing",
    "SmartTriggerConditions",
    "SnoozeCondition",
    "SweepSummary",
    "placeholder_predictions",
]
