"""Data models for price alerts."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from ...upstream.models import Channel
from ..analysis.models import Trend
from ..notification.models import NotificationChannel, Priority


class SnoozeCondition(Enum):
    """Reasons a due trigger may be held back."""

    MARKET_HOURS = "market_hours"
    HIGH_VOLATILITY = "high_volatility"
    RECENT_TRIGGER = "recent_trigger"


class ConfidenceLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EvaluationOutcome(Enum):
    """What a single alert evaluation did."""

    NO_PRICE = "no_price"
    NOT_MET = "not_met"
    SNOOZED = "snoozed"
    TRIGGERED = "triggered"
    PREDICTED = "predicted"


@dataclass
class SmartTriggerConditions:
    """Extra conditions ANDed with the basic price check."""

    trend_condition: Optional[Trend] = None
    volatility_threshold: Optional[float] = None
    seasonal_adjustment: bool = False


@dataclass
class SmartSnoozing:
    enabled: bool = False
    conditions: List[SnoozeCondition] = field(default_factory=list)
    max_snooze_minutes: int = 60


@dataclass
class AlertPredictions:
    probability_of_trigger: float
    confidence_level: ConfidenceLevel
    reasoning: List[str]
    estimated_days_to_trigger: Optional[int] = None
    generated_at: Optional[datetime] = None


@dataclass
class Alert:
    """A user's standing request to be told when a price falls to a target."""

    alert_id: str
    product_id: str
    owner_id: str
    desired_price: int
    created_at: datetime
    channel: Channel = Channel.PRIMARY
    current_price: Optional[int] = None
    is_active: bool = True
    priority: Priority = Priority.MEDIUM
    notification_channels: List[NotificationChannel] = field(
        default_factory=lambda: [NotificationChannel.EMAIL]
    )
    interval_minutes: int = 60
    smart_trigger_conditions: Optional[SmartTriggerConditions] = None
    smart_snoozing: SmartSnoozing = field(default_factory=SmartSnoozing)
    ai_predictions: Optional[AlertPredictions] = None
    triggered_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    resume_at: Optional[datetime] = None
    notifications_sent: int = 0


@dataclass
class AlertAnalytics:
    alert_id: str
    total_evaluations: int = 0
    basic_matches: int = 0
    total_triggers: int = 0
    snoozed: int = 0
    predictive_notifications: int = 0
    last_triggered_at: Optional[datetime] = None


@dataclass
class SweepSummary:
    """Counts from one pass over the active alerts."""

    skipped: bool = False
    resumed: int = 0
    evaluated: int = 0
    triggered: int = 0
    snoozed: int = 0
    predicted: int = 0
    errors: int = 0
