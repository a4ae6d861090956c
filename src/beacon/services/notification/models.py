"""Data models for outbound notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class NotificationChannel(Enum):
    """Available notification channels."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"


class NotificationType(Enum):
    TRIGGER = "trigger"
    PREDICTION = "prediction"


class Priority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class Notification:
    """One message addressed to an alert owner."""

    notification_id: str
    alert_id: str
    product_id: str
    recipient: str
    type: NotificationType
    title: str
    message: str
    priority: Priority
    channels: List[NotificationChannel]
    created_at: datetime
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class NotificationResult:
    """Result of notification delivery attempt."""

    channel: NotificationChannel
    success: bool
    message_id: Optional[str]
    error: Optional[str]
    delivery_time_ms: float
