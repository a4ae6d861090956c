"""Notification delivery over email, SMS, push and webhook gateways."""

from .models import (
    Notification,
    NotificationChannel,
    NotificationResult,
    NotificationType,
    Priority,
)
from .service import NotificationService

__all__ = [
    "Notification",
    "NotificationChannel",
    "NotificationResult",
    "NotificationService",
    "NotificationType",
    "Priority",
]
