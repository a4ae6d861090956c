"""Notification channel implementations posting to HTTP gateways."""

import time
from typing import Any, Dict, Optional, Protocol

import aiohttp

from ...config.logging import get_logger
from ...utils.serialization import to_jsonable
from .models import Notification, NotificationChannel, NotificationResult

logger = get_logger(__name__)

SMS_MAX_LENGTH = 160


class NotificationChannelProtocol(Protocol):
    """Protocol for notification channel implementations."""

    channel: NotificationChannel

    async def send_notification(self, notification: Notification) -> NotificationResult:
        """Send notification through this channel."""
        ...


class GatewayNotificationChannel:
    """Base channel: formats a payload and POSTs it to the channel gateway."""

    channel: NotificationChannel

    def __init__(self, gateway_url: Optional[str], timeout_seconds: float = 5.0):
        self.gateway_url = gateway_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = logger.bind(channel=self.channel.value)

    def format_payload(self, notification: Notification) -> Dict[str, Any]:
        raise NotImplementedError

    async def send_notification(self, notification: Notification) -> NotificationResult:
        """
        Deliver ``notification`` through the gateway.

        Returns:
            NotificationResult; delivery errors are reported, not raised
        """
        start = time.monotonic()

        if not self.gateway_url:
            return self._result(
                False, None, f"{self.channel.value} gateway not configured", start
            )

        try:
            message_id = await self._post(self.format_payload(notification))
        except (aiohttp.ClientError, TimeoutError) as e:
            self.logger.error(
                "Notification delivery failed",
                alert_id=notification.alert_id,
                recipient=notification.recipient,
                error=str(e),
            )
            return self._result(False, None, str(e), start)

        self.logger.info(
            "Notification delivered",
            alert_id=notification.alert_id,
            recipient=notification.recipient,
            type=notification.type.value,
        )
        return self._result(True, message_id, None, start)

    async def _post(self, payload: Dict[str, Any]) -> Optional[str]:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(self.gateway_url, json=payload) as response:
                response.raise_for_status()
                return response.headers.get("X-Message-Id")

    def _result(
        self,
        success: bool,
        message_id: Optional[str],
        error: Optional[str],
        start: float,
    ) -> NotificationResult:
        return NotificationResult(
            channel=self.channel,
            success=success,
            message_id=message_id,
            error=error,
            delivery_time_ms=(time.monotonic() - start) * 1000,
        )


class EmailNotificationChannel(GatewayNotificationChannel):
    channel = NotificationChannel.EMAIL

    def format_payload(self, notification: Notification) -> Dict[str, Any]:
        return {
            "to": notification.recipient,
            "subject": notification.title,
            "body": notification.message,
        }


class SmsNotificationChannel(GatewayNotificationChannel):
    channel = NotificationChannel.SMS

    def format_payload(self, notification: Notification) -> Dict[str, Any]:
        text = f"{notification.title}: {notification.message}"
        if len(text) > SMS_MAX_LENGTH:
            text = text[: SMS_MAX_LENGTH - 3] + "..."
        return {"to": notification.recipient, "text": text}


class PushNotificationChannel(GatewayNotificationChannel):
    channel = NotificationChannel.PUSH

    def format_payload(self, notification: Notification) -> Dict[str, Any]:
        return {
            "user_id": notification.recipient,
            "title": notification.title,
            "body": notification.message,
            "priority": notification.priority.value,
            "data": notification.data,
        }


class WebhookNotificationChannel(GatewayNotificationChannel):
    channel = NotificationChannel.WEBHOOK

    def format_payload(self, notification: Notification) -> Dict[str, Any]:
        return to_jsonable(notification)
