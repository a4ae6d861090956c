"""Notification dispatch across channels."""

import asyncio
import threading
from typing import Dict, List, Optional, Set

from ...config.logging import get_logger
from .channels import (
    EmailNotificationChannel,
    NotificationChannelProtocol,
    PushNotificationChannel,
    SmsNotificationChannel,
    WebhookNotificationChannel,
)
from .models import Notification, NotificationChannel, NotificationResult

logger = get_logger(__name__)


class NotificationService:
    """Sends notifications through every requested channel concurrently."""

    def __init__(
        self,
        gateways: Optional[Dict[str, Optional[str]]] = None,
        timeout_seconds: float = 5.0,
        channels: Optional[
            Dict[NotificationChannel, NotificationChannelProtocol]
        ] = None,
    ):
        self.logger = logger.bind(service="notification_service")
        gateways = gateways or {}

        self.channels = channels or {
            NotificationChannel.EMAIL: EmailNotificationChannel(
                gateways.get("email"), timeout_seconds
            ),
            NotificationChannel.SMS: SmsNotificationChannel(
                gateways.get("sms"), timeout_seconds
            ),
            NotificationChannel.PUSH: PushNotificationChannel(
                gateways.get("push"), timeout_seconds
            ),
            NotificationChannel.WEBHOOK: WebhookNotificationChannel(
                gateways.get("webhook"), timeout_seconds
            ),
        }
        self._pending: Dict[asyncio.AbstractEventLoop, Set[asyncio.Task]] = {}
        self._pending_lock = threading.Lock()

    def dispatch(self, notification: Notification) -> asyncio.Task:
        """
        Start delivering ``notification`` without waiting for the outcome.

        Must be called from a running event loop; ``flush`` on that same loop
        awaits whatever is still in flight. Jobs on other threads run their own
        loops and never see these tasks.
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.send(notification))
        with self._pending_lock:
            self._pending.setdefault(loop, set()).add(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        loop = task.get_loop()
        with self._pending_lock:
            tasks = self._pending.get(loop)
            if tasks is None:
                return
            tasks.discard(task)
            if not tasks:
                del self._pending[loop]

    async def flush(self) -> None:
        """Wait for every delivery dispatched from the current event loop."""
        loop = asyncio.get_running_loop()
        with self._pending_lock:
            tasks = list(self._pending.get(loop, ()))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def send(self, notification: Notification) -> List[NotificationResult]:
        """
        Send ``notification`` through each of its channels.

        Returns:
            One NotificationResult per requested channel
        """
        self.logger.info(
            "Sending notification",
            alert_id=notification.alert_id,
            type=notification.type.value,
            priority=notification.priority.value,
            channels=[ch.value for ch in notification.channels],
        )

        results: List[NotificationResult] = []
        targets = []

        for channel in notification.channels:
            if channel in self.channels:
                targets.append(channel)
            else:
                results.append(
                    NotificationResult(
                        channel=channel,
                        success=False,
                        message_id=None,
                        error=f"Channel {channel.value} not available",
                        delivery_time_ms=0,
                    )
                )

        outcomes = await asyncio.gather(
            *(self.channels[ch].send_notification(notification) for ch in targets),
            return_exceptions=True,
        )

        for channel, outcome in zip(targets, outcomes):
            if isinstance(outcome, Exception):
                self.logger.error(
                    "Channel delivery raised exception",
                    channel=channel.value,
                    error=str(outcome),
                    exc_info=outcome,
                )
                results.append(
                    NotificationResult(
                        channel=channel,
                        success=False,
                        message_id=None,
                        error=str(outcome),
                        delivery_time_ms=0,
                    )
                )
            else:
                results.append(outcome)

        successful = sum(1 for r in results if r.success)
        self.logger.info(
            "Notification delivery completed",
            alert_id=notification.alert_id,
            successful_deliveries=successful,
            total_attempts=len(results),
        )

        return results
