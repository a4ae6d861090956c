"""Alert lifecycle and the periodic evaluation sweep."""

import calendar
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...config.logging import get_logger
from ...exceptions import ConfigurationError, InputValidationError, NotFoundError
from ...store import KeyValueStore, lease
from ...upstream import Channel, PriceDataProvider
from ...utils.clock import utcnow
from ...utils.serialization import from_jsonable, to_jsonable
from ..analysis.models import AnalysisResult
from ..analysis.service import AnalysisService
from ..notification.models import (
    Notification,
    NotificationChannel,
    NotificationType,
    Priority,
)
from ..notification.service import NotificationService
from .models import (
    Alert,
    AlertAnalytics,
    EvaluationOutcome,
    SmartSnoozing,
    SmartTriggerConditions,
    SnoozeCondition,
    SweepSummary,
)
from .predictions import AlertPredictor

logger = get_logger(__name__)

ALERT_PREFIX = "alerts:"
ANALYTICS_PREFIX = "alert-analytics:"
NOTIFICATION_PREFIX = "alert-notifications:"
NOTIFICATION_TTL = 30 * 86400

CONDITION_WINDOW_DAYS = 30
SNOOZE_VOLATILITY_WINDOW_DAYS = 7
SNOOZE_VOLATILITY_THRESHOLD = 25.0
PREDICTIVE_NOTIFY_THRESHOLD = 0.8

UPDATABLE_FIELDS = {
    "desired_price",
    "channel",
    "priority",
    "notification_channels",
    "interval_minutes",
    "smart_trigger_conditions",
    "smart_snoozing",
}


class AlertEngine:
    """
    Manages alerts stored in the key-value store and evaluates them.

    States: active <-> paused (optionally resuming at ``resume_at``), then
    deleted. Deleting removes the record, so later sweeps never see it.
    """

    def __init__(
        self,
        store: KeyValueStore,
        provider: PriceDataProvider,
        analysis_service: AnalysisService,
        notifier: NotificationService,
        predictor: Optional[AlertPredictor] = None,
        market_open_hour: int = 9,
        market_close_hour: int = 17,
        market_timezone: str = "UTC",
        default_interval_minutes: int = 60,
        sweep_lease_seconds: int = 600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.provider = provider
        self.analysis_service = analysis_service
        self.notifier = notifier
        self.predictor = predictor or AlertPredictor(analysis_service)
        self.market_open_hour = market_open_hour
        self.market_close_hour = market_close_hour
        try:
            self.market_zone = ZoneInfo(market_timezone)
        except ZoneInfoNotFoundError as e:
            raise ConfigurationError(
                "market_timezone", f"unknown time zone {market_timezone!r}"
            ) from e
        self.default_interval_minutes = default_interval_minutes
        self.sweep_lease_seconds = sweep_lease_seconds
        self._clock = clock
        self.logger = logger.bind(service="alert_engine")

    # Storage

    def _save(self, alert: Alert) -> None:
        self.store.set_with_ttl(
            f"{ALERT_PREFIX}{alert.alert_id}", to_jsonable(alert), None
        )

    def _save_if_present(self, alert: Alert) -> bool:
        """Persist unless the alert was deleted while being evaluated."""
        if not self.store.exists(f"{ALERT_PREFIX}{alert.alert_id}"):
            return False
        self._save(alert)
        return True

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        data = self.store.get(f"{ALERT_PREFIX}{alert_id}")
        return from_jsonable(Alert, data) if data is not None else None

    def _require(self, alert_id: str) -> Alert:
        alert = self.get_alert(alert_id)
        if alert is None:
            raise NotFoundError("Alert", alert_id)
        return alert

    def list_alerts(self) -> List[Alert]:
        records = self.store.scan_by_prefix(ALERT_PREFIX)
        return [from_jsonable(Alert, data) for data in records.values()]

    def get_user_alerts(
        self, owner_id: str, include_inactive: bool = False
    ) -> List[Alert]:
        return [
            alert
            for alert in self.list_alerts()
            if alert.owner_id == owner_id and (include_inactive or alert.is_active)
        ]

    def get_analytics(self, alert_id: str) -> Optional[AlertAnalytics]:
        data = self.store.get(f"{ANALYTICS_PREFIX}{alert_id}")
        return from_jsonable(AlertAnalytics, data) if data is not None else None

    def list_notifications(self, alert_id: str) -> List[Notification]:
        records = self.store.scan_by_prefix(f"{NOTIFICATION_PREFIX}{alert_id}:")
        notifications = [from_jsonable(Notification, data) for data in records.values()]
        return sorted(notifications, key=lambda n: n.created_at)

    # Lifecycle

    async def create_alert(
        self,
        product_id: str,
        owner_id: str,
        desired_price: int,
        channel: Channel = Channel.PRIMARY,
        priority: Priority = Priority.MEDIUM,
        notification_channels: Optional[List[NotificationChannel]] = None,
        interval_minutes: Optional[int] = None,
        smart_trigger_conditions: Optional[SmartTriggerConditions] = None,
        smart_snoozing: Optional[SmartSnoozing] = None,
    ) -> Alert:
        """
        Create an active alert and compute its initial trigger prediction.

        Raises:
            InputValidationError: missing ids, non-positive price or interval
        """
        interval = interval_minutes or self.default_interval_minutes
        self._validate(
            product_id=product_id,
            owner_id=owner_id,
            desired_price=desired_price,
            interval_minutes=interval,
            notification_channels=notification_channels,
        )

        alert = Alert(
            alert_id=f"alert-{uuid.uuid4().hex[:12]}",
            product_id=product_id,
            owner_id=owner_id,
            desired_price=desired_price,
            created_at=self._clock(),
            channel=channel,
            priority=priority,
            notification_channels=list(
                notification_channels or [NotificationChannel.EMAIL]
            ),
            interval_minutes=interval,
            smart_trigger_conditions=smart_trigger_conditions,
            smart_snoozing=smart_snoozing or SmartSnoozing(),
        )
        alert.ai_predictions = await self.predictor.generate(alert)

        self._save(alert)
        self.store.set_with_ttl(
            f"{ANALYTICS_PREFIX}{alert.alert_id}",
            to_jsonable(AlertAnalytics(alert_id=alert.alert_id)),
            None,
        )

        self.logger.info(
            "Alert created",
            alert_id=alert.alert_id,
            product_id=product_id,
            owner_id=owner_id,
            desired_price=desired_price,
        )
        return alert

    async def update_alert(self, alert_id: str, **changes: Any) -> Alert:
        """
        Apply field changes; predictions are recomputed when the target or
        trigger conditions change.

        Raises:
            NotFoundError: unknown alert
            InputValidationError: unknown field or invalid value
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InputValidationError(
                "Unsupported alert fields",
                {name: "not updatable" for name in sorted(unknown)},
            )

        alert = self._require(alert_id)
        self._validate(
            desired_price=changes.get("desired_price", alert.desired_price),
            interval_minutes=changes.get("interval_minutes", alert.interval_minutes),
            notification_channels=changes.get("notification_channels"),
        )

        for name, value in changes.items():
            setattr(alert, name, value)

        if "desired_price" in changes or "smart_trigger_conditions" in changes:
            alert.ai_predictions = await self.predictor.generate(alert)

        self._save(alert)
        self.logger.info("Alert updated", alert_id=alert_id, fields=sorted(changes))
        return alert

    def pause_alert(
        self, alert_id: str, duration_minutes: Optional[int] = None
    ) -> Alert:
        """Deactivate an alert, optionally resuming it after ``duration_minutes``."""
        if duration_minutes is not None and duration_minutes <= 0:
            raise InputValidationError(
                "Pause duration must be positive", {"duration_minutes": "must be > 0"}
            )

        alert = self._require(alert_id)
        alert.is_active = False
        alert.resume_at = None
        if duration_minutes:
            alert.resume_at = self._clock() + timedelta(minutes=duration_minutes)
        self._save(alert)

        self.logger.info("Alert paused", alert_id=alert_id, resume_at=alert.resume_at)
        return alert

    def resume_alert(self, alert_id: str) -> Alert:
        alert = self._require(alert_id)
        alert.is_active = True
        alert.resume_at = None
        self._save(alert)

        self.logger.info("Alert resumed", alert_id=alert_id)
        return alert

    def delete_alert(self, alert_id: str) -> bool:
        """Remove the alert and its analytics; deleting twice is a no-op."""
        removed = self.store.delete(f"{ALERT_PREFIX}{alert_id}")
        self.store.delete(f"{ANALYTICS_PREFIX}{alert_id}")

        if removed:
            self.logger.info("Alert deleted", alert_id=alert_id)
        return removed

    def _validate(self, **fields: Any) -> None:
        errors: Dict[str, str] = {}

        for name in ("product_id", "owner_id"):
            if name in fields and not fields[name]:
                errors[name] = "required"
        if "desired_price" in fields and (
            fields["desired_price"] is None or fields["desired_price"] <= 0
        ):
            errors["desired_price"] = "must be > 0"
        if "interval_minutes" in fields and fields["interval_minutes"] <= 0:
            errors["interval_minutes"] = "must be > 0"
        channels = fields.get("notification_channels")
        if channels is not None and not channels:
            errors["notification_channels"] = "at least one channel required"

        if errors:
            raise InputValidationError("Invalid alert", errors)

    # Evaluation

    async def check_alerts(self) -> SweepSummary:
        """One sweep over active alerts; skipped while another sweep holds the lease."""
        with lease(self.store, "alert-sweep", self.sweep_lease_seconds) as acquired:
            if not acquired:
                return SweepSummary(skipped=True)
            return await self._sweep()

    async def _sweep(self) -> SweepSummary:
        now = self._clock()
        summary = SweepSummary(resumed=self._resume_due(now))

        for alert in self.list_alerts():
            if not alert.is_active or not self._is_due(alert, now):
                continue

            try:
                outcome = await self.evaluate_alert(alert, now)
            except Exception as e:
                summary.errors += 1
                self.logger.error(
                    "Error evaluating alert",
                    alert_id=alert.alert_id,
                    error=str(e),
                    exc_info=True,
                )
                continue

            summary.evaluated += 1
            if outcome == EvaluationOutcome.TRIGGERED:
                summary.triggered += 1
            elif outcome == EvaluationOutcome.SNOOZED:
                summary.snoozed += 1
            elif outcome == EvaluationOutcome.PREDICTED:
                summary.predicted += 1

        self.logger.info(
            "Alert sweep completed",
            evaluated=summary.evaluated,
            triggered=summary.triggered,
            snoozed=summary.snoozed,
            errors=summary.errors,
        )
        return summary

    def _resume_due(self, now: datetime) -> int:
        resumed = 0
        for alert in self.list_alerts():
            if alert.is_active or alert.resume_at is None or alert.resume_at > now:
                continue
            alert.is_active = True
            alert.resume_at = None
            if self._save_if_present(alert):
                resumed += 1
                self.logger.info("Alert auto-resumed", alert_id=alert.alert_id)
        return resumed

    def _is_due(self, alert: Alert, now: datetime) -> bool:
        if alert.last_checked_at is None:
            return True
        return now - alert.last_checked_at >= timedelta(minutes=alert.interval_minutes)

    async def evaluate_alert(
        self, alert: Alert, now: Optional[datetime] = None
    ) -> EvaluationOutcome:
        """Evaluate one alert against the current price and persist the result."""
        now = now or self._clock()
        price = await self.provider.get_current_price(alert.product_id, alert.channel)

        if price is None:
            self.logger.warning(
                "No current price, skipping alert",
                alert_id=alert.alert_id,
                product_id=alert.product_id,
            )
            alert.last_checked_at = now
            self._save_if_present(alert)
            return EvaluationOutcome.NO_PRICE

        alert.current_price = price
        basic = price <= alert.desired_price
        smart = True
        if basic and alert.smart_trigger_conditions is not None:
            smart = await self._smart_conditions_met(alert, now)

        if basic and smart:
            if alert.smart_snoozing.enabled and await self._should_snooze(alert, now):
                self.logger.debug(
                    "Smart snoozing held back trigger", alert_id=alert.alert_id
                )
                outcome = EvaluationOutcome.SNOOZED
            else:
                self._fire(alert, now)
                outcome = EvaluationOutcome.TRIGGERED
        elif (
            alert.ai_predictions is not None
            and alert.ai_predictions.probability_of_trigger
            > PREDICTIVE_NOTIFY_THRESHOLD
        ):
            self._notify_prediction(alert, now)
            outcome = EvaluationOutcome.PREDICTED
        else:
            outcome = EvaluationOutcome.NOT_MET

        alert.last_checked_at = now
        if self._save_if_present(alert):
            self._record_analytics(alert.alert_id, basic, outcome, now)

        return outcome

    async def _analysis(self, alert: Alert, days: int) -> Optional[AnalysisResult]:
        """Analysis for a condition check; None when it cannot be produced."""
        try:
            return await self.analysis_service.analyze(
                alert.product_id, days, alert.channel
            )
        except Exception as e:
            self.logger.warning(
                "Condition analysis unavailable", alert_id=alert.alert_id, error=str(e)
            )
            return None

    async def _smart_conditions_met(self, alert: Alert, now: datetime) -> bool:
        """All configured conditions must hold; a missing analysis does not block."""
        conditions = alert.smart_trigger_conditions
        if not (
            conditions.trend_condition
            or conditions.volatility_threshold is not None
            or conditions.seasonal_adjustment
        ):
            return True

        analysis = await self._analysis(alert, CONDITION_WINDOW_DAYS)
        if analysis is None:
            return True

        if conditions.trend_condition and analysis.trend != conditions.trend_condition:
            return False
        if (
            conditions.volatility_threshold is not None
            and analysis.volatility > conditions.volatility_threshold
        ):
            return False
        if conditions.seasonal_adjustment and not self.seasonal_adjustment_allows(
            analysis, now
        ):
            return False

        return True

    def seasonal_adjustment_allows(
        self, analysis: AnalysisResult, now: datetime
    ) -> bool:
        """False when next month is a detected seasonal low."""
        next_month = calendar.month_name[now.month % 12 + 1]
        return not any(
            next_month in pattern.low_periods for pattern in analysis.seasonality
        )

    async def _should_snooze(self, alert: Alert, now: datetime) -> bool:
        snoozing = alert.smart_snoozing

        for condition in snoozing.conditions:
            if condition == SnoozeCondition.MARKET_HOURS:
                if not self.within_market_hours(now):
                    return True

            if condition == SnoozeCondition.HIGH_VOLATILITY:
                analysis = await self._analysis(alert, SNOOZE_VOLATILITY_WINDOW_DAYS)
                if (
                    analysis is not None
                    and analysis.volatility > SNOOZE_VOLATILITY_THRESHOLD
                ):
                    return True

            if condition == SnoozeCondition.RECENT_TRIGGER and alert.triggered_at:
                window = timedelta(minutes=snoozing.max_snooze_minutes)
                if now - alert.triggered_at < window:
                    return True

        return False

    def within_market_hours(self, now: datetime) -> bool:
        local_hour = now.replace(tzinfo=timezone.utc).astimezone(self.market_zone).hour
        return self.market_open_hour <= local_hour <= self.market_close_hour

    # Notifications

    def _fire(self, alert: Alert, now: datetime) -> None:
        alert.triggered_at = now
        alert.notifications_sent += 1

        savings = alert.desired_price - alert.current_price
        savings_percent = savings / alert.desired_price * 100
        lines = [
            f"Current price: {alert.current_price:,}",
            f"Target price: {alert.desired_price:,}",
            f"Below target by {savings:,} ({savings_percent:.1f}%)",
        ]
        if alert.ai_predictions:
            lines.extend(alert.ai_predictions.reasoning)

        self._send(
            alert,
            NotificationType.TRIGGER,
            title=f"Price alert triggered: {alert.product_id}",
            message="\n".join(lines),
            priority=alert.priority,
            channels=alert.notification_channels,
            now=now,
            data={
                "current_price": alert.current_price,
                "target_price": alert.desired_price,
                "savings": savings,
            },
        )
        self.logger.info(
            "Alert triggered",
            alert_id=alert.alert_id,
            product_id=alert.product_id,
            current_price=alert.current_price,
        )

    def _notify_prediction(self, alert: Alert, now: datetime) -> None:
        predictions = alert.ai_predictions
        if predictions.estimated_days_to_trigger is not None:
            horizon = f"within {predictions.estimated_days_to_trigger} days"
        else:
            horizon = "soon"

        self._send(
            alert,
            NotificationType.PREDICTION,
            title=f"Price forecast: {alert.product_id}",
            message=(
                f"There is a {predictions.probability_of_trigger * 100:.0f}% chance "
                f"the price reaches your target {horizon}."
            ),
            priority=Priority.LOW,
            channels=[NotificationChannel.PUSH],
            now=now,
            data={"predictions": to_jsonable(predictions)},
        )

    def _send(
        self,
        alert: Alert,
        type: NotificationType,
        title: str,
        message: str,
        priority: Priority,
        channels: List[NotificationChannel],
        now: datetime,
        data: Dict[str, Any],
    ) -> None:
        notification = Notification(
            notification_id=uuid.uuid4().hex,
            alert_id=alert.alert_id,
            product_id=alert.product_id,
            recipient=alert.owner_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            channels=list(channels),
            created_at=now,
            data=data,
        )
        self.store.set_with_ttl(
            f"{NOTIFICATION_PREFIX}{alert.alert_id}:{notification.notification_id}",
            to_jsonable(notification),
            NOTIFICATION_TTL,
        )
        self.notifier.dispatch(notification)

    def _record_analytics(
        self, alert_id: str, basic: bool, outcome: EvaluationOutcome, now: datetime
    ) -> None:
        analytics = self.get_analytics(alert_id) or AlertAnalytics(alert_id=alert_id)
        analytics.total_evaluations += 1
        if basic:
            analytics.basic_matches += 1
        if outcome == EvaluationOutcome.TRIGGERED:
            analytics.total_triggers += 1
            analytics.last_triggered_at = now
        elif outcome == EvaluationOutcome.SNOOZED:
            analytics.snoozed += 1
        elif outcome == EvaluationOutcome.PREDICTED:
            analytics.predictive_notifications += 1

        self.store.set_with_ttl(
            f"{ANALYTICS_PREFIX}{alert_id}", to_jsonable(analytics), None
        )

    async def refresh_predictions(self) -> int:
        """Recompute predictions for active alerts; returns how many were stored."""
        refreshed = 0
        for alert in self.list_alerts():
            if not alert.is_active:
                continue
            alert.ai_predictions = await self.predictor.generate(alert)
            if self._save_if_present(alert):
                refreshed += 1

        self.logger.info("Alert predictions refreshed", count=refreshed)
        return refreshed
