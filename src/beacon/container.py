"""Process-wide wiring of stores, clients and services from settings."""

from dataclasses import dataclass
from functools import lru_cache

from .config.settings import Settings, get_settings
from .ormdb.database import get_session_factory
from .services.alerts import AlertEngine, AlertPredictor
from .services.analysis import AnalysisService
from .services.notification import NotificationService
from .services.signals import SignalService
from .services.sync import SyncPriorityScheduler
from .store import SqlKeyValueStore
from .upstream import PriceDataProvider, RateLimiter


@dataclass
class Services:
    settings: Settings
    store: SqlKeyValueStore
    rate_limiter: RateLimiter
    provider: PriceDataProvider
    notifier: NotificationService
    analysis: AnalysisService
    alerts: AlertEngine
    sync: SyncPriorityScheduler
    signals: SignalService


def build_services(settings: Settings) -> Services:
    store = SqlKeyValueStore(get_session_factory())
    rate_limiter = RateLimiter(
        max_requests=settings.upstream_requests_per_day,
        burst_limit=settings.upstream_burst_limit,
    )
    provider = PriceDataProvider(
        base_url=settings.upstream_base_url,
        api_key=settings.upstream_api_key,
        rate_limiter=rate_limiter,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
    notifier = NotificationService(
        gateways=settings.notification_gateways(),
        timeout_seconds=settings.notification_timeout_seconds,
    )
    analysis = AnalysisService(provider, store, cache_ttl=settings.analysis_cache_ttl)

    alerts = AlertEngine(
        store=store,
        provider=provider,
        analysis_service=analysis,
        notifier=notifier,
        predictor=AlertPredictor(analysis),
        market_open_hour=settings.market_open_hour,
        market_close_hour=settings.market_close_hour,
        market_timezone=settings.market_timezone,
        default_interval_minutes=settings.alert_default_interval_minutes,
        sweep_lease_seconds=settings.sync_lease_ttl,
    )
    sync = SyncPriorityScheduler(
        store=store,
        provider=provider,
        rate_limiter=rate_limiter,
        analysis_service=analysis,
        predictive_ttl=settings.predictive_cache_ttl,
        predictive_max_items=settings.predictive_cache_max_items,
        max_jitter_seconds=settings.predictive_cache_max_jitter_seconds,
        rebuild_lease_seconds=settings.sync_lease_ttl,
    )
    signals = SignalService(
        store=store,
        analysis_service=analysis,
        sync_scheduler=sync,
        alert_engine=alerts,
        profit_cache_ttl=settings.profit_cache_ttl,
    )

    return Services(
        settings=settings,
        store=store,
        rate_limiter=rate_limiter,
        provider=provider,
        notifier=notifier,
        analysis=analysis,
        alerts=alerts,
        sync=sync,
        signals=signals,
    )


@lru_cache()
def get_services() -> Services:
    """Shared service graph; the rate limiter budget is per process."""
    return build_services(get_settings())
