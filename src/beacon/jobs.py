"""
Entry points for recurring jobs.

The scheduler runs these on worker threads, so each wraps its coroutine in
``asyncio.run`` and waits for in-flight notifications before the loop closes.
"""

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

from .config.logging import get_logger, log_performance
from .container import get_services

logger = get_logger(__name__)

T = TypeVar("T")

STALE_RETENTION_SECONDS = 7 * 86400


def _run(operation: str, factory: Callable[[], Awaitable[T]]) -> T:
    services = get_services()

    async def runner() -> T:
        try:
            return await factory()
        finally:
            await services.notifier.flush()

    start = time.perf_counter()
    result = asyncio.run(runner())
    log_performance(operation, (time.perf_counter() - start) * 1000)
    return result


def run_alert_sweep():
    summary = _run("alert_sweep", lambda: get_services().alerts.check_alerts())
    if summary.skipped:
        logger.info("Alert sweep skipped, previous run still in progress")
    return summary


def run_prediction_refresh() -> int:
    return _run(
        "prediction_refresh", lambda: get_services().alerts.refresh_predictions()
    )


def run_sync_cycle():
    return _run("sync_cycle", lambda: get_services().sync.run_sync_cycle())


def run_predictive_warm() -> int:
    return _run("predictive_warm", lambda: get_services().sync.warm_predictive_cache())


def run_store_cleanup() -> int:
    """Drop rows expired for longer than the stale-fallback retention."""
    return get_services().store.purge_expired(STALE_RETENTION_SECONDS)
