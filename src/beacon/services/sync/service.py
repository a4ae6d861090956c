"""Budget-aware refresh scheduling for product data."""

import asyncio
import random
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

from ...config.logging import get_logger
from ...exceptions import RateLimitedError, UpstreamUnavailable
from ...store import KeyValueStore, lease
from ...upstream import PriceDataProvider, ProductListing, RateLimiter
from ...utils.clock import utcnow
from ...utils.serialization import from_jsonable, to_jsonable
from ..analysis import AnalysisService
from .models import (
    AccessPattern,
    ImportanceTier,
    SyncCycleSummary,
    SyncMetrics,
    SyncPriority,
    SyncQueue,
    SyncStatus,
)
from .priority import (
    access_frequency,
    calculate_optimal_ttl,
    compute_priority,
    importance_tier,
    predict_next_access,
    sync_frequency_minutes,
)

logger = get_logger(__name__)

ACCESS_PREFIX = "access:"
PRODUCT_PREFIX = "product:"
PREDICTIVE_PREFIX = "predictive:"
QUEUE_KEY = "sync:queue"

PREDICTIVE_LOOKAHEAD = timedelta(minutes=30)


class SyncPriorityScheduler:
    """
    Decides which products to refresh, and how often, from observed access.

    All state (access patterns, cached listings, the queue and the rebuild
    lease) lives in the key-value store so any worker can pick up the job.
    """

    def __init__(
        self,
        store: KeyValueStore,
        provider: PriceDataProvider,
        rate_limiter: RateLimiter,
        analysis_service: Optional[AnalysisService] = None,
        predictive_ttl: int = 3600,
        predictive_max_items: int = 10,
        max_jitter_seconds: float = 5.0,
        rebuild_lease_seconds: int = 600,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.analysis_service = analysis_service
        self.predictive_ttl = predictive_ttl
        self.predictive_max_items = predictive_max_items
        self.max_jitter_seconds = max_jitter_seconds
        self.rebuild_lease_seconds = rebuild_lease_seconds
        self._clock = clock
        self._sleep = sleep
        self.logger = logger.bind(component="sync_scheduler")

    # Access tracking

    def get_access_pattern(self, product_id: str) -> AccessPattern:
        data = self.store.get(f"{ACCESS_PREFIX}{product_id}")
        if data is None:
            return AccessPattern(product_id=product_id)
        return from_jsonable(AccessPattern, data)

    def _save_pattern(self, pattern: AccessPattern) -> None:
        self.store.set_with_ttl(
            f"{ACCESS_PREFIX}{pattern.product_id}", to_jsonable(pattern), None
        )

    def list_access_patterns(self) -> List[AccessPattern]:
        return [
            from_jsonable(AccessPattern, data)
            for data in self.store.scan_by_prefix(ACCESS_PREFIX).values()
        ]

    def record_access(self, product_id: str, cache_hit: bool = False) -> AccessPattern:
        pattern = self.get_access_pattern(product_id)
        pattern.access_count += 1
        if cache_hit:
            pattern.cache_hits += 1
        pattern.last_accessed_at = self._clock()
        self._save_pattern(pattern)
        return pattern

    # Queue

    def build_priority(self, pattern: AccessPattern, now: datetime) -> SyncPriority:
        score = compute_priority(pattern, now)
        tier = importance_tier(score)
        minutes = sync_frequency_minutes(tier, access_frequency(pattern, now))
        base = pattern.last_synced_at or now

        return SyncPriority(
            product_id=pattern.product_id,
            priority_score=round(score, 2),
            importance_tier=tier,
            sync_frequency_minutes=minutes,
            last_synced_at=pattern.last_synced_at,
            predicted_next_update_at=base + timedelta(minutes=minutes),
        )

    @staticmethod
    def is_due(priority: SyncPriority, now: datetime) -> bool:
        if priority.importance_tier == ImportanceTier.CRITICAL:
            return True
        if priority.last_synced_at is None:
            return True
        interval = timedelta(minutes=priority.sync_frequency_minutes)
        return now - priority.last_synced_at >= interval

    def rebuild_queue(self) -> Optional[List[SyncPriority]]:
        """
        Replace the stored queue with the current due set.

        Returns:
            The new queue, or None when another rebuild holds the lease
        """
        with lease(self.store, "sync-rebuild", self.rebuild_lease_seconds) as acquired:
            if not acquired:
                return None

            now = self._clock()
            priorities = [
                self.build_priority(p, now) for p in self.list_access_patterns()
            ]
            priorities.sort(key=lambda p: p.priority_score, reverse=True)

            due = [p for p in priorities if self.is_due(p, now)]
            capacity = max(self.rate_limiter.remaining() // 2, 0)
            items = due[:capacity]

            self.store.set_with_ttl(
                QUEUE_KEY, to_jsonable(SyncQueue(built_at=now, items=items)), None
            )

            self.logger.info(
                "Sync queue rebuilt",
                tracked=len(priorities),
                due=len(due),
                queued=len(items),
                capacity=capacity,
            )
            return items

    def get_sync_queue(self) -> List[SyncPriority]:
        data = self.store.get(QUEUE_KEY)
        if data is None:
            return []
        return from_jsonable(SyncQueue, data).items

    def _queued_priority(self, product_id: str) -> Optional[SyncPriority]:
        for item in self.get_sync_queue():
            if item.product_id == product_id:
                return item
        return None

    # Fetching

    async def sync_product(
        self, product_id: str, force: bool = False
    ) -> ProductListing:
        """
        Cached product listing, refreshed from upstream on a miss or when forced.

        A fresh cache entry short-circuits the upstream. When the upstream is
        unavailable the last stored listing is served even if expired.

        Raises:
            UpstreamUnavailable: upstream failed and nothing was ever cached
            NotFoundError: the upstream does not know the product
        """
        key = f"{PRODUCT_PREFIX}{product_id}"

        if not force:
            cached = self.store.get(key) or self.store.get(
                f"{PREDICTIVE_PREFIX}{product_id}"
            )
            if cached is not None:
                self.record_access(product_id, cache_hit=True)
                return from_jsonable(ProductListing, cached)

        self.record_access(product_id)

        try:
            return await self._refresh(product_id)
        except UpstreamUnavailable as e:
            stale = self.store.get_stale(key)
            if stale is None:
                raise
            self.logger.warning(
                "Upstream unavailable, serving expired listing",
                product_id=product_id,
                error=e.message,
            )
            return from_jsonable(ProductListing, stale)

    async def force_sync_product(self, product_id: str) -> ProductListing:
        return await self.sync_product(product_id, force=True)

    async def _refresh(self, product_id: str) -> ProductListing:
        listing = await self.provider.get_product(product_id)

        queued = self._queued_priority(product_id)
        ttl = calculate_optimal_ttl(queued.importance_tier if queued else None)
        self.store.set_with_ttl(
            f"{PRODUCT_PREFIX}{product_id}", to_jsonable(listing), ttl
        )

        pattern = self.get_access_pattern(product_id)
        pattern.last_synced_at = self._clock()
        self._save_pattern(pattern)

        self.logger.debug("Product synced", product_id=product_id, ttl_seconds=ttl)
        return listing

    async def run_sync_cycle(self) -> SyncCycleSummary:
        """
        Rebuild the queue and refresh every queued product until the budget runs out.

        Each product costs two requests: its listing and, when an analysis
        service is attached, the series behind its cached analyses.
        """
        queue = self.rebuild_queue()
        if queue is None:
            return SyncCycleSummary(skipped=True)

        summary = SyncCycleSummary(queued=len(queue))
        for item in queue:
            try:
                await self._refresh(item.product_id)
                if self.analysis_service is not None:
                    await self.analysis_service.refresh(item.product_id)
                summary.synced += 1
            except RateLimitedError:
                self.logger.warning(
                    "Request budget exhausted, ending sync cycle",
                    synced=summary.synced,
                    remaining=len(queue) - summary.synced - summary.failed,
                )
                break
            except Exception as e:
                summary.failed += 1
                self.logger.error(
                    "Failed to sync product",
                    product_id=item.product_id,
                    error=str(e),
                    exc_info=True,
                )

        self.logger.info(
            "Sync cycle completed",
            queued=summary.queued,
            synced=summary.synced,
            failed=summary.failed,
        )
        return summary

    # Predictive warming

    def predictive_candidates(self, now: datetime) -> List[str]:
        """Products expected to be requested within the lookahead, most active first."""
        scored = []
        for pattern in self.list_access_patterns():
            next_access = predict_next_access(pattern, now)
            if next_access is None:
                continue
            if timedelta(0) < next_access - now < PREDICTIVE_LOOKAHEAD:
                scored.append((access_frequency(pattern, now) * 10, pattern.product_id))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [product_id for _, product_id in scored[: self.predictive_max_items]]

    async def warm_predictive_cache(self) -> int:
        """Prefetch likely-next products with jitter; returns how many were stored."""
        now = self._clock()
        targets = [
            product_id
            for product_id in self.predictive_candidates(now)
            if not self.store.exists(f"{PREDICTIVE_PREFIX}{product_id}")
        ]
        if not targets:
            return 0

        outcomes = await asyncio.gather(
            *(self._warm_one(product_id) for product_id in targets),
            return_exceptions=True,
        )

        warmed = 0
        for product_id, outcome in zip(targets, outcomes):
            if isinstance(outcome, Exception):
                self.logger.error(
                    "Predictive caching failed",
                    product_id=product_id,
                    error=str(outcome),
                )
            else:
                warmed += 1

        self.logger.info(
            "Predictive cache warmed", candidates=len(targets), warmed=warmed
        )
        return warmed

    async def _warm_one(self, product_id: str) -> None:
        await self._sleep(random.uniform(0, self.max_jitter_seconds))
        listing = await self.provider.get_product(product_id)
        self.store.set_with_ttl(
            f"{PREDICTIVE_PREFIX}{product_id}",
            to_jsonable(listing),
            self.predictive_ttl,
        )

    # Reporting

    def get_sync_status(self, product_id: str) -> SyncStatus:
        pattern = self.get_access_pattern(product_id)
        queued = self._queued_priority(product_id)

        if queued is not None:
            next_sync = queued.predicted_next_update_at
            tier = queued.importance_tier
        elif pattern.access_count:
            priority = self.build_priority(pattern, self._clock())
            next_sync = priority.predicted_next_update_at
            tier = priority.importance_tier
        else:
            next_sync = None
            tier = None

        return SyncStatus(
            product_id=product_id,
            cached=self.store.exists(f"{PRODUCT_PREFIX}{product_id}"),
            last_synced_at=pattern.last_synced_at,
            next_sync_at=next_sync,
            importance_tier=tier,
        )

    def get_sync_metrics(self) -> SyncMetrics:
        patterns = self.list_access_patterns()
        total = sum(p.access_count for p in patterns)
        hits = sum(p.cache_hits for p in patterns)

        utilization = self.rate_limiter.status()["utilization"]
        queue = self.get_sync_queue()
        urgent = sum(
            1
            for item in queue
            if item.importance_tier in (ImportanceTier.CRITICAL, ImportanceTier.HIGH)
        )

        return SyncMetrics(
            total_requests=total,
            cache_hits=hits,
            cache_hit_rate=round(hits / total * 100, 2) if total else 0.0,
            api_quota_utilization=round(utilization * 100, 2),
            sync_efficiency=round(urgent / len(queue) * 100, 2) if queue else 100.0,
            queue_size=len(queue),
            tracked_products=len(patterns),
        )
