"""Tests for the sync queue, cached fetches and predictive warming."""

import sys
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

sys.path.append("src")
from conftest import build_series
from beacon.exceptions import NotFoundError, RateLimitedError, UpstreamUnavailable
from beacon.services.analysis import AnalysisService
from beacon.services.sync import ImportanceTier, SyncPriority, SyncPriorityScheduler
from beacon.upstream import Channel, PriceHistory, RateLimiter


@pytest.fixture
def limiter():
    return RateLimiter(max_requests=100, burst_limit=100)


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def scheduler(kv_store, mock_provider, limiter, clock, sleep, listing):
    mock_provider.get_product.return_value = listing
    return SyncPriorityScheduler(
        store=kv_store,
        provider=mock_provider,
        rate_limiter=limiter,
        max_jitter_seconds=0,
        clock=clock,
        sleep=sleep,
    )


def access(scheduler, product_id, times):
    for _ in range(times):
        scheduler.record_access(product_id)


class TestAccessTracking:
    def test_record_access(self, scheduler, clock):
        scheduler.record_access("A")
        pattern = scheduler.record_access("A", cache_hit=True)

        assert pattern.access_count == 2
        assert pattern.cache_hits == 1
        assert pattern.last_accessed_at == clock.now
        assert scheduler.get_access_pattern("A") == pattern

    def test_unknown_product_has_empty_pattern(self, scheduler):
        pattern = scheduler.get_access_pattern("nope")

        assert pattern.access_count == 0
        assert pattern.last_synced_at is None


class TestSyncProduct:
    """Cache-first fetches with stale fallback."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self, scheduler, mock_provider, listing, clock):
        first = await scheduler.sync_product("A")
        second = await scheduler.sync_product("A")

        assert first == listing
        assert second == listing
        mock_provider.get_product.assert_awaited_once_with("A")

        pattern = scheduler.get_access_pattern("A")
        assert pattern.access_count == 2
        assert pattern.cache_hits == 1
        assert pattern.last_synced_at == clock.now

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, scheduler, mock_provider):
        await scheduler.sync_product("A")
        await scheduler.force_sync_product("A")

        assert mock_provider.get_product.await_count == 2

    @pytest.mark.asyncio
    async def test_unqueued_product_cached_with_low_ttl(
        self, scheduler, kv_store, clock
    ):
        await scheduler.sync_product("A")

        clock.advance(seconds=7199)
        assert kv_store.exists("product:A")
        clock.advance(seconds=2)
        assert not kv_store.exists("product:A")

    @pytest.mark.asyncio
    async def test_serves_expired_listing_when_upstream_down(
        self, scheduler, mock_provider, listing, clock
    ):
        await scheduler.sync_product("A")
        clock.advance(hours=3)
        mock_provider.get_product.side_effect = UpstreamUnavailable(
            "upstream", "get_product", "down"
        )

        assert await scheduler.sync_product("A") == listing

    @pytest.mark.asyncio
    async def test_upstream_down_without_cache(self, scheduler, mock_provider):
        mock_provider.get_product.side_effect = RateLimitedError(
            "upstream", "get_product", 30
        )

        with pytest.raises(RateLimitedError):
            await scheduler.sync_product("A")

    @pytest.mark.asyncio
    async def test_not_found_propagates(self, scheduler, mock_provider):
        mock_provider.get_product.side_effect = NotFoundError("Product", "A")

        with pytest.raises(NotFoundError):
            await scheduler.sync_product("A")


class TestQueue:
    def test_queue_sorted_and_truncated_to_half_budget(
        self, kv_store, mock_provider, clock
    ):
        scheduler = SyncPriorityScheduler(
            kv_store, mock_provider, RateLimiter(max_requests=4), clock=clock
        )
        access(scheduler, "A", 5)
        access(scheduler, "B", 3)
        access(scheduler, "C", 1)

        queue = scheduler.rebuild_queue()

        assert [item.product_id for item in queue] == ["A", "B"]
        assert queue[0].priority_score == pytest.approx(50.5)
        assert queue[0].importance_tier == ImportanceTier.MEDIUM
        assert scheduler.get_sync_queue() == queue

    def test_rebuild_skipped_while_lease_held(self, scheduler, kv_store):
        access(scheduler, "A", 1)
        kv_store.set_if_absent("lease:sync-rebuild", {"holder": "other"}, 600)

        assert scheduler.rebuild_queue() is None
        assert scheduler.get_sync_queue() == []

    def test_is_due(self, clock):
        def priority(tier, minutes_since_sync):
            synced = None
            if minutes_since_sync is not None:
                synced = clock.now - timedelta(minutes=minutes_since_sync)
            return SyncPriority(
                product_id="A",
                priority_score=50,
                importance_tier=tier,
                sync_frequency_minutes=60,
                last_synced_at=synced,
                predicted_next_update_at=clock.now,
            )

        assert SyncPriorityScheduler.is_due(
            priority(ImportanceTier.CRITICAL, 1), clock.now
        )
        assert SyncPriorityScheduler.is_due(
            priority(ImportanceTier.LOW, None), clock.now
        )
        assert SyncPriorityScheduler.is_due(
            priority(ImportanceTier.MEDIUM, 60), clock.now
        )
        assert not SyncPriorityScheduler.is_due(
            priority(ImportanceTier.MEDIUM, 59), clock.now
        )


class TestSyncCycle:
    @pytest.mark.asyncio
    async def test_refreshes_queued_products(self, scheduler, kv_store, clock):
        access(scheduler, "A", 5)
        access(scheduler, "B", 3)

        summary = await scheduler.run_sync_cycle()

        assert (summary.queued, summary.synced, summary.failed) == (2, 2, 0)
        pattern = scheduler.get_access_pattern("A")
        assert pattern.access_count == 5
        assert pattern.last_synced_at == clock.now

        # medium tier listings live for an hour
        clock.advance(seconds=3601)
        assert not kv_store.exists("product:A")

    @pytest.mark.asyncio
    async def test_rate_limit_ends_cycle(self, scheduler, mock_provider, listing):
        access(scheduler, "A", 5)
        access(scheduler, "B", 3)
        access(scheduler, "C", 1)
        mock_provider.get_product.side_effect = [
            listing,
            RateLimitedError("upstream", "get_product", 30),
            listing,
        ]

        summary = await scheduler.run_sync_cycle()

        assert (summary.queued, summary.synced, summary.failed) == (3, 1, 0)
        assert mock_provider.get_product.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_cycle(self, scheduler, mock_provider, listing):
        access(scheduler, "A", 5)
        access(scheduler, "B", 3)
        mock_provider.get_product.side_effect = [RuntimeError("boom"), listing]

        summary = await scheduler.run_sync_cycle()

        assert (summary.synced, summary.failed) == (1, 1)

    @pytest.mark.asyncio
    async def test_refreshes_cached_analysis(
        self, kv_store, mock_provider, limiter, clock, sleep, listing
    ):
        mock_provider.get_product.return_value = listing
        mock_provider.get_series.return_value = PriceHistory(
            product_id="A",
            channels={
                Channel.PRIMARY: build_series([1000] * 12),
                Channel.USED: build_series([800] * 12),
            },
        )
        analysis = AnalysisService(mock_provider, kv_store, cache_ttl=600)
        scheduler = SyncPriorityScheduler(
            store=kv_store,
            provider=mock_provider,
            rate_limiter=limiter,
            analysis_service=analysis,
            clock=clock,
            sleep=sleep,
        )
        await analysis.analyze("A", 30, Channel.USED)
        access(scheduler, "A", 5)

        mock_provider.get_series.return_value = PriceHistory(
            product_id="A",
            channels={
                Channel.PRIMARY: build_series([1200] * 12),
                Channel.USED: build_series([900] * 12),
            },
        )
        clock.advance(minutes=5)
        summary = await scheduler.run_sync_cycle()

        assert summary.synced == 1
        mock_provider.get_series.assert_awaited_with("A", 90)
        assert kv_store.get("analysis:A:used:30")["average_price"] == 900.0
        assert kv_store.get("analysis:A:primary:90")["average_price"] == 1200.0

    @pytest.mark.asyncio
    async def test_rate_limited_analysis_ends_cycle(
        self, kv_store, mock_provider, limiter, clock, sleep, listing
    ):
        mock_provider.get_product.return_value = listing
        mock_provider.get_series.side_effect = RateLimitedError(
            "upstream", "get_series", 30
        )
        scheduler = SyncPriorityScheduler(
            store=kv_store,
            provider=mock_provider,
            rate_limiter=limiter,
            analysis_service=AnalysisService(mock_provider, kv_store),
            clock=clock,
            sleep=sleep,
        )
        access(scheduler, "A", 5)
        access(scheduler, "B", 3)

        summary = await scheduler.run_sync_cycle()

        assert (summary.queued, summary.synced, summary.failed) == (2, 0, 0)
        mock_provider.get_product.assert_awaited_once_with("A")

    @pytest.mark.asyncio
    async def test_skipped_while_lease_held(self, scheduler, kv_store):
        kv_store.set_if_absent("lease:sync-rebuild", {"holder": "other"}, 600)

        assert (await scheduler.run_sync_cycle()).skipped is True


class TestPredictiveCache:
    @pytest.mark.asyncio
    async def test_warms_products_expected_soon(
        self, scheduler, mock_provider, kv_store, clock, sleep
    ):
        access(scheduler, "P", 4)  # next access expected six hours later
        access(scheduler, "Q", 1)  # next access expected a day later
        clock.advance(hours=5, minutes=45)

        assert scheduler.predictive_candidates(clock.now) == ["P"]
        assert await scheduler.warm_predictive_cache() == 1

        sleep.assert_awaited_once_with(0.0)
        mock_provider.get_product.assert_awaited_once_with("P")
        assert kv_store.exists("predictive:P")

        # already warm
        assert await scheduler.warm_predictive_cache() == 0

    @pytest.mark.asyncio
    async def test_warm_entry_serves_sync(self, scheduler, mock_provider, clock):
        access(scheduler, "P", 4)
        clock.advance(hours=5, minutes=45)
        await scheduler.warm_predictive_cache()

        await scheduler.sync_product("P")

        assert mock_provider.get_product.await_count == 1
        assert scheduler.get_access_pattern("P").cache_hits == 1

    @pytest.mark.asyncio
    async def test_failed_prefetch_is_not_counted(
        self, scheduler, mock_provider, clock
    ):
        access(scheduler, "P", 4)
        clock.advance(hours=5, minutes=45)
        mock_provider.get_product.side_effect = RuntimeError("boom")

        assert await scheduler.warm_predictive_cache() == 0

    @pytest.mark.asyncio
    async def test_nothing_to_warm(self, scheduler, sleep):
        assert await scheduler.warm_predictive_cache() == 0
        sleep.assert_not_awaited()


class TestReporting:
    @pytest.mark.asyncio
    async def test_metrics(self, scheduler, limiter):
        await scheduler.sync_product("A")
        await scheduler.sync_product("A")
        limiter.try_acquire()
        limiter.try_acquire()

        metrics = scheduler.get_sync_metrics()

        assert metrics.total_requests == 2
        assert metrics.cache_hits == 1
        assert metrics.cache_hit_rate == 50.0
        assert metrics.api_quota_utilization == 2.0
        assert metrics.sync_efficiency == 100.0
        assert metrics.queue_size == 0
        assert metrics.tracked_products == 1

    def test_metrics_without_traffic(self, scheduler):
        metrics = scheduler.get_sync_metrics()

        assert metrics.total_requests == 0
        assert metrics.cache_hit_rate == 0.0

    @pytest.mark.asyncio
    async def test_status_after_cycle(self, scheduler, clock):
        access(scheduler, "A", 5)
        await scheduler.run_sync_cycle()

        status = scheduler.get_sync_status("A")

        assert status.cached is True
        assert status.last_synced_at == clock.now
        assert status.importance_tier == ImportanceTier.MEDIUM
        assert status.next_sync_at is not None

    def test_status_of_unknown_product(self, scheduler):
        status = scheduler.get_sync_status("nope")

        assert status.cached is False
        assert status.importance_tier is None
        assert status.next_sync_at is None
