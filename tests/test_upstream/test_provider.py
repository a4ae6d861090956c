"""Tests for the upstream price-data client and its rate limiter."""

import sys
from datetime import datetime
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

sys.path.append("src")
from beacon.exceptions import NotFoundError, RateLimitedError, UpstreamUnavailable
from beacon.upstream import Channel, PriceDataProvider, RateLimiter


def responding(status, payload=None, headers=None):
    """Stand-in for the transport returning one canned response."""
    return AsyncMock(return_value=(status, payload, headers or {}))


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def limiter():
    return RateLimiter(max_requests=100, burst_limit=100)


@pytest.fixture
def provider(limiter):
    return PriceDataProvider("https://prices.example.com/", "test_key", limiter)


class TestRateLimiter:
    """Sliding daily window with a per-second burst cap."""

    def test_window_quota(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(
            max_requests=3, window_seconds=60, burst_limit=10, clock=clock
        )

        assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]
        assert limiter.remaining() == 0
        assert limiter.retry_after() == pytest.approx(60)

        clock.now += 60
        assert limiter.try_acquire() is True
        assert limiter.retry_after() is None

    def test_burst_limit(self):
        clock = FakeMonotonic()
        limiter = RateLimiter(max_requests=100, burst_limit=2, clock=clock)

        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False

        clock.now += 1.0
        assert limiter.try_acquire() is True

    def test_status(self):
        limiter = RateLimiter(max_requests=4, burst_limit=10, clock=FakeMonotonic())
        limiter.try_acquire()

        status = limiter.status()

        assert status["used"] == 1
        assert status["remaining"] == 3
        assert status["utilization"] == 0.25


class TestPriceDataProvider:
    """JSON decoding and error mapping; transport is patched out."""

    @pytest.mark.asyncio
    async def test_get_product(self, provider):
        payload = {
            "title": "Kettle",
            "category": "Home",
            "current_price": 2500,
            "sales_rank": 42,
        }
        with patch.object(provider, "_fetch", responding(200, payload)) as fetch:
            listing = await provider.get_product("B000TEST01")

        assert listing.product_id == "B000TEST01"
        assert listing.current_price == 2500
        assert listing.sales_rank == 42
        fetch.assert_awaited_once_with("/products/B000TEST01", None)

    @pytest.mark.asyncio
    async def test_get_product_not_found(self, provider):
        with patch.object(provider, "_fetch", responding(404)):
            with pytest.raises(NotFoundError):
                await provider.get_product("missing")

    @pytest.mark.asyncio
    async def test_get_series_sorted_by_channel(self, provider):
        payload = {
            "channels": {
                "primary": [
                    {"timestamp": "2024-03-02T00:00:00", "price": 1100},
                    {"timestamp": "2024-03-01T00:00:00", "price": 1000},
                ],
                "used": [
                    {
                        "timestamp": "2024-03-01T00:00:00",
                        "price": 700,
                        "in_stock": False,
                    }
                ],
                "refurbished": [{"timestamp": "2024-03-01T00:00:00", "price": 1}],
            }
        }
        with patch.object(provider, "_fetch", responding(200, payload)):
            history = await provider.get_series("P1", 30)

        primary = history.series(Channel.PRIMARY)
        assert [p.price for p in primary] == [1000, 1100]
        assert primary[0].timestamp == datetime(2024, 3, 1)
        assert history.series(Channel.USED)[0].in_stock is False
        assert set(history.channels) == {Channel.PRIMARY, Channel.USED}

    @pytest.mark.asyncio
    async def test_get_series_unknown_product_is_empty(self, provider):
        with patch.object(provider, "_fetch", responding(404)):
            history = await provider.get_series("P1", 30)

        assert history.series() == []

    @pytest.mark.asyncio
    async def test_current_price(self, provider):
        with patch.object(provider, "_fetch", responding(200, {"price": 980})) as fetch:
            price = await provider.get_current_price("P1", Channel.NEW)

        assert price == 980
        fetch.assert_awaited_once_with("/products/P1/price", {"channel": "new"})

    @pytest.mark.asyncio
    async def test_current_price_missing(self, provider):
        with patch.object(provider, "_fetch", responding(200, {"price": None})):
            assert await provider.get_current_price("P1") is None

    @pytest.mark.asyncio
    async def test_search(self, provider):
        payload = {"product_ids": ["A", "B"]}
        with patch.object(provider, "_fetch", responding(200, payload)) as fetch:
            result = await provider.search("kettle", {"category": "Home"})

        assert result == ["A", "B"]
        fetch.assert_awaited_once_with(
            "/search", {"term": "kettle", "category": "Home"}
        )

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limited(self, provider):
        throttled = responding(429, headers={"Retry-After": "30"})
        with patch.object(provider, "_fetch", throttled):
            with pytest.raises(RateLimitedError) as exc_info:
                await provider.get_product("P1")

        assert exc_info.value.retry_after == 30.0
        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, provider):
        with patch.object(provider, "_fetch", responding(502)):
            with pytest.raises(UpstreamUnavailable) as exc_info:
                await provider.get_series("P1", 30)

        assert not isinstance(exc_info.value, RateLimitedError)
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self, provider):
        error = aiohttp.ClientConnectionError("connection refused")
        with patch.object(provider, "_fetch", AsyncMock(side_effect=error)):
            with pytest.raises(UpstreamUnavailable, match="connection refused"):
                await provider.get_product("P1")

    @pytest.mark.asyncio
    async def test_exhausted_budget_fails_fast(self):
        limiter = RateLimiter(max_requests=1, burst_limit=10)
        provider = PriceDataProvider("https://prices.example.com", None, limiter)

        with patch.object(provider, "_fetch", responding(200, {"price": 1})) as fetch:
            await provider.get_current_price("P1")
            with pytest.raises(RateLimitedError):
                await provider.get_current_price("P1")

        assert fetch.await_count == 1
