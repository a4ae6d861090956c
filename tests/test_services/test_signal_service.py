"""Tests for the SignalService facade."""

import sys
from datetime import timedelta
from unittest.mock import AsyncMock, Mock, call

import pytest

sys.path.append("src")
from conftest import BASE_TIME, build_series
from beacon.exceptions import InputValidationError, UpstreamUnavailable
from beacon.services import SignalService
from beacon.services.analysis.analyzer import TimeSeriesAnalyzer
from beacon.services.profit import ProfitInputs, ProfitPrediction
from beacon.upstream import Channel


@pytest.fixture
def analysis():
    prices = [1000 + (i % 5) * 20 for i in range(40)]
    return TimeSeriesAnalyzer().analyze(
        "B000TEST01", build_series(prices), 90, as_of=BASE_TIME
    )


@pytest.fixture
def analysis_service(analysis):
    service = Mock()
    service.analyze = AsyncMock(return_value=analysis)
    return service


@pytest.fixture
def sync_scheduler(listing):
    scheduler = Mock()
    scheduler.sync_product = AsyncMock(return_value=listing)
    scheduler.force_sync_product = AsyncMock(return_value=listing)
    return scheduler


@pytest.fixture
def alert_engine():
    engine = Mock()
    engine.create_alert = AsyncMock()
    engine.check_alerts = AsyncMock()
    return engine


@pytest.fixture
def signals(kv_store, analysis_service, sync_scheduler, alert_engine, clock):
    return SignalService(
        store=kv_store,
        analysis_service=analysis_service,
        sync_scheduler=sync_scheduler,
        alert_engine=alert_engine,
        clock=clock,
    )


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_records_access_for_sync_priority(
        self, signals, analysis_service, sync_scheduler, kv_store
    ):
        await signals.analyze("B000TEST01", 30)
        kv_store.set_with_ttl("analysis:B000TEST01:primary:30", {"cached": True}, 600)
        await signals.analyze("B000TEST01", 30)

        analysis_service.analyze.assert_awaited_with("B000TEST01", 30, Channel.PRIMARY)
        assert sync_scheduler.record_access.call_args_list == [
            call("B000TEST01", cache_hit=False),
            call("B000TEST01", cache_hit=True),
        ]

    @pytest.mark.asyncio
    async def test_rejected_request_is_not_an_access(self, signals, sync_scheduler):
        with pytest.raises(InputValidationError):
            await signals.analyze("")

        sync_scheduler.record_access.assert_not_called()


class TestPredictProfit:
    @pytest.mark.asyncio
    async def test_default_projection_is_cached(
        self, signals, sync_scheduler, analysis_service
    ):
        first = await signals.predict_profit("B000TEST01")
        second = await signals.predict_profit("B000TEST01")

        assert isinstance(first, ProfitPrediction)
        assert second.product_id == first.product_id
        assert len(second.scenarios) == 3
        sync_scheduler.sync_product.assert_awaited_once_with("B000TEST01")
        analysis_service.analyze.assert_awaited_once_with("B000TEST01", 90)

    @pytest.mark.asyncio
    async def test_custom_inputs_are_not_cached(
        self, signals, sync_scheduler, kv_store
    ):
        inputs = ProfitInputs(intended_buy_price=900)

        await signals.predict_profit("B000TEST01", inputs)
        await signals.predict_profit("B000TEST01", inputs)

        assert sync_scheduler.sync_product.await_count == 2
        assert kv_store.get("profit:B000TEST01") is None

    @pytest.mark.asyncio
    async def test_cached_windows_start_at_read_time(self, signals, clock):
        first = await signals.predict_profit("B000TEST01")
        assert first.optimal_strategy.buy_window.start == BASE_TIME

        clock.advance(minutes=40)
        second = await signals.predict_profit("B000TEST01")

        strategy = second.optimal_strategy
        timeframe = next(
            s.timeframe_days for s in second.scenarios if s.name == strategy.scenario
        )
        assert strategy.buy_window.start == clock.now
        assert strategy.buy_window.end == clock.now + timedelta(days=7)
        assert strategy.sell_window.start == clock.now + timedelta(days=timeframe)
        assert second.metadata.analysis_date == BASE_TIME

    @pytest.mark.asyncio
    async def test_blank_product_id(self, signals):
        with pytest.raises(InputValidationError):
            await signals.predict_profit("  ")


class TestCompareProducts:
    """Ranking plus allocation across several products."""

    @pytest.mark.asyncio
    async def test_failed_product_is_skipped(self, signals, sync_scheduler, listing):
        async def sync(product_id):
            if product_id == "BAD":
                raise UpstreamUnavailable("price_data", "get_product", "down")
            return listing

        sync_scheduler.sync_product.side_effect = sync

        comparison = await signals.compare_products(
            ["B000TEST01", "BAD"], budget=100_000
        )

        assert comparison.skipped_products == ["BAD"]
        assert [r.product_id for r in comparison.rankings] == ["B000TEST01"]
        assert comparison.rankings[0].rank == 1
        assert comparison.portfolio.budget == 100_000

    @pytest.mark.asyncio
    async def test_invalid_inputs_are_not_skipped(self, signals):
        with pytest.raises(InputValidationError):
            await signals.compare_products(
                ["B000TEST01"], budget=1000, inputs=ProfitInputs(intended_volume=0)
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "product_ids,budget", [([], 1000), (["B000TEST01"], 0), (["B000TEST01"], -5)]
    )
    async def test_rejects_bad_requests(self, signals, product_ids, budget):
        with pytest.raises(InputValidationError):
            await signals.compare_products(product_ids, budget)


class TestDelegation:
    @pytest.mark.asyncio
    async def test_break_even_uses_synced_listing(self, signals, listing):
        result = await signals.break_even("B000TEST01", 500)

        assert result.product_id == listing.product_id
        assert result.buy_price == 500

    @pytest.mark.asyncio
    async def test_alert_operations(self, signals, alert_engine):
        await signals.create_alert("B000TEST01", "user-1", 1000)
        await signals.evaluate_alerts_now()
        signals.pause_alert("alert-1", 30)

        alert_engine.create_alert.assert_awaited_once_with("B000TEST01", "user-1", 1000)
        alert_engine.check_alerts.assert_awaited_once()
        alert_engine.pause_alert.assert_called_once_with("alert-1", 30)

    @pytest.mark.asyncio
    async def test_force_sync_requires_product_id(self, signals):
        with pytest.raises(InputValidationError):
            await signals.force_sync_product("")
