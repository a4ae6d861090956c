"""Tests for the sync scoring rules."""

import sys
from datetime import timedelta

import pytest

sys.path.append("src")
from conftest import BASE_TIME
from beacon.services.sync import (
    AccessPattern,
    ImportanceTier,
    access_frequency,
    calculate_optimal_ttl,
    compute_priority,
    importance_tier,
    sync_frequency_minutes,
)
from beacon.services.sync.priority import (
    frequency_multiplier,
    predict_next_access,
    recency_weight,
)


def pattern(count, hours_ago=None):
    last = BASE_TIME - timedelta(hours=hours_ago) if hours_ago is not None else None
    return AccessPattern(product_id="P1", access_count=count, last_accessed_at=last)


class TestAccessFrequency:
    def test_raw_count_within_first_day(self):
        assert access_frequency(pattern(5, hours_ago=2), BASE_TIME) == 5.0

    def test_per_day_after_first_day(self):
        assert access_frequency(pattern(10, hours_ago=48), BASE_TIME) == 5.0

    def test_never_accessed(self):
        assert access_frequency(pattern(0), BASE_TIME) == 0.0


class TestRecencyWeight:
    @pytest.mark.parametrize(
        "hours_ago,weight",
        [(0.5, 20), (3, 15), (12, 10), (72, 5), (200, 0)],
    )
    def test_buckets(self, hours_ago, weight):
        last = BASE_TIME - timedelta(hours=hours_ago)
        assert recency_weight(last, BASE_TIME) == weight

    def test_bucket_bounds_are_exclusive(self):
        assert recency_weight(BASE_TIME - timedelta(hours=1), BASE_TIME) == 15

    def test_never_accessed(self):
        assert recency_weight(None, BASE_TIME) == 0


class TestPriority:
    def test_capped_at_hundred(self):
        assert compute_priority(pattern(1000, hours_ago=0), BASE_TIME) == 100.0

    def test_components(self):
        # 0.5 from volume, 30 from frequency (capped), 20 from recency
        score = compute_priority(pattern(5, hours_ago=0.5), BASE_TIME)
        assert score == pytest.approx(50.5)

    def test_idle_product_scores_zero(self):
        assert compute_priority(pattern(0), BASE_TIME) == 0.0

    @pytest.mark.parametrize(
        "score,tier",
        [
            (100, ImportanceTier.CRITICAL),
            (80, ImportanceTier.CRITICAL),
            (79.99, ImportanceTier.HIGH),
            (60, ImportanceTier.HIGH),
            (40, ImportanceTier.MEDIUM),
            (39.9, ImportanceTier.LOW),
            (0, ImportanceTier.LOW),
        ],
    )
    def test_tiers(self, score, tier):
        assert importance_tier(score) == tier


class TestSyncFrequency:
    def test_multiplier_clamped(self):
        assert frequency_multiplier(0) == 2.0
        assert frequency_multiplier(1) == 2.0
        assert frequency_multiplier(9) == pytest.approx(1.0)
        assert frequency_multiplier(10_000) == 0.5

    def test_minutes_per_tier(self):
        assert sync_frequency_minutes(ImportanceTier.HIGH, 9) == 15
        assert sync_frequency_minutes(ImportanceTier.MEDIUM, 0) == 120
        assert sync_frequency_minutes(ImportanceTier.LOW, 10_000) == 120
        assert sync_frequency_minutes(ImportanceTier.CRITICAL, 0) == 10

    def test_rounds_to_nearest_minute(self):
        # 15 / log10(4) = 24.91...
        assert sync_frequency_minutes(ImportanceTier.HIGH, 3) == 25


class TestTtl:
    def test_ttl_per_tier(self):
        assert calculate_optimal_ttl(ImportanceTier.CRITICAL) == 1800
        assert calculate_optimal_ttl(ImportanceTier.HIGH) == 1800
        assert calculate_optimal_ttl(ImportanceTier.MEDIUM) == 3600
        assert calculate_optimal_ttl(ImportanceTier.LOW) == 7200

    def test_unqueued_product_gets_low_ttl(self):
        assert calculate_optimal_ttl(None) == 7200

    def test_repeated_calls_agree(self):
        ttls = [calculate_optimal_ttl(ImportanceTier.MEDIUM) for _ in range(3)]
        assert ttls == [3600] * 3


class TestPredictNextAccess:
    def test_gap_from_frequency(self):
        p = pattern(4, hours_ago=1)

        expected = p.last_accessed_at + timedelta(hours=6)
        assert predict_next_access(p, BASE_TIME) == expected

    def test_never_accessed(self):
        assert predict_next_access(pattern(0), BASE_TIME) is None
