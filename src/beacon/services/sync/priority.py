"""Pure scoring rules behind the sync queue."""

import math
from datetime import datetime, timedelta
from typing import Dict, Optional

from .models import AccessPattern, ImportanceTier

BASE_FREQUENCY_MINUTES: Dict[ImportanceTier, int] = {
    ImportanceTier.CRITICAL: 5,
    ImportanceTier.HIGH: 15,
    ImportanceTier.MEDIUM: 60,
    ImportanceTier.LOW: 240,
}

CACHE_TTL_SECONDS: Dict[ImportanceTier, int] = {
    ImportanceTier.CRITICAL: 1800,
    ImportanceTier.HIGH: 1800,
    ImportanceTier.MEDIUM: 3600,
    ImportanceTier.LOW: 7200,
}

# (hours since last access, weight); first bound that is strictly greater wins
RECENCY_WEIGHTS = ((1, 20), (6, 15), (24, 10), (168, 5))

MIN_MULTIPLIER = 0.5
MAX_MULTIPLIER = 2.0


def access_frequency(pattern: AccessPattern, now: datetime) -> float:
    """Accesses per day since the last access; the raw count within the first day."""
    if pattern.last_accessed_at is None:
        return 0.0

    days = (now - pattern.last_accessed_at).total_seconds() / 86400
    if days < 1:
        return float(pattern.access_count)
    return pattern.access_count / days


def recency_weight(last_accessed_at: Optional[datetime], now: datetime) -> int:
    if last_accessed_at is None:
        return 0

    hours = (now - last_accessed_at).total_seconds() / 3600
    for bound, weight in RECENCY_WEIGHTS:
        if hours < bound:
            return weight
    return 0


def compute_priority(pattern: AccessPattern, now: datetime) -> float:
    """Score in [0, 100] from access volume, frequency and recency."""
    access = min(pattern.access_count / 10, 50)
    frequency = min(access_frequency(pattern, now) * 10, 30)
    score = access + frequency + recency_weight(pattern.last_accessed_at, now)
    return max(0.0, min(score, 100.0))


def importance_tier(priority_score: float) -> ImportanceTier:
    if priority_score >= 80:
        return ImportanceTier.CRITICAL
    if priority_score >= 60:
        return ImportanceTier.HIGH
    if priority_score >= 40:
        return ImportanceTier.MEDIUM
    return ImportanceTier.LOW


def frequency_multiplier(frequency: float) -> float:
    """clamp(1 / log10(frequency + 1)); idle products get the slowest cadence."""
    scale = math.log10(frequency + 1)
    if scale <= 0:
        return MAX_MULTIPLIER
    return max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, 1 / scale))


def sync_frequency_minutes(tier: ImportanceTier, frequency: float) -> int:
    minutes = BASE_FREQUENCY_MINUTES[tier] * frequency_multiplier(frequency)
    return int(math.floor(minutes + 0.5))


def calculate_optimal_ttl(tier: Optional[ImportanceTier]) -> int:
    """Cache TTL for a tier; products not in the queue are treated as low."""
    return CACHE_TTL_SECONDS[tier or ImportanceTier.LOW]


def predict_next_access(pattern: AccessPattern, now: datetime) -> Optional[datetime]:
    """Last access plus the average gap implied by the daily access frequency."""
    if pattern.last_accessed_at is None:
        return None

    frequency = access_frequency(pattern, now)
    gap_hours = 24 / frequency if frequency > 0 else 24
    return pattern.last_accessed_at + timedelta(hours=gap_hours)
