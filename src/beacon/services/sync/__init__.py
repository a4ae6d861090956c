"""Access-driven sync scheduling under an upstream request budget."""

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
    sync_frequency_minutes,
)
from .service import SyncPriorityScheduler

__all__ = [
    "AccessPattern",
    "ImportanceTier",
    "SyncCycleSummary",
    "SyncMetrics",
    "SyncPriority",
    "SyncPriorityScheduler",
    "SyncQueue",
    "SyncStatus",
    "access_frequency",
    "calculate_optimal_ttl",
    "compute_priority",
    "importance_tier",
    "sync_frequency_minutes",
]
