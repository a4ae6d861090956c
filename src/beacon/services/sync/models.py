"""Data models for access tracking and sync scheduling."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class ImportanceTier(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class AccessPattern:
    """How often a product has been requested, and when it was last refreshed."""

    product_id: str
    access_count: int = 0
    cache_hits: int = 0
    last_accessed_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None


@dataclass(frozen=True)
class SyncPriority:
    product_id: str
    priority_score: float
    importance_tier: ImportanceTier
    sync_frequency_minutes: int
    last_synced_at: Optional[datetime]
    predicted_next_update_at: datetime


@dataclass
class SyncQueue:
    """The due set from the latest rebuild; replaced as a whole every time."""

    built_at: datetime
    items: List[SyncPriority] = field(default_factory=list)


@dataclass
class SyncCycleSummary:
    skipped: bool = False
    queued: int = 0
    synced: int = 0
    failed: int = 0


@dataclass(frozen=True)
class SyncStatus:
    product_id: str
    cached: bool
    last_synced_at: Optional[datetime]
    next_sync_at: Optional[datetime]
    importance_tier: Optional[ImportanceTier]


@dataclass(frozen=True)
class SyncMetrics:
    """Aggregate sync health; rates are percentages."""

    total_requests: int
    cache_hits: int
    cache_hit_rate: float
    api_quota_utilization: float
    sync_efficiency: float
    queue_size: int
    tracked_products: int
