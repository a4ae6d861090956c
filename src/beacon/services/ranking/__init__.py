"""Product ranking and budget allocation."""

from .allocator import RankingAndAllocator
from .models import (
    DiversificationLevel,
    PortfolioAllocation,
    PortfolioOptimization,
    ProductComparison,
    ProductRanking,
    RankingPreferences,
)

__all__ = [
    "DiversificationLevel",
    "PortfolioAllocation",
    "PortfolioOptimization",
    "ProductComparison",
    "ProductRanking",
    "RankingAndAllocator",
    "RankingPreferences",
]
