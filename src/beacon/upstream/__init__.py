"""Upstream price-data provider client."""

from .models import Channel, PriceHistory, PricePoint, ProductListing
from .provider import PriceDataProvider
from .rate_limiter import RateLimiter

__all__ = [
    "Channel",
    "PriceDataProvider",
    "PriceHistory",
    "PricePoint",
    "ProductListing",
    "RateLimiter",
]
