"""Marketplace fee and fulfillment cost model."""

from dataclasses import dataclass
from enum import Enum

from ...upstream.models import ProductListing

# Sell price assumed when estimating percentage-based fees for a buy price
ASSUMED_MARKUP = 1.3

DEFAULT_REFERRAL_RATE = 0.15
REFERRAL_RATES = {
    "electronics": 0.08,
    "books": 0.15,
    "clothing": 0.17,
}

TAX_RATE = 0.10
MISC_RATE = 0.02


class SizeTier(Enum):
    SMALL = "small"
    STANDARD = "standard"
    LARGE = "large"


FULFILLMENT_FEES = {
    SizeTier.SMALL: 280,
    SizeTier.STANDARD: 350,
    SizeTier.LARGE: 500,
}

SIZE_KEYWORDS = (
    (SizeTier.SMALL, ("small", "compact")),
    (SizeTier.LARGE, ("large", "big")),
)


class ShippingRoute(Enum):
    DOMESTIC = "domestic"
    INTERNATIONAL = "international"


SHIPPING_COSTS = {
    ShippingRoute.DOMESTIC: 500,
    ShippingRoute.INTERNATIONAL: 1500,
}


@dataclass
class CostBreakdown:
    """Per-unit selling costs for a given buy price."""

    referral_fee: float
    fulfillment_fee: float
    shipping: float
    tax: float
    misc: float

    @property
    def total(self) -> float:
        return (
            self.referral_fee
            + self.fulfillment_fee
            + self.shipping
            + self.tax
            + self.misc
        )


def top_level_category(category: str) -> str:
    """Normalize "Electronics > Headphones" style paths to "electronics"."""
    for separator in (">", "/"):
        category = category.split(separator)[0]
    return category.strip().lower()


def referral_rate(category: str) -> float:
    """First category keyword found anywhere in the path sets the rate."""
    category = category.lower()
    for keyword, rate in REFERRAL_RATES.items():
        if keyword in category:
            return rate
    return DEFAULT_REFERRAL_RATE


def size_tier(title: str) -> SizeTier:
    title = title.lower()
    for tier, keywords in SIZE_KEYWORDS:
        if any(keyword in title for keyword in keywords):
            return tier
    return SizeTier.STANDARD


def calculate_costs(
    buy_price: float,
    listing: ProductListing,
    route: ShippingRoute = ShippingRoute.DOMESTIC,
) -> CostBreakdown:
    """Cost of selling one unit bought at ``buy_price``."""
    sell_price = buy_price * ASSUMED_MARKUP

    return CostBreakdown(
        referral_fee=sell_price * referral_rate(listing.category),
        fulfillment_fee=FULFILLMENT_FEES[size_tier(listing.title)],
        shipping=SHIPPING_COSTS[route],
        tax=sell_price * TAX_RATE,
        misc=sell_price * MISC_RATE,
    )
