"""Records returned by the upstream price-data provider."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class Channel(Enum):
    """Price channels tracked per product."""

    PRIMARY = "primary"
    NEW = "new"
    USED = "used"
    SALES_RANK = "sales_rank"


@dataclass(frozen=True)
class PricePoint:
    """One observation; ``price`` is in the minor currency unit."""

    timestamp: datetime
    price: int
    in_stock: bool = True


@dataclass
class PriceHistory:
    """Timestamp-ordered points for one product, partitioned by channel."""

    product_id: str
    channels: Dict[Channel, List[PricePoint]] = field(default_factory=dict)

    def series(self, channel: Channel = Channel.PRIMARY) -> List[PricePoint]:
        return sorted(self.channels.get(channel, []), key=lambda p: p.timestamp)


@dataclass
class ProductListing:
    """Catalog metadata the profit model reads."""

    product_id: str
    title: str = ""
    category: str = ""
    current_price: Optional[int] = None
    sales_rank: Optional[int] = None
    new_offer_count: int = 0
    used_offer_count: int = 0
    review_count: int = 0
