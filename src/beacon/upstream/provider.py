"""HTTP client for the third-party price-data provider."""

from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config.logging import get_logger
from ..exceptions import NotFoundError, RateLimitedError, UpstreamUnavailable
from ..utils.serialization import from_jsonable
from .models import Channel, PriceHistory, PricePoint, ProductListing
from .rate_limiter import RateLimiter

logger = get_logger(__name__)

SERVICE_NAME = "price_data"


class PriceDataProvider:
    """
    Async client for the upstream price-data API.

    Every request spends one unit of the shared ``RateLimiter`` budget; when the
    budget is gone the call fails fast with ``RateLimitedError`` instead of
    queueing.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        rate_limiter: RateLimiter,
        timeout_seconds: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.rate_limiter = rate_limiter
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = logger.bind(component="price_data_provider")

    async def get_product(self, product_id: str) -> ProductListing:
        """Fetch catalog metadata for one product."""
        payload = await self._get_json("get_product", f"/products/{product_id}")
        if payload is None:
            raise NotFoundError("Product", product_id)

        payload.setdefault("product_id", product_id)
        return from_jsonable(ProductListing, payload)

    async def get_series(self, product_id: str, days: int) -> PriceHistory:
        """Fetch up to ``days`` days of history for every channel."""
        payload = await self._get_json(
            "get_series", f"/products/{product_id}/history", {"days": days}
        )
        if payload is None:
            return PriceHistory(product_id=product_id)

        return self._parse_history(product_id, payload)

    async def get_current_price(
        self, product_id: str, channel: Channel = Channel.PRIMARY
    ) -> Optional[int]:
        """Latest price on ``channel``; None when the product has no offer."""
        payload = await self._get_json(
            "get_current_price",
            f"/products/{product_id}/price",
            {"channel": channel.value},
        )
        if not payload or payload.get("price") is None:
            return None

        return int(payload["price"])

    async def search(
        self, term: str, filters: Optional[Dict[str, Any]] = None
    ) -> List[str]:
        """Product ids matching a search term."""
        params = {"term": term, **(filters or {})}
        payload = await self._get_json("search", "/search", params)
        return list(payload.get("product_ids", [])) if payload else []

    def _parse_history(self, product_id: str, payload: Dict[str, Any]) -> PriceHistory:
        channels: Dict[Channel, List[PricePoint]] = {}
        known = {channel.value: channel for channel in Channel}

        for name, points in (payload.get("channels") or {}).items():
            channel = known.get(name)
            if channel is None:
                self.logger.debug("Ignoring unknown channel", channel=name)
                continue
            channels[channel] = from_jsonable(List[PricePoint], points)

        history = PriceHistory(product_id=product_id, channels=channels)
        for channel, points in history.channels.items():
            points.sort(key=lambda p: p.timestamp)

        return history

    async def _get_json(
        self, operation: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Budgeted GET; None on 404, typed errors for everything else non-2xx."""
        if not self.rate_limiter.try_acquire():
            self.logger.warning("Upstream budget exhausted", operation=operation)
            raise RateLimitedError(
                SERVICE_NAME, operation, retry_after=self.rate_limiter.retry_after()
            )

        try:
            status, payload, headers = await self._fetch(path, params)
        except (aiohttp.ClientError, TimeoutError) as e:
            self.logger.error(
                "Upstream request failed", operation=operation, error=str(e)
            )
            raise UpstreamUnavailable(SERVICE_NAME, operation, str(e)) from e

        if status == 404:
            return None
        if status == 429:
            retry_after = headers.get("Retry-After")
            raise RateLimitedError(
                SERVICE_NAME,
                operation,
                retry_after=float(retry_after) if retry_after else None,
            )
        if status >= 400:
            raise UpstreamUnavailable(SERVICE_NAME, operation, f"HTTP {status}")

        return payload

    async def _fetch(
        self, path: str, params: Optional[Dict[str, Any]]
    ) -> Tuple[int, Optional[Dict[str, Any]], Dict[str, str]]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(
                f"{self.base_url}{path}", params=params, headers=headers
            ) as response:
                payload = None
                if response.status < 400:
                    payload = await response.json()
                return response.status, payload, dict(response.headers)
