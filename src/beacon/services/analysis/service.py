"""Cached analysis of upstream price series."""

from typing import Optional

from ...config.logging import get_logger
from ...exceptions import (
    InputValidationError,
    InternalComputationFailure,
    UpstreamUnavailable,
)
from ...store import KeyValueStore
from ...upstream import Channel, PriceDataProvider, PriceHistory
from ...utils.serialization import from_jsonable, to_jsonable
from .analyzer import TimeSeriesAnalyzer
from .models import AnalysisResult

logger = get_logger(__name__)


class AnalysisService:
    """Fetches series from the provider and caches AnalysisResult with a TTL."""

    def __init__(
        self,
        provider: PriceDataProvider,
        store: KeyValueStore,
        analyzer: Optional[TimeSeriesAnalyzer] = None,
        cache_ttl: int = 7200,
    ):
        self.provider = provider
        self.store = store
        self.analyzer = analyzer or TimeSeriesAnalyzer()
        self.cache_ttl = cache_ttl
        self.logger = logger.bind(service="analysis_service")

    @staticmethod
    def cache_key(product_id: str, days: int, channel: Channel) -> str:
        return f"analysis:{product_id}:{channel.value}:{days}"

    async def analyze(
        self,
        product_id: str,
        days: int = 90,
        channel: Channel = Channel.PRIMARY,
        force_refresh: bool = False,
    ) -> AnalysisResult:
        """
        Analyze one product, serving the cached result while it is fresh.

        Raises:
            InputValidationError: days is not positive
            UpstreamUnavailable: provider failed and nothing was ever cached
        """
        if days <= 0:
            raise InputValidationError(
                "Analysis window must be positive", {"days": "must be > 0"}
            )

        key = self.cache_key(product_id, days, channel)
        if not force_refresh:
            cached = self.store.get(key)
            if cached is not None:
                return from_jsonable(AnalysisResult, cached)

        try:
            history = await self.provider.get_series(product_id, days)
        except UpstreamUnavailable as e:
            stale = self.store.get_stale(key)
            if stale is None:
                raise
            self.logger.warning(
                "Serving stale analysis", product_id=product_id, error=e.message
            )
            return from_jsonable(AnalysisResult, stale)

        result = self.analyze_history(history, days, channel)
        self.store.set_with_ttl(key, to_jsonable(result), self.cache_ttl)

        return result

    def analyze_history(
        self, history: PriceHistory, days: int, channel: Channel = Channel.PRIMARY
    ) -> AnalysisResult:
        try:
            return self.analyzer.analyze(
                history.product_id, history.series(channel), days
            )
        except (ArithmeticError, ValueError) as e:
            raise InternalComputationFailure(
                "analyze", history.product_id, str(e)
            ) from e

    async def refresh(self, product_id: str, default_days: int = 90) -> int:
        """
        Recompute every cached window of a product from one series fetch.

        The primary ``default_days`` window is always included so later profit
        projections find a current analysis. Upstream errors propagate.

        Returns:
            Number of windows stored
        """
        windows = {(Channel.PRIMARY, default_days)}
        for key in self.store.scan_by_prefix(f"analysis:{product_id}:"):
            channel, days = key.rsplit(":", 2)[1:]
            windows.add((Channel(channel), int(days)))

        longest = max(days for _, days in windows)
        history = await self.provider.get_series(product_id, longest)
        for channel, days in windows:
            result = self.analyze_history(history, days, channel)
            self.store.set_with_ttl(
                self.cache_key(product_id, days, channel),
                to_jsonable(result),
                self.cache_ttl,
            )

        self.logger.debug(
            "Analysis refreshed", product_id=product_id, windows=len(windows)
        )
        return len(windows)
