"""Operations exposed to callers, composed from the individual services."""

from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence

from ..config.logging import get_logger
from ..exceptions import InputValidationError
from ..store import KeyValueStore
from ..upstream import Channel, ProductListing
from ..utils.clock import utcnow
from ..utils.serialization import from_jsonable, to_jsonable
from .alerts import Alert, AlertEngine, SweepSummary
from .analysis import AnalysisResult, AnalysisService
from .profit import (
    BreakEvenAnalysis,
    ProfitInputs,
    ProfitPrediction,
    ProfitScenarioEngine,
)
from .ranking import ProductComparison, RankingAndAllocator, RankingPreferences
from .sync import SyncMetrics, SyncPriority, SyncPriorityScheduler, SyncStatus

logger = get_logger(__name__)

PROFIT_ANALYSIS_DAYS = 90


class SignalService:
    """Entry point for analysis, profit, comparison, alert and sync operations."""

    def __init__(
        self,
        store: KeyValueStore,
        analysis_service: AnalysisService,
        sync_scheduler: SyncPriorityScheduler,
        alert_engine: AlertEngine,
        profit_engine: Optional[ProfitScenarioEngine] = None,
        allocator: Optional[RankingAndAllocator] = None,
        profit_cache_ttl: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.analysis_service = analysis_service
        self.sync_scheduler = sync_scheduler
        self.alert_engine = alert_engine
        self.profit_engine = profit_engine or ProfitScenarioEngine()
        self.allocator = allocator or RankingAndAllocator()
        self.profit_cache_ttl = profit_cache_ttl
        self._clock = clock
        self.logger = logger.bind(service="signal_service")

    # Analytics

    async def analyze(
        self, product_id: str, days: int = 90, channel: Channel = Channel.PRIMARY
    ) -> AnalysisResult:
        self._require_product_id(product_id)
        key = AnalysisService.cache_key(product_id, days, channel)
        cache_hit = self.store.exists(key)
        result = await self.analysis_service.analyze(product_id, days, channel)
        self.sync_scheduler.record_access(product_id, cache_hit=cache_hit)
        return result

    async def predict_profit(
        self, product_id: str, inputs: Optional[ProfitInputs] = None
    ) -> ProfitPrediction:
        """
        Three-scenario profit projection for one product.

        Projections with default inputs are cached; caller-supplied inputs are
        always computed fresh. Cached strategy windows are re-anchored at read
        time so they never start in the past.
        """
        self._require_product_id(product_id)
        cache_key = f"profit:{product_id}" if inputs is None else None

        if cache_key:
            cached = self.store.get(cache_key)
            if cached is not None:
                return self.profit_engine.reanchor_windows(
                    from_jsonable(ProfitPrediction, cached), self._clock()
                )

        listing = await self._listing(product_id)
        analysis = await self.analysis_service.analyze(product_id, PROFIT_ANALYSIS_DAYS)
        prediction = self.profit_engine.predict(
            listing, analysis, analysis.average_price, inputs, now=self._clock()
        )

        if cache_key:
            self.store.set_with_ttl(
                cache_key, to_jsonable(prediction), self.profit_cache_ttl
            )
        return prediction

    async def compare_products(
        self,
        product_ids: Sequence[str],
        budget: float,
        preferences: Optional[RankingPreferences] = None,
        inputs: Optional[ProfitInputs] = None,
    ) -> ProductComparison:
        """
        Rank products and allocate ``budget`` across them.

        A product whose projection fails is skipped and listed in
        ``skipped_products``; the rest are still compared.

        Raises:
            InputValidationError: no products, or budget not positive
        """
        errors = {}
        if not product_ids:
            errors["product_ids"] = "at least one product required"
        if budget is None or budget <= 0:
            errors["budget"] = "must be > 0"
        if errors:
            raise InputValidationError("Invalid comparison request", errors)

        predictions: List[ProfitPrediction] = []
        skipped: List[str] = []

        for product_id in product_ids:
            try:
                predictions.append(await self.predict_profit(product_id, inputs))
            except InputValidationError:
                raise
            except Exception as e:
                skipped.append(product_id)
                self.logger.warning(
                    "Skipping product in comparison",
                    product_id=product_id,
                    error=str(e),
                )

        rankings = self.allocator.rank(predictions, preferences)
        portfolio = self.allocator.allocate(rankings, budget, preferences)

        self.logger.info(
            "Products compared",
            requested=len(product_ids),
            ranked=len(rankings),
            selected=len(portfolio.selected_products),
            skipped=len(skipped),
        )
        return ProductComparison(
            rankings=rankings, portfolio=portfolio, skipped_products=skipped
        )

    async def break_even(self, product_id: str, buy_price: float) -> BreakEvenAnalysis:
        self._require_product_id(product_id)
        listing = await self._listing(product_id)
        return self.profit_engine.break_even(listing, buy_price)

    async def _listing(self, product_id: str) -> ProductListing:
        return await self.sync_scheduler.sync_product(product_id)

    @staticmethod
    def _require_product_id(product_id: str) -> None:
        if not product_id or not product_id.strip():
            raise InputValidationError(
                "Product id is required", {"product_id": "required"}
            )

    # Alerts

    async def create_alert(
        self, product_id: str, owner_id: str, desired_price: int, **options: Any
    ) -> Alert:
        return await self.alert_engine.create_alert(
            product_id, owner_id, desired_price, **options
        )

    async def update_alert(self, alert_id: str, **changes: Any) -> Alert:
        return await self.alert_engine.update_alert(alert_id, **changes)

    def pause_alert(
        self, alert_id: str, duration_minutes: Optional[int] = None
    ) -> Alert:
        return self.alert_engine.pause_alert(alert_id, duration_minutes)

    def resume_alert(self, alert_id: str) -> Alert:
        return self.alert_engine.resume_alert(alert_id)

    def delete_alert(self, alert_id: str) -> bool:
        return self.alert_engine.delete_alert(alert_id)

    def get_user_alerts(
        self, owner_id: str, include_inactive: bool = False
    ) -> List[Alert]:
        return self.alert_engine.get_user_alerts(owner_id, include_inactive)

    async def evaluate_alerts_now(self) -> SweepSummary:
        return await self.alert_engine.check_alerts()

    # Sync

    def get_sync_queue(self) -> List[SyncPriority]:
        return self.sync_scheduler.get_sync_queue()

    async def force_sync_product(self, product_id: str) -> ProductListing:
        self._require_product_id(product_id)
        return await self.sync_scheduler.force_sync_product(product_id)

    def get_sync_status(self, product_id: str) -> SyncStatus:
        return self.sync_scheduler.get_sync_status(product_id)

    def get_sync_metrics(self) -> SyncMetrics:
        return self.sync_scheduler.get_sync_metrics()
