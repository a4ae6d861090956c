"""Shared test configuration and fixtures."""

import os
import tempfile
from datetime import datetime, timedelta
from typing import List, Sequence
from unittest.mock import AsyncMock, Mock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from beacon.upstream.models import PricePoint, ProductListing

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0)


def build_series(
    prices: Sequence[int], start: datetime = BASE_TIME, step_days: float = 1
) -> List[PricePoint]:
    """Daily points starting at ``start`` with the given prices."""
    return [
        PricePoint(timestamp=start + timedelta(days=i * step_days), price=price)
        for i, price in enumerate(prices)
    ]


class FakeClock:
    """Settable clock for store TTLs and schedule gating."""

    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def isolated_db():
    """Create an isolated database for testing."""
    temp_fd, temp_path = tempfile.mkstemp(suffix=".db")
    db_url = f"sqlite:///{temp_path}"

    try:
        engine = create_engine(db_url, connect_args={"check_same_thread": False})
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        from beacon.ormdb import Base, CacheEntry  # noqa: F401 registers the table

        Base.metadata.create_all(bind=engine)

        yield {
            "engine": engine,
            "session_factory": SessionLocal,
            "db_url": db_url,
            "db_path": temp_path,
        }

    finally:
        engine.dispose()
        os.close(temp_fd)
        os.unlink(temp_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv_store(isolated_db, clock):
    """Key-value store over the isolated database, driven by the fake clock."""
    from beacon.store import SqlKeyValueStore

    return SqlKeyValueStore(isolated_db["session_factory"], clock=clock)


@pytest.fixture
def listing():
    return ProductListing(
        product_id="B000TEST01",
        title="Wireless Headphones",
        category="Home",
        current_price=1300,
        sales_rank=5000,
        new_offer_count=4,
        used_offer_count=2,
        review_count=120,
    )


@pytest.fixture
def mock_provider():
    """Upstream provider double with async methods."""
    provider = Mock()
    provider.get_product = AsyncMock()
    provider.get_series = AsyncMock()
    provider.get_current_price = AsyncMock()
    provider.search = AsyncMock(return_value=[])
    return provider


@pytest.fixture
def mock_notifier():
    notifier = Mock()
    notifier.dispatch = Mock()
    notifier.flush = AsyncMock()
    return notifier


@pytest.fixture(autouse=True)
def mock_upstream_env():
    """Keep settings away from real credentials and data directories."""
    with patch.dict(
        "os.environ",
        {
            "UPSTREAM_API_KEY": "test_api_key",
            "LOG_FILE_ENABLED": "false",
        },
    ):
        yield


@pytest.fixture(autouse=True)
def clean_lru_cache():
    """Clear LRU caches between tests to avoid state pollution."""
    from beacon.config.settings import get_settings

    yield

    get_settings.cache_clear()
