"""Key-value store with TTL support, backed by the cache_entries table."""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Protocol

from sqlalchemy.orm import sessionmaker

from ..config.logging import get_logger
from ..ormdb.repositories import CacheEntryRepository
from ..utils.clock import utcnow

logger = get_logger(__name__)


class KeyValueStore(Protocol):
    """Operations the analytics, alert and sync components need from a store."""

    def get(self, key: str) -> Optional[Any]: ...

    def get_stale(self, key: str) -> Optional[Any]: ...

    def set_with_ttl(
        self, key: str, value: Any, ttl_seconds: Optional[int]
    ) -> None: ...

    def set_if_absent(
        self, key: str, value: Any, ttl_seconds: Optional[int]
    ) -> bool: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def scan_by_prefix(self, prefix: str) -> Dict[str, Any]: ...


class SqlKeyValueStore:
    """
    KeyValueStore over SQLAlchemy.

    Expired rows are invisible to ``get``, ``exists`` and ``scan_by_prefix`` but
    stay readable through ``get_stale`` until ``purge_expired`` runs, so callers
    can fall back to the last known value while the upstream is down.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self.logger = logger.bind(component="kv_store")

    def _repository(self) -> CacheEntryRepository:
        return CacheEntryRepository(session_factory=self._session_factory)

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[datetime]:
        if ttl_seconds is None:
            return None
        return self._clock() + timedelta(seconds=ttl_seconds)

    def get(self, key: str) -> Optional[Any]:
        with self._repository() as repo:
            entry = repo.get(key)
            if entry is None or entry.is_expired(self._clock()):
                return None
            return entry.value

    def get_stale(self, key: str) -> Optional[Any]:
        """Value stored under ``key`` even if its TTL has elapsed."""
        with self._repository() as repo:
            entry = repo.get(key)
            return entry.value if entry is not None else None

    def set_with_ttl(self, key: str, value: Any, ttl_seconds: Optional[int]) -> None:
        """Store ``value``; a ``None`` TTL keeps it until deleted."""
        with self._repository() as repo:
            repo.upsert(key, value, self._expiry(ttl_seconds))

        self.logger.debug("Stored entry", key=key, ttl_seconds=ttl_seconds)

    def set_if_absent(self, key: str, value: Any, ttl_seconds: Optional[int]) -> bool:
        """Atomically claim ``key``; used for leases and in-flight flags."""
        with self._repository() as repo:
            return repo.insert_if_absent(
                key, value, self._expiry(ttl_seconds), self._clock()
            )

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        with self._repository() as repo:
            return repo.delete(key)

    def scan_by_prefix(self, prefix: str) -> Dict[str, Any]:
        now = self._clock()
        with self._repository() as repo:
            return {
                entry.key: entry.value
                for entry in repo.list_by_prefix(prefix)
                if not entry.is_expired(now)
            }

    def purge_expired(self, grace_seconds: int = 0) -> int:
        """Delete rows that expired more than ``grace_seconds`` ago."""
        cutoff = self._clock() - timedelta(seconds=grace_seconds)
        with self._repository() as repo:
            removed = repo.purge_expired(cutoff)

        if removed:
            self.logger.info("Purged expired entries", count=removed)
        return removed
