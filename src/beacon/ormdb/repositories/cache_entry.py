"""Repository for keyed cache entries."""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import and_, delete
from sqlalchemy.exc import IntegrityError

from ..models import CacheEntry
from .base import BaseRepository


class CacheEntryRepository(BaseRepository):
    """Repository for cache entry operations."""

    def get(self, key: str) -> Optional[CacheEntry]:
        """Get an entry by key regardless of expiry."""
        return self.session.get(CacheEntry, key)

    def upsert(
        self, key: str, value: Any, expires_at: Optional[datetime]
    ) -> CacheEntry:
        """Insert or replace the entry stored under ``key``."""
        entry = self.session.get(CacheEntry, key)
        if entry is None:
            entry = CacheEntry(key=key)
            self.session.add(entry)

        entry.value = value
        entry.expires_at = expires_at
        self.session.commit()

        return entry

    def insert_if_absent(
        self, key: str, value: Any, expires_at: Optional[datetime], now: datetime
    ) -> bool:
        """
        Insert ``key`` only when no live entry holds it.

        Returns:
            True if this call created the entry
        """
        # An expired holder does not block the insert
        self.session.execute(
            delete(CacheEntry).where(
                and_(
                    CacheEntry.key == key,
                    CacheEntry.expires_at.is_not(None),
                    CacheEntry.expires_at <= now,
                )
            )
        )
        self.session.add(CacheEntry(key=key, value=value, expires_at=expires_at))

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False

        return True

    def delete(self, key: str) -> bool:
        """Delete an entry; True when a row was removed."""
        result = self.session.execute(delete(CacheEntry).where(CacheEntry.key == key))
        self.session.commit()
        return result.rowcount > 0

    def list_by_prefix(self, prefix: str) -> List[CacheEntry]:
        """All entries whose key starts with ``prefix``, ordered by key."""
        return (
            self.session.query(CacheEntry)
            .filter(CacheEntry.key.startswith(prefix, autoescape=True))
            .order_by(CacheEntry.key)
            .all()
        )

    def purge_expired(self, now: datetime) -> int:
        """Remove every entry whose expiry has passed."""
        result = self.session.execute(
            delete(CacheEntry).where(
                and_(CacheEntry.expires_at.is_not(None), CacheEntry.expires_at <= now)
            )
        )
        self.session.commit()
        return result.rowcount
