"""SQLAlchemy ORM models for the Beacon application."""

from sqlalchemy import Column, DateTime, String
from sqlalchemy.types import JSON

from ..utils.clock import utcnow
from .database import Base


class CacheEntry(Base):
    """Keyed JSON payload with an optional expiry, backing the key-value store."""

    __tablename__ = "cache_entries"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)  # NULL means no expiry
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def is_expired(self, now) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def __repr__(self):
        return f"<CacheEntry(key='{self.key}', expires_at={self.expires_at})>"
