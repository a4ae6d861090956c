"""Repository classes for database operations."""

from .base import BaseRepository
from .cache_entry import CacheEntryRepository

__all__ = ["BaseRepository", "CacheEntryRepository"]
