"""SQLAlchemy persistence for the key-value cache store."""

from .database import Base, create_tables, get_engine, get_session_factory
from .models import CacheEntry

__all__ = ["Base", "CacheEntry", "create_tables", "get_engine", "get_session_factory"]
