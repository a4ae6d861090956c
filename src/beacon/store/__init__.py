"""Key-value cache store used for cached analytics, alerts, queues and leases."""

from .kv_store import KeyValueStore, SqlKeyValueStore
from .lease import lease

__all__ = ["KeyValueStore", "SqlKeyValueStore", "lease"]
