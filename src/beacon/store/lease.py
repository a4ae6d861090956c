"""Store-backed leases that keep recurring jobs from overlapping."""

from contextlib import contextmanager
from typing import Iterator

from ..config.logging import get_logger
from ..utils.clock import utcnow
from .kv_store import KeyValueStore

logger = get_logger(__name__)


@contextmanager
def lease(store: KeyValueStore, name: str, ttl_seconds: int) -> Iterator[bool]:
    """
    Try to hold the ``lease:{name}`` entry for the duration of the block.

    Yields True when acquired. A holder that dies without releasing is
    superseded once ``ttl_seconds`` elapse.
    """
    key = f"lease:{name}"
    acquired = store.set_if_absent(
        key, {"acquired_at": utcnow().isoformat()}, ttl_seconds
    )

    if not acquired:
        logger.info("Lease held elsewhere, skipping run", lease=name)

    try:
        yield acquired
    finally:
        if acquired:
            store.delete(key)
