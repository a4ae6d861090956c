"""Fail-fast request budget for the upstream provider."""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional


class RateLimiter:
    """Thread-safe sliding-window limiter with a per-second burst cap.

    Unlike a blocking limiter, ``try_acquire`` never waits: callers that are
    refused raise a retryable error and fall back to cached data.

    Args:
        max_requests: Requests allowed per ``window_seconds``.
        window_seconds: Length of the quota window (one day by default).
        burst_limit: Requests allowed within any one-second span.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float = 86400.0,
        burst_limit: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max(max_requests, 1)
        self.window_seconds = window_seconds
        self.burst_limit = max(burst_limit, 1)
        self._clock = clock
        self._timestamps: Deque[float] = deque()
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    def _recent(self, now: float) -> int:
        count = 0
        for stamp in reversed(self._timestamps):
            if now - stamp >= 1.0:
                break
            count += 1
        return count

    def try_acquire(self) -> bool:
        """Consume one request if both the window and the burst cap allow it."""
        with self._lock:
            now = self._clock()
            self._evict(now)

            if len(self._timestamps) >= self.max_requests:
                return False
            if self._recent(now) >= self.burst_limit:
                return False

            self._timestamps.append(now)
            return True

    def remaining(self) -> int:
        """Requests still available in the current window."""
        with self._lock:
            self._evict(self._clock())
            return self.max_requests - len(self._timestamps)

    def retry_after(self) -> Optional[float]:
        """Seconds until the oldest request leaves the window, if saturated."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._timestamps) < self.max_requests:
                return None
            return self.window_seconds - (now - self._timestamps[0])

    def status(self) -> Dict[str, float]:
        with self._lock:
            self._evict(self._clock())
            used = len(self._timestamps)

        return {
            "used": used,
            "limit": self.max_requests,
            "remaining": self.max_requests - used,
            "utilization": used / self.max_requests,
        }
