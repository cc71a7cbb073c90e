"""Token-bucket rate limiter for marketplace requests."""

from __future__ import annotations

import threading
import time


class RateLimiter:
    """Thread-safe interval limiter.

    Requests run on worker threads (``asyncio.to_thread``), so the lock is a
    threading lock rather than an asyncio one.

    Args:
        requests_per_minute: Maximum requests allowed per minute.
    """

    def __init__(self, requests_per_minute: int = 120) -> None:
        self._interval = 60.0 / max(requests_per_minute, 1)
        self._next_slot: float = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Block until the next request is allowed."""
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self._interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)
