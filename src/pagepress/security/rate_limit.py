"""Per-client request counters for the auth gate.

:class:`FixedWindowRateLimiter` admits at most ``max_requests`` per client
per fixed window.  A rejected request does not advance the counter, so a
client hammering the endpoint is readmitted as soon as its window resets.

:class:`AttemptCounter` is the informational failed-authentication counter:
it only counts, it never blocks.

Both are thread-safe; all state sits behind a single lock per instance.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

# Expired windows are swept once the table grows past this many clients.
_SWEEP_THRESHOLD = 1024


class FixedWindowRateLimiter:
    """Thread-safe fixed-window request limiter keyed by client.

    Parameters
    ----------
    max_requests:
        Requests admitted per key per window.
    window_seconds:
        Window length in seconds.  A window starts at a key's first request.
    clock:
        Monotonic time source, injectable for tests.
    """

    __slots__ = ("_clock", "_lock", "_windows", "max_requests", "window_seconds")

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")

        self.max_requests: int = max_requests
        self.window_seconds: float = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Count one request for *key*.

        Returns ``True`` if the request is admitted, ``False`` if the key is
        already at its limit for the current window.  Rejections are not
        counted.
        """
        with self._lock:
            now = self._clock()
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            if count >= self.max_requests:
                self._windows[key] = (started, count)
                return False

            self._windows[key] = (started, count + 1)
            if len(self._windows) > _SWEEP_THRESHOLD:
                self._sweep(now)
            return True

    def count(self, key: str) -> int:
        """Return the number of admitted requests in *key*'s current window."""
        with self._lock:
            now = self._clock()
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                return 0
            return count

    def retry_after(self, key: str) -> float:
        """Seconds until *key*'s window resets (``0.0`` if not limited)."""
        with self._lock:
            entry = self._windows.get(key)
            if entry is None:
                return 0.0
            remaining = self.window_seconds - (self._clock() - entry[0])
            return max(0.0, remaining)

    def reconfigure(self, max_requests: int, window_seconds: float) -> None:
        """Apply new limits; existing windows keep their counts."""
        with self._lock:
            self.max_requests = max_requests
            self.window_seconds = window_seconds

    def _sweep(self, now: float) -> None:
        expired = [
            key for key, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]


class AttemptCounter:
    """Thread-safe counter whose per-key totals expire after *ttl_seconds*.

    The expiry clock restarts on every increment, matching a cache entry
    that is rewritten with a fresh TTL.
    """

    __slots__ = ("_clock", "_counts", "_lock", "ttl_seconds")

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._counts: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str) -> int:
        with self._lock:
            now = self._clock()
            expires, count = self._counts.get(key, (now, 0))
            if now >= expires:
                count = 0
            count += 1
            self._counts[key] = (now + self.ttl_seconds, count)
            if len(self._counts) > _SWEEP_THRESHOLD:
                self._sweep(now)
            return count

    def get(self, key: str) -> int:
        with self._lock:
            entry = self._counts.get(key)
            if entry is None or self._clock() >= entry[0]:
                return 0
            return entry[1]

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires, _) in self._counts.items() if now >= expires]
        for key in expired:
            del self._counts[key]
