"""
In-memory TTL cache.

Holds per-process snapshots (lookup tables) across warm Lambda
invocations so they are loaded once and refreshed on a coarse interval.
"""

import time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Thread-safe key/value cache whose entries expire after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: float = 900, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if present and not expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, stored_at = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        """Store value, resetting its age."""
        with self._lock:
            self._entries[key] = (value, self._clock())

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value or build it with ``loader``.

        The loader runs under the lock so concurrent callers never load the
        same snapshot twice. Loader exceptions propagate and nothing is cached.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry[1] <= self.ttl_seconds:
                return entry[0]
            value = loader()
            self._entries[key] = (value, self._clock())
            return value

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()
