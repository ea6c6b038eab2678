"""TTL-based in-memory cache.

Thread-safe keyed cache with per-entry expiration and a bounded size. Used to
serve repeated geocoder lookups, popular locations and suggestions without
hitting the provider or the store on every request.
"""

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any


class TTLCache:
    """Keyed TTL cache with least-recently-stored eviction.

    Args:
        ttl_seconds: Entry time-to-live in seconds.
        max_entries: Upper bound on stored entries; the oldest entry is
            evicted first when full.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be positive"
            raise ValueError(msg)
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value if present and within TTL, else ``default``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            stored_at, value = entry
            if self._clock() - stored_at >= self._ttl_seconds:
                del self._entries[key]
                return default
            return value

    def set(self, key: Hashable, value: Any) -> None:
        """Store a value, resetting its TTL."""
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock(), value)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def purge_expired(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, (stored_at, _) in self._entries.items() if now - stored_at >= self._ttl_seconds]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        """Invalidate all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
