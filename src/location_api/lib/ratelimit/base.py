"""Rate limiter interface and the per-identity locked state map.

``KeyedLockMap`` is the concurrency primitive shared by the limiter and the
pattern detector. Lock ordering is always map lock, then entry lock:

* Requests take the map lock only to get-or-create an entry, release it,
  then block on the entry's own lock.
* The idle sweep holds the map lock and only *tries* each entry lock, so an
  entry in use by a request is never evicted.
* A request that wins the entry lock after the entry was evicted sees
  ``evicted`` and retries against a fresh entry.
"""

import threading
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class RateDecision(StrEnum):
    """Outcome of a rate-limit check."""

    ALLOWED = "allowed"
    EXCEEDED = "rate_limit_exceeded"


@dataclass
class LockedEntry:
    """Per-identity state guarded by its own lock."""

    last_seen: float = 0.0
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


@dataclass
class RateWindow(LockedEntry):
    """Sliding window for one identity.

    ``timestamps`` is a ring buffer bounded by the window's threshold; only
    admitted requests are recorded.
    """

    timestamps: deque[float] = field(default_factory=deque)

    @property
    def count(self) -> int:
        return len(self.timestamps)

    @property
    def window_start(self) -> float | None:
        return self.timestamps[0] if self.timestamps else None


class KeyedLockMap:
    """Map of identity -> LockedEntry with atomic per-key access and idle eviction."""

    def __init__(self, factory: Callable[[], LockedEntry]) -> None:
        self._factory = factory
        self._entries: dict[str, LockedEntry] = {}
        self._lock = threading.Lock()

    @contextmanager
    def locked(self, key: str) -> Iterator[Any]:
        """Yield the entry for ``key`` with its lock held, creating it if needed."""
        while True:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    entry = self._factory()
                    self._entries[key] = entry
            entry.lock.acquire()
            if entry.evicted:
                entry.lock.release()
                continue
            try:
                yield entry
            finally:
                entry.lock.release()
            return

    def evict_idle(self, now: float, idle_ttl: float) -> int:
        """Remove entries idle for at least ``idle_ttl`` seconds.

        Entries whose lock is currently held are skipped.

        Returns:
            Number of entries evicted.
        """
        removed = 0
        with self._lock:
            for key, entry in list(self._entries.items()):
                if not entry.lock.acquire(blocking=False):
                    continue
                try:
                    if now - entry.last_seen >= idle_ttl:
                        entry.evicted = True
                        del self._entries[key]
                        removed += 1
                finally:
                    entry.lock.release()
        return removed

    def get(self, key: str) -> LockedEntry | None:
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class BaseRateLimiter(ABC):
    """Per-identity rate limiter.

    Implementations must update an identity's window atomically. The
    in-memory limiter is per-process; a shared-store implementation can be
    swapped in without changing callers.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Policy name used in logs (e.g. ``search``)."""

    @abstractmethod
    async def check_and_consume(self, identity: str) -> RateDecision:
        """Record a request for ``identity`` if it fits in the current window.

        Args:
            identity: User id or client IP key.

        Returns:
            RateDecision.ALLOWED if the request was admitted, otherwise
            RateDecision.EXCEEDED.
        """

    async def sweep(self) -> int:
        """Evict idle state. Returns the number of identities evicted."""
        return 0
