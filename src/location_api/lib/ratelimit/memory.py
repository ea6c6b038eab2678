"""In-process sliding-window rate limiter."""

import time
from collections import deque
from collections.abc import Callable

from loguru import logger

from location_api.lib.ratelimit.base import BaseRateLimiter, KeyedLockMap, RateDecision, RateWindow


class InMemoryRateLimiter(BaseRateLimiter):
    """Sliding-window limiter keeping one RateWindow per identity in memory.

    A request is admitted when fewer than ``max_requests`` admitted requests
    fall inside the trailing ``window_seconds``. Rejected requests are not
    recorded, so an identity regains capacity as soon as its oldest admitted
    request ages out.

    Args:
        name: Policy name for logs.
        max_requests: Threshold per window.
        window_seconds: Window length in seconds.
        idle_ttl_seconds: Idle time after which an identity's window is evicted.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        max_requests: int,
        window_seconds: float = 60.0,
        idle_ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            msg = "max_requests must be at least 1"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be positive"
            raise ValueError(msg)
        self._name = name
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._idle_ttl_seconds = idle_ttl_seconds
        self._clock = clock
        self._windows = KeyedLockMap(lambda: RateWindow(timestamps=deque(maxlen=max_requests)))

    @property
    def name(self) -> str:
        return self._name

    @property
    def max_requests(self) -> int:
        return self._max_requests

    async def check_and_consume(self, identity: str) -> RateDecision:
        """Admit and record a request for ``identity`` if it fits in the window."""
        with self._windows.locked(identity) as window:
            now = self._clock()
            cutoff = now - self._window_seconds
            while window.timestamps and window.timestamps[0] <= cutoff:
                window.timestamps.popleft()
            window.last_seen = now

            if len(window.timestamps) >= self._max_requests:
                logger.warning(
                    f"Rate limit '{self._name}' exceeded for {identity}: "
                    f"{len(window.timestamps)}/{self._max_requests} in {self._window_seconds:g}s"
                )
                return RateDecision.EXCEEDED

            window.timestamps.append(now)
            return RateDecision.ALLOWED

    async def sweep(self) -> int:
        """Evict windows idle longer than the configured TTL."""
        removed = self._windows.evict_idle(self._clock(), self._idle_ttl_seconds)
        if removed:
            logger.debug(f"Rate limit '{self._name}' evicted {removed} idle window(s)")
        return removed

    def window_for(self, identity: str) -> RateWindow | None:
        """Return the live window for an identity, if one exists."""
        return self._windows.get(identity)  # type: ignore[return-value]

    def __len__(self) -> int:
        return len(self._windows)
