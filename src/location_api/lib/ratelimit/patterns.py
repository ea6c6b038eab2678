"""Triangulation-probe detection.

Tracks the recent search centers of each identity and flags geometry that is
typical of someone trying to pin down a single listing: a tight grid sweep,
a ring of probes around a point, or triangles of small-radius searches.

Detection policy and consequence are separate. ``detect_suspicious_pattern``
only answers "is this identity probing?"; once it says yes, the flagged
request and the identity's next ``block_requests`` requests are reported as
suspicious regardless of what they look like.
"""

import itertools
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from location_api.lib.geo.distance import haversine_km
from location_api.lib.ratelimit.base import KeyedLockMap, LockedEntry

# Probes closer than this are treated as the same center
_SAME_CENTER_KM = 0.05
# Triangles flatter than this fraction of the longest side are degenerate
_DEGENERATE_TOLERANCE = 0.01
# Only the most recent probes take part in the geometric tests
_MAX_EVALUATED_PROBES = 12


@dataclass(frozen=True)
class SearchProbe:
    """The location-revealing shape of one request."""

    latitude: float
    longitude: float
    radius_km: float | None = None
    kind: str = "proximity"


@dataclass(frozen=True)
class PatternPolicy:
    """Tunable thresholds for the detector."""

    history_seconds: float = 3600.0
    block_requests: int = 10
    min_distance_km: float = 1.0
    min_points: int = 3
    grid_min_points: int = 6
    grid_span_km: float = 3.0
    grid_burst_seconds: float = 600.0
    small_radius_km: float = 5.0
    idle_ttl_seconds: float = 3600.0


@dataclass(frozen=True)
class PatternVerdict:
    """Detector outcome. Truthy when the request must be rejected.

    ``reason`` is internal and must never be sent to the client.
    """

    suspicious: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.suspicious


CLEAR = PatternVerdict(suspicious=False)
BLOCKED = PatternVerdict(suspicious=True, reason="identity blocked after earlier detection")


@dataclass
class ProbeHistory(LockedEntry):
    """Recent small-radius probes and block state for one identity."""

    probes: deque[tuple[float, SearchProbe]] = field(default_factory=deque)
    blocked_remaining: int = 0


class BasePatternDetector(ABC):
    """Interface for suspicious-pattern detection."""

    @abstractmethod
    async def detect_suspicious_pattern(self, identity: str, probe: SearchProbe) -> PatternVerdict:
        """Record ``probe`` for ``identity`` and decide whether to reject it.

        Args:
            identity: User id or client IP key.
            probe: Center and radius of the current request.

        Returns:
            A truthy PatternVerdict when the request must be rejected.
        """

    async def check_blocked(self, identity: str) -> PatternVerdict:
        """Apply an earlier detection to a request that carries no location.

        Consumes one blocked request when the identity is blocked, without
        recording anything in its probe history.
        """
        return CLEAR

    async def sweep(self) -> int:
        """Evict idle histories. Returns the number evicted."""
        return 0


class TriangulationDetector(BasePatternDetector):
    """In-memory geometric detector.

    Args:
        policy: Detection thresholds.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        policy: PatternPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policy = policy or PatternPolicy()
        self._clock = clock
        self._histories = KeyedLockMap(ProbeHistory)

    @property
    def policy(self) -> PatternPolicy:
        return self._policy

    async def detect_suspicious_pattern(self, identity: str, probe: SearchProbe) -> PatternVerdict:
        policy = self._policy
        with self._histories.locked(identity) as history:
            now = self._clock()
            history.last_seen = now

            if history.blocked_remaining > 0:
                history.blocked_remaining -= 1
                return BLOCKED

            if not self._is_small_radius(probe):
                return CLEAR

            cutoff = now - policy.history_seconds
            while history.probes and history.probes[0][0] <= cutoff:
                history.probes.popleft()
            history.probes.append((now, probe))

            reason = self._evaluate(list(history.probes), now)
            if reason is None:
                return CLEAR

            history.blocked_remaining = policy.block_requests
            history.probes.clear()

        logger.bind(json_output=True, identity=identity, reason=reason, kind=probe.kind).warning(
            f"Suspicious location pattern for {identity}: {reason} ({probe.kind})"
        )
        return PatternVerdict(suspicious=True, reason=reason)

    async def check_blocked(self, identity: str) -> PatternVerdict:
        with self._histories.locked(identity) as history:
            history.last_seen = self._clock()
            if history.blocked_remaining > 0:
                history.blocked_remaining -= 1
                return BLOCKED
        return CLEAR

    async def sweep(self) -> int:
        removed = self._histories.evict_idle(self._clock(), self._policy.idle_ttl_seconds)
        if removed:
            logger.debug(f"Pattern detector evicted {removed} idle history(ies)")
        return removed

    def _is_small_radius(self, probe: SearchProbe) -> bool:
        return probe.radius_km is None or probe.radius_km <= self._policy.small_radius_km

    def _evaluate(self, timed_probes: list[tuple[float, SearchProbe]], now: float) -> str | None:
        policy = self._policy

        burst = [p for ts, p in timed_probes if now - ts <= policy.grid_burst_seconds]
        if self._is_grid_sweep(burst):
            return "grid sweep"

        recent = [p for _, p in timed_probes][-_MAX_EVALUATED_PROBES:]
        if len(recent) < policy.min_points:
            return None
        if self._forms_triangle(recent):
            return "triangle"
        if self._forms_circle(recent):
            return "circle"
        return None

    def _is_grid_sweep(self, probes: list[SearchProbe]) -> bool:
        centers = _distinct_centers(probes)
        if len(centers) < self._policy.grid_min_points:
            return False
        span = max(
            haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
            for a, b in itertools.combinations(centers, 2)
        )
        return span <= self._policy.grid_span_km

    def _forms_triangle(self, probes: list[SearchProbe]) -> bool:
        # Only triangles that include the newest probe are considered
        newest = probes[-1]
        lower = self._policy.min_distance_km
        upper = lower * 20
        earlier = _distinct_centers(probes[:-1])
        for a, b in itertools.combinations(earlier, 2):
            sides = sorted(
                (
                    haversine_km(newest.latitude, newest.longitude, a.latitude, a.longitude),
                    haversine_km(newest.latitude, newest.longitude, b.latitude, b.longitude),
                    haversine_km(a.latitude, a.longitude, b.latitude, b.longitude),
                )
            )
            if not all(lower <= side <= upper for side in sides):
                continue
            if sides[0] + sides[1] > sides[2] * (1 + _DEGENERATE_TOLERANCE):
                return True
        return False

    def _forms_circle(self, probes: list[SearchProbe]) -> bool:
        centers = _distinct_centers(probes)
        if len(centers) < max(4, self._policy.min_points):
            return False
        center_lat = sum(p.latitude for p in centers) / len(centers)
        center_lng = sum(p.longitude for p in centers) / len(centers)
        distances = [haversine_km(center_lat, center_lng, p.latitude, p.longitude) for p in centers]
        mean = sum(distances) / len(distances)
        if mean < self._policy.min_distance_km:
            return False
        return all(abs(d - mean) <= mean * 0.5 for d in distances)


def _distinct_centers(probes: list[SearchProbe]) -> list[SearchProbe]:
    distinct: list[SearchProbe] = []
    for probe in probes:
        if all(
            haversine_km(probe.latitude, probe.longitude, seen.latitude, seen.longitude) > _SAME_CENTER_KM
            for seen in distinct
        ):
            distinct.append(probe)
    return distinct
