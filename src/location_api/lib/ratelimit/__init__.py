"""Rate limiting library — per-identity sliding windows and probe detection.

Public API:
    - BaseRateLimiter: Abstract limiter interface
    - InMemoryRateLimiter: Process-local sliding-window limiter
    - RateDecision: Limiter outcome enum
    - KeyedLockMap: Per-key locked state map with idle eviction
    - BasePatternDetector: Abstract suspicious-pattern interface
    - TriangulationDetector: Geometric probe detector
    - SearchProbe / PatternPolicy / PatternVerdict: Detector inputs and outputs
"""

from location_api.lib.ratelimit.base import (
    BaseRateLimiter,
    KeyedLockMap,
    LockedEntry,
    RateDecision,
    RateWindow,
)
from location_api.lib.ratelimit.memory import InMemoryRateLimiter
from location_api.lib.ratelimit.patterns import (
    BasePatternDetector,
    PatternPolicy,
    PatternVerdict,
    SearchProbe,
    TriangulationDetector,
)

__all__ = [
    "BasePatternDetector",
    "BaseRateLimiter",
    "InMemoryRateLimiter",
    "KeyedLockMap",
    "LockedEntry",
    "PatternPolicy",
    "PatternVerdict",
    "RateDecision",
    "RateWindow",
    "SearchProbe",
    "TriangulationDetector",
]
