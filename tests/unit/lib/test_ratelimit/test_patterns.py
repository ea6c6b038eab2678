"""Unit tests for triangulation-probe detection."""

import math

from location_api.lib.geo.distance import KM_PER_DEGREE_LAT
from location_api.lib.ratelimit.patterns import PatternPolicy, PatternVerdict, SearchProbe, TriangulationDetector

BASE_LAT = 40.0
BASE_LNG = -83.0


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def offset(north_km: float, east_km: float, radius_km: float | None = None) -> SearchProbe:
    """Probe displaced from the base point by the given kilometers."""
    lat = BASE_LAT + north_km / KM_PER_DEGREE_LAT
    lng = BASE_LNG + east_km / (KM_PER_DEGREE_LAT * math.cos(math.radians(BASE_LAT)))
    return SearchProbe(latitude=lat, longitude=lng, radius_km=radius_km, kind="reverse" if radius_km is None else "tool")


TRIANGLE = [offset(0, 0), offset(2.2, 0), offset(1.1, 2.5)]


class TestPatternVerdict:
    def test_truthiness(self) -> None:
        assert not PatternVerdict(suspicious=False)
        assert PatternVerdict(suspicious=True, reason="triangle")


class TestTriangulationDetector:
    """Tests for TriangulationDetector."""

    def setup_method(self) -> None:
        self.clock = FakeClock()
        self.detector = TriangulationDetector(clock=self.clock)

    async def _feed(self, probes: list[SearchProbe], identity: str = "user:1") -> list[PatternVerdict]:
        verdicts = []
        for probe in probes:
            verdicts.append(await self.detector.detect_suspicious_pattern(identity, probe))
            self.clock.now += 5
        return verdicts

    async def test_triangle_flagged_on_third_probe(self) -> None:
        verdicts = await self._feed(TRIANGLE)
        assert not verdicts[0]
        assert not verdicts[1]
        assert verdicts[2]
        assert verdicts[2].reason == "triangle"

    async def test_small_radius_proximity_triangle(self) -> None:
        probes = [offset(0, 0, 2), offset(2.2, 0, 2), offset(1.1, 2.5, 2)]
        verdicts = await self._feed(probes)
        assert verdicts[2]

    async def test_large_radius_probes_ignored(self) -> None:
        probes = [offset(0, 0, 25), offset(2.2, 0, 25), offset(1.1, 2.5, 25)]
        verdicts = await self._feed(probes)
        assert not any(verdicts)

    async def test_repeated_center_not_flagged(self) -> None:
        verdicts = await self._feed([offset(0, 0, 2)] * 15)
        assert not any(verdicts)

    async def test_collinear_probes_not_flagged(self) -> None:
        verdicts = await self._feed([offset(0, 0), offset(2, 0), offset(4, 0)])
        assert not any(verdicts)

    async def test_identities_tracked_separately(self) -> None:
        await self._feed(TRIANGLE[:2], identity="user:1")
        verdicts = await self._feed(TRIANGLE[2:], identity="user:2")
        assert not any(verdicts)

    async def test_block_after_detection(self) -> None:
        await self._feed(TRIANGLE)
        far_away = SearchProbe(latitude=10.0, longitude=10.0, radius_km=50.0)
        blocked = await self._feed([far_away] * self.detector.policy.block_requests)
        assert all(blocked)
        assert all(v.reason == "identity blocked after earlier detection" for v in blocked)
        after = await self._feed([far_away])
        assert not after[0]

    async def test_check_blocked_shares_the_block(self) -> None:
        await self._feed(TRIANGLE)
        assert not await self.detector.check_blocked("user:2")
        for _ in range(self.detector.policy.block_requests):
            verdict = await self.detector.check_blocked("user:1")
            assert verdict.reason == "identity blocked after earlier detection"
        assert not await self.detector.check_blocked("user:1")

    async def test_check_blocked_leaves_history_alone(self) -> None:
        await self._feed(TRIANGLE[:2])
        assert not await self.detector.check_blocked("user:1")
        verdicts = await self._feed(TRIANGLE[2:])
        assert verdicts[0].reason == "triangle"

    async def test_history_cleared_after_detection(self) -> None:
        await self._feed(TRIANGLE)
        await self._feed([SearchProbe(latitude=10.0, longitude=10.0, radius_km=50.0)] * 10)
        # The old triangle vertices are gone, so one new probe is harmless
        verdicts = await self._feed([offset(1.1, -2.5)])
        assert not verdicts[0]

    async def test_old_probes_expire(self) -> None:
        await self._feed(TRIANGLE[:2])
        self.clock.now += self.detector.policy.history_seconds + 1
        verdicts = await self._feed(TRIANGLE[2:])
        assert not verdicts[0]

    async def test_grid_sweep(self) -> None:
        # 3 x 2 grid with 0.4 km spacing: every side is too short for a triangle
        grid = [offset(north, east) for north in (0, 0.4) for east in (0, 0.4, 0.8)]
        verdicts = await self._feed(grid)
        assert not any(verdicts[:5])
        assert verdicts[5]
        assert verdicts[5].reason == "grid sweep"

    async def test_slow_grid_not_a_sweep(self) -> None:
        policy = PatternPolicy(grid_burst_seconds=60)
        detector = TriangulationDetector(policy, clock=self.clock)
        grid = [offset(north, east) for north in (0, 0.4) for east in (0, 0.4, 0.8)]
        for probe in grid:
            verdict = await detector.detect_suspicious_pattern("user:1", probe)
            self.clock.now += 30
        assert not verdict

    def test_circle_geometry(self) -> None:
        ring = [offset(2 * math.cos(a), 2 * math.sin(a)) for a in (0, 1, 2, 3, 4, 5)]
        assert self.detector._forms_circle(ring) is True

    def test_tight_cluster_not_a_circle(self) -> None:
        ring = [offset(0.2 * math.cos(a), 0.2 * math.sin(a)) for a in (0, 1, 2, 3, 4, 5)]
        assert self.detector._forms_circle(ring) is False

    def test_irregular_spread_not_a_circle(self) -> None:
        points = [offset(0, 0), offset(0.1, 0.1), offset(5, 5), offset(-4, 1)]
        assert self.detector._forms_circle(points) is False

    async def test_sweep_evicts_idle_histories(self) -> None:
        await self._feed([offset(0, 0)], identity="user:1")
        self.clock.now += 10_000
        await self._feed([offset(0, 0)], identity="user:2")
        assert await self.detector.sweep() == 1

    async def test_blocked_identity_survives_sweep_while_active(self) -> None:
        await self._feed(TRIANGLE)
        assert await self.detector.sweep() == 0
        verdict = await self.detector.detect_suspicious_pattern("user:1", offset(0, 0))
        assert verdict
