"""Unit tests for privacy generalization and distance bands."""

import math

import pytest

from location_api.lib.geo.distance import haversine_m
from location_api.lib.privacy.generalizer import (
    DISTANCE_BAND_LABELS,
    PRIVACY_RADIUS_M,
    DistanceBand,
    PrivacyLevel,
    distance_to_band,
    generalize,
    privacy_radius_m,
)

# Sample points: mid-latitudes, southern hemisphere, near the antimeridian and far north
SAMPLE_POINTS = [
    (40.712776, -74.005974),
    (39.961176, -82.998794),
    (-33.868820, 151.209290),
    (0.000123, 0.000456),
    (64.146582, -21.942635),
    (78.223172, 15.626723),
    (-0.5, 179.9999),
    (12.34567, -179.9999),
]

# Allowance for rounding the output to six decimals
_ROUNDING_SLACK_M = 1.0


class TestPrivacyLevels:
    """Tests for level ordering and radii."""

    def test_radii(self) -> None:
        assert privacy_radius_m(PrivacyLevel.EXACT) == 100
        assert privacy_radius_m(PrivacyLevel.NEIGHBORHOOD) == 500
        assert privacy_radius_m(PrivacyLevel.ZIP_CODE) == 1500
        assert privacy_radius_m(PrivacyLevel.DISTRICT) == 5000

    def test_radius_grows_with_level(self) -> None:
        radii = [PRIVACY_RADIUS_M[level] for level in sorted(PrivacyLevel)]
        assert radii == sorted(radii)

    def test_accepts_int_level(self) -> None:
        assert generalize(10.0, 10.0, 3).level is PrivacyLevel.ZIP_CODE  # type: ignore[arg-type]


class TestGeneralize:
    """Tests for grid snapping."""

    @pytest.mark.parametrize("level", list(PrivacyLevel))
    @pytest.mark.parametrize(("lat", "lng"), SAMPLE_POINTS)
    def test_within_half_diagonal(self, lat: float, lng: float, level: PrivacyLevel) -> None:
        result = generalize(lat, lng, level)
        bound = PRIVACY_RADIUS_M[level] / math.sqrt(2) + _ROUNDING_SLACK_M
        assert haversine_m(lat, lng, result.latitude, result.longitude) <= bound

    @pytest.mark.parametrize(("lat", "lng"), SAMPLE_POINTS)
    def test_deterministic(self, lat: float, lng: float) -> None:
        first = generalize(lat, lng, PrivacyLevel.NEIGHBORHOOD)
        for _ in range(5):
            assert generalize(lat, lng, PrivacyLevel.NEIGHBORHOOD) == first

    def test_nearby_points_share_a_cell(self) -> None:
        a = generalize(39.961176, -82.998794, PrivacyLevel.DISTRICT)
        b = generalize(39.961186, -82.998784, PrivacyLevel.DISTRICT)
        assert (a.latitude, a.longitude) == (b.latitude, b.longitude)

    def test_exact_level_still_moves_the_point(self) -> None:
        result = generalize(39.961176, -82.998794, PrivacyLevel.EXACT)
        assert (result.latitude, result.longitude) != (39.961176, -82.998794)

    def test_output_in_range(self) -> None:
        for lat, lng in SAMPLE_POINTS:
            result = generalize(lat, lng, PrivacyLevel.DISTRICT)
            assert -90 <= result.latitude <= 90
            assert -180 <= result.longitude <= 180

    def test_pole_collapses(self) -> None:
        north = generalize(90.0, 123.0, PrivacyLevel.NEIGHBORHOOD)
        south = generalize(-90.0, -45.0, PrivacyLevel.NEIGHBORHOOD)
        assert (north.latitude, north.longitude) == (90.0, 0.0)
        assert (south.latitude, south.longitude) == (-90.0, 0.0)

    def test_label_and_radius(self) -> None:
        result = generalize(1.0, 1.0, PrivacyLevel.ZIP_CODE)
        assert result.band == "Within ~1.5 km"
        assert result.radius_m == 1500

    @pytest.mark.parametrize(("lat", "lng"), [(91.0, 0.0), (0.0, -181.0), (math.nan, 0.0)])
    def test_invalid_coordinate(self, lat: float, lng: float) -> None:
        with pytest.raises(ValueError, match="invalid coordinate"):
            generalize(lat, lng, PrivacyLevel.EXACT)


class TestDistanceToBand:
    """Tests for distance banding."""

    @pytest.mark.parametrize(
        ("meters", "expected"),
        [
            (0, DistanceBand.UNDER_1_KM),
            (999.999, DistanceBand.UNDER_1_KM),
            (1000, DistanceBand.ONE_TO_FIVE_KM),
            (4999.9, DistanceBand.ONE_TO_FIVE_KM),
            (5000, DistanceBand.FIVE_TO_TWENTY_KM),
            (19999.9, DistanceBand.FIVE_TO_TWENTY_KM),
            (20000, DistanceBand.OVER_20_KM),
            (1e7, DistanceBand.OVER_20_KM),
        ],
    )
    def test_boundaries(self, meters: float, expected: DistanceBand) -> None:
        assert distance_to_band(meters) is expected

    def test_monotonic(self) -> None:
        previous = DistanceBand.UNDER_1_KM
        for meters in range(0, 30_000, 250):
            band = distance_to_band(meters)
            assert band >= previous
            previous = band

    def test_labels(self) -> None:
        assert {band.label for band in DistanceBand} == DISTANCE_BAND_LABELS
        assert DISTANCE_BAND_LABELS == {"<1km", "1-5km", "5-20km", ">20km"}
        assert DistanceBand.ONE_TO_FIVE_KM.text == "1 to 5 km away"

    @pytest.mark.parametrize("meters", [-1, math.nan])
    def test_invalid(self, meters: float) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            distance_to_band(meters)
