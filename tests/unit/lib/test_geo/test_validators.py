"""Unit tests for coordinate, radius and result-limit validation."""

import math

import pytest

from location_api.lib.geo.validators import (
    NEARBY_MAX_RESULTS,
    SEARCH_MAX_RESULTS,
    validate_coordinates,
    validate_radius,
    validate_result_limit,
)


class TestValidateCoordinates:
    """Tests for validate_coordinates."""

    @pytest.mark.parametrize(
        ("lat", "lng"),
        [(0, 0), (90, 180), (-90, -180), (40.7128, -74.0060), (-33.8688, 151.2093)],
    )
    def test_valid(self, lat: float, lng: float) -> None:
        assert validate_coordinates(lat, lng) is True

    @pytest.mark.parametrize(
        ("lat", "lng"),
        [(90.0001, 0), (-90.0001, 0), (0, 180.0001), (0, -180.0001), (1000, 0)],
    )
    def test_out_of_range(self, lat: float, lng: float) -> None:
        assert validate_coordinates(lat, lng) is False

    def test_non_finite(self) -> None:
        assert validate_coordinates(math.nan, 0) is False
        assert validate_coordinates(0, math.inf) is False

    def test_non_numeric(self) -> None:
        assert validate_coordinates("north", 0) is False  # type: ignore[arg-type]
        assert validate_coordinates(None, 0) is False  # type: ignore[arg-type]


class TestValidateRadius:
    """Tests for validate_radius (1..100 km inclusive)."""

    @pytest.mark.parametrize("radius", [1, 1.0, 5, 50.5, 100])
    def test_in_bounds(self, radius: float) -> None:
        assert validate_radius(radius) is True

    @pytest.mark.parametrize("radius", [0, 0.999, 100.001, 101, -5, math.nan, math.inf])
    def test_out_of_bounds(self, radius: float) -> None:
        assert validate_radius(radius) is False


class TestValidateResultLimit:
    """Tests for validate_result_limit."""

    def test_bounds_inclusive(self) -> None:
        assert validate_result_limit(1, SEARCH_MAX_RESULTS) is True
        assert validate_result_limit(SEARCH_MAX_RESULTS, SEARCH_MAX_RESULTS) is True
        assert validate_result_limit(NEARBY_MAX_RESULTS, NEARBY_MAX_RESULTS) is True

    def test_outside_bounds(self) -> None:
        assert validate_result_limit(0, SEARCH_MAX_RESULTS) is False
        assert validate_result_limit(SEARCH_MAX_RESULTS + 1, SEARCH_MAX_RESULTS) is False

    def test_rejects_non_int(self) -> None:
        assert validate_result_limit(5.0, 20) is False  # type: ignore[arg-type]
        assert validate_result_limit(True, 20) is False
