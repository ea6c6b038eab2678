"""Unit tests for location response schemas and the response envelope."""

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError

from location_api.lib.geocoder.base import LocationOption, LocationSource
from location_api.lib.privacy.generalizer import PrivacyLevel, distance_to_band, generalize
from location_api.schemas.common import ApiResponse
from location_api.schemas.location import (
    LocationOptionResponse,
    NearbyBundleResponse,
    NearbyToolResponse,
    NearbyUserResponse,
)
from location_api.services.proximity_engine import ProximityResult
from location_api.services.spatial_store import EntityType, SpatialEntity

_FORBIDDEN_FIELDS = {"distance", "distance_m", "distance_km", "distance_meters", "exact_latitude", "exact_longitude"}


def _result(entity_type: EntityType = EntityType.TOOL, **overrides: object) -> ProximityResult:
    values: dict[str, object] = {
        "id": uuid.UUID("00000000-0000-0000-0000-000000000001"),
        "entity_type": entity_type,
        "name": "Circular Saw",
        "owner_id": "owner-1",
        "owner_display_name": "Sam",
        "latitude": 39.9612,
        "longitude": -82.9988,
        "privacy_level": PrivacyLevel.NEIGHBORHOOD,
    }
    values.update(overrides)
    entity = SpatialEntity(**values)  # type: ignore[arg-type]
    return ProximityResult(
        entity=entity,
        distance_band=distance_to_band(2500),
        approximate_location=generalize(entity.latitude, entity.longitude, entity.privacy_level),
    )


class TestNoRawLocationFields:
    """Proximity schemas have no field for a raw distance or stored coordinate."""

    @pytest.mark.parametrize("model", [NearbyToolResponse, NearbyBundleResponse, NearbyUserResponse])
    def test_field_names(self, model: type) -> None:
        """No top-level field carries a raw distance or exact position."""
        assert not _FORBIDDEN_FIELDS & set(model.model_fields)
        assert "latitude" not in model.model_fields
        assert "longitude" not in model.model_fields

    def test_tool_uses_generalized_location(self) -> None:
        result = _result()
        response = NearbyToolResponse.from_result(result)

        assert response.approximate_location.latitude == result.approximate_location.latitude
        assert response.approximate_location.latitude != 39.9612
        assert response.approximate_location.radius_m == 500
        assert response.approximate_location.privacy_level is PrivacyLevel.NEIGHBORHOOD
        assert response.distance_band == "1-5km"
        assert response.distance_text == "1 to 5 km away"
        assert response.id == "00000000-0000-0000-0000-000000000001"

    def test_user_identified_by_account_id(self) -> None:
        response = NearbyUserResponse.from_result(
            _result(EntityType.USER, name="Casey", owner_id="user-2", location_display="Short North", bundle_count=2)
        )

        assert response.id == "user-2"
        assert response.location_display == "Short North"
        assert response.bundle_count == 2
        assert response.approximate_location.latitude != 39.9612


class TestMoney:
    """Tests for money rounding on tools and bundles."""

    def test_daily_rate_rounded(self) -> None:
        response = NearbyToolResponse.from_result(_result(daily_rate=Decimal("12.345")))
        assert response.daily_rate == 12.35

    def test_missing_daily_rate(self) -> None:
        assert NearbyToolResponse.from_result(_result()).daily_rate is None

    def test_bundle_discount(self) -> None:
        """Discounted cost applies the percentage to the member total."""
        response = NearbyBundleResponse.from_result(
            _result(
                EntityType.BUNDLE,
                tool_count=2,
                original_cost=Decimal("33.33"),
                discount_percentage=Decimal("10"),
            )
        )
        assert response.original_cost == 33.33
        assert response.discounted_cost == 30.0
        assert response.discount_percentage == 10.0

    def test_bundle_without_discount(self) -> None:
        response = NearbyBundleResponse.from_result(_result(EntityType.BUNDLE, original_cost=Decimal("20")))
        assert response.discounted_cost == 20.0
        assert response.discount_percentage is None

    def test_bundle_without_cost(self) -> None:
        response = NearbyBundleResponse.from_result(_result(EntityType.BUNDLE))
        assert response.original_cost is None
        assert response.discounted_cost is None


class TestLocationOptionResponse:
    """Tests for LocationOptionResponse."""

    def test_from_option(self) -> None:
        option = LocationOption(
            display_name="Columbus, OH",
            latitude=39.96,
            longitude=-83.0,
            city="Columbus",
            precision_radius_m=100,
            confidence=0.8,
        )
        response = LocationOptionResponse.from_option(option)
        assert response.source is LocationSource.GEOCODER
        assert response.model_dump(mode="json")["source"] == "geocoder"
        assert response.precision_radius_m == 100

    def test_latitude_bounds(self) -> None:
        with pytest.raises(ValidationError):
            LocationOptionResponse(display_name="x", latitude=91, longitude=0, source=LocationSource.GEOCODER)


class TestApiResponse:
    """Tests for the response envelope."""

    def test_ok(self) -> None:
        body = ApiResponse[list[int]].ok([1, 2], "Found 2").model_dump()
        assert body == {"success": True, "message": "Found 2", "data": [1, 2], "errors": None}

    def test_ok_with_no_data(self) -> None:
        """A successful lookup with no match still succeeds with null data."""
        body = ApiResponse[LocationOptionResponse].ok(None, "No location found").model_dump()
        assert body["success"] is True
        assert body["data"] is None

    def test_fail(self) -> None:
        body = ApiResponse[None].fail("Too many requests", ["Please wait"]).model_dump()
        assert body == {"success": False, "message": "Too many requests", "data": None, "errors": ["Please wait"]}
