"""Unit tests for the proximity engine."""

import math
from decimal import Decimal

import pytest

from location_api.lib.errors import InvalidCoordinates, InvalidRadius, InvalidResultLimit
from location_api.lib.geo.distance import EARTH_RADIUS_KM, KM_PER_DEGREE_LAT, haversine_m
from location_api.lib.privacy.generalizer import DistanceBand, PrivacyLevel, generalize
from location_api.services.proximity_engine import ProximityEngine, validate_proximity_query
from location_api.services.spatial_store import EntityType

CENTER = (40.0, -83.0)


def km_north(km: float) -> tuple[float, float]:
    return CENTER[0] + km / KM_PER_DEGREE_LAT, CENTER[1]


def km_east(km: float) -> tuple[float, float]:
    return CENTER[0], CENTER[1] + km / (KM_PER_DEGREE_LAT * math.cos(math.radians(CENTER[0])))


@pytest.fixture
def engine(spatial_store) -> ProximityEngine:
    return ProximityEngine(spatial_store)


class TestFindNearby:
    """Tests for ProximityEngine.find_nearby."""

    async def test_both_tools_ordered_by_band(self, engine, spatial_store, make_entity) -> None:
        near = make_entity(*km_north(0.5), name="Near Drill")
        far = make_entity(*km_east(15), name="Far Saw")
        spatial_store.entities = [far, near]

        results = await engine.find_nearby(*CENTER, radius_km=20, entity_type=EntityType.TOOL, max_results=10)

        assert [r.entity.name for r in results] == ["Near Drill", "Far Saw"]
        assert results[0].distance_band is DistanceBand.UNDER_1_KM
        assert results[1].distance_band is DistanceBand.FIVE_TO_TWENTY_KM

    async def test_outside_radius_excluded(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [make_entity(*km_north(0.5)), make_entity(*km_east(15))]

        results = await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL, max_results=10)

        assert len(results) == 1
        assert results[0].distance_band is DistanceBand.UNDER_1_KM

    async def test_listing_at_radius_edge_included(self, engine, spatial_store, make_entity) -> None:
        lat = CENTER[0] + math.degrees(4.997 / EARTH_RADIUS_KM)
        spatial_store.entities = [make_entity(lat, CENTER[1])]
        assert haversine_m(*CENTER, lat, CENTER[1]) == pytest.approx(4997.0)

        results = await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL)

        assert len(results) == 1
        assert results[0].distance_band is DistanceBand.ONE_TO_FIVE_KM

    async def test_box_corner_outside_circle_excluded(self, engine, spatial_store, make_entity) -> None:
        # Inside the bounding box but about 7 km from the center
        lat, _ = km_north(4.9)
        _, lng = km_east(4.9)
        spatial_store.entities = [make_entity(lat, lng)]
        assert await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL) == []

    async def test_filters_entity_type(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [
            make_entity(*km_north(1)),
            make_entity(*km_north(2), entity_type=EntityType.BUNDLE),
        ]
        results = await engine.find_nearby(*CENTER, radius_km=10, entity_type=EntityType.BUNDLE)
        assert [r.entity.entity_type for r in results] == [EntityType.BUNDLE]

    async def test_ties_broken_by_rating_then_reviews(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [
            make_entity(*km_north(0.1), name="Unrated"),
            make_entity(*km_north(0.2), name="Good", average_rating=4.0, review_count=3),
            make_entity(*km_north(0.3), name="Best", average_rating=4.8, review_count=1),
            make_entity(*km_north(0.4), name="Good Popular", average_rating=4.0, review_count=30),
        ]
        results = await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL)
        assert [r.entity.name for r in results] == ["Best", "Good Popular", "Good", "Unrated"]

    async def test_members_ordered_by_band_then_name(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [
            make_entity(*km_east(3), entity_type=EntityType.USER, name="Avery", owner_id="u-1"),
            make_entity(*km_north(0.4), entity_type=EntityType.USER, name="riley", owner_id="u-2"),
            make_entity(*km_north(0.6), entity_type=EntityType.USER, name="Morgan", owner_id="u-3", average_rating=5.0),
        ]
        results = await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.USER)
        assert [r.entity.name for r in results] == ["Morgan", "riley", "Avery"]

    async def test_excluded_owner_skipped(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [
            make_entity(*km_north(0.2), entity_type=EntityType.USER, owner_id="me"),
            make_entity(*km_north(0.3), entity_type=EntityType.USER, owner_id="neighbor"),
        ]
        results = await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.USER, exclude_owner_id="me")
        assert [r.entity.owner_id for r in results] == ["neighbor"]

    async def test_truncated_to_max_results(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [make_entity(*km_north(0.1 * i)) for i in range(10)]
        results = await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL, max_results=3)
        assert len(results) == 3

    async def test_empty(self, engine) -> None:
        assert await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL) == []

    async def test_approximate_location_uses_owner_level(self, engine, spatial_store, make_entity) -> None:
        lat, lng = km_north(2)
        spatial_store.entities = [make_entity(lat, lng, privacy_level=PrivacyLevel.DISTRICT)]

        result = (await engine.find_nearby(*CENTER, radius_km=10, entity_type=EntityType.TOOL))[0]

        assert result.approximate_location == generalize(lat, lng, PrivacyLevel.DISTRICT)
        assert result.approximate_location.radius_m == 5000
        assert haversine_m(lat, lng, result.approximate_location.latitude, result.approximate_location.longitude) > 0

    async def test_repeated_queries_return_same_location(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [make_entity(*km_north(3))]
        first = await engine.find_nearby(*CENTER, radius_km=10, entity_type=EntityType.TOOL)
        second = await engine.find_nearby(40.5, -83.0, radius_km=100, entity_type=EntityType.TOOL)
        assert first[0].approximate_location == second[0].approximate_location

    async def test_antimeridian_search(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [make_entity(0.0, -179.99)]
        results = await engine.find_nearby(0.0, 179.99, radius_km=5, entity_type=EntityType.TOOL)
        assert len(results) == 1
        assert results[0].distance_band is DistanceBand.ONE_TO_FIVE_KM

    async def test_result_carries_no_distance(self, engine, spatial_store, make_entity) -> None:
        spatial_store.entities = [make_entity(*km_north(1), daily_rate=Decimal("10"))]
        result = (await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL))[0]
        assert not hasattr(result, "distance_m")
        assert not hasattr(result, "distance_km")
        assert result.entity_id == str(result.entity.id)


class TestValidation:
    """Validation happens before the store is touched."""

    @pytest.mark.parametrize("radius", [1, 100])
    async def test_radius_bounds_accepted(self, engine, radius: float) -> None:
        assert await engine.find_nearby(*CENTER, radius_km=radius, entity_type=EntityType.TOOL) == []

    @pytest.mark.parametrize("radius", [0, 101, -1])
    async def test_radius_out_of_bounds(self, engine, spatial_store, radius: float) -> None:
        with pytest.raises(InvalidRadius):
            await engine.find_nearby(*CENTER, radius_km=radius, entity_type=EntityType.TOOL)
        assert spatial_store.bounds_queries == []

    async def test_invalid_center(self, engine, spatial_store) -> None:
        with pytest.raises(InvalidCoordinates):
            await engine.find_nearby(1000, 0, radius_km=5, entity_type=EntityType.TOOL)
        assert spatial_store.bounds_queries == []

    @pytest.mark.parametrize("max_results", [0, 101])
    async def test_invalid_limit(self, engine, max_results: int) -> None:
        with pytest.raises(InvalidResultLimit):
            await engine.find_nearby(*CENTER, radius_km=5, entity_type=EntityType.TOOL, max_results=max_results)

    def test_validate_proximity_query_messages(self) -> None:
        with pytest.raises(InvalidRadius) as exc_info:
            validate_proximity_query(40.0, -83.0, 0.5, 10)
        assert exc_info.value.public_errors == ["Radius must be between 1 and 100 kilometers"]
