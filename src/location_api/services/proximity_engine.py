"""Proximity engine — nearby listings and members with banded distances and generalized locations."""

from dataclasses import dataclass

from loguru import logger

from location_api.lib.errors import InvalidCoordinates, InvalidRadius, InvalidResultLimit
from location_api.lib.geo.distance import bounding_box, haversine_m
from location_api.lib.geo.validators import (
    MAX_RADIUS_KM,
    MIN_RADIUS_KM,
    NEARBY_MAX_RESULTS,
    validate_coordinates,
    validate_radius,
    validate_result_limit,
)
from location_api.lib.privacy.generalizer import DistanceBand, GeneralizedLocation, distance_to_band, generalize
from location_api.services.spatial_store import EntityType, SpatialEntity, SpatialStore


@dataclass(frozen=True)
class ProximityResult:
    """An entity found within the search radius.

    Carries only the distance band and the owner-level generalized location;
    the exact distance and stored coordinate are not kept.
    """

    entity: SpatialEntity
    distance_band: DistanceBand
    approximate_location: GeneralizedLocation

    @property
    def entity_id(self) -> str:
        return str(self.entity.id)


def validate_proximity_query(lat: float, lng: float, radius_km: float, max_results: int) -> None:
    """Reject an out-of-range proximity query before any I/O.

    Raises:
        InvalidCoordinates: If the center is not a valid coordinate.
        InvalidRadius: If the radius is outside 1..100 km.
        InvalidResultLimit: If max_results is outside 1..100.
    """
    if not validate_coordinates(lat, lng):
        raise InvalidCoordinates()
    if not validate_radius(radius_km):
        raise InvalidRadius(MIN_RADIUS_KM, MAX_RADIUS_KM)
    if not validate_result_limit(max_results, NEARBY_MAX_RESULTS):
        raise InvalidResultLimit(NEARBY_MAX_RESULTS)


class ProximityEngine:
    """Finds nearby tools, bundles and members in a SpatialStore.

    Args:
        store: Spatial data source.
    """

    def __init__(self, store: SpatialStore) -> None:
        self._store = store

    async def find_nearby(
        self,
        center_lat: float,
        center_lng: float,
        radius_km: float,
        entity_type: EntityType,
        max_results: int = 20,
        exclude_owner_id: str | None = None,
    ) -> list[ProximityResult]:
        """Return entities within ``radius_km`` of the center, ordered by band.

        Args:
            center_lat: Search center latitude.
            center_lng: Search center longitude.
            radius_km: Search radius in kilometers (1..100).
            entity_type: Tools, bundles or users.
            max_results: Maximum number of results (1..100).
            exclude_owner_id: Skip entities owned by this identity.

        Returns:
            Results ordered by distance band, then rating, review count and id;
            members are ordered by band, then name.
            Empty when nothing is in range.

        Raises:
            InvalidCoordinates, InvalidRadius, InvalidResultLimit: On bad input.
            SpatialStoreUnavailable: If the store cannot be queried.
        """
        validate_proximity_query(center_lat, center_lng, radius_km, max_results)
        center_lat, center_lng, radius_km = float(center_lat), float(center_lng), float(radius_km)

        box = bounding_box(center_lat, center_lng, radius_km)
        candidates = await self._store.entities_in_bounds(EntityType(entity_type), box)

        radius_m = radius_km * 1000.0
        ranked: list[tuple[tuple, ProximityResult]] = []
        for entity in candidates:
            if exclude_owner_id is not None and entity.owner_id == exclude_owner_id:
                continue
            distance_m = haversine_m(center_lat, center_lng, entity.latitude, entity.longitude)
            if distance_m > radius_m:
                continue
            band = distance_to_band(distance_m)
            result = ProximityResult(
                entity=entity,
                distance_band=band,
                approximate_location=generalize(entity.latitude, entity.longitude, entity.privacy_level),
            )
            ranked.append((self._sort_key(band, entity), result))

        ranked.sort(key=lambda item: item[0])
        results = [result for _, result in ranked[:max_results]]
        logger.debug(
            f"Proximity {entity_type} search: {len(candidates)} candidate(s) in box, "
            f"{len(ranked)} within {radius_km:g} km, returning {len(results)}"
        )
        return results

    @staticmethod
    def _sort_key(band: DistanceBand, entity: SpatialEntity) -> tuple:
        if entity.entity_type is EntityType.USER:
            return (int(band), entity.name.casefold(), str(entity.id))
        return (
            int(band),
            -(entity.average_rating or 0.0),
            -entity.review_count,
            str(entity.id),
        )
