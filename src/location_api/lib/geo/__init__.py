"""Geo library — coordinate validation, parsing and distance math.

Public API:
    - validate_coordinates / validate_radius / validate_result_limit: Input bounds checks
    - parse_coordinates: Parse decimal or DMS coordinate strings
    - haversine_km / haversine_m: Great-circle distance
    - bounding_box / BoundingBox: Radius to lat/lng prefilter box

Clustering lives in ``location_api.lib.geo.clusters`` and is imported from there.
"""

from location_api.lib.geo.coordinates import parse_coordinates
from location_api.lib.geo.distance import (
    EARTH_RADIUS_KM,
    KM_PER_DEGREE_LAT,
    METERS_PER_DEGREE_LAT,
    BoundingBox,
    bounding_box,
    haversine_km,
    haversine_m,
)
from location_api.lib.geo.validators import (
    MAX_RADIUS_KM,
    MIN_RADIUS_KM,
    NEARBY_MAX_RESULTS,
    POPULAR_MAX_RESULTS,
    SEARCH_MAX_RESULTS,
    SUGGESTIONS_MAX_RESULTS,
    validate_coordinates,
    validate_radius,
    validate_result_limit,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "KM_PER_DEGREE_LAT",
    "MAX_RADIUS_KM",
    "METERS_PER_DEGREE_LAT",
    "MIN_RADIUS_KM",
    "NEARBY_MAX_RESULTS",
    "POPULAR_MAX_RESULTS",
    "SEARCH_MAX_RESULTS",
    "SUGGESTIONS_MAX_RESULTS",
    "BoundingBox",
    "bounding_box",
    "haversine_km",
    "haversine_m",
    "parse_coordinates",
    "validate_coordinates",
    "validate_radius",
    "validate_result_limit",
]
