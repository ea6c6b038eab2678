"""Coordinate, radius and result-limit validation.

Pure predicates: they never raise and never touch I/O. Callers turn a
``False`` into the matching typed validation error.
"""

import math

MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0

MIN_RADIUS_KM = 1.0
MAX_RADIUS_KM = 100.0

# Per-endpoint maxResults ceilings
SEARCH_MAX_RESULTS = 20
SUGGESTIONS_MAX_RESULTS = 20
POPULAR_MAX_RESULTS = 50
NEARBY_MAX_RESULTS = 100


def validate_coordinates(lat: float, lng: float) -> bool:
    """Check that a latitude/longitude pair is finite and in range.

    Args:
        lat: WGS84 latitude in decimal degrees.
        lng: WGS84 longitude in decimal degrees.

    Returns:
        True if ``-90 <= lat <= 90`` and ``-180 <= lng <= 180`` and both are finite.
    """
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        return False
    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        return False
    return MIN_LATITUDE <= lat_f <= MAX_LATITUDE and MIN_LONGITUDE <= lng_f <= MAX_LONGITUDE


def validate_radius(radius_km: float) -> bool:
    """Check that a proximity radius is within the supported bounds (1-100 km)."""
    try:
        value = float(radius_km)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and MIN_RADIUS_KM <= value <= MAX_RADIUS_KM


def validate_result_limit(n: int, max_results: int) -> bool:
    """Check that a requested result count is between 1 and ``max_results``."""
    if isinstance(n, bool) or not isinstance(n, int):
        return False
    return 1 <= n <= max_results
