"""Privacy generalization: deterministic grid snapping and distance bands.

A coordinate is generalized by snapping it to the center of a grid cell whose
side equals the privacy level's radius. The output is a pure function of the
input, so repeated queries about the same entity always return the same point.

Cell geometry:
    * Latitude rows are ``radius / 111320`` degrees tall, counted from -90.
    * Longitude columns are widened by ``1 / cos(lat)`` using the row's
      equatorward edge, so a column is never wider than ``radius`` meters
      anywhere inside the row.
    * Rows touching a pole collapse onto the pole itself.

Every point is therefore within ``radius / sqrt(2)`` of its cell center.
"""

import math
from dataclasses import dataclass
from enum import IntEnum

from location_api.lib.geo.distance import METERS_PER_DEGREE_LAT


class PrivacyLevel(IntEnum):
    """How coarsely a location is revealed, ordered from most to least precise."""

    EXACT = 1
    NEIGHBORHOOD = 2
    ZIP_CODE = 3
    DISTRICT = 4


PRIVACY_RADIUS_M: dict[PrivacyLevel, int] = {
    PrivacyLevel.EXACT: 100,
    PrivacyLevel.NEIGHBORHOOD: 500,
    PrivacyLevel.ZIP_CODE: 1_500,
    PrivacyLevel.DISTRICT: 5_000,
}

PRIVACY_LABELS: dict[PrivacyLevel, str] = {
    PrivacyLevel.EXACT: "Within ~100 m",
    PrivacyLevel.NEIGHBORHOOD: "Within ~500 m",
    PrivacyLevel.ZIP_CODE: "Within ~1.5 km",
    PrivacyLevel.DISTRICT: "Within ~5 km",
}


class DistanceBand(IntEnum):
    """Ordered distance buckets exposed instead of exact distances."""

    UNDER_1_KM = 1
    ONE_TO_FIVE_KM = 2
    FIVE_TO_TWENTY_KM = 3
    OVER_20_KM = 4

    @property
    def label(self) -> str:
        return _BAND_LABELS[self]

    @property
    def text(self) -> str:
        return _BAND_TEXT[self]


_BAND_LABELS: dict[DistanceBand, str] = {
    DistanceBand.UNDER_1_KM: "<1km",
    DistanceBand.ONE_TO_FIVE_KM: "1-5km",
    DistanceBand.FIVE_TO_TWENTY_KM: "5-20km",
    DistanceBand.OVER_20_KM: ">20km",
}

_BAND_TEXT: dict[DistanceBand, str] = {
    DistanceBand.UNDER_1_KM: "Less than 1 km away",
    DistanceBand.ONE_TO_FIVE_KM: "1 to 5 km away",
    DistanceBand.FIVE_TO_TWENTY_KM: "5 to 20 km away",
    DistanceBand.OVER_20_KM: "More than 20 km away",
}

# Exclusive upper bounds in meters; anything beyond the last falls in OVER_20_KM
_BAND_UPPER_BOUNDS_M: tuple[tuple[float, DistanceBand], ...] = (
    (1_000.0, DistanceBand.UNDER_1_KM),
    (5_000.0, DistanceBand.ONE_TO_FIVE_KM),
    (20_000.0, DistanceBand.FIVE_TO_TWENTY_KM),
)

DISTANCE_BAND_LABELS: frozenset[str] = frozenset(_BAND_LABELS.values())

_OUTPUT_DECIMALS = 6


@dataclass(frozen=True)
class GeneralizedLocation:
    """A coordinate after privacy generalization."""

    latitude: float
    longitude: float
    band: str
    level: PrivacyLevel
    radius_m: int


def privacy_radius_m(level: PrivacyLevel) -> int:
    """Return the generalization radius in meters for a privacy level."""
    return PRIVACY_RADIUS_M[PrivacyLevel(level)]


def generalize(lat: float, lng: float, level: PrivacyLevel) -> GeneralizedLocation:
    """Snap a coordinate to the center of its privacy grid cell.

    Args:
        lat: Raw latitude in decimal degrees.
        lng: Raw longitude in decimal degrees.
        level: Privacy level whose radius sizes the grid.

    Returns:
        The generalized coordinate with its human label band.

    Raises:
        ValueError: If the coordinate is not finite or out of range.
    """
    if not (math.isfinite(lat) and math.isfinite(lng) and -90 <= lat <= 90 and -180 <= lng <= 180):
        msg = f"Cannot generalize invalid coordinate ({lat}, {lng})"
        raise ValueError(msg)

    level = PrivacyLevel(level)
    radius_m = PRIVACY_RADIUS_M[level]
    lat_step = radius_m / METERS_PER_DEGREE_LAT

    row = math.floor((lat + 90.0) / lat_step)
    row_south = -90.0 + row * lat_step
    row_north = row_south + lat_step

    if row_north >= 90.0:
        snapped_lat, snapped_lng = 90.0, 0.0
    elif row_south <= -90.0:
        snapped_lat, snapped_lng = -90.0, 0.0
    else:
        snapped_lat = row_south + lat_step / 2.0
        snapped_lng = _snap_longitude(lng, radius_m, row_south, row_north)

    return GeneralizedLocation(
        latitude=round(snapped_lat, _OUTPUT_DECIMALS),
        longitude=round(snapped_lng, _OUTPUT_DECIMALS),
        band=PRIVACY_LABELS[level],
        level=level,
        radius_m=radius_m,
    )


def _snap_longitude(lng: float, radius_m: float, row_south: float, row_north: float) -> float:
    # Widest parallel inside the row bounds the column width in meters
    if row_south <= 0.0 <= row_north:
        widest_lat = 0.0
    else:
        widest_lat = min(abs(row_south), abs(row_north))
    cos_lat = math.cos(math.radians(widest_lat))
    lng_step = min(360.0, radius_m / (METERS_PER_DEGREE_LAT * cos_lat))

    column = math.floor((lng + 180.0) / lng_step)
    center = -180.0 + (column + 0.5) * lng_step
    if center > 180.0:
        center -= 360.0
    return center


def distance_to_band(distance_meters: float) -> DistanceBand:
    """Map a distance to its band.

    Monotonic: a larger distance never yields a smaller band.

    Args:
        distance_meters: Non-negative distance in meters.

    Returns:
        The DistanceBand containing the distance.

    Raises:
        ValueError: If the distance is negative or not a number.
    """
    if math.isnan(distance_meters) or distance_meters < 0:
        msg = f"distance must be a non-negative number, got {distance_meters}"
        raise ValueError(msg)
    for upper_bound, band in _BAND_UPPER_BOUNDS_M:
        if distance_meters < upper_bound:
            return band
    return DistanceBand.OVER_20_KM
