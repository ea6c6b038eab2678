"""Great-circle distance and bounding-box helpers."""

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.32
METERS_PER_DEGREE_LAT = 111_320.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box used as a cheap spatial pre-filter."""

    south: float
    north: float
    west: float
    east: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.west > self.east

    def contains(self, lat: float, lng: float) -> bool:
        if not (self.south <= lat <= self.north):
            return False
        if self.crosses_antimeridian:
            return lng >= self.west or lng <= self.east
        return self.west <= lng <= self.east


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate the great-circle distance between two points.

    Args:
        lat1: Latitude of point 1 in decimal degrees.
        lng1: Longitude of point 1 in decimal degrees.
        lat2: Latitude of point 2 in decimal degrees.
        lng2: Longitude of point 2 in decimal degrees.

    Returns:
        Distance in kilometers.
    """
    phi1, lam1, phi2, lam2 = map(math.radians, (lat1, lng1, lat2, lng2))
    dphi = phi2 - phi1
    dlam = lam2 - lam1
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    return haversine_km(lat1, lng1, lat2, lng2) * 1000.0


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """Compute a box that fully contains the circle of ``radius_km`` around a point.

    Deltas are angular distances on the same sphere as ``haversine_km``, so
    every point the haversine check accepts lies inside the box.

    Latitudes are clamped to [-90, 90]. When the circle reaches a pole every
    longitude is included; when it crosses the antimeridian ``west > east``.

    Args:
        lat: Center latitude.
        lng: Center longitude.
        radius_km: Circle radius in kilometers.

    Returns:
        The enclosing BoundingBox.
    """
    angular = radius_km / EARTH_RADIUS_KM
    lat_delta = math.degrees(angular)
    south = max(-90.0, lat - lat_delta)
    north = min(90.0, lat + lat_delta)

    cos_lat = math.cos(math.radians(lat))
    if south <= -90.0 or north >= 90.0 or cos_lat <= 1e-12:
        return BoundingBox(south=south, north=north, west=-180.0, east=180.0)

    # Widest longitude reached by the circle, on the sphere haversine_km uses
    ratio = math.sin(angular) / cos_lat
    if ratio >= 1.0:
        return BoundingBox(south=south, north=north, west=-180.0, east=180.0)
    lng_delta = math.degrees(math.asin(ratio))

    west = lng - lng_delta
    east = lng + lng_delta
    if west < -180.0:
        west += 360.0
    if east > 180.0:
        east -= 360.0
    return BoundingBox(south=south, north=north, west=west, east=east)

