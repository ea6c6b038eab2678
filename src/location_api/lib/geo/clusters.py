"""Greedy geographic clustering of location options."""

from collections import Counter
from dataclasses import dataclass, field

from location_api.lib.geo.distance import KM_PER_DEGREE_LAT, BoundingBox, haversine_km
from location_api.lib.geocoder.base import LocationOption

DEFAULT_CLUSTER_NAME = "Location Cluster"


@dataclass
class LocationCluster:
    """A group of locations within ``radius_km`` of a seed location."""

    center_lat: float
    center_lng: float
    radius_km: float
    name: str
    bounds: BoundingBox
    density_score: float
    locations: list[LocationOption] = field(default_factory=list)

    @property
    def location_count(self) -> int:
        return len(self.locations)


def analyze_clusters(locations: list[LocationOption], radius_km: float = 5.0) -> list[LocationCluster]:
    """Group locations into clusters around successive seeds.

    The first unclustered location seeds a cluster that absorbs every other
    unclustered location within ``radius_km`` of it; this repeats until all
    locations are assigned.

    Args:
        locations: Locations to cluster, in priority order.
        radius_km: Maximum seed-to-member distance in kilometers.

    Returns:
        Clusters ordered by descending size.

    Raises:
        ValueError: If ``radius_km`` is not positive.
    """
    if radius_km <= 0:
        msg = "radius_km must be positive"
        raise ValueError(msg)

    remaining = list(locations)
    clusters: list[LocationCluster] = []

    while remaining:
        seed = remaining.pop(0)
        members = [seed]
        unassigned: list[LocationOption] = []
        for candidate in remaining:
            if haversine_km(seed.latitude, seed.longitude, candidate.latitude, candidate.longitude) <= radius_km:
                members.append(candidate)
            else:
                unassigned.append(candidate)
        remaining = unassigned
        clusters.append(_build_cluster(members, radius_km))

    # Stable sort keeps seed order among equally sized clusters
    clusters.sort(key=lambda c: c.location_count, reverse=True)
    return clusters


def _build_cluster(members: list[LocationOption], radius_km: float) -> LocationCluster:
    lats = [m.latitude for m in members]
    lngs = [m.longitude for m in members]
    bounds = BoundingBox(south=min(lats), north=max(lats), west=min(lngs), east=max(lngs))

    # Rough planar area; a single point or a line degenerates to count-as-density
    area_km2 = (bounds.north - bounds.south) * (bounds.east - bounds.west) * KM_PER_DEGREE_LAT * KM_PER_DEGREE_LAT
    density = len(members) / area_km2 if area_km2 > 0 else float(len(members))

    return LocationCluster(
        center_lat=sum(lats) / len(lats),
        center_lng=sum(lngs) / len(lngs),
        radius_km=radius_km,
        name=cluster_name(members),
        bounds=bounds,
        density_score=density,
        locations=members,
    )


def cluster_name(members: list[LocationOption]) -> str:
    """Name a cluster after its most common city (with state when unambiguous), else its area."""
    cities = Counter(m.city for m in members if m.city)
    if cities:
        city = cities.most_common(1)[0][0]
        states = {m.state for m in members if m.city == city and m.state}
        return f"{city}, {states.pop()}" if len(states) == 1 else city

    areas = Counter(m.area for m in members if m.area)
    if areas:
        return areas.most_common(1)[0][0]
    return DEFAULT_CLUSTER_NAME
