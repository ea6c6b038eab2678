"""Privacy library — coordinate generalization and distance bands.

Public API:
    - PrivacyLevel: Ordered privacy levels, most precise first
    - generalize: Snap a coordinate to its privacy grid cell center
    - privacy_radius_m: Generalization radius for a level
    - DistanceBand / distance_to_band: Bucketed distances
"""

from location_api.lib.privacy.generalizer import (
    DISTANCE_BAND_LABELS,
    PRIVACY_LABELS,
    PRIVACY_RADIUS_M,
    DistanceBand,
    GeneralizedLocation,
    PrivacyLevel,
    distance_to_band,
    generalize,
    privacy_radius_m,
)

__all__ = [
    "DISTANCE_BAND_LABELS",
    "PRIVACY_LABELS",
    "PRIVACY_RADIUS_M",
    "DistanceBand",
    "GeneralizedLocation",
    "PrivacyLevel",
    "distance_to_band",
    "generalize",
    "privacy_radius_m",
]
