"""Pydantic v2 schemas for location search and proximity results.

Proximity responses expose a distance band and a generalized location only.
No schema here has a field for a raw distance or a stored coordinate.
"""

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, Field

from location_api.lib.geocoder.base import LocationOption, LocationSource
from location_api.lib.privacy.generalizer import PrivacyLevel
from location_api.services.proximity_engine import ProximityResult

_CENTS = Decimal("0.01")


def _money(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


class LocationOptionResponse(BaseModel):
    """A place offered to the caller by search, reverse, popular or suggestions."""

    display_name: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    source: LocationSource
    area: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    country_code: str | None = None
    postal_code: str | None = None
    precision_radius_m: int | None = Field(default=None, description="Approximate precision in meters")
    confidence: float | None = Field(default=None, ge=0, le=1)

    @classmethod
    def from_option(cls, option: LocationOption) -> "LocationOptionResponse":
        return cls(
            display_name=option.display_name,
            latitude=option.latitude,
            longitude=option.longitude,
            source=option.source,
            area=option.area,
            city=option.city,
            state=option.state,
            country=option.country,
            country_code=option.country_code,
            postal_code=option.postal_code,
            precision_radius_m=option.precision_radius_m,
            confidence=option.confidence,
        )


class ApproximateLocation(BaseModel):
    """Generalized position of a listing or member at its owner's privacy level."""

    latitude: float
    longitude: float
    label: str = Field(description='Precision label, e.g. "Within ~500 m"')
    radius_m: int = Field(description="Privacy circle radius in meters")
    privacy_level: PrivacyLevel


class NearbyToolResponse(BaseModel):
    """A tool within the search radius."""

    id: str
    name: str
    description: str | None = None
    daily_rate: float | None = None
    condition: str | None = None
    category: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    owner_display_name: str
    location_display: str | None = None
    distance_band: str = Field(description='One of "<1km", "1-5km", "5-20km", ">20km"')
    distance_text: str
    approximate_location: ApproximateLocation
    is_available: bool
    average_rating: float | None = None
    review_count: int = 0

    @classmethod
    def from_result(cls, result: ProximityResult) -> "NearbyToolResponse":
        entity = result.entity
        return cls(
            id=result.entity_id,
            name=entity.name,
            description=entity.description,
            daily_rate=_money(entity.daily_rate),
            condition=entity.condition,
            category=entity.category,
            image_urls=list(entity.image_urls),
            owner_display_name=entity.owner_display_name,
            location_display=entity.location_display,
            distance_band=result.distance_band.label,
            distance_text=result.distance_band.text,
            approximate_location=_approximate(result),
            is_available=entity.is_available,
            average_rating=entity.average_rating,
            review_count=entity.review_count,
        )


class NearbyBundleResponse(BaseModel):
    """A bundle within the search radius."""

    id: str
    name: str
    description: str | None = None
    category: str | None = None
    image_url: str | None = None
    tool_count: int = 0
    original_cost: float | None = Field(default=None, description="Sum of member tools' daily rates")
    discounted_cost: float | None = None
    discount_percentage: float | None = None
    owner_display_name: str
    location_display: str | None = None
    distance_band: str = Field(description='One of "<1km", "1-5km", "5-20km", ">20km"')
    distance_text: str
    approximate_location: ApproximateLocation
    is_available: bool
    average_rating: float | None = None
    review_count: int = 0

    @classmethod
    def from_result(cls, result: ProximityResult) -> "NearbyBundleResponse":
        entity = result.entity
        original = entity.original_cost
        discount = entity.discount_percentage
        discounted = None
        if original is not None:
            discounted = original * (1 - Decimal(discount or 0) / 100)
        return cls(
            id=result.entity_id,
            name=entity.name,
            description=entity.description,
            category=entity.category,
            image_url=entity.image_url,
            tool_count=entity.tool_count,
            original_cost=_money(original),
            discounted_cost=_money(discounted),
            discount_percentage=float(discount) if discount is not None else None,
            owner_display_name=entity.owner_display_name,
            location_display=entity.location_display,
            distance_band=result.distance_band.label,
            distance_text=result.distance_band.text,
            approximate_location=_approximate(result),
            is_available=entity.is_available,
            average_rating=entity.average_rating,
            review_count=entity.review_count,
        )


class NearbyUserResponse(BaseModel):
    """A member whose profile location is within the search radius."""

    id: str
    name: str
    avatar_url: str | None = None
    location_display: str = "Location not specified"
    distance_band: str = Field(description='One of "<1km", "1-5km", "5-20km", ">20km"')
    distance_text: str
    approximate_location: ApproximateLocation
    tool_count: int = Field(default=0, description="Approved tools listed by the member")
    bundle_count: int = Field(default=0, description="Published bundles offered by the member")

    @classmethod
    def from_result(cls, result: ProximityResult) -> "NearbyUserResponse":
        entity = result.entity
        return cls(
            id=entity.owner_id,
            name=entity.name,
            avatar_url=entity.avatar_url,
            location_display=entity.location_display or "Location not specified",
            distance_band=result.distance_band.label,
            distance_text=result.distance_band.text,
            approximate_location=_approximate(result),
            tool_count=entity.tool_count,
            bundle_count=entity.bundle_count,
        )


def _approximate(result: ProximityResult) -> ApproximateLocation:
    approx = result.approximate_location
    return ApproximateLocation(
        latitude=approx.latitude,
        longitude=approx.longitude,
        label=approx.band,
        radius_m=approx.radius_m,
        privacy_level=approx.level,
    )
