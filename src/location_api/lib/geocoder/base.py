"""Abstract base geocoder interface and the normalized LocationOption result."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import StrEnum


class LocationSource(StrEnum):
    """Provenance of a LocationOption."""

    GEOCODER = "geocoder"
    DATABASE_FREQUENCY = "database-frequency"
    MAP_CLICK = "map-click"


@dataclass(frozen=True)
class LocationOption:
    """A place offered to a caller, normalized across providers and the store."""

    display_name: str
    latitude: float
    longitude: float
    source: LocationSource = LocationSource.GEOCODER
    area: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    country_code: str | None = None
    postal_code: str | None = None
    precision_radius_m: int | None = None
    confidence: float | None = None

    def __post_init__(self) -> None:
        if not (-90 <= self.latitude <= 90):
            msg = f"latitude must be between -90 and 90, got {self.latitude}"
            raise ValueError(msg)
        if not (-180 <= self.longitude <= 180):
            msg = f"longitude must be between -180 and 180, got {self.longitude}"
            raise ValueError(msg)
        if self.confidence is not None and not (0 <= self.confidence <= 1):
            msg = f"confidence must be between 0 and 1, got {self.confidence}"
            raise ValueError(msg)

    def with_coordinates(
        self, latitude: float, longitude: float, precision_radius_m: int | None = None
    ) -> "LocationOption":
        """Return a copy positioned at new coordinates."""
        return replace(
            self,
            latitude=latitude,
            longitude=longitude,
            precision_radius_m=precision_radius_m if precision_radius_m is not None else self.precision_radius_m,
        )


class GeocodingProviderError(Exception):
    """Raised when a geocoding provider experiences a transport or service error.

    Distinguishes provider failures (timeout, HTTP error, connection error)
    from a successful response with no match (which returns an empty list or None).

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the provider.
        transient: Whether retrying the same request may succeed.
    """

    def __init__(
        self,
        provider_name: str,
        message: str,
        status_code: int | None = None,
        *,
        transient: bool = True,
    ) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        self.transient = transient
        super().__init__(f"{provider_name}: {message}")


def normalize_location_name(name: str) -> str:
    """Normalize a place label for grouping and de-duplication.

    Trims, lower-cases, drops commas and collapses runs of whitespace, so
    ``" Columbus,  OH "`` and ``"columbus oh"`` compare equal.
    """
    return " ".join(name.strip().lower().replace(",", " ").split())


def is_transient_status(status_code: int) -> bool:
    """HTTP statuses worth retrying: throttling and server-side failures."""
    return status_code == 429 or status_code >= 500


class BaseGeocoder(ABC):
    """Abstract geocoder interface. All providers must implement this."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this geocoder provider."""

    @property
    def requires_api_key(self) -> bool:
        """Whether this provider requires an API key to function."""
        return False

    @property
    def is_configured(self) -> bool:
        """Whether this provider has all required configuration (e.g., API keys)."""
        return True

    @property
    def rate_limit_delay(self) -> float:
        """Minimum delay in seconds between requests (for rate-limited providers)."""
        return 0.0

    @abstractmethod
    async def search(self, query: str, limit: int, country_code: str | None = None) -> list[LocationOption]:
        """Forward-geocode a free-text query.

        Args:
            query: Place name or address.
            limit: Maximum number of results.
            country_code: Optional ISO 3166-1 alpha-2 filter.

        Returns:
            Matching locations, best first. Empty when nothing matched.
        """

    @abstractmethod
    async def reverse(self, lat: float, lng: float) -> LocationOption | None:
        """Reverse-geocode a coordinate.

        Args:
            lat: WGS84 latitude.
            lng: WGS84 longitude.

        Returns:
            The best matching location or None when the provider has no result.
        """
