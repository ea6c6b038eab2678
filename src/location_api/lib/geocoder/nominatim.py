"""OpenStreetMap Nominatim geocoder provider.

Uses the Nominatim API (https://nominatim.org/release-docs/develop/api/Search/)
for forward search and reverse lookup. Free but rate-limited to 1 req/sec,
so requests from one instance are serialized behind a polite throttle.
"""

import asyncio
import time
from typing import Any

import httpx
from loguru import logger

from location_api.lib.geocoder.base import (
    BaseGeocoder,
    GeocodingProviderError,
    LocationOption,
    LocationSource,
    is_transient_status,
)

DEFAULT_BASE_URL = "https://nominatim.openstreetmap.org"
DEFAULT_TIMEOUT = 4.0
DEFAULT_USER_AGENT = "location-api/1.0"
MAX_LIMIT = 50
REVERSE_ZOOM = 18

_AREA_KEYS = ("neighbourhood", "suburb", "village")
_CITY_KEYS = ("city", "town", "municipality")
_STATE_KEYS = ("state", "province", "region")

# place_rank upper bound -> precision radius in meters
_PRECISION_BY_RANK: tuple[tuple[int, int], ...] = (
    (10, 50_000),
    (12, 10_000),
    (16, 1_000),
    (18, 500),
)
_FINEST_PRECISION_M = 100


def _first(address: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return None


class NominatimGeocoder(BaseGeocoder):
    """OpenStreetMap Nominatim geocoder provider."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        email: str = "",
        user_agent: str = DEFAULT_USER_AGENT,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._timeout = timeout
        self._email = email
        self._user_agent = user_agent
        self._base_url = base_url.rstrip("/")
        self._throttle_lock = asyncio.Lock()
        self._last_request_at: float | None = None

    @property
    def provider_name(self) -> str:
        return "nominatim"

    @property
    def rate_limit_delay(self) -> float:
        return 1.0 if self._base_url == DEFAULT_BASE_URL else 0.0

    async def search(self, query: str, limit: int, country_code: str | None = None) -> list[LocationOption]:
        """Forward-geocode a query using the Nominatim search endpoint.

        Args:
            query: Place name or address.
            limit: Maximum number of results (capped at 50).
            country_code: Optional ISO country filter.

        Returns:
            Parsed locations, in provider order.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params: dict[str, str | int] = {
            "q": query,
            "format": "json",
            "limit": max(1, min(limit, MAX_LIMIT)),
            "addressdetails": 1,
        }
        if country_code:
            params["countrycodes"] = country_code.lower()
        data = await self._get("/search", params)
        if not isinstance(data, list):
            raise GeocodingProviderError("nominatim", "Unexpected search response shape", transient=False)
        return [option for option in (self._parse_place(item) for item in data) if option is not None]

    async def reverse(self, lat: float, lng: float) -> LocationOption | None:
        """Reverse-geocode a coordinate using the Nominatim reverse endpoint.

        Returns:
            The parsed location, or None when Nominatim reports no match.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params: dict[str, str | int | float] = {
            "lat": lat,
            "lon": lng,
            "format": "json",
            "zoom": REVERSE_ZOOM,
            "addressdetails": 1,
        }
        data = await self._get("/reverse", params)
        if not isinstance(data, dict) or "error" in data:
            return None
        return self._parse_place(data)

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        if self._email:
            params["email"] = self._email
        headers = {"User-Agent": self._user_agent}

        try:
            async with self._throttle_lock:
                await self._wait_for_slot()
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(f"{self._base_url}{path}", params=params, headers=headers)
                    response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            logger.warning("Nominatim geocoder timeout (query redacted)")
            raise GeocodingProviderError("nominatim", "Geocoding request timed out") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(f"Nominatim geocoder HTTP error {status_code}")
            raise GeocodingProviderError(
                "nominatim",
                f"Provider returned HTTP {status_code}",
                status_code=status_code,
                transient=is_transient_status(status_code),
            ) from e
        except httpx.ConnectError as e:
            logger.warning("Nominatim geocoder connection error")
            raise GeocodingProviderError("nominatim", "Connection to geocoding provider failed") from e
        except httpx.RequestError as e:
            logger.warning(f"Nominatim geocoder transport error: {type(e).__name__}")
            raise GeocodingProviderError("nominatim", "Transport error talking to geocoding provider") from e
        except ValueError as e:
            logger.warning("Nominatim geocoder returned invalid JSON")
            raise GeocodingProviderError("nominatim", "Invalid response body", transient=False) from e

    async def _wait_for_slot(self) -> None:
        delay = self.rate_limit_delay
        if delay <= 0:
            return
        now = time.monotonic()
        if self._last_request_at is not None:
            remaining = delay - (now - self._last_request_at)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_request_at = time.monotonic()

    def _parse_place(self, place: dict[str, Any]) -> LocationOption | None:
        """Parse one Nominatim place object into a LocationOption.

        Args:
            place: A single search result or the reverse response body.

        Returns:
            LocationOption, or None if the entry has unusable coordinates.
        """
        try:
            lat = float(place["lat"])
            lng = float(place["lon"])
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping Nominatim result with bad coordinates: {e}")
            return None
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return None

        address = place.get("address") or {}
        country_code = address.get("country_code")
        try:
            importance = float(place.get("importance", 0.0) or 0.0)
        except (TypeError, ValueError):
            importance = 0.0

        return LocationOption(
            display_name=place.get("display_name") or f"{lat:.4f}, {lng:.4f}",
            latitude=lat,
            longitude=lng,
            source=LocationSource.GEOCODER,
            area=_first(address, _AREA_KEYS),
            city=_first(address, _CITY_KEYS),
            state=_first(address, _STATE_KEYS),
            country=address.get("country"),
            country_code=country_code.upper() if country_code else None,
            postal_code=address.get("postcode"),
            precision_radius_m=self._precision_for_rank(place.get("place_rank")),
            confidence=max(0.0, min(importance, 1.0)),
        )

    @staticmethod
    def _precision_for_rank(place_rank: Any) -> int:
        """Map Nominatim place_rank to an approximate precision radius in meters."""
        try:
            rank = int(place_rank)
        except (TypeError, ValueError):
            return _FINEST_PRECISION_M
        for upper_bound, radius in _PRECISION_BY_RANK:
            if rank <= upper_bound:
                return radius
        return _FINEST_PRECISION_M
