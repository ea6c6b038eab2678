"""Photon (Komoot) geocoder provider.

Uses the Photon geocoder (https://photon.komoot.io/) for forward search and
reverse lookup. Free, open-source, and self-hostable. Based on OpenStreetMap data.
"""

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

DEFAULT_BASE_URL = "https://photon.komoot.io"
DEFAULT_TIMEOUT = 4.0

# OSM type -> precision radius in meters
_TYPE_PRECISION: dict[str, int] = {
    "house": 100,
    "building": 100,
    "street": 500,
    "locality": 1_000,
    "district": 5_000,
    "city": 10_000,
    "county": 25_000,
    "state": 50_000,
    "country": 50_000,
}

# Confidence scores by OSM type specificity
_TYPE_CONFIDENCE: dict[str, float] = {
    "house": 0.95,
    "building": 0.90,
    "street": 0.7,
    "locality": 0.5,
    "district": 0.4,
    "city": 0.3,
    "county": 0.2,
    "state": 0.1,
    "country": 0.05,
}


class PhotonGeocoder(BaseGeocoder):
    """Photon (Komoot) geocoder provider."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: str = DEFAULT_BASE_URL,
    ) -> None:
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "photon"

    @property
    def rate_limit_delay(self) -> float:
        """Minimum delay between requests (public Photon has undocumented rate limits)."""
        return 0.2 if self._base_url == DEFAULT_BASE_URL else 0.0

    async def search(self, query: str, limit: int, country_code: str | None = None) -> list[LocationOption]:
        """Forward-geocode a query using the Photon API.

        Photon has no country filter, so ``country_code`` is applied to the
        parsed results.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params: dict[str, str | int] = {"q": query, "limit": max(1, limit), "lang": "en"}
        data = await self._get("/api", params)
        options = self._parse_features(data)
        if country_code:
            wanted = country_code.upper()
            options = [o for o in options if o.country_code == wanted]
        return options[:limit]

    async def reverse(self, lat: float, lng: float) -> LocationOption | None:
        """Reverse-geocode a coordinate using the Photon reverse endpoint.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params: dict[str, str | int | float] = {"lat": lat, "lon": lng, "limit": 1, "lang": "en"}
        data = await self._get("/reverse", params)
        options = self._parse_features(data)
        return options[0] if options else None

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._base_url}{path}", params=params)
                response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            logger.warning("Photon geocoder timeout (query redacted)")
            raise GeocodingProviderError("photon", "Geocoding request timed out") from e
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.warning(f"Photon geocoder HTTP error {status_code}")
            raise GeocodingProviderError(
                "photon",
                f"Provider returned HTTP {status_code}",
                status_code=status_code,
                transient=is_transient_status(status_code),
            ) from e
        except httpx.ConnectError as e:
            logger.warning("Photon geocoder connection error")
            raise GeocodingProviderError("photon", "Connection to geocoding provider failed") from e
        except httpx.RequestError as e:
            logger.warning(f"Photon geocoder transport error: {type(e).__name__}")
            raise GeocodingProviderError("photon", "Transport error talking to geocoding provider") from e
        except ValueError as e:
            logger.warning("Photon geocoder returned invalid JSON")
            raise GeocodingProviderError("photon", "Invalid response body", transient=False) from e

    def _parse_features(self, data: Any) -> list[LocationOption]:
        """Parse a Photon GeoJSON FeatureCollection into LocationOptions.

        Features with missing or malformed geometry are skipped.
        """
        if not isinstance(data, dict):
            raise GeocodingProviderError("photon", "Unexpected response shape", transient=False)

        options: list[LocationOption] = []
        for feature in data.get("features", []):
            try:
                coords = feature["geometry"]["coordinates"]
                lng = float(coords[0])
                lat = float(coords[1])
            except (KeyError, IndexError, ValueError, TypeError) as e:
                logger.warning(f"Skipping Photon feature with bad geometry: {e}")
                continue
            if not (-90 <= lat <= 90 and -180 <= lng <= 180):
                continue

            properties = feature.get("properties", {})
            osm_type = properties.get("type", "")
            country_code = properties.get("countrycode")
            options.append(
                LocationOption(
                    display_name=self._build_display_name(properties) or f"{lat:.4f}, {lng:.4f}",
                    latitude=lat,
                    longitude=lng,
                    source=LocationSource.GEOCODER,
                    area=properties.get("district") or properties.get("locality"),
                    city=properties.get("city"),
                    state=properties.get("state"),
                    country=properties.get("country"),
                    country_code=country_code.upper() if country_code else None,
                    postal_code=properties.get("postcode"),
                    precision_radius_m=_TYPE_PRECISION.get(osm_type, 1_000),
                    confidence=_TYPE_CONFIDENCE.get(osm_type, 0.3),
                )
            )
        return options

    @staticmethod
    def _build_display_name(properties: dict) -> str | None:
        """Build a human-readable label from Photon properties."""
        parts = []
        if properties.get("name"):
            parts.append(properties["name"])
        if properties.get("street"):
            street = properties["street"]
            if properties.get("housenumber"):
                street = f"{properties['housenumber']} {street}"
            parts.append(street)
        for key in ("city", "state", "country"):
            if properties.get(key) and properties[key] not in parts:
                parts.append(properties[key])

        return ", ".join(parts) if parts else None
