"""Geocoder library — pluggable forward/reverse geocoding behind a gateway.

Public API:
    - BaseGeocoder: Abstract provider interface
    - LocationOption: Normalized result dataclass
    - LocationSource: Result provenance enum
    - GeocodingProviderError: Provider transport/service failure
    - NominatimGeocoder: OpenStreetMap Nominatim provider
    - PhotonGeocoder: Photon (Komoot) provider
    - GeocodingGateway: Timeout, retry and cache wrapper
    - normalize_location_name: Label normalization for grouping
    - get_geocoder: Provider factory/registry
    - get_configured_gateway: Gateway for the provider selected in settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from location_api.lib.geocoder.base import (
    BaseGeocoder,
    GeocodingProviderError,
    LocationOption,
    LocationSource,
    is_transient_status,
    normalize_location_name,
)
from location_api.lib.geocoder.gateway import GeocodingGateway
from location_api.lib.geocoder.nominatim import NominatimGeocoder
from location_api.lib.geocoder.photon import PhotonGeocoder

if TYPE_CHECKING:
    from location_api.core.config import Settings

# Provider registry: all known providers
_PROVIDERS: dict[str, type[BaseGeocoder]] = {
    "nominatim": NominatimGeocoder,
    "photon": PhotonGeocoder,
}


def get_available_providers() -> list[str]:
    """Return the names of all registered geocoder providers.

    Returns:
        Sorted list of provider name strings.
    """
    return sorted(_PROVIDERS.keys())


def get_geocoder(provider: str = "nominatim", **kwargs: Any) -> BaseGeocoder:
    """Get a geocoder instance by provider name.

    Args:
        provider: Provider name (e.g., "nominatim").
        **kwargs: Additional arguments forwarded to the provider constructor
            (e.g., ``timeout=2.0``).

    Returns:
        An instance of the requested geocoder provider.

    Raises:
        ValueError: If the provider is not registered.
    """
    cls = _PROVIDERS.get(provider)
    if cls is None:
        msg = f"Unknown geocoder provider: {provider!r}. Available: {list(_PROVIDERS.keys())}"
        raise ValueError(msg)
    return cls(**kwargs)


def get_configured_geocoder(settings: Settings) -> BaseGeocoder:
    """Instantiate the provider named by ``settings.geocoder_provider``.

    Args:
        settings: Application settings.

    Returns:
        The configured provider.

    Raises:
        ValueError: If the provider is unknown or missing configuration.
    """
    provider_kwargs: dict[str, dict[str, Any]] = {
        "nominatim": {
            "timeout": settings.geocoder_timeout,
            "email": settings.geocoder_nominatim_email,
            "user_agent": settings.geocoder_user_agent,
            "base_url": settings.geocoder_nominatim_base_url,
        },
        "photon": {
            "timeout": settings.geocoder_timeout,
            "base_url": settings.geocoder_photon_base_url,
        },
    }
    name = settings.geocoder_provider
    geocoder = get_geocoder(name, **provider_kwargs.get(name, {}))
    if not geocoder.is_configured:
        msg = f"Geocoder provider {name!r} is missing required configuration"
        raise ValueError(msg)
    return geocoder


def get_configured_gateway(settings: Settings) -> GeocodingGateway:
    """Build a GeocodingGateway around the configured provider.

    Args:
        settings: Application settings.

    Returns:
        Gateway using the configured timeout, retry and cache policy.
    """
    return GeocodingGateway(
        get_configured_geocoder(settings),
        timeout=settings.geocoder_timeout,
        max_retries=settings.geocoder_max_retries,
        backoff_base=settings.geocoder_backoff_base,
        backoff_max=settings.geocoder_backoff_max,
        cache_ttl=settings.geocoder_cache_ttl,
    )


__all__ = [
    "BaseGeocoder",
    "GeocodingGateway",
    "GeocodingProviderError",
    "LocationOption",
    "LocationSource",
    "NominatimGeocoder",
    "PhotonGeocoder",
    "get_available_providers",
    "get_configured_gateway",
    "get_configured_geocoder",
    "get_geocoder",
    "is_transient_status",
    "normalize_location_name",
]
