"""Geocoding gateway — reliability and caching in front of a provider.

Every provider call is bounded by a per-attempt timeout. Transient failures
(timeouts, connection errors, HTTP 429/5xx) are retried with capped
exponential backoff and jitter; anything else fails immediately. When no
attempt succeeds the caller gets ``GeocodingUnavailable``.

Reverse lookups are snapped to the EXACT privacy grid before the cache
lookup and the provider call, so the provider never sees the raw point and
nearby clicks share a cache entry.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from location_api.lib.errors import GeocodingUnavailable
from location_api.lib.geocoder.base import (
    BaseGeocoder,
    GeocodingProviderError,
    LocationOption,
    normalize_location_name,
)
from location_api.lib.privacy.generalizer import PrivacyLevel, generalize
from location_api.lib.ttl_cache import TTLCache

DEFAULT_TIMEOUT = 4.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_BASE = 0.25
DEFAULT_BACKOFF_MAX = 2.0
DEFAULT_CACHE_TTL = 300.0

# Cached marker for "provider answered with no match"
_NO_RESULT = object()


class GeocodingGateway:
    """Timeout, retry and cache wrapper around a BaseGeocoder.

    Args:
        provider: The geocoder provider to call.
        timeout: Per-attempt timeout in seconds.
        max_retries: Retries after the first attempt for transient failures.
        backoff_base: First backoff delay in seconds; doubles per retry.
        backoff_max: Upper bound on a single backoff delay.
        cache_ttl: Seconds a successful lookup is served from cache.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        provider: BaseGeocoder,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._sleep = sleep
        self._search_cache = TTLCache(cache_ttl)
        self._reverse_cache = TTLCache(cache_ttl)

    @property
    def provider_name(self) -> str:
        return self._provider.provider_name

    async def search(
        self,
        query: str,
        max_results: int,
        country_code: str | None = None,
    ) -> list[LocationOption]:
        """Forward-geocode ``query``.

        Args:
            query: Free-text place name or address.
            max_results: Maximum number of options to return.
            country_code: Optional ISO 3166-1 alpha-2 filter.

        Returns:
            Provider results, best first. Empty when nothing matched.

        Raises:
            GeocodingUnavailable: If the provider failed on every attempt.
        """
        cc = country_code.upper() if country_code else None
        key = (normalize_location_name(query), max_results, cc)
        cached = self._search_cache.get(key)
        if cached is not None:
            logger.debug(f"Geocode search cache hit ({self.provider_name})")
            return list(cached)

        results = await self._call("search", lambda: self._provider.search(query, max_results, cc))
        results = list(results)[:max_results]
        self._search_cache.set(key, tuple(results))
        return results

    async def reverse_geocode(self, lat: float, lng: float) -> LocationOption | None:
        """Reverse-geocode a coordinate after snapping it to the EXACT grid.

        Returns:
            The best match positioned at the snapped coordinate, or None when
            the provider has no result.

        Raises:
            GeocodingUnavailable: If the provider failed on every attempt.
        """
        snapped = generalize(lat, lng, PrivacyLevel.EXACT)
        key = (snapped.latitude, snapped.longitude)
        cached = self._reverse_cache.get(key)
        if cached is not None:
            logger.debug(f"Reverse geocode cache hit ({self.provider_name})")
            return None if cached is _NO_RESULT else cached

        option = await self._call(
            "reverse",
            lambda: self._provider.reverse(snapped.latitude, snapped.longitude),
        )
        if option is not None:
            precision = max(option.precision_radius_m or 0, snapped.radius_m)
            option = option.with_coordinates(snapped.latitude, snapped.longitude, precision)

        self._reverse_cache.set(key, _NO_RESULT if option is None else option)
        return option

    def clear_cache(self) -> None:
        """Drop every cached lookup."""
        self._search_cache.clear()
        self._reverse_cache.clear()

    def purge_expired(self) -> int:
        """Drop expired cache entries. Returns the number removed."""
        return self._search_cache.purge_expired() + self._reverse_cache.purge_expired()

    async def _call(self, operation: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                return await asyncio.wait_for(factory(), timeout=self._timeout)
            except TimeoutError:
                error = GeocodingProviderError(self.provider_name, f"{operation} timed out after {self._timeout}s")
            except GeocodingProviderError as e:
                error = e

            if not error.transient:
                logger.error(f"Geocoder {operation} failed permanently: {error}")
                raise GeocodingUnavailable(str(error)) from error

            if attempt < attempts - 1:
                delay = self._backoff_delay(attempt)
                logger.warning(
                    f"Geocoder {operation} attempt {attempt + 1}/{attempts} failed: {error}; retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        logger.error(f"Geocoder {operation} unavailable after {attempts} attempt(s): {error}")
        raise GeocodingUnavailable(str(error)) from error

    def _backoff_delay(self, attempt: int) -> float:
        ceiling = min(self._backoff_max, self._backoff_base * (2**attempt))
        return random.uniform(ceiling / 2, ceiling)
