"""Location service — orchestrates rate limiting, geocoding, privacy and proximity.

Every operation validates its input before touching a limiter, the geocoder
or the store. Identity-scoped operations consume a rate-limit token before
dispatching any external call, so a cancelled request still costs a token.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from loguru import logger

from location_api.lib.errors import (
    AuthenticationRequired,
    GeocodingUnavailable,
    InvalidCoordinates,
    InvalidQuery,
    InvalidResultLimit,
    LocationValidationError,
    RateLimitExceeded,
    SpatialStoreUnavailable,
    SuspiciousPattern,
)
from location_api.lib.geo.clusters import LocationCluster
from location_api.lib.geo.clusters import analyze_clusters as _analyze_clusters
from location_api.lib.geo.coordinates import parse_coordinates
from location_api.lib.geo.validators import (
    POPULAR_MAX_RESULTS,
    SEARCH_MAX_RESULTS,
    SUGGESTIONS_MAX_RESULTS,
    validate_coordinates,
    validate_result_limit,
)
from location_api.lib.geocoder import get_configured_gateway
from location_api.lib.geocoder.base import LocationOption, LocationSource, normalize_location_name
from location_api.lib.geocoder.gateway import GeocodingGateway
from location_api.lib.privacy.generalizer import PrivacyLevel, generalize
from location_api.lib.ratelimit.base import BaseRateLimiter, RateDecision
from location_api.lib.ratelimit.memory import InMemoryRateLimiter
from location_api.lib.ratelimit.patterns import BasePatternDetector, PatternPolicy, SearchProbe, TriangulationDetector
from location_api.lib.ttl_cache import TTLCache
from location_api.models.location_search_log import SearchType
from location_api.schemas.location import NearbyBundleResponse, NearbyToolResponse, NearbyUserResponse
from location_api.services.proximity_engine import ProximityEngine, ProximityResult, validate_proximity_query
from location_api.services.spatial_store import (
    EntityType,
    LocationLabel,
    SearchLogEntry,
    SpatialStore,
    SqlSpatialStore,
    retention_cutoff,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from location_api.core.config import Settings

MAX_QUERY_LENGTH = 200
MIN_SUGGESTION_QUERY_LENGTH = 2
POPULAR_CONFIDENCE_SATURATION = 5


@dataclass(frozen=True)
class ClientContext:
    """Request metadata recorded in the search audit log."""

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class RateLimiters:
    """The per-operation limiters used by the service."""

    search: BaseRateLimiter
    reverse: BaseRateLimiter
    proximity: BaseRateLimiter

    def all(self) -> tuple[BaseRateLimiter, ...]:
        return (self.search, self.reverse, self.proximity)


class LocationService:
    """Public location operations.

    Args:
        gateway: Geocoding gateway for search and reverse lookups.
        engine: Proximity engine for nearby tools, bundles and members.
        store: Spatial store for popular labels, suggestions and audit logs.
        limiters: Rate limiters for search, reverse and proximity.
        detector: Suspicious-pattern detector for reverse and proximity.
        popular_cache_ttl: Seconds popular locations are cached.
        suggestions_cache_ttl: Seconds suggestions are cached.
        search_log_enabled: Whether to write the search audit log.
        search_log_retention_days: Audit log retention used by ``sweep``.
    """

    def __init__(
        self,
        gateway: GeocodingGateway,
        engine: ProximityEngine,
        store: SpatialStore,
        limiters: RateLimiters,
        detector: BasePatternDetector,
        popular_cache_ttl: float = 3600.0,
        suggestions_cache_ttl: float = 1800.0,
        search_log_enabled: bool = True,
        search_log_retention_days: int = 90,
    ) -> None:
        self._gateway = gateway
        self._engine = engine
        self._store = store
        self._limiters = limiters
        self._detector = detector
        self._popular_cache = TTLCache(popular_cache_ttl, max_entries=64)
        self._suggestions_cache = TTLCache(suggestions_cache_ttl)
        self._search_log_enabled = search_log_enabled
        self._search_log_retention_days = search_log_retention_days

    # --- Geocoding ---

    async def search_locations(
        self,
        query: str,
        max_results: int = 5,
        country_code: str | None = None,
        user_id: str | None = None,
        client: ClientContext | None = None,
    ) -> list[LocationOption]:
        """Forward-geocode a free-text query for an authenticated user.

        Raises:
            InvalidQuery: If the query is blank or longer than 200 characters.
            InvalidResultLimit: If max_results is outside 1..20.
            LocationValidationError: If country_code is not a 2-letter code.
            AuthenticationRequired: If no user id is given.
            RateLimitExceeded: If the search limit is exhausted.
            SuspiciousPattern: If the identity is blocked after a detection.
            GeocodingUnavailable: If the provider is down.
        """
        text = _validate_search_query(query)
        if not validate_result_limit(max_results, SEARCH_MAX_RESULTS):
            raise InvalidResultLimit(SEARCH_MAX_RESULTS)
        if country_code is not None and not (len(country_code) == 2 and country_code.isalpha()):
            raise LocationValidationError(
                "Invalid countryCode parameter", ["countryCode must be a 2-letter ISO country code"]
            )
        identity = _require_identity(user_id)

        await self._consume(self._limiters.search, identity)
        entry = SearchLogEntry(search_type=SearchType.GEOCODING, user_id=user_id, query=text)
        # A text query reveals no location, but an earlier detection still applies
        await self._screen(identity, None, entry, client)
        results = await self._gateway.search(text, max_results, country_code)

        logger.info(f"Location search by {identity} returned {len(results)} result(s)")
        await self._record(replace(entry, results_count=len(results)), client)
        return results

    async def reverse_geocode(
        self,
        lat: float,
        lng: float,
        user_id: str | None = None,
        client: ClientContext | None = None,
    ) -> LocationOption | None:
        """Reverse-geocode a coordinate for an authenticated user.

        Returns:
            The location at the EXACT-grid snapped coordinate, or None.

        Raises:
            InvalidCoordinates: If the coordinate is out of range.
            AuthenticationRequired: If no user id is given.
            RateLimitExceeded: If the reverse limit is exhausted.
            SuspiciousPattern: If the identity is probing.
            GeocodingUnavailable: If the provider is down.
        """
        if not validate_coordinates(lat, lng):
            raise InvalidCoordinates()
        lat, lng = float(lat), float(lng)
        identity = _require_identity(user_id)

        await self._consume(self._limiters.reverse, identity)
        probe = SearchProbe(latitude=lat, longitude=lng, radius_km=None, kind="reverse")
        entry = SearchLogEntry(search_type=SearchType.REVERSE_GEOCODING, user_id=user_id, latitude=lat, longitude=lng)
        await self._screen(identity, probe, entry, client)

        logger.debug(f"Reverse geocode by {identity} at ({lat:.5f}, {lng:.5f})")
        option = await self._gateway.reverse_geocode(lat, lng)

        await self._record(replace(entry, results_count=0 if option is None else 1), client)
        return option

    async def get_popular_locations(self, max_results: int = 10) -> list[LocationOption]:
        """Most frequent listing labels, generalized to DISTRICT level.

        Raises:
            InvalidResultLimit: If max_results is outside 1..50.
            SpatialStoreUnavailable: If the store cannot be queried.
        """
        if not validate_result_limit(max_results, POPULAR_MAX_RESULTS):
            raise InvalidResultLimit(POPULAR_MAX_RESULTS)

        cached = self._popular_cache.get(max_results)
        if cached is not None:
            return list(cached)

        labels = await self._store.popular_locations(max_results)
        results = [_label_option(label) for label in labels]
        self._popular_cache.set(max_results, tuple(results))
        logger.info(f"Popular locations refreshed: {len(results)} label(s)")
        return results

    async def get_location_suggestions(self, query: str, max_results: int = 8) -> list[LocationOption]:
        """Hybrid store and geocoder suggestions for a partial query.

        Store labels fill up to half the limit and come first; geocoder results
        fill the rest. Entries are de-duplicated by normalized display name,
        keeping the highest confidence. When the geocoder is unavailable the
        store suggestions are returned alone.

        Raises:
            InvalidQuery: If the trimmed query is shorter than 2 characters.
            InvalidResultLimit: If max_results is outside 1..20.
            SpatialStoreUnavailable: If the store cannot be queried.
        """
        text = (query or "").strip()
        if len(text) < MIN_SUGGESTION_QUERY_LENGTH:
            raise InvalidQuery(
                "Suggestion query too short",
                [f"Query must be at least {MIN_SUGGESTION_QUERY_LENGTH} characters"],
            )
        if len(text) > MAX_QUERY_LENGTH:
            raise InvalidQuery("Suggestion query too long", [f"Query must be at most {MAX_QUERY_LENGTH} characters"])
        if not validate_result_limit(max_results, SUGGESTIONS_MAX_RESULTS):
            raise InvalidResultLimit(SUGGESTIONS_MAX_RESULTS)

        cache_key = (normalize_location_name(text), max_results)
        cached = self._suggestions_cache.get(cache_key)
        if cached is not None:
            return list(cached)

        labels = await self._store.matching_locations(text, max_results // 2)
        store_options = [_label_option(label) for label in labels]

        geocoded: list[LocationOption] = []
        if len(store_options) < max_results:
            try:
                limit = min(SEARCH_MAX_RESULTS, (max_results - len(store_options)) * 2)
                geocoded = await self._gateway.search(text, limit)
            except GeocodingUnavailable:
                logger.warning("Geocoder unavailable for suggestions; returning store suggestions only")

        results = _merge_suggestions(store_options, geocoded, max_results)
        self._suggestions_cache.set(cache_key, tuple(results))
        return results

    # --- Proximity ---

    async def find_nearby_tools(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        user_id: str | None = None,
        max_results: int = 20,
        client: ClientContext | None = None,
    ) -> list[NearbyToolResponse]:
        """Tools near a point, banded and generalized.

        Raises:
            InvalidCoordinates, InvalidRadius, InvalidResultLimit: On bad input.
            AuthenticationRequired: If no user id is given.
            RateLimitExceeded / SuspiciousPattern: When throttled.
            SpatialStoreUnavailable: If the store cannot be queried.
        """
        results = await self._find_nearby(
            EntityType.TOOL, SearchType.TOOL_SEARCH, lat, lng, radius_km, user_id, max_results, client
        )
        return [NearbyToolResponse.from_result(r) for r in results]

    async def find_nearby_bundles(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        user_id: str | None = None,
        max_results: int = 20,
        client: ClientContext | None = None,
    ) -> list[NearbyBundleResponse]:
        """Bundles near a point, banded and generalized. Raises as find_nearby_tools."""
        results = await self._find_nearby(
            EntityType.BUNDLE, SearchType.BUNDLE_SEARCH, lat, lng, radius_km, user_id, max_results, client
        )
        return [NearbyBundleResponse.from_result(r) for r in results]

    async def find_nearby_users(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        user_id: str | None = None,
        max_results: int = 20,
        client: ClientContext | None = None,
    ) -> list[NearbyUserResponse]:
        """Discoverable members near a point, excluding the caller. Raises as find_nearby_tools."""
        results = await self._find_nearby(
            EntityType.USER, SearchType.USER_SEARCH, lat, lng, radius_km, user_id, max_results, client
        )
        return [NearbyUserResponse.from_result(r) for r in results]

    async def _find_nearby(
        self,
        entity_type: EntityType,
        search_type: SearchType,
        lat: float,
        lng: float,
        radius_km: float,
        user_id: str | None,
        max_results: int,
        client: ClientContext | None,
    ) -> list[ProximityResult]:
        validate_proximity_query(lat, lng, radius_km, max_results)
        lat, lng, radius_km = float(lat), float(lng), float(radius_km)
        identity = _require_identity(user_id)

        await self._consume(self._limiters.proximity, identity)
        probe = SearchProbe(latitude=lat, longitude=lng, radius_km=radius_km, kind=entity_type.value)
        entry = SearchLogEntry(
            search_type=search_type,
            user_id=user_id,
            latitude=lat,
            longitude=lng,
            radius_km=radius_km,
        )
        await self._screen(identity, probe, entry, client)

        exclude = user_id if entity_type is EntityType.USER else None
        results = await self._engine.find_nearby(
            lat, lng, radius_km, entity_type, max_results, exclude_owner_id=exclude
        )

        logger.info(
            f"Nearby {entity_type.value} search by {identity}: {len(results)} result(s) within {radius_km:g} km"
        )
        await self._record(replace(entry, results_count=len(results)), client)
        return results

    # --- Input processing and analysis ---

    async def process_location_input(
        self,
        location_input: str | None,
        fallback: str | None = None,
        user_id: str | None = None,
        client: ClientContext | None = None,
    ) -> LocationOption | None:
        """Resolve a freeform location input to a single option.

        Coordinates are reverse-geocoded; otherwise the first search hit for
        the text is used; otherwise the fallback text is searched.

        Returns:
            The resolved option, or None when nothing matched.
        """
        coordinates = parse_coordinates(location_input)
        if coordinates is not None:
            return await self.reverse_geocode(coordinates[0], coordinates[1], user_id, client)

        for candidate in (location_input, fallback):
            if candidate and candidate.strip():
                results = await self.search_locations(candidate, 1, user_id=user_id, client=client)
                if results:
                    return results[0]
        return None

    def analyze_clusters(self, locations: Sequence[LocationOption], radius_km: float = 5.0) -> list[LocationCluster]:
        """Group locations into geographic clusters ordered by size."""
        return _analyze_clusters(list(locations), radius_km)

    @staticmethod
    def normalize_location_name(name: str) -> str:
        return normalize_location_name(name)

    # --- Maintenance ---

    async def sweep(self) -> dict[str, int]:
        """Evict idle limiter and detector state and expired cache entries.

        Returns:
            Counts of removed items by kind.
        """
        windows = 0
        for limiter in self._limiters.all():
            windows += await limiter.sweep()
        histories = await self._detector.sweep()
        cache_entries = (
            self._gateway.purge_expired()
            + self._popular_cache.purge_expired()
            + self._suggestions_cache.purge_expired()
        )
        return {"rate_windows": windows, "pattern_histories": histories, "cache_entries": cache_entries}

    async def purge_search_logs(self) -> int:
        """Delete audit records older than the retention period."""
        removed = await self._store.purge_search_logs(retention_cutoff(self._search_log_retention_days))
        if removed:
            logger.info(f"Purged {removed} location search log(s) older than {self._search_log_retention_days} days")
        return removed

    def clear_caches(self) -> None:
        """Invalidate popular, suggestion and geocoder caches."""
        self._popular_cache.clear()
        self._suggestions_cache.clear()
        self._gateway.clear_cache()

    # --- Internals ---

    async def _consume(self, limiter: BaseRateLimiter, identity: str) -> None:
        decision = await limiter.check_and_consume(identity)
        if decision is RateDecision.EXCEEDED:
            raise RateLimitExceeded(identity, f"{limiter.name} limit exceeded")

    async def _screen(
        self,
        identity: str,
        probe: SearchProbe | None,
        entry: SearchLogEntry,
        client: ClientContext | None,
    ) -> None:
        if probe is None:
            verdict = await self._detector.check_blocked(identity)
        else:
            verdict = await self._detector.detect_suspicious_pattern(identity, probe)
        if not verdict:
            return
        await self._record(replace(entry, is_suspicious=True, suspicious_reason=verdict.reason), client)
        raise SuspiciousPattern(identity, verdict.reason or "")

    async def _record(self, entry: SearchLogEntry, client: ClientContext | None) -> None:
        if not self._search_log_enabled:
            return
        if client is not None:
            entry = replace(entry, ip_address=client.ip_address, user_agent=client.user_agent)
        try:
            await self._store.record_search(entry)
        except SpatialStoreUnavailable as e:
            # The audited request already completed; its outcome stands
            logger.error(f"Failed to record {entry.search_type} search log for user:{entry.user_id}: {e}")


def _require_identity(user_id: str | None) -> str:
    if not user_id:
        raise AuthenticationRequired("No authenticated user for location request")
    return f"user:{user_id}"


def _validate_search_query(query: str | None) -> str:
    text = (query or "").strip()
    if not text:
        raise InvalidQuery("Search query is required", ["Search query is required"])
    if len(text) > MAX_QUERY_LENGTH:
        raise InvalidQuery("Search query too long", [f"Search query must be at most {MAX_QUERY_LENGTH} characters"])
    return text


def _label_option(label: LocationLabel) -> LocationOption:
    approx = generalize(label.latitude, label.longitude, PrivacyLevel.DISTRICT)
    return LocationOption(
        display_name=label.display_name,
        latitude=approx.latitude,
        longitude=approx.longitude,
        source=LocationSource.DATABASE_FREQUENCY,
        city=label.city,
        state=label.state,
        country=label.country,
        precision_radius_m=approx.radius_m,
        confidence=min(1.0, label.count / POPULAR_CONFIDENCE_SATURATION),
    )


def _merge_suggestions(
    store_options: list[LocationOption],
    geocoded: list[LocationOption],
    max_results: int,
) -> list[LocationOption]:
    merged: dict[str, LocationOption] = {}
    for option in [*store_options, *geocoded]:
        key = normalize_location_name(option.display_name)
        current = merged.get(key)
        if current is None:
            merged[key] = option
        elif (option.confidence or 0.0) > (current.confidence or 0.0):
            # Replace in place so the first-seen position is kept
            merged[key] = option
    return list(merged.values())[:max_results]


def build_location_service(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    gateway: GeocodingGateway | None = None,
) -> LocationService:
    """Wire a LocationService from settings.

    Args:
        settings: Application settings.
        session_factory: Session factory for the SQL spatial store.
        gateway: Optional pre-built gateway (tests, CLI overrides).

    Returns:
        A ready LocationService with in-memory limiters and detector.
    """
    idle_ttl = settings.rate_limit_idle_ttl_seconds
    limiters = RateLimiters(
        search=InMemoryRateLimiter("search", settings.rate_limit_search_per_minute, idle_ttl_seconds=idle_ttl),
        reverse=InMemoryRateLimiter("reverse", settings.rate_limit_reverse_per_minute, idle_ttl_seconds=idle_ttl),
        proximity=InMemoryRateLimiter(
            "proximity", settings.rate_limit_proximity_per_minute, idle_ttl_seconds=idle_ttl
        ),
    )
    detector = TriangulationDetector(
        PatternPolicy(
            history_seconds=settings.pattern_history_seconds,
            block_requests=settings.pattern_block_requests,
            min_distance_km=settings.pattern_min_distance_km,
            min_points=settings.pattern_min_points,
            grid_min_points=settings.pattern_grid_min_points,
            grid_span_km=settings.pattern_grid_span_km,
            grid_burst_seconds=settings.pattern_grid_burst_seconds,
            small_radius_km=settings.pattern_small_radius_km,
            idle_ttl_seconds=idle_ttl,
        )
    )
    store = SqlSpatialStore(session_factory)
    return LocationService(
        gateway=gateway or get_configured_gateway(settings),
        engine=ProximityEngine(store),
        store=store,
        limiters=limiters,
        detector=detector,
        popular_cache_ttl=settings.popular_cache_ttl,
        suggestions_cache_ttl=settings.suggestions_cache_ttl,
        search_log_enabled=settings.search_log_enabled,
        search_log_retention_days=settings.search_log_retention_days,
    )
