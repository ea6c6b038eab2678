"""Shared test fixtures: settings, async database, fake collaborators and auth tokens."""

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from location_api.core.config import Settings
from location_api.core.security import create_access_token
from location_api.lib.geo.distance import BoundingBox
from location_api.lib.geocoder.base import BaseGeocoder, GeocodingProviderError, LocationOption
from location_api.lib.geocoder.gateway import GeocodingGateway
from location_api.lib.privacy.generalizer import PrivacyLevel
from location_api.lib.ratelimit.memory import InMemoryRateLimiter
from location_api.lib.ratelimit.patterns import TriangulationDetector
from location_api.models import Base
from location_api.services.location_service import LocationService, RateLimiters
from location_api.services.proximity_engine import ProximityEngine
from location_api.services.spatial_store import EntityType, LocationLabel, SearchLogEntry, SpatialEntity, SpatialStore

TEST_SECRET_KEY = "test-secret-key-not-for-production-0123456789"


class FakeGeocoder(BaseGeocoder):
    """Scriptable provider. ``failures`` are raised, in order, before any result is returned."""

    def __init__(self) -> None:
        self.search_results: list[LocationOption] = []
        self.reverse_result: LocationOption | None = None
        self.failures: list[Exception] = []
        self.search_calls: list[tuple[str, int, str | None]] = []
        self.reverse_calls: list[tuple[float, float]] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    def _maybe_fail(self) -> None:
        if self.failures:
            raise self.failures.pop(0)

    async def search(self, query: str, limit: int, country_code: str | None = None) -> list[LocationOption]:
        self.search_calls.append((query, limit, country_code))
        self._maybe_fail()
        return self.search_results[:limit]

    async def reverse(self, lat: float, lng: float) -> LocationOption | None:
        self.reverse_calls.append((lat, lng))
        self._maybe_fail()
        return self.reverse_result


class InMemorySpatialStore(SpatialStore):
    """SpatialStore over plain lists."""

    def __init__(self) -> None:
        self.entities: list[SpatialEntity] = []
        self.labels: list[LocationLabel] = []
        self.logs: list[SearchLogEntry] = []
        self.bounds_queries: list[tuple[EntityType, BoundingBox]] = []
        self.label_queries: list[tuple[str, int]] = []
        self.purged_before: datetime | None = None

    async def entities_in_bounds(self, entity_type: EntityType, bounds: BoundingBox) -> list[SpatialEntity]:
        self.bounds_queries.append((entity_type, bounds))
        return [
            e for e in self.entities if e.entity_type is entity_type and bounds.contains(e.latitude, e.longitude)
        ]

    async def popular_locations(self, limit: int) -> list[LocationLabel]:
        self.label_queries.append(("", limit))
        return sorted(self.labels, key=lambda label: label.count, reverse=True)[:limit]

    async def matching_locations(self, term: str, limit: int) -> list[LocationLabel]:
        self.label_queries.append((term, limit))
        needle = term.lower()
        return [label for label in self.labels if needle in label.display_name.lower()][:limit]

    async def record_search(self, entry: SearchLogEntry) -> None:
        self.logs.append(entry)

    async def purge_search_logs(self, older_than: datetime) -> int:
        self.purged_before = older_than
        removed = len(self.logs)
        self.logs.clear()
        return removed


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key=TEST_SECRET_KEY,
        jwt_algorithm="HS256",
        jwt_access_token_expire_minutes=30,
        geocoder_provider="nominatim",
    )


@pytest.fixture
def make_token(settings: Settings) -> Callable[[str], str]:
    """Issue access tokens signed with the test secret."""

    def _make(user_id: str) -> str:
        return create_access_token(user_id, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    return _make


@pytest.fixture
def make_entity() -> Callable[..., SpatialEntity]:
    """Build SpatialEntity instances with sensible defaults."""

    def _make(
        latitude: float,
        longitude: float,
        *,
        entity_type: EntityType = EntityType.TOOL,
        privacy_level: PrivacyLevel = PrivacyLevel.NEIGHBORHOOD,
        **overrides: object,
    ) -> SpatialEntity:
        values: dict[str, object] = {
            "id": uuid.uuid4(),
            "entity_type": entity_type,
            "name": "Cordless Drill" if entity_type is EntityType.TOOL else "Deck Repair Kit",
            "owner_id": "owner-1",
            "owner_display_name": "Sam",
            "latitude": latitude,
            "longitude": longitude,
            "privacy_level": privacy_level,
            "daily_rate": Decimal("15.00") if entity_type is EntityType.TOOL else None,
        }
        values.update(overrides)
        return SpatialEntity(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def fake_geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def spatial_store() -> InMemorySpatialStore:
    return InMemorySpatialStore()


@pytest.fixture
def gateway(fake_geocoder: FakeGeocoder) -> GeocodingGateway:
    """Gateway around the fake provider with backoff sleeps mocked out."""
    return GeocodingGateway(fake_geocoder, timeout=1.0, max_retries=2, sleep=AsyncMock())


@pytest.fixture
def location_service(gateway: GeocodingGateway, spatial_store: InMemorySpatialStore) -> LocationService:
    """LocationService wired to in-memory collaborators and default limits."""
    return LocationService(
        gateway=gateway,
        engine=ProximityEngine(spatial_store),
        store=spatial_store,
        limiters=RateLimiters(
            search=InMemoryRateLimiter("search", 30),
            reverse=InMemoryRateLimiter("reverse", 10),
            proximity=InMemoryRateLimiter("proximity", 20),
        ),
        detector=TriangulationDetector(),
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
def provider_error() -> Callable[..., GeocodingProviderError]:
    """Build provider errors for retry tests."""

    def _make(status_code: int | None = None, *, transient: bool = True) -> GeocodingProviderError:
        return GeocodingProviderError("fake", "boom", status_code=status_code, transient=transient)

    return _make
