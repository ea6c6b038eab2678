"""Spatial store — listings with stored coordinates plus the search audit trail.

The location engine talks to persistence only through ``SpatialStore``.
``SqlSpatialStore`` is the SQLAlchemy implementation; it opens one session per
call and wraps every database failure in ``SpatialStoreUnavailable`` so that
callers never mistake an outage for "nothing nearby".
"""

import enum
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from loguru import logger
from sqlalchemy import ColumnElement, String, and_, case, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import InstrumentedAttribute, selectinload

from location_api.lib.errors import SpatialStoreUnavailable
from location_api.lib.geo.distance import BoundingBox
from location_api.lib.privacy.generalizer import PrivacyLevel
from location_api.models.bundle import Bundle, BundleTool
from location_api.models.location_search_log import LocationSearchLog, SearchType
from location_api.models.member_location import MemberLocation
from location_api.models.tool import Tool


class EntityType(enum.StrEnum):
    """Kind of marketplace entity searched by proximity."""

    TOOL = "tool"
    BUNDLE = "bundle"
    USER = "user"


@dataclass(frozen=True)
class SpatialEntity:
    """A searchable listing or member as read from the store.

    ``latitude``/``longitude`` are the exact stored coordinate and must not
    leave the engine without generalization.
    """

    id: uuid.UUID
    entity_type: EntityType
    name: str
    owner_id: str
    owner_display_name: str
    latitude: float
    longitude: float
    privacy_level: PrivacyLevel
    description: str | None = None
    category: str | None = None
    location_display: str | None = None
    is_available: bool = True
    average_rating: float | None = None
    review_count: int = 0
    # Tool-only
    daily_rate: Decimal | None = None
    condition: str | None = None
    image_urls: list[str] = field(default_factory=list)
    # Bundle-only
    image_url: str | None = None
    tool_count: int = 0
    original_cost: Decimal | None = None
    discount_percentage: Decimal | None = None
    # User-only; tool_count above also counts a member's approved tools
    avatar_url: str | None = None
    bundle_count: int = 0


@dataclass(frozen=True)
class LocationLabel:
    """A stored location label aggregated across listings."""

    display_name: str
    latitude: float
    longitude: float
    count: int
    city: str | None = None
    state: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class SearchLogEntry:
    """One audit record to append."""

    search_type: SearchType
    user_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    radius_km: float | None = None
    query: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    is_suspicious: bool = False
    suspicious_reason: str | None = None
    results_count: int = 0


class SpatialStore(ABC):
    """Persistence collaborator for proximity and label lookups."""

    @abstractmethod
    async def entities_in_bounds(self, entity_type: EntityType, bounds: BoundingBox) -> list[SpatialEntity]:
        """Return searchable entities whose stored coordinate lies in ``bounds``.

        Raises:
            SpatialStoreUnavailable: If the store cannot be queried.
        """

    @abstractmethod
    async def popular_locations(self, limit: int) -> list[LocationLabel]:
        """Return the most frequent listing labels, most frequent first."""

    @abstractmethod
    async def matching_locations(self, term: str, limit: int) -> list[LocationLabel]:
        """Return listing labels whose display, city or state contains ``term``."""

    @abstractmethod
    async def record_search(self, entry: SearchLogEntry) -> None:
        """Append one search audit record."""

    @abstractmethod
    async def purge_search_logs(self, older_than: datetime) -> int:
        """Delete audit records created before ``older_than``. Returns the count."""


class SqlSpatialStore(SpatialStore):
    """SQLAlchemy-backed SpatialStore.

    Args:
        session_factory: Async session factory bound to the application engine.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def entities_in_bounds(self, entity_type: EntityType, bounds: BoundingBox) -> list[SpatialEntity]:
        try:
            async with self._session_factory() as session:
                if entity_type is EntityType.TOOL:
                    tools = await session.execute(
                        select(Tool).where(
                            Tool.is_approved.is_(True),
                            Tool.is_available.is_(True),
                            _in_bounds(Tool.location_latitude, Tool.location_longitude, bounds),
                        )
                    )
                    return [_tool_entity(t) for t in tools.scalars().all()]

                if entity_type is EntityType.USER:
                    members = await session.execute(
                        select(MemberLocation, _approved_tool_count(), _published_bundle_count()).where(
                            MemberLocation.is_discoverable.is_(True),
                            _in_bounds(MemberLocation.location_latitude, MemberLocation.location_longitude, bounds),
                        )
                    )
                    return [_member_entity(*row) for row in members.all()]

                bundles = await session.execute(
                    select(Bundle)
                    .options(selectinload(Bundle.tools).selectinload(BundleTool.tool))
                    .where(
                        Bundle.is_published.is_(True),
                        _in_bounds(Bundle.location_latitude, Bundle.location_longitude, bounds),
                    )
                )
                return [_bundle_entity(b) for b in bundles.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Spatial store query failed for {entity_type.value}: {type(e).__name__}")
            raise SpatialStoreUnavailable(f"{entity_type.value} lookup failed") from e

    async def popular_locations(self, limit: int) -> list[LocationLabel]:
        return await self._grouped_labels(limit)

    async def matching_locations(self, term: str, limit: int) -> list[LocationLabel]:
        needle = term.strip().lower()
        condition = or_(
            *(
                func.lower(column, type_=String).contains(needle, autoescape=True)
                for column in (Tool.location_display, Tool.location_city, Tool.location_state)
            )
        )
        return await self._grouped_labels(limit, condition)

    async def record_search(self, entry: SearchLogEntry) -> None:
        try:
            async with self._session_factory() as session:
                session.add(
                    LocationSearchLog(
                        user_id=entry.user_id,
                        search_type=entry.search_type.value,
                        search_lat=entry.latitude,
                        search_lng=entry.longitude,
                        radius_km=entry.radius_km,
                        search_query=entry.query[:255] if entry.query else None,
                        ip_address=entry.ip_address,
                        user_agent=entry.user_agent[:500] if entry.user_agent else None,
                        is_suspicious=entry.is_suspicious,
                        suspicious_reason=entry.suspicious_reason,
                        results_count=entry.results_count,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to write location search log: {type(e).__name__}")
            raise SpatialStoreUnavailable("search log write failed") from e

    async def purge_search_logs(self, older_than: datetime) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(LocationSearchLog).where(LocationSearchLog.created_at < older_than)
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to purge location search logs: {type(e).__name__}")
            raise SpatialStoreUnavailable("search log purge failed") from e

    async def _grouped_labels(self, limit: int, *conditions: ColumnElement[bool]) -> list[LocationLabel]:
        """Count listings per normalized label in the database, most frequent first.

        Each group is represented by its most complete row (city, state and
        country filled in), ties broken by id.
        """
        key = _label_key(Tool.location_display)
        completeness = _filled(Tool.location_city) + _filled(Tool.location_state) + _filled(Tool.location_country)
        ranked = (
            select(
                Tool.location_display,
                Tool.location_latitude,
                Tool.location_longitude,
                Tool.location_city,
                Tool.location_state,
                Tool.location_country,
                key.label("label_key"),
                func.count().over(partition_by=key).label("label_count"),
                func.row_number().over(partition_by=key, order_by=[completeness.desc(), Tool.id]).label("label_rank"),
            )
            .where(
                Tool.location_display.is_not(None),
                key != "",
                Tool.location_latitude.is_not(None),
                Tool.location_longitude.is_not(None),
                *conditions,
            )
            .subquery()
        )
        stmt = (
            select(ranked)
            .where(ranked.c.label_rank == 1)
            .order_by(ranked.c.label_count.desc(), ranked.c.label_key)
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(f"Location label query failed: {type(e).__name__}")
            raise SpatialStoreUnavailable("location label lookup failed") from e

        return [
            LocationLabel(
                display_name=row.location_display,
                latitude=row.location_latitude,
                longitude=row.location_longitude,
                count=row.label_count,
                city=row.location_city,
                state=row.location_state,
                country=row.location_country,
            )
            for row in rows
        ]


def retention_cutoff(retention_days: int, now: datetime | None = None) -> datetime:
    """Return the timestamp before which search logs are purged."""
    return (now or datetime.now(UTC)) - timedelta(days=retention_days)


def _in_bounds(lat_column, lng_column, bounds: BoundingBox):  # type: ignore[no-untyped-def]
    lat_clause = lat_column.between(bounds.south, bounds.north)
    if bounds.crosses_antimeridian:
        lng_clause = or_(lng_column >= bounds.west, lng_column <= bounds.east)
    else:
        lng_clause = lng_column.between(bounds.west, bounds.east)
    return and_(lat_column.is_not(None), lng_column.is_not(None), lat_clause, lng_clause)


def _tool_entity(tool: Tool) -> SpatialEntity:
    return SpatialEntity(
        id=tool.id,
        entity_type=EntityType.TOOL,
        name=tool.name,
        owner_id=tool.owner_id,
        owner_display_name=tool.owner_display_name,
        latitude=tool.location_latitude,  # type: ignore[arg-type]
        longitude=tool.location_longitude,  # type: ignore[arg-type]
        privacy_level=_privacy_level(tool.location_privacy_level),
        description=tool.description,
        category=tool.category,
        location_display=tool.location_display,
        is_available=tool.is_available,
        average_rating=tool.average_rating,
        review_count=tool.review_count or 0,
        daily_rate=tool.daily_rate,
        condition=tool.condition,
        image_urls=list(tool.image_urls or []),
    )


def _bundle_entity(bundle: Bundle) -> SpatialEntity:
    member_tools = [link.tool for link in bundle.tools if link.tool is not None]
    original_cost = sum((Decimal(t.daily_rate or 0) for t in member_tools), Decimal("0"))
    return SpatialEntity(
        id=bundle.id,
        entity_type=EntityType.BUNDLE,
        name=bundle.name,
        owner_id=bundle.owner_id,
        owner_display_name=bundle.owner_display_name,
        latitude=bundle.location_latitude,  # type: ignore[arg-type]
        longitude=bundle.location_longitude,  # type: ignore[arg-type]
        privacy_level=_privacy_level(bundle.location_privacy_level),
        description=bundle.description,
        category=bundle.category,
        location_display=bundle.location_display,
        is_available=bool(member_tools) and all(t.is_available for t in member_tools),
        average_rating=bundle.average_rating,
        review_count=bundle.review_count or 0,
        image_url=bundle.image_url,
        tool_count=len(member_tools),
        original_cost=original_cost,
        discount_percentage=bundle.discount_percentage,
    )


def _member_entity(member: MemberLocation, tool_count: int | None, bundle_count: int | None) -> SpatialEntity:
    return SpatialEntity(
        id=member.id,
        entity_type=EntityType.USER,
        name=member.display_name,
        owner_id=member.user_id,
        owner_display_name=member.display_name,
        latitude=member.location_latitude,  # type: ignore[arg-type]
        longitude=member.location_longitude,  # type: ignore[arg-type]
        privacy_level=_privacy_level(member.location_privacy_level),
        location_display=member.location_display,
        avatar_url=member.avatar_url,
        tool_count=tool_count or 0,
        bundle_count=bundle_count or 0,
    )


def _privacy_level(value: int | None) -> PrivacyLevel:
    # Unknown or missing levels fall back to the coarsest generalization
    try:
        return PrivacyLevel(value)
    except ValueError:
        return PrivacyLevel.DISTRICT


def _label_key(column: InstrumentedAttribute[str | None]) -> ColumnElement[str]:
    # SQL form of normalize_location_name; collapses runs of up to 16 spaces
    key = func.replace(func.lower(column, type_=String), ",", " ")
    for _ in range(4):
        key = func.replace(key, "  ", " ")
    return func.trim(key, type_=String)


def _filled(column: InstrumentedAttribute[str | None]) -> ColumnElement[int]:
    return case((func.coalesce(column, "") != "", 1), else_=0)


def _approved_tool_count() -> ColumnElement[int]:
    return (
        select(func.count(Tool.id))
        .where(Tool.owner_id == MemberLocation.user_id, Tool.is_approved.is_(True))
        .correlate(MemberLocation)
        .scalar_subquery()
    )


def _published_bundle_count() -> ColumnElement[int]:
    return (
        select(func.count(Bundle.id))
        .where(Bundle.owner_id == MemberLocation.user_id, Bundle.is_published.is_(True))
        .correlate(MemberLocation)
        .scalar_subquery()
    )
