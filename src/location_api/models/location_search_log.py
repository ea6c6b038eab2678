"""LocationSearchLog model — append-only audit trail of location lookups."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from location_api.models.base import Base, UUIDMixin


class SearchType(enum.StrEnum):
    """Kind of location lookup that was performed."""

    TOOL_SEARCH = "tool_search"
    BUNDLE_SEARCH = "bundle_search"
    USER_SEARCH = "user_search"
    PROXIMITY_SEARCH = "proximity_search"
    GEOCODING = "geocoding"
    REVERSE_GEOCODING = "reverse_geocoding"


class LocationSearchLog(Base, UUIDMixin):
    """One location lookup by an identity. Write-only; purged after retention.

    ``suspicious_reason`` is internal and never exposed through the API.
    """

    __tablename__ = "location_search_logs"

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    search_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    search_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    search_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    radius_km: Mapped[float | None] = mapped_column(Float, nullable=True)
    search_query: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_suspicious: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    suspicious_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    results_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
