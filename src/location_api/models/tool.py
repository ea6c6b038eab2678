"""Tool model — a rentable listing with an owner-controlled location."""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Float, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from location_api.models.base import Base, TimestampMixin, UUIDMixin


class Tool(Base, UUIDMixin, TimestampMixin):
    """A tool listed for rent.

    Attributes:
        owner_id: Identity of the listing owner.
        owner_display_name: Public name shown next to the listing.
        location_latitude / location_longitude: Exact stored coordinate. Never
            returned to other users.
        location_display: Owner-supplied label (e.g. "Clintonville, Columbus").
        location_privacy_level: Owner's PrivacyLevel (1 = exact .. 4 = district).
        is_approved / is_available: Only approved, available tools are searchable.
    """

    __tablename__ = "tools"

    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    owner_display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    condition: Mapped[str | None] = mapped_column(String(50), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    image_urls: Mapped[list | None] = mapped_column(JSON, nullable=True)

    location_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_display: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_privacy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=2, server_default="2")

    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (Index("ix_tools_location", "location_latitude", "location_longitude"),)
