"""Bundle models — a published set of tools rented together at a discount."""

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, Float, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from location_api.models.base import Base, TimestampMixin, UUIDMixin
from location_api.models.tool import Tool


class Bundle(Base, UUIDMixin, TimestampMixin):
    """A bundle of tools offered by one owner at a single pickup location.

    Attributes:
        discount_percentage: Percentage taken off the summed daily rates.
        is_published: Only published bundles are searchable.
        tools: Member tool links, in ``position`` order.
    """

    __tablename__ = "bundles"

    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    owner_display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))

    location_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_display: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_privacy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=2, server_default="2")

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    tools: Mapped[list["BundleTool"]] = relationship(
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="BundleTool.position",
        lazy="selectin",
    )

    __table_args__ = (Index("ix_bundles_location", "location_latitude", "location_longitude"),)


class BundleTool(Base, UUIDMixin):
    """Membership of a tool in a bundle."""

    __tablename__ = "bundle_tools"

    bundle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bundles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tool_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tools.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    bundle: Mapped[Bundle] = relationship(back_populates="tools")
    tool: Mapped[Tool] = relationship(lazy="selectin")

    __table_args__ = (UniqueConstraint("bundle_id", "tool_id", name="uq_bundle_tools_bundle_tool"),)
