"""MemberLocation model — a marketplace member's public profile location."""

from sqlalchemy import Boolean, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from location_api.models.base import Base, TimestampMixin, UUIDMixin


class MemberLocation(Base, UUIDMixin, TimestampMixin):
    """Profile location of one member, keyed by the identity-provider user id.

    Only members with ``is_discoverable`` set and a stored coordinate appear
    in nearby-member searches.
    """

    __tablename__ = "member_locations"

    user_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    location_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_display: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location_privacy_level: Mapped[int] = mapped_column(Integer, nullable=False, default=2, server_default="2")

    is_discoverable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    __table_args__ = (Index("ix_member_locations_location", "location_latitude", "location_longitude"),)
