"""ORM model registry — import all models so Alembic autogenerate discovers them."""

from location_api.models.base import Base
from location_api.models.bundle import Bundle, BundleTool
from location_api.models.location_search_log import LocationSearchLog, SearchType
from location_api.models.member_location import MemberLocation
from location_api.models.tool import Tool

__all__ = [
    "Base",
    "Bundle",
    "BundleTool",
    "LocationSearchLog",
    "MemberLocation",
    "SearchType",
    "Tool",
]
