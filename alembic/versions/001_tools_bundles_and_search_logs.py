"""Initial migration: tools, bundles, bundle_tools and location_search_logs tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _location_columns() -> list[sa.Column]:
    return [
        sa.Column("location_latitude", sa.Float, nullable=True),
        sa.Column("location_longitude", sa.Float, nullable=True),
        sa.Column("location_display", sa.String(255), nullable=True),
        sa.Column("location_city", sa.String(100), nullable=True),
        sa.Column("location_state", sa.String(100), nullable=True),
        sa.Column("location_country", sa.String(100), nullable=True),
        sa.Column("location_privacy_level", sa.Integer, nullable=False, server_default="2"),
    ]


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tools",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("owner_id", sa.String(100), nullable=False),
        sa.Column("owner_display_name", sa.String(200), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("condition", sa.String(50), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("image_urls", sa.JSON, nullable=True),
        *_location_columns(),
        sa.Column("is_approved", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_available", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("average_rating", sa.Float, nullable=True),
        sa.Column("review_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamp_columns(),
    )
    op.create_index("ix_tools_owner_id", "tools", ["owner_id"])
    op.create_index("ix_tools_category", "tools", ["category"])
    op.create_index("ix_tools_location", "tools", ["location_latitude", "location_longitude"])

    op.create_table(
        "bundles",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("owner_id", sa.String(100), nullable=False),
        sa.Column("owner_display_name", sa.String(200), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        *_location_columns(),
        sa.Column("is_published", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("average_rating", sa.Float, nullable=True),
        sa.Column("review_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamp_columns(),
    )
    op.create_index("ix_bundles_owner_id", "bundles", ["owner_id"])
    op.create_index("ix_bundles_category", "bundles", ["category"])
    op.create_index("ix_bundles_location", "bundles", ["location_latitude", "location_longitude"])

    op.create_table(
        "bundle_tools",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("bundle_id", sa.Uuid, sa.ForeignKey("bundles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tool_id", sa.Uuid, sa.ForeignKey("tools.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("bundle_id", "tool_id", name="uq_bundle_tools_bundle_tool"),
    )
    op.create_index("ix_bundle_tools_bundle_id", "bundle_tools", ["bundle_id"])

    op.create_table(
        "location_search_logs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("search_type", sa.String(30), nullable=False),
        sa.Column("search_lat", sa.Float, nullable=True),
        sa.Column("search_lng", sa.Float, nullable=True),
        sa.Column("radius_km", sa.Float, nullable=True),
        sa.Column("search_query", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("is_suspicious", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("suspicious_reason", sa.String(255), nullable=True),
        sa.Column("results_count", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_location_search_logs_created_at", "location_search_logs", ["created_at"])
    op.create_index("ix_location_search_logs_user_id", "location_search_logs", ["user_id"])
    op.create_index("ix_location_search_logs_search_type", "location_search_logs", ["search_type"])


def downgrade() -> None:
    op.drop_table("location_search_logs")
    op.drop_table("bundle_tools")
    op.drop_table("bundles")
    op.drop_table("tools")
