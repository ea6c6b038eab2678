"""Add member_locations for nearby-member search.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "member_locations",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=False, unique=True),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("location_latitude", sa.Float, nullable=True),
        sa.Column("location_longitude", sa.Float, nullable=True),
        sa.Column("location_display", sa.String(255), nullable=True),
        sa.Column("location_privacy_level", sa.Integer, nullable=False, server_default="2"),
        sa.Column("is_discoverable", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_member_locations_location", "member_locations", ["location_latitude", "location_longitude"]
    )


def downgrade() -> None:
    op.drop_index("ix_member_locations_location", table_name="member_locations")
    op.drop_table("member_locations")
