"""create_distance_cache_table

Revision ID: 7c1e4a9b2d30
Revises:
Create Date: 2026-10-18 09:12:40.481207

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "7c1e4a9b2d30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create distance_cache table keyed by normalized location pair."""
    op.create_table(
        "distance_cache",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("cache_key", sa.String(512), nullable=False),
        sa.Column("origin", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("distance", sa.Integer(), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("formatted_distance", sa.String(64), nullable=False),
        sa.Column("formatted_duration", sa.String(64), nullable=False),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    )
    # Lookups are always by exact key
    op.create_index(
        "ix_distance_cache_cache_key", "distance_cache", ["cache_key"], unique=True
    )


def downgrade() -> None:
    """Drop distance_cache table."""
    op.drop_index("ix_distance_cache_cache_key", table_name="distance_cache")
    op.drop_table("distance_cache")
