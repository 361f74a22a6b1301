"""add image_url and cache_key to podcasts

Revision ID: 20261018_000002
Revises: 20261018_000001
Create Date: 2026-10-18 00:00:02
"""

from alembic import op  # type: ignore[attr-defined]
import sqlalchemy as sa
import sqlmodel

revision = "20261018_000002"
down_revision = "20261018_000001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "podcasts",
        sa.Column("image_url", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    )
    # ETag from the last fetch; replayed as If-None-Match on conditional fetches
    op.add_column(
        "podcasts",
        sa.Column("cache_key", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
    )


def downgrade() -> None:
    with op.batch_alter_table("podcasts") as batch_op:
        batch_op.drop_column("cache_key")
        batch_op.drop_column("image_url")
