"""Add company variations, relevance score and release retirement"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "20260301_0002"
down_revision = "20260112_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("feed_sources", sa.Column("company_variations", sa.JSON(), nullable=True))
    op.add_column(
        "press_releases",
        sa.Column("relevance_score", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column("press_releases", sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("press_releases") as batch:
        batch.drop_column("retired_at")
        batch.drop_column("relevance_score")
    with op.batch_alter_table("feed_sources") as batch:
        batch.drop_column("company_variations")
