"""Create feed_sources, press_releases and job_runs tables"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "20260112_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "feed_sources",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("url", sa.String(length=2048), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("feed_type", sa.String(length=16), nullable=False, server_default="custom"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.String(length=512), nullable=True),
        sa.Column("success_rate", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("fetch_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("company_id", sa.String(length=64), nullable=True),
        sa.Column("company_name", sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "url", name="uq_feed_sources_tenant_url"),
    )
    op.create_index("ix_feed_sources_tenant_enabled", "feed_sources", ["tenant_id", "enabled"], unique=False)

    op.create_table(
        "press_releases",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=False),
        sa.Column("release_key", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("source_url", sa.String(length=2048), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("company_id", sa.String(length=64), nullable=True),
        sa.Column("matched_company_name", sa.String(length=200), nullable=True),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "source_url", name="uq_press_releases_tenant_url"),
    )
    op.create_index(
        "ix_press_releases_tenant_published",
        "press_releases",
        ["tenant_id", "published_at"],
        unique=False,
    )
    op.create_index("ix_press_releases_content_hash", "press_releases", ["content_hash"], unique=False)

    op.create_table(
        "job_runs",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("stage", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=True),
        sa.Column("task_name", sa.String(length=100), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_code", sa.String(length=64), nullable=True),
        sa.Column("error_message", sa.String(length=512), nullable=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("stats", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_job_runs_stage_status", "job_runs", ["stage", "status"], unique=False)
    op.create_index("ix_job_runs_trace", "job_runs", ["trace_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_job_runs_trace", table_name="job_runs")
    op.drop_index("ix_job_runs_stage_status", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_index("ix_press_releases_content_hash", table_name="press_releases")
    op.drop_index("ix_press_releases_tenant_published", table_name="press_releases")
    op.drop_table("press_releases")
    op.drop_index("ix_feed_sources_tenant_enabled", table_name="feed_sources")
    op.drop_table("feed_sources")
