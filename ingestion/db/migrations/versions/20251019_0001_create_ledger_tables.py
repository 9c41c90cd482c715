"""Create news ledger, rule store, moderation queue and job_runs tables"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "20251019_0001"
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
        "news",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("ts", sa.BigInteger(), nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("text_original", sa.Text(), nullable=True),
        sa.Column("text_translated", sa.Text(), nullable=True),
        sa.Column("channel_message_id", sa.BigInteger(), nullable=True),
        sa.Column("delivery_kind", sa.String(length=8), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="published"),
        *_timestamps(),
        sa.UniqueConstraint("content_hash", name="uq_news_content_hash"),
    )
    op.create_index("ix_news_date", "news", ["date"], unique=False)
    op.create_index("ix_news_ts", "news", ["ts"], unique=False)
    op.create_index("ix_news_status_id", "news", ["status", "id"], unique=False)

    op.create_table(
        "meta",
        sa.Column("key", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
    )

    op.create_table(
        "aggregator",
        sa.Column("date", sa.String(length=10), primary_key=True, nullable=False),
        sa.Column("published", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rejected", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("moderated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("filtered", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "filter_aggregator",
        sa.Column("date", sa.String(length=10), primary_key=True, nullable=False),
        sa.Column("note", sa.String(length=200), primary_key=True, nullable=False),
        sa.Column("hits", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "moderation_items",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("text_original", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("media", sa.String(length=2048), nullable=True),
        sa.Column("filter_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_moderation_items_created", "moderation_items", ["created_at"], unique=False)

    op.create_table(
        "filters",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("keyword", sa.String(length=512), nullable=False),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("match_type", sa.String(length=16), nullable=False, server_default="substring"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.String(length=200), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    op.create_index("ix_filters_sort", "filters", ["priority", "updated_at"], unique=False)
    op.create_index(
        "uq_filters_active_keyword",
        "filters",
        ["keyword", "match_type"],
        unique=True,
        sqlite_where=sa.text("active = 1"),
        postgresql_where=sa.text("active"),
    )

    op.create_table(
        "filter_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("default_action", sa.String(length=16), nullable=False, server_default="publish"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.CheckConstraint("id = 1", name="ck_filter_settings_singleton"),
    )

    op.create_table(
        "job_runs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("stage", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("source", sa.String(length=50), nullable=True),
        sa.Column("task_name", sa.String(length=100), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("items_seen", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("items_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.String(length=512), nullable=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_job_runs_stage_status", "job_runs", ["stage", "status"], unique=False)
    op.create_index("ix_job_runs_trace", "job_runs", ["trace_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_job_runs_trace", table_name="job_runs")
    op.drop_index("ix_job_runs_stage_status", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_table("filter_settings")
    op.drop_index("uq_filters_active_keyword", table_name="filters")
    op.drop_index("ix_filters_sort", table_name="filters")
    op.drop_table("filters")
    op.drop_index("ix_moderation_items_created", table_name="moderation_items")
    op.drop_table("moderation_items")
    op.drop_table("filter_aggregator")
    op.drop_table("aggregator")
    op.drop_table("meta")
    op.drop_index("ix_news_status_id", table_name="news")
    op.drop_index("ix_news_ts", table_name="news")
    op.drop_index("ix_news_date", table_name="news")
    op.drop_table("news")
