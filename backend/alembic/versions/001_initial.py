"""Initial schema: content snapshots, change events and sync runs.

Revision ID: 001
Revises:
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Latest snapshot per URL
    op.create_table(
        "content_pages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("url", sa.String(2048), nullable=False, unique=True),
        sa.Column("market", sa.String(32), nullable=False),
        sa.Column("language", sa.String(16), nullable=True),
        sa.Column("domain", sa.String(255), nullable=True),
        sa.Column("path", sa.String(2048), nullable=True),
        sa.Column("title", sa.String(512), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("text_content", sa.Text, nullable=True),
        sa.Column("word_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_article", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("publish_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("content_hash", sa.String(64), nullable=True),
        sa.Column("summary", sa.Text, nullable=True),
        sa.Column("summary_en", sa.Text, nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("content_type", sa.String(50), nullable=True),
        sa.Column("confidence", sa.Float, nullable=True),
        sa.Column("keywords", sa.JSON, nullable=True),
        sa.Column("signals", sa.JSON, nullable=True),
        sa.Column("last_crawled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_content_pages_market", "content_pages", ["market"])
    op.create_index("ix_content_pages_category", "content_pages", ["category"])
    op.create_index("ix_content_pages_last_crawled_at", "content_pages", ["last_crawled_at"])

    # Append-only change log
    op.create_table(
        "page_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "page_id",
            sa.String(36),
            sa.ForeignKey("content_pages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("market", sa.String(32), nullable=False),
        sa.Column("language", sa.String(16), nullable=True),
        sa.Column("title", sa.String(512), nullable=True),
        sa.Column("summary", sa.Text, nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("change_pct", sa.Integer, nullable=False, server_default="0"),
        sa.Column("event_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_page_events_page_id", "page_events", ["page_id"])
    op.create_index("ix_page_events_market", "page_events", ["market"])
    op.create_index("ix_page_events_event_type", "page_events", ["event_type"])
    op.create_index("ix_page_events_event_at", "page_events", ["event_at"])

    # Per-market sync run log
    op.create_table(
        "sync_runs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("market", sa.String(32), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("trigger_reason", sa.String(100), nullable=False, server_default="scheduled"),
        sa.Column("total_pages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("new_pages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("updated_pages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("celery_task_id", sa.String(255), nullable=True),
    )
    op.create_index("ix_sync_runs_market", "sync_runs", ["market"])


def downgrade() -> None:
    op.drop_index("ix_sync_runs_market")
    op.drop_table("sync_runs")
    op.drop_index("ix_page_events_event_at")
    op.drop_index("ix_page_events_event_type")
    op.drop_index("ix_page_events_market")
    op.drop_index("ix_page_events_page_id")
    op.drop_table("page_events")
    op.drop_index("ix_content_pages_last_crawled_at")
    op.drop_index("ix_content_pages_category")
    op.drop_index("ix_content_pages_market")
    op.drop_table("content_pages")
