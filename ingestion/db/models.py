"""SQLAlchemy models for the news ledger."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ZERO_UUID = "00000000-0000-0000-0000-000000000000"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """Base class for ORM models."""


class TimestampMixin:
    """Adds created_at/updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class NewsStatus(str, Enum):
    PUBLISHED = "published"
    REJECTED = "rejected"
    MODERATED = "moderated"
    FILTERED = "filtered"
    REVIEW = "review"


# Statuses that feed the daily aggregator; ``review`` is a waiting state.
COUNTED_STATUSES = frozenset(
    {NewsStatus.PUBLISHED, NewsStatus.REJECTED, NewsStatus.MODERATED, NewsStatus.FILTERED}
)


class FilterAction(str, Enum):
    PUBLISH = "publish"
    REJECT = "reject"
    MODERATION = "moderation"


class MatchType(str, Enum):
    SUBSTRING = "substring"
    REGEX = "regex"


class JobStage(str, Enum):
    PIPELINE = "pipeline"
    MODERATION = "moderation"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class NewsRecord(TimestampMixin, Base):
    """One row per distinct content hash ever processed."""

    __tablename__ = "news"
    __table_args__ = (
        UniqueConstraint("content_hash", name="uq_news_content_hash"),
        Index("ix_news_date", "date"),
        Index("ix_news_ts", "ts"),
        Index("ix_news_status_id", "status", "id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ts: Mapped[int] = mapped_column(BigInteger, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    text_original: Mapped[str | None] = mapped_column(Text)
    text_translated: Mapped[str | None] = mapped_column(Text)
    channel_message_id: Mapped[int | None] = mapped_column(BigInteger)
    delivery_kind: Mapped[str | None] = mapped_column(String(8))
    status: Mapped[NewsStatus] = mapped_column(
        SAEnum(NewsStatus, name="news_status", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=NewsStatus.PUBLISHED,
    )


class MetaEntry(Base):
    """Key/value store; holds the boundary cursor under ``last_hash``."""

    __tablename__ = "meta"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text)


class DailyAggregate(Base):
    """Per-day counters by status."""

    __tablename__ = "aggregator"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)
    published: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    moderated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    filtered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class FilterAggregate(Base):
    """Per-day hit counters by rule note."""

    __tablename__ = "filter_aggregator"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)
    note: Mapped[str] = mapped_column(String(200), primary_key=True)
    hits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ModerationItem(Base):
    """Candidate waiting for a human decision."""

    __tablename__ = "moderation_items"
    __table_args__ = (Index("ix_moderation_items_created", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    text_original: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    media: Mapped[str | None] = mapped_column(String(2048))
    filter_id: Mapped[str] = mapped_column(String(36), nullable=False, default=ZERO_UUID)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class FilterRuleRow(Base):
    """Keyword rule managed by the admin surface; read-only for the pipeline."""

    __tablename__ = "filters"
    __table_args__ = (
        Index("ix_filters_sort", "priority", "updated_at"),
        Index(
            "uq_filters_active_keyword",
            "keyword",
            "match_type",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    keyword: Mapped[str] = mapped_column(String(512), nullable=False)
    action: Mapped[FilterAction] = mapped_column(
        SAEnum(FilterAction, name="filter_action", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    match_type: Mapped[MatchType] = mapped_column(
        SAEnum(MatchType, name="match_type", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=MatchType.SUBSTRING,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(String(200))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class FilterSettingsRow(Base):
    """Singleton row with the default action."""

    __tablename__ = "filter_settings"
    __table_args__ = (CheckConstraint("id = 1", name="ck_filter_settings_singleton"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    default_action: Mapped[FilterAction] = mapped_column(
        SAEnum(FilterAction, name="filter_action", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=FilterAction.PUBLISH,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class JobRun(TimestampMixin, Base):
    """Represents a single job execution."""

    __tablename__ = "job_runs"
    __table_args__ = (
        Index("ix_job_runs_stage_status", "stage", "status"),
        Index("ix_job_runs_trace", "trace_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    stage: Mapped[JobStage] = mapped_column(
        SAEnum(JobStage, name="job_stage", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    status: Mapped[JobStatus] = mapped_column(
        SAEnum(JobStatus, name="job_status", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=JobStatus.PENDING,
    )
    source: Mapped[str | None] = mapped_column(String(50))
    task_name: Mapped[str | None] = mapped_column(String(100))
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    items_seen: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(String(512))
    trace_id: Mapped[str | None] = mapped_column(String(64))
