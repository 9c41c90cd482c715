"""Database utilities for the news ledger."""

from .models import (  # noqa: F401
    Base,
    DailyAggregate,
    FilterAction,
    FilterAggregate,
    FilterRuleRow,
    FilterSettingsRow,
    JobRun,
    JobStage,
    JobStatus,
    MatchType,
    MetaEntry,
    ModerationItem,
    NewsRecord,
    NewsStatus,
)
from .session import get_engine, get_sessionmaker, session_scope  # noqa: F401

__all__ = [
    "Base",
    "DailyAggregate",
    "FilterAction",
    "FilterAggregate",
    "FilterRuleRow",
    "FilterSettingsRow",
    "JobRun",
    "JobStage",
    "JobStatus",
    "MatchType",
    "MetaEntry",
    "ModerationItem",
    "NewsRecord",
    "NewsStatus",
    "get_engine",
    "get_sessionmaker",
    "session_scope",
]
