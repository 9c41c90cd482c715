"""Domain types for the ingestion → decision → delivery pipeline."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ingestion.db.models import FilterAction, MatchType


def content_fingerprint(text: str) -> str:
    """SHA-1 hex digest of the raw text; the dedup key across runs."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class FeedItem(BaseModel):
    """Normalized record produced by a Source Feed connector."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Raw item text as observed on the page")
    author: Optional[str] = Field(None, description="Source/author label, if the page shows one")
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    media_urls: List[str] = Field(default_factory=list, description="Unclassified media references")
    layout_height: Optional[int] = Field(None, description="Rendered height hint used for pagination")


@dataclass(frozen=True)
class BoundaryCursor:
    """Hash of the newest item handled by the previous run; ``None`` on cold start."""

    content_hash: Optional[str] = None

    @property
    def is_cold(self) -> bool:
        return self.content_hash is None

    def matches(self, content_hash: str) -> bool:
        return self.content_hash is not None and self.content_hash == content_hash

    def advanced_to(self, content_hash: str) -> "BoundaryCursor":
        return BoundaryCursor(content_hash)


@dataclass(frozen=True)
class CandidateItem:
    """Unseen feed item queued for a decision in the current run."""

    sequence_index: int
    raw_text: str
    content_hash: str
    item: FeedItem
    layout_height: int = 0

    @property
    def author(self) -> Optional[str]:
        return self.item.author


class FilterRule(BaseModel):
    """Read-only view of an active keyword rule."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    keyword: str
    action: FilterAction
    priority: int = 0
    match_type: MatchType = MatchType.SUBSTRING
    active: bool = True
    notes: Optional[str] = None
    updated_at: datetime


class FilterSettings(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    default_action: FilterAction = FilterAction.PUBLISH


@dataclass(frozen=True)
class Decision:
    action: FilterAction
    matched_rule_id: Optional[str] = None
    note: Optional[str] = None


class Outcome(str, Enum):
    PUBLISHED = "published"
    EDITED = "edited"
    MODERATION = "moderation"
    FILTERED = "filtered"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"


class FailureKind(str, Enum):
    DELIVERY = "delivery"
    LEDGER = "ledger"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class CandidateResult:
    """Per-candidate result: exactly one of ``outcome``/``failure`` is set."""

    sequence_index: int
    content_hash: str
    outcome: Optional[Outcome] = None
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    message_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def advances_boundary(self) -> bool:
        # Hash duplicates are a safety net and never move the cursor themselves.
        return self.ok and self.outcome is not Outcome.DUPLICATE


@dataclass
class RunReport:
    trace_id: str
    cursor_before: BoundaryCursor
    cursor_after: BoundaryCursor
    results: List[CandidateResult] = field(default_factory=list)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def failures(self) -> List[CandidateResult]:
        return [r for r in self.results if not r.ok]
