"""News ledger: seen/published records, boundary cursor and aggregate counters."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ingestion.db.models import (
    COUNTED_STATUSES,
    DailyAggregate,
    FilterAggregate,
    MetaEntry,
    NewsRecord,
    NewsStatus,
)
from ingestion.models.domain import BoundaryCursor

CURSOR_KEY = "last_hash"
MAX_RECENT = 100
MAX_REPORT_DAYS = 366
MAX_NOTE_LENGTH = 200

_CONFLICT_INSERTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


@dataclass(frozen=True)
class DailyStats:
    date: str
    published: int = 0
    rejected: int = 0
    moderated: int = 0
    filtered: int = 0


@dataclass(frozen=True)
class FilterHits:
    date: str
    items: List[Dict[str, object]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class NewsLedger:
    """Single source of truth for what was seen and what was published.

    All writes go through the caller's session; the caller decides when a
    candidate's rows become durable by committing.
    """

    def __init__(self, session: Session, *, timezone: str = "UTC") -> None:
        self._session = session
        self._tz = ZoneInfo(timezone)

    def today(self) -> str:
        return datetime.now(self._tz).date().isoformat()

    # --- boundary cursor ---

    def get_cursor(self) -> BoundaryCursor:
        entry = self._session.get(MetaEntry, CURSOR_KEY)
        return BoundaryCursor(entry.value if entry is not None and entry.value else None)

    def set_cursor(self, cursor: BoundaryCursor) -> None:
        if cursor.content_hash is None:
            return
        entry = self._session.get(MetaEntry, CURSOR_KEY)
        if entry is None:
            self._session.add(MetaEntry(key=CURSOR_KEY, value=cursor.content_hash))
        else:
            entry.value = cursor.content_hash
        self._session.flush()

    # --- news rows ---

    def has_hash(self, content_hash: str) -> bool:
        stmt = select(NewsRecord.id).where(NewsRecord.content_hash == content_hash).limit(1)
        return self._session.execute(stmt).first() is not None

    def get_by_hash(self, content_hash: str) -> Optional[NewsRecord]:
        stmt = select(NewsRecord).where(NewsRecord.content_hash == content_hash)
        return self._session.execute(stmt).scalars().first()

    def _require(self, content_hash: str) -> NewsRecord:
        # raises NoResultFound when the row is missing
        stmt = select(NewsRecord).where(NewsRecord.content_hash == content_hash)
        return self._session.execute(stmt).scalar_one()

    def record(
        self,
        content_hash: str,
        *,
        text_original: Optional[str],
        status: NewsStatus,
        text_translated: Optional[str] = None,
        channel_message_id: Optional[int] = None,
        delivery_kind: Optional[str] = None,
        ts: Optional[int] = None,
    ) -> NewsRecord:
        """Upsert a row keyed by ``content_hash``.

        Nullable fields are only filled, never overwritten; ``status`` always
        takes the new value. An insert racing another writer of the same hash
        degrades to an update.
        """
        values = {
            "ts": ts if ts is not None else _now_ms(),
            "date": self.today(),
            "content_hash": content_hash,
            "text_original": text_original,
            "text_translated": text_translated,
            "channel_message_id": channel_message_id,
            "delivery_kind": delivery_kind,
            "status": status,
        }
        if self._insert_if_absent(values):
            self._count_status(None, status)
            return self._require(content_hash)

        existing = self._require(content_hash)
        previous = existing.status
        if existing.text_original is None:
            existing.text_original = text_original
        if existing.text_translated is None:
            existing.text_translated = text_translated
        if existing.channel_message_id is None:
            existing.channel_message_id = channel_message_id
        if existing.delivery_kind is None:
            existing.delivery_kind = delivery_kind
        existing.status = status
        self._session.flush()
        self._count_status(previous, status)
        return existing

    def _insert_if_absent(self, values: Dict[str, object]) -> bool:
        dialect = self._session.get_bind().dialect.name
        insert_fn = _CONFLICT_INSERTS.get(dialect)
        if insert_fn is not None:
            stmt = insert_fn(NewsRecord).values(**values).on_conflict_do_nothing(index_elements=["content_hash"])
            return self._session.execute(stmt).rowcount == 1
        if self.has_hash(str(values["content_hash"])):
            return False
        self._session.add(NewsRecord(**values))
        self._session.flush()
        return True

    def set_status(self, content_hash: str, status: NewsStatus) -> bool:
        row = self.get_by_hash(content_hash)
        if row is None:
            return False
        previous = row.status
        row.status = status
        self._session.flush()
        self._count_status(previous, status)
        return True

    def set_message_id(self, content_hash: str, message_id: int) -> None:
        self._session.execute(
            update(NewsRecord)
            .where(NewsRecord.content_hash == content_hash)
            .values(channel_message_id=message_id)
        )

    def recent_published(self, limit: int = 10) -> List[NewsRecord]:
        lim = max(1, min(MAX_RECENT, int(limit)))
        stmt = (
            select(NewsRecord)
            .where(NewsRecord.status == NewsStatus.PUBLISHED)
            .order_by(NewsRecord.id.desc())
            .limit(lim)
        )
        return list(self._session.execute(stmt).scalars().all())

    # --- aggregates ---

    def _count_status(self, previous: Optional[NewsStatus], status: NewsStatus) -> None:
        if status in COUNTED_STATUSES and previous != status:
            self.increment_daily(status)

    def increment_daily(self, status: NewsStatus, day: Optional[str] = None) -> None:
        if status not in COUNTED_STATUSES:
            return
        key = day or self.today()
        row = self._session.get(DailyAggregate, key)
        if row is None:
            row = DailyAggregate(date=key, published=0, rejected=0, moderated=0, filtered=0)
            self._session.add(row)
        setattr(row, status.value, getattr(row, status.value) + 1)
        self._session.flush()

    def log_filter_hit(self, note: Optional[str], day: Optional[str] = None) -> None:
        safe_note = str(note or "UNKNOWN")[:MAX_NOTE_LENGTH]
        key = day or self.today()
        row = self._session.get(FilterAggregate, (key, safe_note))
        if row is None:
            self._session.add(FilterAggregate(date=key, note=safe_note, hits=1))
        else:
            row.hits += 1
        self._session.flush()

    # --- reporting reads ---

    def _last_days(self, days: int) -> List[str]:
        n = max(1, min(MAX_REPORT_DAYS, int(days)))
        end = date.fromisoformat(self.today())
        return [(end - timedelta(days=offset)).isoformat() for offset in range(n - 1, -1, -1)]

    def daily_stats(self, days: int) -> List[DailyStats]:
        dates = self._last_days(days)
        stmt = select(DailyAggregate).where(DailyAggregate.date >= dates[0], DailyAggregate.date <= dates[-1])
        rows = {r.date: r for r in self._session.execute(stmt).scalars()}
        result: List[DailyStats] = []
        for day in dates:
            row = rows.get(day)
            if row is None:
                result.append(DailyStats(date=day))
            else:
                result.append(
                    DailyStats(
                        date=day,
                        published=row.published,
                        rejected=row.rejected,
                        moderated=row.moderated,
                        filtered=row.filtered,
                    )
                )
        return result

    def filter_hits(self, days: int) -> List[FilterHits]:
        dates = self._last_days(days)
        stmt = (
            select(FilterAggregate)
            .where(FilterAggregate.date >= dates[0], FilterAggregate.date <= dates[-1])
            .order_by(FilterAggregate.date.asc(), FilterAggregate.hits.desc())
        )
        by_date: Dict[str, List[Dict[str, object]]] = {}
        for row in self._session.execute(stmt).scalars():
            by_date.setdefault(row.date, []).append({"note": row.note, "count": row.hits})
        return [FilterHits(date=day, items=by_date.get(day, [])) for day in dates]
