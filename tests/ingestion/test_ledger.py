from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from ingestion.db.models import (
    ZERO_UUID,
    Base,
    DailyAggregate,
    FilterAction,
    FilterRuleRow,
    FilterSettingsRow,
    MatchType,
    NewsRecord,
    NewsStatus,
)
from ingestion.models.domain import BoundaryCursor
from ingestion.repositories.ledger import NewsLedger
from ingestion.repositories.moderation import (
    delete_moderation_item,
    get_moderation_item,
    insert_moderation_item,
    list_moderation_items,
)
from ingestion.repositories.rules import get_filter_settings, list_active_rules


@pytest.fixture()
def session(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    with SessionLocal() as s:  # type: Session
        yield s
    engine.dispose()


def test_cursor_roundtrip(session):
    ledger = NewsLedger(session)
    assert ledger.get_cursor().is_cold

    ledger.set_cursor(BoundaryCursor("abc"))
    ledger.set_cursor(BoundaryCursor("def"))
    session.commit()

    assert ledger.get_cursor() == BoundaryCursor("def")


def test_record_upsert_keeps_hash_unique_and_fills_nulls(session):
    ledger = NewsLedger(session)

    ledger.record("h1", text_original="shalom", status=NewsStatus.REVIEW)
    ledger.record(
        "h1",
        text_original="ignored",
        text_translated="privet",
        channel_message_id=42,
        delivery_kind="photo",
        status=NewsStatus.PUBLISHED,
    )
    ledger.record("h1", text_original=None, text_translated="other", channel_message_id=7, status=NewsStatus.PUBLISHED)
    session.commit()

    rows = session.execute(select(NewsRecord).where(NewsRecord.content_hash == "h1")).scalars().all()
    assert len(rows) == 1
    row = rows[0]
    assert row.text_original == "shalom"
    assert row.text_translated == "privet"
    assert row.channel_message_id == 42
    assert row.delivery_kind == "photo"
    assert row.status == NewsStatus.PUBLISHED


def test_daily_counter_moves_only_on_status_change(session):
    ledger = NewsLedger(session)

    ledger.record("a", text_original="a", status=NewsStatus.REVIEW)
    ledger.record("a", text_original="a", status=NewsStatus.PUBLISHED)
    ledger.record("a", text_original="a", status=NewsStatus.PUBLISHED)
    ledger.record("b", text_original="b", status=NewsStatus.FILTERED)
    session.commit()

    today = session.get(DailyAggregate, ledger.today())
    assert today is not None
    assert today.published == 1
    assert today.filtered == 1
    assert today.moderated == 0


def test_recent_published_is_newest_first_and_skips_other_statuses(session):
    ledger = NewsLedger(session)
    ledger.record("p1", text_original="one", status=NewsStatus.PUBLISHED)
    ledger.record("f1", text_original="filtered", status=NewsStatus.FILTERED)
    ledger.record("p2", text_original="two", status=NewsStatus.PUBLISHED)
    session.commit()

    assert [r.content_hash for r in ledger.recent_published(10)] == ["p2", "p1"]
    assert [r.content_hash for r in ledger.recent_published(1)] == ["p2"]


def test_set_status_and_message_id(session):
    ledger = NewsLedger(session)
    assert ledger.set_status("missing", NewsStatus.FILTERED) is False

    ledger.record("x", text_original="x", status=NewsStatus.REVIEW)
    assert ledger.set_status("x", NewsStatus.FILTERED) is True
    ledger.set_message_id("x", 99)
    session.commit()
    session.expire_all()

    row = ledger.get_by_hash("x")
    assert row is not None
    assert row.status == NewsStatus.FILTERED
    assert row.channel_message_id == 99


def test_filter_hits_and_daily_stats_are_zero_filled(session):
    ledger = NewsLedger(session)
    ledger.log_filter_hit("ads")
    ledger.log_filter_hit("ads")
    ledger.log_filter_hit(None)
    ledger.log_filter_hit("x" * 500)
    ledger.record("p", text_original="p", status=NewsStatus.PUBLISHED)
    session.commit()

    hits = ledger.filter_hits(3)
    assert [h.date for h in hits][-1] == ledger.today()
    assert len(hits) == 3
    assert hits[0].items == [] and hits[1].items == []
    today = {item["note"]: item["count"] for item in hits[-1].items}
    assert today["ads"] == 2
    assert today["UNKNOWN"] == 1
    assert today["x" * 200] == 1

    stats = ledger.daily_stats(2)
    assert [s.published for s in stats] == [0, 1]
    assert len(ledger.daily_stats(1000)) == 366


def test_rule_store_reads(session):
    session.add_all(
        [
            FilterRuleRow(keyword="a", action=FilterAction.REJECT, priority=1),
            FilterRuleRow(keyword="b", action=FilterAction.MODERATION, priority=5, match_type=MatchType.REGEX),
            FilterRuleRow(keyword="c", action=FilterAction.REJECT, priority=9, active=False),
        ]
    )
    session.commit()

    rules = list_active_rules(session)
    assert [r.keyword for r in rules] == ["b", "a"]
    assert rules[0].match_type is MatchType.REGEX
    assert get_filter_settings(session).default_action is FilterAction.PUBLISH

    session.add(FilterSettingsRow(default_action=FilterAction.MODERATION))
    session.commit()
    assert get_filter_settings(session).default_action is FilterAction.MODERATION


def test_moderation_queue_crud(session):
    first = insert_moderation_item(session, text="one", content_hash="h1")
    second = insert_moderation_item(session, text="two", content_hash="h2", filter_id="rule-1", media="https://x/v.mp4")
    session.commit()

    assert first.filter_id == ZERO_UUID
    assert get_moderation_item(session, second.id).media == "https://x/v.mp4"
    assert len(list_moderation_items(session, limit=1000)) == 2

    assert delete_moderation_item(session, first.id) is True
    session.commit()
    assert delete_moderation_item(session, first.id) is False
    count = session.execute(select(func.count()).select_from(NewsRecord)).scalar_one()
    assert count == 0
