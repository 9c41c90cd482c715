from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from ingestion.db.models import Base, DailyAggregate, ModerationItem, NewsStatus
from ingestion.models.domain import content_fingerprint
from ingestion.repositories.ledger import NewsLedger
from ingestion.repositories.moderation import insert_moderation_item
from publish.moderation import approve_moderation_item, reject_moderation_item
from publish.telegram import TransientDeliveryError

TEXT = "Parliament vote postponed until next week"


class FakePublisher:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, kind, payload, caption):
        if self.fail:
            raise TransientDeliveryError("channel unavailable")
        self.sent.append((kind, payload, caption))
        return 555

    def edit_text(self, message_id, text, kind="text"):  # pragma: no cover - unused here
        raise AssertionError("moderation never edits")


class UpperTranslator:
    def translate(self, text: str) -> str:
        return text.upper()


@pytest.fixture()
def session(tmp_path: Path):
    engine = create_engine(f"sqlite:///{tmp_path / 'moderation.db'}", future=True)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    with SessionLocal() as s:
        yield s
    engine.dispose()


def _held_item(session, media=None) -> str:
    content_hash = content_fingerprint(TEXT)
    item = insert_moderation_item(session, text=TEXT, content_hash=content_hash, filter_id=None, media=media)
    NewsLedger(session).record(content_hash, text_original=TEXT, status=NewsStatus.REVIEW)
    session.commit()
    return item.id


def test_approve_publishes_and_clears_queue(session):
    item_id = _held_item(session, media="https://cdn/clip.mov")
    publisher = FakePublisher()

    delivery = approve_moderation_item(session, item_id, UpperTranslator(), publisher)
    session.commit()

    assert delivery.message_id == 555
    assert delivery.kind == "video"
    assert publisher.sent == [("video", "https://cdn/clip.mov", TEXT.upper())]
    row = NewsLedger(session).get_by_hash(content_fingerprint(TEXT))
    assert row.status == NewsStatus.PUBLISHED
    assert row.text_translated == TEXT.upper()
    assert row.channel_message_id == 555
    assert session.get(ModerationItem, item_id) is None
    today = session.get(DailyAggregate, NewsLedger(session).today())
    assert today.published == 1
    assert today.moderated == 1


def test_failed_delivery_leaves_item_queued(session):
    item_id = _held_item(session, media="https://cdn/p.jpg")

    with pytest.raises(TransientDeliveryError):
        approve_moderation_item(session, item_id, UpperTranslator(), FakePublisher(fail=True))
    session.rollback()

    assert session.get(ModerationItem, item_id) is not None
    assert NewsLedger(session).get_by_hash(content_fingerprint(TEXT)).status == NewsStatus.REVIEW


def test_reject_filters_record_and_clears_queue(session):
    item_id = _held_item(session)

    reject_moderation_item(session, item_id)
    session.commit()

    assert NewsLedger(session).get_by_hash(content_fingerprint(TEXT)).status == NewsStatus.FILTERED
    assert session.execute(select(ModerationItem)).scalars().all() == []


def test_unknown_item_raises_lookup_error(session):
    with pytest.raises(LookupError):
        approve_moderation_item(session, "missing", UpperTranslator(), FakePublisher())
    with pytest.raises(LookupError):
        reject_moderation_item(session, "missing")
