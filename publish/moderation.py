"""Resolution of moderation-queue entries (``review -> published | filtered``)."""

from __future__ import annotations

from sqlalchemy.orm import Session

from ingestion.db.models import NewsStatus
from ingestion.models.domain import content_fingerprint
from ingestion.repositories.ledger import NewsLedger
from ingestion.repositories.moderation import delete_moderation_item, get_moderation_item
from ingestion.utils.logging import get_logger, hash_prefix
from publish.delivery import Delivery, Publisher, deliver, plan_for_stored_media
from translation.client import Translator, translate_or_original

logger = get_logger(__name__)


def approve_moderation_item(
    session: Session,
    item_id: str,
    translator: Translator,
    publisher: Publisher,
    *,
    timezone: str = "UTC",
) -> Delivery:
    """Publish a held item and drop it from the queue.

    A delivery failure propagates and leaves the entry queued.
    """
    item = get_moderation_item(session, item_id)
    if item is None:
        raise LookupError(f"moderation item {item_id} not found")

    content_hash = item.content_hash or content_fingerprint(item.text_original)
    text = translate_or_original(translator, item.text_original, item_id=item_id, hash=hash_prefix(content_hash))
    delivery = deliver(publisher, plan_for_stored_media(item.media), text)

    ledger = NewsLedger(session, timezone=timezone)
    ledger.record(
        content_hash,
        text_original=item.text_original,
        text_translated=text,
        channel_message_id=delivery.message_id,
        delivery_kind=delivery.kind,
        status=NewsStatus.PUBLISHED,
    )
    ledger.increment_daily(NewsStatus.MODERATED)
    delete_moderation_item(session, item_id)
    logger.info(
        "moderation.approved",
        extra={"item_id": item_id, "hash": hash_prefix(content_hash), "message_id": delivery.message_id},
    )
    return delivery


def reject_moderation_item(session: Session, item_id: str, *, timezone: str = "UTC") -> None:
    item = get_moderation_item(session, item_id)
    if item is None:
        raise LookupError(f"moderation item {item_id} not found")

    content_hash = item.content_hash or content_fingerprint(item.text_original)
    ledger = NewsLedger(session, timezone=timezone)
    if not ledger.set_status(content_hash, NewsStatus.FILTERED):
        ledger.record(content_hash, text_original=item.text_original, status=NewsStatus.FILTERED)
    delete_moderation_item(session, item_id)
    logger.info("moderation.rejected", extra={"item_id": item_id, "hash": hash_prefix(content_hash)})
