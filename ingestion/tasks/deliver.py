"""Celery tasks for resolving held moderation items."""

from __future__ import annotations

from celery import shared_task

from ingestion.db.session import session_scope
from ingestion.settings import get_settings
from ingestion.tasks import pipeline
from publish.moderation import approve_moderation_item, reject_moderation_item


@shared_task(
    name="ingestion.tasks.deliver.approve_moderation",
    queue="ingestion.pipeline",
)
def approve_moderation_task(item_id: str) -> int:  # pragma: no cover - thin Celery wrapper
    """Publish a held item; returns the channel message id."""
    cfg = get_settings()
    with session_scope(cfg) as session:
        delivery = approve_moderation_item(
            session,
            item_id,
            pipeline.TRANSLATOR_FACTORY(),
            pipeline.PUBLISHER_FACTORY(),
            timezone=cfg.ledger_timezone,
        )
    return delivery.message_id


@shared_task(
    name="ingestion.tasks.deliver.reject_moderation",
    queue="ingestion.pipeline",
)
def reject_moderation_task(item_id: str) -> None:  # pragma: no cover - thin Celery wrapper
    cfg = get_settings()
    with session_scope(cfg) as session:
        reject_moderation_item(session, item_id, timezone=cfg.ledger_timezone)
