"""Moderation queue persistence."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ingestion.db.models import ZERO_UUID, ModerationItem


def insert_moderation_item(
    session: Session,
    *,
    text: str,
    content_hash: str,
    filter_id: Optional[str] = None,
    media: Optional[str] = None,
) -> ModerationItem:
    entity = ModerationItem(
        text_original=text,
        content_hash=content_hash,
        filter_id=filter_id or ZERO_UUID,
        media=media,
    )
    session.add(entity)
    session.flush()
    return entity


def get_moderation_item(session: Session, item_id: str) -> Optional[ModerationItem]:
    return session.get(ModerationItem, item_id)


def list_moderation_items(session: Session, limit: int = 50, offset: int = 0) -> List[ModerationItem]:
    limit = max(1, min(200, int(limit or 50)))
    offset = max(0, int(offset or 0))
    stmt = (
        select(ModerationItem)
        .order_by(ModerationItem.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(session.execute(stmt).scalars().all())


def delete_moderation_item(session: Session, item_id: str) -> bool:
    entity = session.get(ModerationItem, item_id)
    if entity is None:
        return False
    session.delete(entity)
    session.flush()
    return True
