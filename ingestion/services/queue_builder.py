"""Turns the newest-first feed into the run's queue of unseen candidates."""

from __future__ import annotations

from typing import List, Sequence

from ingestion.models.domain import BoundaryCursor, CandidateItem, FeedItem, content_fingerprint
from ingestion.utils.logging import get_logger, hash_prefix

logger = get_logger(__name__)


def build_queue(
    items: Sequence[FeedItem],
    cursor: BoundaryCursor,
    scan_depth: int,
) -> List[CandidateItem]:
    """Collect candidates newer than ``cursor`` and return them oldest first.

    Scanning stops at the first item whose hash equals the cursor; that item and
    everything older were handled by an earlier run. A cold cursor admits the
    whole scanned depth. A feed shorter than ``scan_depth`` is not an error.
    """
    newest_first: List[CandidateItem] = []
    for index, item in enumerate(items[: max(0, scan_depth)]):
        content_hash = content_fingerprint(item.text)
        if cursor.matches(content_hash):
            logger.info("queue.boundary_hit", extra={"index": index, "hash": hash_prefix(content_hash)})
            break
        newest_first.append(
            CandidateItem(
                sequence_index=index,
                raw_text=item.text,
                content_hash=content_hash,
                item=item,
            )
        )
    newest_first.reverse()
    return newest_first
