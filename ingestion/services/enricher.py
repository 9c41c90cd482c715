"""Layout metadata used to page the feed while candidates are handled."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, Sequence

from ingestion.models.domain import CandidateItem

DEFAULT_ITEM_HEIGHT = 400
MIN_ITEM_HEIGHT = 40
SCROLL_SAFETY_PX = 80


@dataclass(frozen=True)
class EnrichResult:
    oldest_first: List[CandidateItem]
    scroll_up: int


def enrich_items(queue: Sequence[CandidateItem], viewport_height: int) -> EnrichResult:
    enriched: List[CandidateItem] = []
    for candidate in queue:
        height = candidate.item.layout_height or 0
        if height < MIN_ITEM_HEIGHT:
            height = DEFAULT_ITEM_HEIGHT
        enriched.append(replace(candidate, layout_height=height))

    pool_height = sum(c.layout_height for c in enriched)
    scroll_up = max(0, math.ceil(pool_height - viewport_height + SCROLL_SAFETY_PX))
    return EnrichResult(oldest_first=enriched, scroll_up=scroll_up)
