"""Near-duplicate detection against recently published records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from ingestion.db.models import NewsRecord


def tokenize(text: Optional[str]) -> List[str]:
    return (text or "").split()


def lcs_ratio(a: Sequence[str], b: Sequence[str]) -> float:
    """Order-preserving LCS length over the longer sequence, in percent."""
    n, m = len(a), len(b)
    if n == 0 and m == 0:
        return 100.0
    if n == 0 or m == 0:
        return 0.0
    prev = [0] * (m + 1)
    for i in range(1, n + 1):
        cur = [0] * (m + 1)
        ai = a[i - 1]
        for j in range(1, m + 1):
            if ai == b[j - 1]:
                cur[j] = prev[j - 1] + 1
            else:
                cur[j] = max(prev[j], cur[j - 1])
        prev = cur
    return prev[m] / max(n, m) * 100.0


@dataclass(frozen=True)
class NearDuplicate:
    record: NewsRecord
    score: float


def find_near_duplicate(
    text: str,
    recent: Iterable[NewsRecord],
    threshold: float,
) -> Optional[NearDuplicate]:
    """Best-scoring record at or above ``threshold``; earlier records win ties."""
    words = tokenize(text)
    best: Optional[NearDuplicate] = None
    for record in recent:
        score = lcs_ratio(words, tokenize(record.text_original))
        if score >= threshold and (best is None or score > best.score):
            best = NearDuplicate(record=record, score=score)
    return best
