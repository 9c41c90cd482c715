from __future__ import annotations

import pytest

from ingestion.db.models import NewsRecord, NewsStatus
from ingestion.services.similarity import find_near_duplicate, lcs_ratio, tokenize


def _record(record_id: int, text: str) -> NewsRecord:
    return NewsRecord(id=record_id, content_hash=f"h{record_id}", text_original=text, status=NewsStatus.PUBLISHED)


def test_lcs_ratio_of_extended_sentence():
    score = lcs_ratio(tokenize("A B C D E F"), tokenize("A B C D E"))

    assert score == pytest.approx(5 / 6 * 100)


def test_lcs_ratio_is_order_preserving():
    assert lcs_ratio(["a", "b", "c"], ["c", "b", "a"]) == pytest.approx(100 / 3)
    assert lcs_ratio([], []) == 100.0
    assert lcs_ratio(["a"], []) == 0.0


def test_threshold_is_inclusive():
    recent = [_record(1, "a b c d")]

    # 3 of 4 words in order: exactly 75
    assert find_near_duplicate("a b c x", recent, threshold=75.0) is not None
    assert find_near_duplicate("a b c x", recent, threshold=75.1) is None


def test_best_match_wins():
    recent = [_record(3, "one two three four five"), _record(2, "one two three four five six")]

    match = find_near_duplicate("one two three four five six seven", recent, threshold=75.0)

    assert match is not None
    assert match.record.id == 2


def test_tokenize_collapses_whitespace():
    assert tokenize("  a\tb\n\nc ") == ["a", "b", "c"]
    assert tokenize(None) == []
