from __future__ import annotations

from ingestion.models.domain import BoundaryCursor, FeedItem, content_fingerprint
from ingestion.services.enricher import DEFAULT_ITEM_HEIGHT, enrich_items
from ingestion.services.queue_builder import build_queue


def _feed(*texts: str, height: int | None = None) -> list[FeedItem]:
    return [FeedItem(text=t, layout_height=height) for t in texts]


def test_cold_start_takes_whole_scan_depth_oldest_first():
    items = _feed("n5", "n4", "n3", "n2", "n1", "n0")

    queue = build_queue(items, BoundaryCursor(), scan_depth=5)

    assert [c.raw_text for c in queue] == ["n1", "n2", "n3", "n4", "n5"]
    assert [c.sequence_index for c in queue] == [4, 3, 2, 1, 0]
    assert queue[0].content_hash == content_fingerprint("n1")


def test_stops_at_boundary_cursor():
    items = _feed("n3", "n2", "seen", "older")
    cursor = BoundaryCursor(content_fingerprint("seen"))

    queue = build_queue(items, cursor, scan_depth=10)

    assert [c.raw_text for c in queue] == ["n2", "n3"]


def test_cursor_on_newest_item_means_nothing_new():
    items = _feed("top", "below")

    assert build_queue(items, BoundaryCursor(content_fingerprint("top")), scan_depth=5) == []


def test_short_feed_is_not_an_error():
    assert [c.raw_text for c in build_queue(_feed("only"), BoundaryCursor(), scan_depth=5)] == ["only"]
    assert build_queue([], BoundaryCursor(), scan_depth=5) == []


def test_enrich_defaults_small_heights_and_computes_scroll():
    queue = build_queue(
        [FeedItem(text="a", layout_height=300), FeedItem(text="b", layout_height=10), FeedItem(text="c")],
        BoundaryCursor(),
        scan_depth=5,
    )

    result = enrich_items(queue, viewport_height=800)

    heights = {c.raw_text: c.layout_height for c in result.oldest_first}
    assert heights == {"a": 300, "b": DEFAULT_ITEM_HEIGHT, "c": DEFAULT_ITEM_HEIGHT}
    assert result.scroll_up == 300 + 400 + 400 - 800 + 80


def test_enrich_never_scrolls_down():
    queue = build_queue(_feed("a", height=100), BoundaryCursor(), scan_depth=5)

    assert enrich_items(queue, viewport_height=800).scroll_up == 0
