"""Source Feed abstraction, errors, and normalization helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ingestion.connectors.media import MediaHandle, classify_media_url
from ingestion.models.domain import FeedItem
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


class FeedError(Exception):
    """Base feed error."""


class TransientError(FeedError):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(FeedError):
    """Non-retryable error (e.g., 4xx semantics, malformed document)."""


class BaseFeedConnector(ABC):
    """Newest-first feed of candidate items with retry and normalization hooks."""

    source: str

    def fetch(self, limit: int, *, max_attempts: int = 3) -> List[FeedItem]:
        """Return at most ``limit`` items, newest first."""
        attempts = 0
        last_error: Optional[Exception] = None
        while attempts < max_attempts:
            attempts += 1
            try:
                raw = self._fetch_raw(limit)
                return self._normalize(raw)[:limit]
            except TransientError as exc:
                last_error = exc
                logger.warning(
                    "feed.transient_error",
                    extra={"source": self.source, "attempt": attempts, "error": str(exc)},
                )
                if attempts >= max_attempts:
                    raise
            except PermanentError:
                raise
        assert last_error is not None
        raise last_error

    def locate(self, item: FeedItem) -> MediaHandle:
        """Media lookup strategies for an item, ranked best first."""
        videos = [u for u in item.media_urls if classify_media_url(u) == "video"]
        images = [u for u in item.media_urls if classify_media_url(u) == "image"]
        return MediaHandle(
            image_strategies=(lambda: item.image_url, lambda: images[0] if images else None),
            video_strategies=(lambda: item.video_url, lambda: videos[0] if videos else None),
        )

    def scroll(self, delta: int) -> None:
        """Move the feed viewport; feeds without pagination ignore it."""

    @abstractmethod
    def _fetch_raw(self, limit: int) -> List[Dict[str, Any]]:
        """Return a list of raw item dicts from the upstream, newest first."""

    def _normalize(self, items: Iterable[Dict[str, Any]]) -> List[FeedItem]:
        normalized: List[FeedItem] = []
        for raw in items:
            item = self._normalize_item(raw)
            if item is not None:
                normalized.append(item)
        return normalized

    def _normalize_item(self, raw: Dict[str, Any]) -> Optional[FeedItem]:
        text = str(raw.get("text") or raw.get("body") or "").strip()
        if not text:
            return None
        author = str(raw.get("author") or raw.get("source") or "").strip() or None
        media = raw.get("media") or raw.get("media_urls") or []
        if isinstance(media, str):
            media = [media]
        height = raw.get("height") or raw.get("layout_height")
        return FeedItem(
            text=text,
            author=author,
            image_url=raw.get("image_url") or raw.get("image") or None,
            video_url=raw.get("video_url") or raw.get("video") or None,
            media_urls=[str(m) for m in media if m],
            layout_height=int(height) if isinstance(height, (int, float)) else None,
        )
