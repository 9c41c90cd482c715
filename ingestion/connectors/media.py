"""Ranked media extraction strategies for feed items."""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

from ingestion.utils.logging import get_logger

logger = get_logger(__name__)

MediaStrategy = Callable[[], Optional[str]]

_HLS_RE = re.compile(r"\.m3u8(\?|#|$)", re.IGNORECASE)
_VIDEO_RE = re.compile(r"\.(mp4|mov|webm|mkv|m3u8)(\?|#|$)", re.IGNORECASE)
_IMAGE_RE = re.compile(r"\.(jpe?g|png|gif|webp)(\?|#|$)", re.IGNORECASE)


def is_hls_playlist(url: object) -> bool:
    """Adaptive-streaming playlists cannot be delivered as a video attachment."""
    return bool(_HLS_RE.search(str(url or "")))


def classify_media_url(url: str) -> Optional[str]:
    if _VIDEO_RE.search(url):
        return "video"
    if _IMAGE_RE.search(url):
        return "image"
    return None


def first_available(strategies: Sequence[MediaStrategy]) -> Optional[str]:
    """Try strategies in order; a failing strategy is logged and skipped."""
    for index, strategy in enumerate(strategies):
        try:
            url = strategy()
        except Exception as exc:
            logger.warning("media.strategy_failed", extra={"strategy": index, "error": str(exc)})
            continue
        if url:
            return str(url)
    return None


@dataclass(frozen=True)
class MediaHandle:
    image_strategies: Sequence[MediaStrategy] = ()
    video_strategies: Sequence[MediaStrategy] = ()

    def image_url(self) -> Optional[str]:
        return first_available(self.image_strategies)

    def video_url(self) -> Optional[str]:
        return first_available(self.video_strategies)

    def resolve(self) -> Tuple[Optional[str], Optional[str]]:
        """Look up ``(image_url, video_url)``; the two lookups run side by side."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="media") as pool:
            image = pool.submit(self.image_url)
            video = pool.submit(self.video_url)
            return image.result(), video.result()
