"""Delivery-shape selection and the send step shared by the pipeline and moderation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Protocol

from ingestion.connectors.media import is_hls_playlist

_STORED_VIDEO_RE = re.compile(r"\.(mp4|mov|webm|mkv)(\?|#|$)", re.IGNORECASE)


class Publisher(Protocol):
    def send(self, kind: str, payload: Optional[str], caption: str) -> int: ...

    def edit_text(self, message_id: int, text: str, kind: str = "text") -> None: ...


@dataclass(frozen=True)
class DeliveryPlan:
    kind: str
    media_url: Optional[str] = None


@dataclass(frozen=True)
class Delivery:
    message_id: int
    kind: str


def choose_delivery(video_url: Optional[str], image_url: Optional[str]) -> DeliveryPlan:
    """Video beats photo beats text; adaptive-streaming playlists count as no media."""
    if video_url and not is_hls_playlist(video_url):
        return DeliveryPlan("video", video_url)
    if image_url and not is_hls_playlist(image_url):
        return DeliveryPlan("photo", image_url)
    return DeliveryPlan("text")


def plan_for_stored_media(media: Optional[str]) -> DeliveryPlan:
    """Shape for a single media reference kept on a moderation entry."""
    if not media or is_hls_playlist(media):
        return DeliveryPlan("text")
    if _STORED_VIDEO_RE.search(media):
        return DeliveryPlan("video", media)
    return DeliveryPlan("photo", media)


def deliver(publisher: Publisher, plan: DeliveryPlan, text: str) -> Delivery:
    message_id = publisher.send(plan.kind, plan.media_url, text)
    return Delivery(message_id=int(message_id), kind=plan.kind)
