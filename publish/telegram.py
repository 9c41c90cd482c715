"""Telegram Bot API publisher with retry, truncation and upload fallback."""

from __future__ import annotations

import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional
from urllib.parse import urlparse

import httpx

from ingestion.utils.logging import get_logger
from publish.settings import PublishSettings, get_publish_settings

logger = get_logger(__name__)

ELLIPSIS = "…"

_NOT_FOUND_MARKERS = ("message to edit not found", "message_id_invalid")
_NOT_MODIFIED_MARKER = "message is not modified"
_MEDIA_REJECTED_MARKERS = (
    "failed to get http url content",
    "wrong file identifier/http url specified",
    "wrong type of the web page content",
    "webpage_curl_failed",
    "webpage_media_empty",
)


class DeliveryError(Exception):
    """Base delivery error."""


class TransientDeliveryError(DeliveryError):
    """Retryable failure (rate limit, 5xx, network)."""

    def __init__(self, message: str, *, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermanentDeliveryError(DeliveryError):
    """Non-retryable rejection by the channel."""


class MessageNotFoundError(PermanentDeliveryError):
    """The message targeted by an edit does not exist."""


class MediaRejectedError(PermanentDeliveryError):
    """The channel could not fetch or accept media passed by URL."""


def clip_caption(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + ELLIPSIS


def chunk_text(text: str, limit: int) -> List[str]:
    """Split ``text`` into pieces of at most ``limit`` chars, preferring line then word breaks."""
    chunks: List[str] = []
    rest = text.strip()
    while rest:
        if len(rest) <= limit:
            chunks.append(rest)
            break
        cut = rest.rfind("\n", 0, limit)
        if cut <= 0:
            cut = rest.rfind(" ", 0, limit)
        if cut <= 0:
            cut = limit
        piece = rest[:cut].rstrip()
        if piece:
            chunks.append(piece)
        rest = rest[cut:].lstrip()
    return chunks


def _classify(status_code: int, payload: Dict[str, Any]) -> DeliveryError:
    description = str(payload.get("description") or f"HTTP {status_code}")
    lowered = description.lower()
    if status_code == 429 or status_code >= 500:
        retry_after = (payload.get("parameters") or {}).get("retry_after")
        return TransientDeliveryError(
            description, retry_after=float(retry_after) if retry_after is not None else None
        )
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return MessageNotFoundError(description)
    if any(marker in lowered for marker in _MEDIA_REJECTED_MARKERS):
        return MediaRejectedError(description)
    return PermanentDeliveryError(description)


class TelegramPublisher:
    """Publisher collaborator over the Telegram Bot API.

    Every call is retried on transient errors with linear backoff, honouring
    the ``retry_after`` hint of a 429. A media URL that Telegram refuses to
    fetch is downloaded and re-uploaded as a file.
    """

    def __init__(
        self,
        settings: PublishSettings,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self._sleep = sleep
        self._client = httpx.Client(
            timeout=float(settings.delivery_timeout_seconds),
            transport=transport,
            follow_redirects=True,
        )
        token = settings.telegram_bot_token.get_secret_value()
        self._base = f"{settings.telegram_api_base}/bot{token}"

    @classmethod
    def from_env(cls, *, transport: Optional[httpx.BaseTransport] = None) -> "TelegramPublisher":
        return cls(get_publish_settings(), transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TelegramPublisher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- transport ---

    def _call_once(self, method: str, data: Dict[str, Any], files: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        try:
            resp = self._client.post(f"{self._base}/{method}", data=data, files=files)
        except httpx.HTTPError as exc:
            raise TransientDeliveryError(f"{method} request failed: {exc}") from exc
        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if resp.status_code >= 400 or not payload.get("ok", False):
            raise _classify(resp.status_code, payload)
        return payload.get("result") or {}

    def _call(self, method: str, data: Dict[str, Any], files: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        attempts = int(self.settings.delivery_max_attempts)
        body = {"chat_id": self.settings.telegram_chat_id, **data}
        for attempt in range(1, attempts + 1):
            try:
                return self._call_once(method, body, files)
            except TransientDeliveryError as exc:
                if attempt >= attempts:
                    raise
                delay = exc.retry_after
                if delay is None:
                    delay = float(self.settings.delivery_retry_backoff_seconds) * attempt
                logger.warning(
                    "delivery.retry",
                    extra={"method": method, "attempt": attempt, "delay": delay, "error": str(exc)},
                )
                self._sleep(delay)
        raise TransientDeliveryError(f"{method} retries exhausted")

    @staticmethod
    def _message_id(result: Dict[str, Any]) -> int:
        try:
            return int(result["message_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise PermanentDeliveryError("response carries no message_id") from exc

    # --- fallback download ---

    @contextmanager
    def _downloaded(self, url: str) -> Iterator[Path]:
        suffix = Path(urlparse(url).path).suffix[:8]
        fd, name = tempfile.mkstemp(prefix="media-", suffix=suffix, dir=self.settings.media_download_dir)
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                with self._client.stream("GET", url) as resp:
                    if resp.status_code >= 400:
                        raise PermanentDeliveryError(f"media download failed: HTTP {resp.status_code}")
                    for block in resp.iter_bytes():
                        fh.write(block)
            yield path
        except httpx.HTTPError as exc:
            raise TransientDeliveryError(f"media download failed: {exc}") from exc
        finally:
            path.unlink(missing_ok=True)

    def _send_media(self, method: str, field: str, url: str, caption: str) -> int:
        clipped = clip_caption(caption, int(self.settings.caption_max_chars))
        try:
            result = self._call(method, {field: url, "caption": clipped})
        except MediaRejectedError as exc:
            logger.info("delivery.fallback_upload", extra={"method": method, "error": str(exc)})
            with self._downloaded(url) as path:
                with path.open("rb") as fh:
                    result = self._call(method, {"caption": clipped}, files={field: (path.name, fh)})
        return self._message_id(result)

    # --- publisher primitives ---

    def send_plain(self, text: str) -> int:
        """Send ``text`` as one or more messages; returns the first message id."""
        chunks = chunk_text(text, int(self.settings.message_chunk_chars))
        if not chunks:
            raise PermanentDeliveryError("refusing to send an empty message")
        first = self._message_id(self._call("sendMessage", {"text": chunks[0]}))
        for chunk in chunks[1:]:
            self._call("sendMessage", {"text": chunk})
        return first

    def send_photo(self, url: str, caption: str) -> int:
        return self._send_media("sendPhoto", "photo", url, caption)

    def send_video(self, url: str, caption: str) -> int:
        return self._send_media("sendVideo", "video", url, caption)

    def send(self, kind: str, payload: Optional[str], caption: str) -> int:
        if kind == "video" and payload:
            return self.send_video(payload, caption)
        if kind == "photo" and payload:
            return self.send_photo(payload, caption)
        return self.send_plain(caption)

    def edit_text(self, message_id: int, text: str, kind: str = "text") -> None:
        """Replace the text (or caption, for media posts) of a sent message.

        Raises ``MessageNotFoundError`` when ``message_id`` is unknown.
        """
        if kind == "text":
            method = "editMessageText"
            data = {"message_id": message_id, "text": clip_caption(text, int(self.settings.message_chunk_chars))}
        else:
            method = "editMessageCaption"
            data = {"message_id": message_id, "caption": clip_caption(text, int(self.settings.caption_max_chars))}
        try:
            self._call(method, data)
        except PermanentDeliveryError as exc:
            if _NOT_MODIFIED_MARKER in str(exc).lower():
                logger.debug("delivery.edit_unchanged", extra={"message_id": message_id})
                return
            raise
