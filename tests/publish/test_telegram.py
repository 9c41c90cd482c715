from __future__ import annotations

from pathlib import Path
from typing import List
from urllib.parse import parse_qs

import httpx
import pytest

from publish.delivery import choose_delivery, deliver, plan_for_stored_media
from publish.settings import PublishSettings
from publish.telegram import (
    MediaRejectedError,
    MessageNotFoundError,
    PermanentDeliveryError,
    TelegramPublisher,
    TransientDeliveryError,
    chunk_text,
    clip_caption,
)

API = "https://api.telegram.test"


def _settings(tmp_path: Path, **overrides) -> PublishSettings:
    values = dict(
        telegram_bot_token="123:abc",
        telegram_chat_id="@news",
        telegram_api_base=API,
        delivery_max_attempts=3,
        delivery_retry_backoff_seconds=0.5,
        media_download_dir=str(tmp_path),
    )
    values.update(overrides)
    return PublishSettings(**values)


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def _ok(message_id: int) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "result": {"message_id": message_id}})


def _error(status: int, description: str, **extra) -> httpx.Response:
    return httpx.Response(status, json={"ok": False, "error_code": status, "description": description, **extra})


class Recorder:
    def __init__(self, handler):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def methods(self) -> List[str]:
        return [r.url.path.rsplit("/", 1)[-1] for r in self.requests]


def _publisher(tmp_path: Path, handler, sleeps=None, **overrides) -> TelegramPublisher:
    sleeps = sleeps if sleeps is not None else []
    return TelegramPublisher(
        _settings(tmp_path, **overrides),
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )


def test_clip_caption_truncates_with_ellipsis():
    caption = "x" * 2000

    clipped = clip_caption(caption, 900)

    assert len(clipped) == 900
    assert clipped.endswith("…")
    assert clip_caption("short", 900) == "short"


def test_long_caption_is_sent_once_truncated(tmp_path):
    rec = Recorder(lambda request: _ok(7))
    publisher = _publisher(tmp_path, rec)

    message_id = publisher.send_photo("https://cdn/p.jpg", "y" * 2000)

    assert message_id == 7
    assert rec.methods() == ["sendPhoto"]
    form = _form(rec.requests[0])
    assert form["chat_id"] == "@news"
    assert form["photo"] == "https://cdn/p.jpg"
    assert len(form["caption"]) == 900
    assert form["caption"].endswith("…")


def test_chunk_text_prefers_line_breaks():
    text = "first line\n" + "a" * 20 + "\nthird"

    assert chunk_text(text, 15) == ["first line", "a" * 15, "aaaaa\nthird"]
    assert chunk_text("", 10) == []


def test_plain_text_is_chunked_and_returns_first_id(tmp_path):
    ids = iter([11, 12, 13])
    rec = Recorder(lambda request: _ok(next(ids)))
    publisher = _publisher(tmp_path, rec, message_chunk_chars=100)

    message_id = publisher.send_plain(" ".join(["word"] * 50))

    assert message_id == 11
    assert rec.methods() == ["sendMessage", "sendMessage", "sendMessage"]
    assert all(len(_form(r)["text"]) <= 100 for r in rec.requests)


def test_rate_limit_is_retried_with_retry_after(tmp_path):
    responses = iter([_error(429, "Too Many Requests", parameters={"retry_after": 3}), _ok(5)])
    rec = Recorder(lambda request: next(responses))
    sleeps: list = []
    publisher = _publisher(tmp_path, rec, sleeps)

    assert publisher.send_plain("hello") == 5
    assert sleeps == [3.0]


def test_server_errors_exhaust_attempts(tmp_path):
    rec = Recorder(lambda request: _error(502, "Bad Gateway"))
    sleeps: list = []
    publisher = _publisher(tmp_path, rec, sleeps)

    with pytest.raises(TransientDeliveryError):
        publisher.send_plain("hello")
    assert len(rec.requests) == 3
    assert sleeps == [0.5, 1.0]


def test_bad_request_is_permanent(tmp_path):
    rec = Recorder(lambda request: _error(400, "Bad Request: chat not found"))
    publisher = _publisher(tmp_path, rec)

    with pytest.raises(PermanentDeliveryError) as excinfo:
        publisher.send_plain("hello")
    assert not isinstance(excinfo.value, MediaRejectedError)
    assert len(rec.requests) == 1


def test_rejected_media_url_is_downloaded_uploaded_and_cleaned(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "cdn.test":
            return httpx.Response(200, content=b"\x00\x01video-bytes")
        if "multipart/form-data" in request.headers.get("content-type", ""):
            assert b"video-bytes" in request.content
            return _ok(21)
        return _error(400, "Bad Request: failed to get HTTP URL content")

    rec = Recorder(handler)
    download_dir = tmp_path / "downloads"
    download_dir.mkdir()
    publisher = _publisher(tmp_path, rec, media_download_dir=str(download_dir))

    message_id = publisher.send_video("https://cdn.test/clip.mp4", "caption")

    assert message_id == 21
    assert rec.methods() == ["sendVideo", "clip.mp4", "sendVideo"]
    assert list(download_dir.iterdir()) == []


def test_fallback_file_is_removed_when_upload_fails(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "cdn.test":
            return httpx.Response(200, content=b"img")
        if "multipart/form-data" in request.headers.get("content-type", ""):
            return _error(400, "Bad Request: IMAGE_PROCESS_FAILED")
        return _error(400, "Bad Request: wrong type of the web page content")

    download_dir = tmp_path / "downloads"
    download_dir.mkdir()
    publisher = _publisher(tmp_path, Recorder(handler), media_download_dir=str(download_dir))

    with pytest.raises(PermanentDeliveryError):
        publisher.send_photo("https://cdn.test/p.jpg", "caption")
    assert list(download_dir.iterdir()) == []


def test_edit_of_unknown_message_raises(tmp_path):
    rec = Recorder(lambda request: _error(400, "Bad Request: message to edit not found"))
    publisher = _publisher(tmp_path, rec)

    with pytest.raises(MessageNotFoundError):
        publisher.edit_text(999, "new text")
    assert rec.methods() == ["editMessageText"]


def test_edit_not_modified_is_success_and_media_edits_caption(tmp_path):
    rec = Recorder(lambda request: _error(400, "Bad Request: message is not modified"))
    publisher = _publisher(tmp_path, rec)

    publisher.edit_text(5, "same text", kind="photo")

    assert rec.methods() == ["editMessageCaption"]
    assert _form(rec.requests[0])["message_id"] == "5"


def test_choose_delivery_priority():
    assert choose_delivery("https://cdn/v.mp4", "https://cdn/p.jpg").kind == "video"
    assert choose_delivery("https://cdn/live.m3u8", "https://cdn/p.jpg").kind == "photo"
    assert choose_delivery("https://cdn/live.m3u8", None).kind == "text"
    assert choose_delivery(None, None).media_url is None


def test_plan_for_stored_media():
    assert plan_for_stored_media("https://cdn/v.webm").kind == "video"
    assert plan_for_stored_media("https://cdn/p.jpg").kind == "photo"
    assert plan_for_stored_media("https://cdn/live.m3u8").kind == "text"
    assert plan_for_stored_media(None).kind == "text"


def test_deliver_routes_text_through_publisher(tmp_path):
    rec = Recorder(lambda request: _ok(3))
    publisher = _publisher(tmp_path, rec)

    delivery = deliver(publisher, choose_delivery(None, None), "plain news")

    assert delivery.message_id == 3
    assert delivery.kind == "text"
    assert rec.methods() == ["sendMessage"]
    assert _form(rec.requests[0])["text"] == "plain news"
