"""JSON feed connector (provider-injected for tests/offline)."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx

from ingestion.settings import get_settings

from .base import BaseFeedConnector, PermanentError, TransientError


ProviderFn = Callable[[int], List[Dict[str, Any]]]


class HttpFeedConnector(BaseFeedConnector):
    """Connector for a scraper endpoint that serves the page's items as JSON.

    - provider injected: offline mode, the provider returns raw item dicts
    - otherwise: GET ``FEED_URL``; the body is a list or ``{"items": [...]}``
    """

    source = "http_feed"

    def __init__(self, provider: Optional[ProviderFn] = None, *, client: Optional[httpx.Client] = None):
        self._provider = provider
        self._client = client

    def _fetch_raw(self, limit: int):
        if self._provider is not None:
            return self._provider(limit)

        cfg = get_settings()
        if not cfg.feed_url:
            raise PermanentError("FEED_URL is not configured.")

        client = self._client or httpx.Client(timeout=float(cfg.feed_timeout_seconds))
        try:
            resp = client.get(cfg.feed_url, params={"limit": limit})
        except httpx.TimeoutException as exc:
            raise TransientError("feed request timed out") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"feed request failed: {exc}") from exc
        finally:
            if self._client is None:
                client.close()

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientError(f"feed temporary error: {resp.status_code}")
        if resp.status_code >= 400:
            raise PermanentError(f"feed error: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise PermanentError("feed returned a non-JSON body") from exc
        items = data.get("items") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise PermanentError("feed document has no item list")
        return [it for it in items if isinstance(it, dict)]
