"""OpenAI chat-completion translator.

- provider injection removes network/SDK dependencies in tests
- transient failures (empty completion, rate limits, timeouts) are retried
- an overall time budget bounds one translation
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from ingestion.utils.logging import get_logger
from translation.settings import TranslationSettings, get_translation_settings

logger = get_logger(__name__)


class TranslationError(Exception):
    """Base translation error."""


class TransientTranslationError(TranslationError):
    """Retryable failure."""


class PermanentTranslationError(TranslationError):
    """Non-retryable failure."""


ProviderFn = Callable[[Dict[str, Any]], Dict[str, Any]]


class Translator(Protocol):
    def translate(self, text: str) -> str: ...  # noqa: D401


def build_messages(text: str, source_lang: str, target_lang: str) -> List[dict]:
    return [
        {
            "role": "system",
            "content": (
                f"You translate breaking news from {source_lang} to {target_lang}. "
                "Return only the translation, keep names, numbers and line breaks, add nothing."
            ),
        },
        {"role": "user", "content": text},
    ]


@dataclass(frozen=True)
class OpenAITranslator:
    settings: TranslationSettings
    provider: Optional[ProviderFn] = None

    @classmethod
    def from_env(cls, provider: Optional[ProviderFn] = None) -> "OpenAITranslator":
        return cls(get_translation_settings(), provider=provider)

    def _get_provider(self) -> ProviderFn:
        if self.provider is not None:
            return self.provider
        if self.settings.openai_api_key is None:
            raise PermanentTranslationError("OPENAI_API_KEY is not configured.")
        from openai import APIConnectionError, APITimeoutError, OpenAI, RateLimitError

        client = OpenAI(
            api_key=self.settings.openai_api_key.get_secret_value(),
            timeout=float(self.settings.request_timeout_seconds),
        )

        def _call(payload: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - network
            try:
                resp = client.chat.completions.create(**payload)
            except (APIConnectionError, APITimeoutError, RateLimitError) as exc:
                raise TransientTranslationError(str(exc)) from exc
            return {
                "choices": [{"message": {"content": resp.choices[0].message.content}}],
                "model": resp.model,
            }

        return _call

    def _build_payload(self, text: str) -> Dict[str, Any]:
        return {
            "model": self.settings.translation_model,
            "messages": build_messages(text, self.settings.source_lang, self.settings.target_lang),
            "temperature": 0.0,
            "max_tokens": int(self.settings.max_tokens),
        }

    def translate(self, text: str) -> str:
        if not text.strip():
            return text
        payload = self._build_payload(text)
        provider = self._get_provider()

        max_attempts = int(self.settings.retry_max_attempts) + 1
        last_exc: Optional[Exception] = None
        start = time.monotonic()
        for attempt in range(1, max_attempts + 1):
            try:
                resp = provider(payload)
                content = resp.get("choices", [{}])[0].get("message", {}).get("content") or ""
                translated = content.strip()
                if not translated:
                    raise TransientTranslationError("empty translation")
                logger.debug(
                    "translate.ok",
                    extra={"attempt": attempt, "ms": int((time.monotonic() - start) * 1000)},
                )
                return translated
            except TransientTranslationError as exc:
                last_exc = exc
                logger.info("translate.retry", extra={"attempt": attempt, "error": str(exc)})
            if time.monotonic() - start > float(self.settings.request_timeout_seconds):
                raise TransientTranslationError("translation time budget exceeded")

        assert last_exc is not None
        raise TransientTranslationError(f"translation retries exhausted: {last_exc}")


class PassthroughTranslator:
    """Returns text unchanged; used when no translation backend is configured."""

    def translate(self, text: str) -> str:
        return text


def build_translator(provider: Optional[ProviderFn] = None) -> Translator:
    settings = get_translation_settings()
    if provider is None and settings.openai_api_key is None:
        logger.warning("translate.disabled", extra={"reason": "OPENAI_API_KEY missing"})
        return PassthroughTranslator()
    return OpenAITranslator(settings, provider=provider)


def translate_or_original(translator: Translator, text: str, **context: Any) -> str:
    """Translate ``text``; any translator failure degrades to the original."""
    try:
        translated = translator.translate(text)
    except Exception as exc:
        logger.warning("translate.degraded", extra={**context, "error": str(exc)})
        return text
    return translated or text
