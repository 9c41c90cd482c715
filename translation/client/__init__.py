"""Translator clients."""

from translation.client.openai_translator import (
    OpenAITranslator,
    PassthroughTranslator,
    PermanentTranslationError,
    ProviderFn,
    TransientTranslationError,
    TranslationError,
    Translator,
    build_translator,
    translate_or_original,
)

__all__ = [
    "OpenAITranslator",
    "PassthroughTranslator",
    "PermanentTranslationError",
    "ProviderFn",
    "TransientTranslationError",
    "TranslationError",
    "Translator",
    "build_translator",
    "translate_or_original",
]
