"""Translation module - translator clients and settings."""

from translation.client.openai_translator import (
    OpenAITranslator,
    PassthroughTranslator,
    PermanentTranslationError,
    TransientTranslationError,
    TranslationError,
    Translator,
    build_translator,
    translate_or_original,
)
from translation.settings import TranslationSettings, get_translation_settings

__all__ = [
    "OpenAITranslator",
    "PassthroughTranslator",
    "PermanentTranslationError",
    "TransientTranslationError",
    "TranslationError",
    "Translator",
    "build_translator",
    "translate_or_original",
    "TranslationSettings",
    "get_translation_settings",
]
