"""Settings for the translation step."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, PositiveInt, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.settings import ConfigurationError


class TranslationSettings(BaseSettings):
    """Environment-driven configuration for the translator."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    openai_api_key: Optional[SecretStr] = Field(
        None,
        alias="OPENAI_API_KEY",
        description="OpenAI API key; without it text passes through untranslated",
    )
    translation_model: str = Field("gpt-4o-mini", alias="TRANSLATION_MODEL", description="OpenAI model name")
    source_lang: str = Field("Hebrew", alias="TRANSLATION_SOURCE_LANG", description="Language of scraped text")
    target_lang: str = Field("Russian", alias="TRANSLATION_TARGET_LANG", description="Language of channel posts")
    max_tokens: PositiveInt = Field(2048, alias="TRANSLATION_MAX_TOKENS", description="Max completion tokens")
    request_timeout_seconds: PositiveInt = Field(
        30,
        alias="TRANSLATION_REQUEST_TIMEOUT_SECONDS",
        description="Overall time budget per translation (s)",
    )
    retry_max_attempts: PositiveInt = Field(
        2,
        alias="TRANSLATION_RETRY_MAX_ATTEMPTS",
        description="Max retry attempts after the first call",
    )

    @field_validator("source_lang", "target_lang")
    @classmethod
    def _non_empty_lang(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("translation language must not be blank")
        return s


@lru_cache()
def get_translation_settings() -> TranslationSettings:
    try:
        return TranslationSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Translation settings validation failed: {exc}") from exc


def reset_translation_settings_cache() -> None:
    get_translation_settings.cache_clear()  # type: ignore[attr-defined]
