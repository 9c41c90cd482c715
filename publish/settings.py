"""Settings for channel delivery."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, PositiveFloat, PositiveInt, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.settings import ConfigurationError

TELEGRAM_CAPTION_LIMIT = 1024
TELEGRAM_MESSAGE_LIMIT = 4096


class PublishSettings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    telegram_bot_token: SecretStr = Field(..., alias="TELEGRAM_BOT_TOKEN", description="Bot API token")
    telegram_chat_id: str = Field(..., alias="TELEGRAM_CHAT_ID", description="Target channel id or @username")
    telegram_api_base: str = Field("https://api.telegram.org", alias="TELEGRAM_API_BASE")
    caption_max_chars: PositiveInt = Field(900, alias="CAPTION_MAX_CHARS")
    message_chunk_chars: PositiveInt = Field(3900, alias="MESSAGE_CHUNK_CHARS")
    delivery_timeout_seconds: PositiveFloat = Field(30.0, alias="DELIVERY_TIMEOUT_SECONDS")
    delivery_max_attempts: PositiveInt = Field(3, alias="DELIVERY_MAX_ATTEMPTS")
    delivery_retry_backoff_seconds: float = Field(1.0, ge=0, alias="DELIVERY_RETRY_BACKOFF_SECONDS")
    media_download_dir: Optional[str] = Field(
        None,
        alias="MEDIA_DOWNLOAD_DIR",
        description="Directory for fallback media downloads (system temp dir when unset)",
    )

    @field_validator("telegram_chat_id")
    @classmethod
    def _chat_id_not_blank(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("TELEGRAM_CHAT_ID must not be blank")
        return s

    @field_validator("telegram_api_base")
    @classmethod
    def _strip_base(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("caption_max_chars")
    @classmethod
    def _caption_within_limit(cls, v: int) -> int:
        if v > TELEGRAM_CAPTION_LIMIT:
            raise ValueError(f"CAPTION_MAX_CHARS must be <= {TELEGRAM_CAPTION_LIMIT}")
        return v

    @field_validator("message_chunk_chars")
    @classmethod
    def _chunk_within_limit(cls, v: int) -> int:
        if v > TELEGRAM_MESSAGE_LIMIT:
            raise ValueError(f"MESSAGE_CHUNK_CHARS must be <= {TELEGRAM_MESSAGE_LIMIT}")
        return v


@lru_cache()
def get_publish_settings() -> PublishSettings:
    try:
        return PublishSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Publish settings validation failed: {exc}") from exc


def reset_publish_settings_cache() -> None:
    get_publish_settings.cache_clear()  # type: ignore[attr-defined]
