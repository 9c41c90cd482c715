"""Configuration models for the ingestion pipeline."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Required configuration is missing or invalid."""


class Settings(BaseSettings):
    """Environment settings for the scrape → decide → deliver run."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="INGESTION_REDIS_URL",
        description="Celery broker/backend Redis DSN.",
    )
    ledger_dsn: str = Field(..., alias="LEDGER_DSN", description="SQLAlchemy DSN of the ledger database.")
    feed_url: str | None = Field(None, alias="FEED_URL", description="JSON endpoint of the scraped feed.")
    feed_timeout_seconds: PositiveInt = Field(15, alias="FEED_TIMEOUT_SECONDS", description="Feed HTTP timeout (s).")
    feed_max_attempts: PositiveInt = Field(3, alias="FEED_MAX_ATTEMPTS", description="Feed fetch attempts.")
    scan_depth: PositiveInt = Field(5, alias="SCAN_DEPTH", description="How many newest feed items to inspect.")
    near_duplicate_threshold: float = Field(
        75.0,
        alias="NEAR_DUPLICATE_THRESHOLD",
        description="Similarity (0-100) at or above which a candidate edits an earlier post.",
    )
    near_duplicate_window: PositiveInt = Field(
        10,
        alias="NEAR_DUPLICATE_WINDOW",
        description="Number of recent published records compared against.",
    )
    excluded_authors: List[str] = Field(
        default_factory=list,
        alias="EXCLUDED_AUTHORS",
        description="JSON list of author labels that are never published.",
    )
    ledger_timezone: str = Field("UTC", alias="LEDGER_TIMEZONE", description="Zone of the ledger calendar day.")
    viewport_height: PositiveInt = Field(800, alias="VIEWPORT_HEIGHT", description="Feed viewport height (px).")
    pipeline_interval_minutes: PositiveInt = Field(
        1,
        alias="PIPELINE_INTERVAL_MINUTES",
        description="Beat interval of the pipeline run.",
    )
    pipeline_schedule_enabled: bool = Field(True, alias="PIPELINE_SCHEDULE_ENABLED")
    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="Log level.")
    log_json: bool = Field(False, alias="LOG_JSON", description="Emit logs as JSON.")
    celery_worker_concurrency: PositiveInt = Field(
        1,
        alias="CELERY_WORKER_CONCURRENCY",
        description="Runs must not overlap, so one worker process by default.",
    )
    celery_task_soft_time_limit: PositiveInt = Field(
        300,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Soft time limit of a run (s).",
    )

    @field_validator("ledger_dsn")
    @classmethod
    def _validate_ledger_dsn(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("LEDGER_DSN must be a valid DSN string.")
        return value

    @field_validator("excluded_authors", mode="before")
    @classmethod
    def _parse_excluded_authors(cls, value: Any) -> List[Any]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("EXCLUDED_AUTHORS must be a JSON array.") from exc
            value = parsed
        if not isinstance(value, list):
            raise ValueError("EXCLUDED_AUTHORS must be a list.")
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("near_duplicate_threshold")
    @classmethod
    def _validate_threshold(cls, value: float) -> float:
        if not 0.0 <= value <= 100.0:
            raise ValueError("NEAR_DUPLICATE_THRESHOLD must be within 0..100.")
        return value

    @field_validator("near_duplicate_window")
    @classmethod
    def _validate_window(cls, value: int) -> int:
        if value > 100:
            raise ValueError("NEAR_DUPLICATE_WINDOW must be 100 or less.")
        return value

    @field_validator("ledger_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown LEDGER_TIMEZONE: {value}") from exc
        return value


@lru_cache()
def get_settings() -> Settings:
    """Return the Settings instance built from the environment."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Environment validation failed: {exc}") from exc


def reset_settings_cache() -> None:
    """Clear the Settings LRU cache (for tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
