"""Application settings parsed from environment variables and defaults."""

import json
from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
SHARED_STORAGE_TYPES = frozenset({"memory", "redis"})


def _split_list(value: str | list[str] | None) -> list[str] | None:
    """Parse JSON arrays, CSV strings, or lists into cleaned string lists.

    Returns None when the input carries no usable entries so callers can
    choose their own default.
    """
    if isinstance(value, list):
        cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
        return cleaned or None
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            cleaned = [str(item).strip() for item in parsed if str(item).strip()]
            return cleaned or None
        items = [item.strip() for item in stripped.split(",") if item.strip()]
        return items or None
    return None


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "VodHub API"
    environment: str = "development"
    api_prefix: str = "/api"
    log_level: str = "INFO"
    cors_origins: list[str] | str = Field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())

    storage_type: Literal["localstorage", "memory", "redis"] = "localstorage"
    redis_url: str = "redis://redis:6379/0"
    owner_username: Optional[str] = Field(default=None, validation_alias=AliasChoices("USERNAME", "OWNER_USERNAME"))

    site_config_path: str = "config.json"
    default_cache_time_seconds: int = 7200

    zh_convert_url: str = "https://api.zhconvert.org/convert"
    zh_convert_api_key: str = ""
    zh_convert_timeout_seconds: float = 4.0

    source_request_timeout_seconds: float = 15.0
    source_max_pages: int = 5
    disable_content_filter: bool = False
    content_blocklist_extra: list[str] | str = Field(default_factory=list)

    refresh_detail_timeout_seconds: float = 30.0
    refresh_interval_seconds: int = 0
    worker_queue_names: list[str] | str = Field(default_factory=lambda: ["default", "maintenance"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_cors_origins(cls, value: str | list[str] | None) -> list[str]:
        """Normalize CORS origins from JSON, CSV, or list inputs."""
        return _split_list(value) or DEFAULT_CORS_ORIGINS.copy()

    @field_validator("worker_queue_names", mode="before")
    @classmethod
    def _split_worker_queue_names(cls, value: str | list[str] | None) -> list[str]:
        """Normalize worker queue names from JSON, CSV, or list inputs."""
        return _split_list(value) or ["default"]

    @field_validator("content_blocklist_extra", mode="before")
    @classmethod
    def _split_content_blocklist(cls, value: str | list[str] | None) -> list[str]:
        return _split_list(value) or []

    @property
    def shared_storage(self) -> bool:
        """True when user records live in a server-side store."""
        return self.storage_type in SHARED_STORAGE_TYPES

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings to avoid re-parsing environment variables."""
    return Settings()


settings = get_settings()
