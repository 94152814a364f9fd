"""Application configuration models."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_URL = "https://flickpick-1911bf3985c5.herokuapp.com"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="FlickPick", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    api_url: HttpUrl = Field(default=DEFAULT_API_URL, alias="API_URL")
    api_timeout_seconds: float = Field(
        default=20.0, alias="API_TIMEOUT", ge=1.0, le=120.0
    )
    api_retry_limit: int = Field(default=2, alias="API_RETRY_LIMIT", ge=0, le=10)

    database_url: str = Field(
        default="sqlite+aiosqlite:///./flickpick.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        """Accept level names in any case and reject unknown ones."""

        if value is None:
            return "INFO"
        level = str(value).strip().upper() or "INFO"
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def api_base_url(self) -> str:
        """Return the API root without a trailing slash."""

        return str(self.api_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
