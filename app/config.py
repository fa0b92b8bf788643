"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="NowShowing", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    omdb_api_key: str | None = Field(default=None, alias="OMDB_API_KEY")
    omdb_api_url: HttpUrl = Field(
        default="https://www.omdbapi.com/", alias="OMDB_API_URL"
    )

    probe_api_url: HttpUrl | None = Field(default=None, alias="PROBE_API_URL")
    probe_timeout_seconds: float = Field(
        default=10.0, alias="PROBE_TIMEOUT", gt=0, le=120
    )

    preferred_source: str = Field(default="VidSrc.to", alias="PREFERRED_SOURCE")

    continue_watching_limit: int = Field(
        default=20, alias="CONTINUE_WATCHING_LIMIT", ge=1, le=500
    )
    watchlist_limit: int = Field(
        default=100, alias="WATCHLIST_LIMIT", ge=1, le=1_000
    )

    max_sessions: int = Field(default=256, alias="MAX_SESSIONS", ge=1, le=100_000)
    session_idle_seconds: float = Field(
        default=3600.0, alias="SESSION_IDLE_TIMEOUT", gt=0
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./nowshowing.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("preferred_source", mode="before")
    @classmethod
    def _strip_preferred_source(cls, value: object) -> object:
        """Blank provider names fall back to the built-in default."""

        if value is None:
            return "VidSrc.to"
        if isinstance(value, str):
            cleaned = value.strip()
            return cleaned or "VidSrc.to"
        return value

    @property
    def check_video_url(self) -> str:
        """Return the endpoint the availability probe should call."""

        if self.probe_api_url is not None:
            return str(self.probe_api_url)
        return f"http://127.0.0.1:{self.server_port}/api/check-video"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
