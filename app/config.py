"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineList", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="en-US", alias="TMDB_LANGUAGE")
    tmdb_timeout_seconds: float = Field(
        default=10.0, alias="TMDB_TIMEOUT", gt=0, le=120
    )
    tmdb_retry_limit: int = Field(default=2, alias="TMDB_RETRY_LIMIT", ge=0, le=5)

    openrouter_api_key: str | None = Field(
        default=None, alias="OPENROUTER_API_KEY"
    )
    openrouter_model: str = Field(
        default="google/gemini-2.5-flash-lite", alias="OPENROUTER_MODEL"
    )
    openrouter_api_url: HttpUrl = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_API_URL"
    )
    assistant_timeout_seconds: float = Field(
        default=60.0, alias="ASSISTANT_TIMEOUT", gt=0, le=300
    )
    assistant_context_limit: int = Field(
        default=50, alias="ASSISTANT_CONTEXT_LIMIT", ge=1, le=500
    )
    assistant_overview_chars: int = Field(
        default=600, alias="ASSISTANT_OVERVIEW_CHARS", ge=40, le=5_000
    )

    recommendation_seed_count: int = Field(
        default=5, alias="RECOMMENDATION_SEED_COUNT", ge=1, le=20
    )
    recommendation_limit: int = Field(
        default=12, alias="RECOMMENDATION_LIMIT", ge=1, le=100
    )

    session_ttl_seconds: int = Field(
        default=604_800, alias="SESSION_TTL", ge=300
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./cinelist.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", "openrouter_api_key", mode="before")
    @classmethod
    def _strip_blank_keys(cls, value: object) -> object:
        """Treat blank API keys as missing."""

        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("openrouter_model", mode="before")
    @classmethod
    def _default_blank_model(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return "google/gemini-2.5-flash-lite"
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
