"""Application settings loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ENTITY_COLOR = "#fffacd"


class Settings(BaseSettings):
    """Runtime settings for the application."""

    # Directory holding the four JSON collections served by the API
    data_dir: Path = Field(default=Path("data"))
    # Base URL of the API used by the HTTP persistence gateway
    api_url: str = Field(default="http://localhost:3001")
    http_timeout: float = Field(default=10.0)
    language: str = Field(default="en")
    default_entity_color: str = Field(default=DEFAULT_ENTITY_COLOR)
    show_highlights: bool = Field(default=True)
    log_level: str = Field(default="INFO")
    service_name: str = Field(default="api")
    environment: str = Field(default="development")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Allow environment variables that don't have a matching field.
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return application settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings", "DEFAULT_ENTITY_COLOR"]
