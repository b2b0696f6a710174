"""Configuration settings using pydantic-settings for environment variable loading."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Reads a ``.env`` file when present; real environment variables win.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # elgoose.net API
    api_base_url: str = "https://elgoose.net/api/v2"
    request_timeout: float = Field(default=30.0, gt=0)

    # Sync engine
    setlist_fetch_concurrency: int = Field(default=5, ge=1)
    setlist_fetch_timeout: float | None = Field(default=60.0, gt=0)

    # Dataset location. ELGOOSE_DATASET_JSON short-circuits the store entirely.
    dataset_path: Path = Field(default_factory=lambda: Path.home() / ".showrarity" / "dataset.db")
    elgoose_dataset_json: str | None = None

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Call ``get_settings.cache_clear()`` after changing the environment.
    """
    return Settings()
