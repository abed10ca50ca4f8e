"""
Configuration settings for the Mentora scheduling engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Persistence
    # ========================================
    persistence_backend: Literal["memory", "json", "sqlalchemy"] = Field(
        default="json",
        description="Which persistence adapter backs the card store",
    )
    flashcards_json_path: str = Field(
        default="~/.mentora/flashcards.json",
        description="File used by the JSON persistence adapter",
    )
    database_url: str = Field(
        default="sqlite:///data/flashcards.db",
        description="SQLAlchemy connection string for the database adapter",
    )
    persistence_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound for a single load/save call before it fails",
    )
    card_lock_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for waiting on another write to the same card",
    )

    # ========================================
    # Cards
    # ========================================
    default_mode: str = Field(
        default="maths",
        description="Classification label given to cards added without one",
    )

    # ========================================
    # Interval Tables (days, indexed by prior review count)
    # ========================================
    interval_easy_days: list[int] = Field(
        default=[1, 6, 13, 30, 90],
        description="Days until next review after an Easy grade",
    )
    interval_medium_days: list[int] = Field(
        default=[1, 3, 7, 21, 60],
        description="Days until next review after a Medium grade",
    )
    interval_hard_days: list[int] = Field(
        default=[1, 1, 3, 10, 30],
        description="Days until next review after a Hard grade",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_interval_config(self) -> dict[str, list[int]]:
        """Get the interval tables keyed by grade name."""
        return {
            "easy": list(self.interval_easy_days),
            "medium": list(self.interval_medium_days),
            "hard": list(self.interval_hard_days),
        }

    def is_sqlite(self) -> bool:
        """Check if the database adapter points at SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
