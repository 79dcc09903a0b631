"""
Configuration settings for BrainDeck.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are prefixed with BRAINDECK_ (e.g. BRAINDECK_DB_PATH).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BRAINDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Persistence
    # ========================================
    db_path: Path = Field(
        default=Path.home() / ".braindeck" / "deck.db",
        description="SQLite database holding the card collection and settings",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level written to stderr",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file (rotated at 1 MB)",
    )

    # ========================================
    # Card Source (Open Trivia DB)
    # ========================================
    trivia_api_url: str = Field(
        default="https://opentdb.com/api.php",
        description="Open Trivia Database endpoint",
    )
    trivia_fetch_amount: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Questions requested per fetch",
    )
    trivia_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for trivia requests",
    )
    trivia_retries: int = Field(
        default=2,
        ge=0,
        description="Retry attempts on 5xx / connection errors",
    )
    source_cache_hours: int = Field(
        default=24,
        ge=0,
        description="How long fetched cards stay valid in the offline cache",
    )

    # ========================================
    # Daily Reminder
    # ========================================
    reminder_hour: int = Field(
        default=9,
        ge=0,
        le=23,
        description="Default reminder hour (local time)",
    )
    reminder_minute: int = Field(
        default=0,
        ge=0,
        le=59,
        description="Default reminder minute",
    )
    reminder_poll_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How often the reminder loop checks its next fire time",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
