"""
Configuration settings for the certprep exam session engine.

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
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///certprep.db",
        description="SQLAlchemy connection string",
    )

    # ========================================
    # Exam Sessions
    # ========================================
    exam_default_mode: Literal["exam", "practice"] = Field(
        default="exam",
        description="Mode used when a caller does not choose one",
    )
    default_passing_threshold: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Passing threshold (percent) for exams without one",
    )

    # ─── Auto-Save ──────────────────────────────────────────────────────────────
    autosave_debounce_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Quiet period after the last answer change before saving",
    )
    autosave_saved_display_seconds: float = Field(
        default=2.0,
        gt=0,
        description="How long the 'saved' status is shown before reverting to idle",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/certprep.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
