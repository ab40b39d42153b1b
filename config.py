"""
Configuration settings for the adaptive playlist engine host.

Uses Pydantic Settings for environment variable management with .env file support.
Variables are prefixed with PLAYLIST_ (e.g. PLAYLIST_ADAPTIVE_MODE=full).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.playlist.models import AdaptiveConfiguration, AdaptiveMode, UnitCategory


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PLAYLIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
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
    # Session Persistence
    # ========================================
    session_dir: Path = Field(
        default=Path.home() / ".playlist" / "sessions",
        description="Directory for persisted playlist sessions",
    )
    session_expiry_hours: int = Field(
        default=24 * 30,
        ge=1,
        description="Hours before a stored session is considered stale",
    )

    # ========================================
    # Adaptive Sequencing Defaults
    # ========================================
    adaptive_mode: AdaptiveMode = Field(
        default=AdaptiveMode.OFF,
        description="Sequencing mode: off, guided, full",
    )
    allow_learner_choice: bool = Field(
        default=False,
        description="Let learners jump freely between entries",
    )
    pre_assessment_enabled: bool = Field(
        default=False,
        description="Treat the first unit as a diagnostic gate",
    )
    mastery_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Node mastery at which adaptive mode skips optional units",
    )
    gate_categories: str = Field(
        default="graded",
        description="Comma-separated unit categories treated as gates",
    )
    max_gate_attempts: int | None = Field(
        default=None,
        ge=1,
        description="Attempts allowed per gate before holding (None = unlimited)",
    )

    @field_validator("gate_categories")
    @classmethod
    def _check_categories(cls, value: str) -> str:
        for name in _split(value):
            UnitCategory(name)
        return value

    def get_gate_categories(self) -> frozenset[UnitCategory]:
        return frozenset(UnitCategory(name) for name in _split(self.gate_categories))

    def get_adaptive_config(self) -> AdaptiveConfiguration:
        """Build the course-level adaptive configuration from settings."""
        return AdaptiveConfiguration(
            mode=self.adaptive_mode,
            allow_learner_choice=self.allow_learner_choice,
            pre_assessment_enabled=self.pre_assessment_enabled,
            mastery_threshold=self.mastery_threshold,
            gate_categories=self.get_gate_categories(),
            max_gate_attempts=self.max_gate_attempts,
        )


def _split(value: str) -> list[str]:
    return [part.strip().lower() for part in value.split(",") if part.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
