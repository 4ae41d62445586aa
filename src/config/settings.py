# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific cache settings.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Cache storage ===
    cache_backend: Literal["sqlite", "redis"] = "sqlite"
    cache_db_path: Path = Path("~/.brandcache/analysis.db")
    cache_redis_url: str = ""
    cache_redis_prefix: str = "brandcache:"

    # === Cache policy ===
    cache_default_ttl_days: float = 7
    cache_brand_case_sensitive: bool = False
    cache_events_enabled: bool = True
    cache_event_log_max: int = 10_000

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("cache_default_ttl_days")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        """Entries must expire strictly after they are created."""
        if v <= 0:
            raise ValueError("cache_default_ttl_days must be > 0")
        return v

    @field_validator("cache_event_log_max", "log_retention")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_BACKEND=redis requires CACHE_REDIS_URL")

        if self.cache_backend == "redis" and self.cache_event_log_max == 0:
            errors.append("CACHE_EVENT_LOG_MAX must be > 0 with the redis backend")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def cache_default_ttl(self) -> timedelta:
        return timedelta(days=self.cache_default_ttl_days)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or embedding hosts).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
