"""Central configuration for the UniLink API.

Values come from the environment or an optional ``.env`` file. Nested groups
read their own prefixes: ``DB_``, ``MATCHING_`` and ``LOG_``.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class DatabaseSettings(BaseSettings):
    """Database configuration."""
    model_config = SettingsConfigDict(
        env_prefix="DB_",
        extra="ignore",
    )

    url: str = Field(
        default="sqlite+aiosqlite:///./unilink.db",
        description="Async database connection URL",
    )
    echo: bool = Field(default=False)
    auto_create: bool = Field(
        default=False,
        description="Create missing tables on startup",
    )


class MatchingSettings(BaseSettings):
    """Recommendation scoring configuration."""
    model_config = SettingsConfigDict(env_prefix="MATCHING_", extra="ignore")

    job_cutoff: float = Field(default=10.0, ge=0.0, le=100.0)
    mentor_cutoff: float = Field(default=20.0, ge=0.0, le=100.0)
    connection_cutoff: float = Field(default=25.0, ge=0.0, le=100.0)
    connection_pool_size: int = Field(default=50, ge=1, le=1000, description="Candidate users scored per request")
    recent_graduate_year: int = Field(default=2015, ge=1900, le=2100)
    graduation_year_window: int = Field(default=2, ge=0, le=20)
    fuzzy_threshold: int = Field(default=88, ge=0, le=100, description="Rapidfuzz score threshold")


class LoggingSettings(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = Field(default="INFO")
    format: Literal["json", "text"] = Field(default="json")
    file: str | None = Field(default=None)

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(default=Environment.DEVELOPMENT)
    debug: bool = Field(default=False)
    app_name: str = Field(default="UniLink API")
    version: str = Field(default="0.1.0")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:3001"],
    )

    # Sub-configs
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("db", mode="before")
    @classmethod
    def validate_db(cls, v):
        return v if isinstance(v, DatabaseSettings) else DatabaseSettings()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
