"""Configuration management using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_default_db_path() -> Path:
    """Get default path to the local game database."""
    return Path.home() / ".pogo-toolkit" / "pogo.sqlite"


def _get_default_ranking_leagues() -> dict[str, int]:
    """PvPoke ranking files are keyed by CP cap."""
    return {"great": 1500, "ultra": 2500, "master": 10000}


def _get_default_ranking_scenarios() -> list[str]:
    """Get the PvPoke ranking categories to import."""
    return ["overall", "leads", "closers", "switches", "chargers", "attackers"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="POGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    db_path: Path = Field(
        default_factory=_get_default_db_path,
        description="Path to the local game database (pogo.sqlite)",
    )
    db_max_connections: int = Field(
        default=5,
        description="Maximum concurrent database operations (semaphore limit)",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_slow_queries: bool = Field(
        default=False,
        description="Enable logging of slow database queries",
    )
    slow_query_threshold_ms: int = Field(
        default=100,
        description="Threshold in milliseconds for slow query warnings",
    )

    # Update scheduling
    startup_grace_seconds: float = Field(
        default=60.0,
        description="Delay before the first scheduled check of each source",
    )
    bootstrap_on_empty: bool = Field(
        default=True,
        description="Load every active source before startup when the store is empty",
    )
    disabled_sources: list[str] = Field(
        default_factory=list,
        description="Source ids to deactivate at startup",
    )

    # Remote feeds
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub REST API base URL used to resolve version markers",
    )
    raw_content_url: str = Field(
        default="https://raw.githubusercontent.com",
        description="Base URL for raw repository file downloads",
    )
    github_token: str | None = Field(
        default=None,
        description="Optional GitHub token to lift API rate limits",
    )
    http_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout for remote feed calls",
    )
    ranking_leagues: dict[str, int] = Field(
        default_factory=_get_default_ranking_leagues,
        description="League id to CP cap, one rankings file per league",
    )
    ranking_scenarios: list[str] = Field(
        default_factory=_get_default_ranking_scenarios,
        description="PvPoke ranking categories to import",
    )


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings (cached singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
