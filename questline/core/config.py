"""
Application configuration settings.

All configuration is loaded from environment variables with sensible defaults.
"""
import json
from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Questline"
    api_debug: bool = True

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    # Database
    database_url: str = "sqlite+aiosqlite:///./questline.db"

    # Redis (pub/sub fan-out of progress snapshots)
    redis_enabled: bool = False
    redis_url: str = "redis://redis:6379/0"
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/0"

    # Quest templates
    default_template_id: str = "default"
    template_cache_ttl: int = 300  # seconds

    # Badges
    enable_badges: bool = True
    badge_catalog_path: str | None = None  # JSON file overriding the built-in catalog

    # Progress transitions
    # Compare-and-swap attempts before a contended transition gives up
    max_transition_attempts: int = 5

    # Persistence retries (transient errors only)
    persistence_max_retries: int = 3
    persistence_backoff_factor: float = 2.0
    persistence_backoff_base_seconds: float = 0.1

    # Scheduled tasks
    stats_interval_hours: int = 6

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        """Parse CORS origins from JSON string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
