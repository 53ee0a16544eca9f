"""
Application settings using Pydantic.

Provides environment-based configuration loading with PROMWARP_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROMWARP_",
    )

    # Debug
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = []

    # Warp 10
    warp_endpoint: str = "http://localhost:8080"

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 2.0

    # Metric name discovery fallback (used when no match[] is given)
    default_metric_selector: str = "(http|prometheus).*"
    default_metric_selector_gcount: int = 100

    # Bounds applied to the `start` parameter, Go duration syntax
    find_activeafter_min: str = "24h"
    find_activeafter_max: str = "168h"

    # Dispatch the finds of one request concurrently
    find_concurrent: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
