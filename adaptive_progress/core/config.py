"""Application configuration using Pydantic Settings."""

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

    # Application
    app_name: str = "Adaptive Progress"
    debug: bool = False

    # Redis (estimate storage and progress publishing)
    redis_url: str = "redis://localhost:6379/0"

    # ==========================================================================
    # Progress Estimation
    # ==========================================================================
    default_estimate_ms: int = 60_000                 # Used when a key has no learned value
    countdown_step_ms: int = Field(default=100, gt=0)  # Tick cadence for the countdown
    finish_dwell_ms: int = Field(default=200, ge=0)    # Time the bar sits at 100% before reset

    # Estimate storage: "memory" (process-local), "file" (JSON on disk), "redis"
    estimate_storage_backend: Literal["memory", "file", "redis"] = "file"
    estimate_file_path: str = ".progress/estimates.json"
    estimate_redis_prefix: str = "eta:"

    # Progress publishing (Redis pub/sub, one channel per estimate key)
    progress_publish_enabled: bool = False
    progress_channel_prefix: str = "progress:"
    progress_publish_timeout_s: float = Field(default=1.0, gt=0)  # Connect and socket timeout
    progress_publish_backoff_s: float = Field(default=5.0, ge=0)  # Pause after a failed publish

    @property
    def is_redis_storage(self) -> bool:
        """Check if estimates are persisted in Redis."""
        return self.estimate_storage_backend == "redis"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
