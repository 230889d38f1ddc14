"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from adaptive_progress.core.config import Settings, get_settings


class TestSettings:
    """Tests for Settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("ESTIMATE_STORAGE_BACKEND", raising=False)
        monkeypatch.delenv("PROGRESS_PUBLISH_ENABLED", raising=False)

        settings = Settings(_env_file=None)

        assert settings.default_estimate_ms == 60_000
        assert settings.countdown_step_ms == 100
        assert settings.finish_dwell_ms == 200
        assert settings.estimate_storage_backend == "file"
        assert settings.estimate_redis_prefix == "eta:"
        assert settings.progress_publish_enabled is False
        assert settings.progress_channel_prefix == "progress:"
        assert settings.progress_publish_timeout_s == 1.0
        assert settings.progress_publish_backoff_s == 5.0
        assert settings.is_redis_storage is False

    def test_reads_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("COUNTDOWN_STEP_MS", "50")
        monkeypatch.setenv("ESTIMATE_STORAGE_BACKEND", "redis")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/4")

        settings = Settings(_env_file=None)

        assert settings.countdown_step_ms == 50
        assert settings.is_redis_storage is True
        assert settings.redis_url == "redis://cache:6379/4"

    def test_env_is_case_insensitive(self, monkeypatch) -> None:
        monkeypatch.setenv("finish_dwell_ms", "0")

        assert Settings(_env_file=None).finish_dwell_ms == 0

    @pytest.mark.parametrize(
        "name,value",
        [
            ("COUNTDOWN_STEP_MS", "0"),
            ("FINISH_DWELL_MS", "-1"),
            ("ESTIMATE_STORAGE_BACKEND", "sqlite"),
            ("PROGRESS_PUBLISH_TIMEOUT_S", "0"),
        ],
    )
    def test_rejects_invalid_values(self, monkeypatch, name: str, value: str) -> None:
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestGetSettings:
    """Tests for the cached settings accessor."""

    def test_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_picks_up_changes(self, monkeypatch) -> None:
        monkeypatch.setenv("DEFAULT_ESTIMATE_MS", "90000")
        get_settings.cache_clear()

        assert get_settings().default_estimate_ms == 90_000
