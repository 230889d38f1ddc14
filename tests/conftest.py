"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator

import pytest

from adaptive_progress.core.config import get_settings
from adaptive_progress.services.progress.estimate_store import reset_estimate_store
from adaptive_progress.services.progress.publisher import get_progress_publisher
from adaptive_progress.services.progress.redis_client import reset_redis_client
from adaptive_progress.services.progress.storage import (
    InMemoryEstimateStorage,
    reset_estimate_storage,
)


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep tests off disk and Redis unless a test opts in."""
    monkeypatch.setenv("ESTIMATE_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("PROGRESS_PUBLISH_ENABLED", "false")
    get_settings.cache_clear()
    get_progress_publisher.cache_clear()
    reset_estimate_storage()
    reset_estimate_store()
    reset_redis_client()
    yield
    get_settings.cache_clear()
    get_progress_publisher.cache_clear()
    reset_estimate_storage()
    reset_estimate_store()
    reset_redis_client()


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock for deterministic elapsed times."""
    return FakeClock()


@pytest.fixture
def memory_storage() -> InMemoryEstimateStorage:
    """Create an empty in-memory estimate storage."""
    return InMemoryEstimateStorage()
