"""Tests for estimate storage backends.

Test Categories:
- In-memory storage
- JSON file storage (durability, atomic writes, corrupt files)
- Redis storage with mocked client
- Backend selection from settings
"""

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import redis

from adaptive_progress.core.config import get_settings
from adaptive_progress.services.exceptions import EstimateStorageError
from adaptive_progress.services.progress.redis_storage import RedisEstimateStorage
from adaptive_progress.services.progress.storage import (
    EstimateStorage,
    FileEstimateStorage,
    InMemoryEstimateStorage,
    get_estimate_storage,
    reset_estimate_storage,
)


@pytest.fixture
def mock_redis_client():
    """Create mock async Redis client."""
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock()
    client.delete = AsyncMock()
    return client


# =============================================================================
# In-memory
# =============================================================================


class TestInMemoryEstimateStorage:
    """Tests for InMemoryEstimateStorage."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self) -> None:
        storage = InMemoryEstimateStorage()

        await storage.set("eta-export", "14000")
        assert await storage.get("eta-export") == "14000"

        await storage.remove("eta-export")
        assert await storage.get("eta-export") is None

    @pytest.mark.asyncio
    async def test_initial_values_are_copied(self) -> None:
        initial = {"eta-export": "10000"}
        storage = InMemoryEstimateStorage(initial)

        await storage.set("eta-export", "12000")

        assert initial == {"eta-export": "10000"}
        assert storage.snapshot() == {"eta-export": "12000"}

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryEstimateStorage(), EstimateStorage)


# =============================================================================
# File
# =============================================================================


class TestFileEstimateStorage:
    """Tests for FileEstimateStorage."""

    @pytest.mark.asyncio
    async def test_missing_file_reads_as_empty(self, tmp_path) -> None:
        storage = FileEstimateStorage(tmp_path / "estimates.json")

        assert await storage.get("eta-export") is None

    @pytest.mark.asyncio
    async def test_values_survive_new_instance(self, tmp_path) -> None:
        """A fresh storage object (new process) sees earlier writes."""
        path = tmp_path / "nested" / "estimates.json"
        await FileEstimateStorage(path).set("eta-export", "14000")

        reopened = FileEstimateStorage(path)

        assert await reopened.get("eta-export") == "14000"
        assert json.loads(path.read_text(encoding="utf-8")) == {"eta-export": "14000"}

    @pytest.mark.asyncio
    async def test_keeps_other_keys(self, tmp_path) -> None:
        storage = FileEstimateStorage(tmp_path / "estimates.json")

        await storage.set("a", "10000")
        await storage.set("b", "20000")
        await storage.remove("a")

        assert await storage.get("a") is None
        assert await storage.get("b") == "20000"

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path) -> None:
        storage = FileEstimateStorage(tmp_path / "estimates.json")

        await storage.set("a", "10000")
        await storage.set("a", "11000")

        assert os.listdir(tmp_path) == ["estimates.json"]

    @pytest.mark.asyncio
    async def test_remove_missing_key_does_not_create_file(self, tmp_path) -> None:
        path = tmp_path / "estimates.json"
        storage = FileEstimateStorage(path)

        await storage.remove("never-set")

        assert not path.exists()

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_storage_error(self, tmp_path) -> None:
        path = tmp_path / "estimates.json"
        path.write_text("{not json", encoding="utf-8")
        storage = FileEstimateStorage(path)

        with pytest.raises(EstimateStorageError) as exc_info:
            await storage.get("eta-export")

        assert exc_info.value.is_retryable is False

    @pytest.mark.asyncio
    async def test_undecodable_file_raises_storage_error(self, tmp_path) -> None:
        path = tmp_path / "estimates.json"
        path.write_bytes(b"\xff\xfe{bad")

        with pytest.raises(EstimateStorageError) as exc_info:
            await FileEstimateStorage(path).get("eta-export")

        assert exc_info.value.is_retryable is False
        assert exc_info.value.details == {"path": str(path)}

    @pytest.mark.asyncio
    async def test_non_object_file_raises_storage_error(self, tmp_path) -> None:
        path = tmp_path / "estimates.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(EstimateStorageError):
            await FileEstimateStorage(path).get("eta-export")

    @pytest.mark.asyncio
    async def test_unwritable_location_raises_storage_error(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        # Parent "directory" is a regular file
        storage = FileEstimateStorage(blocker / "estimates.json")

        with pytest.raises(EstimateStorageError):
            await storage.set("eta-export", "14000")


# =============================================================================
# Redis
# =============================================================================


class TestRedisEstimateStorage:
    """Tests for RedisEstimateStorage."""

    @pytest.mark.asyncio
    async def test_get_uses_prefixed_key(self, mock_redis_client) -> None:
        mock_redis_client.get = AsyncMock(return_value="14000")
        storage = RedisEstimateStorage(redis_client=mock_redis_client)

        value = await storage.get("eta-export")

        assert value == "14000"
        mock_redis_client.get.assert_awaited_once_with("eta:eta-export")

    @pytest.mark.asyncio
    async def test_get_decodes_bytes(self, mock_redis_client) -> None:
        mock_redis_client.get = AsyncMock(return_value=b"14000")
        storage = RedisEstimateStorage(redis_client=mock_redis_client)

        assert await storage.get("eta-export") == "14000"

    @pytest.mark.asyncio
    async def test_set_without_ttl(self, mock_redis_client) -> None:
        storage = RedisEstimateStorage(redis_client=mock_redis_client, prefix="p:")

        await storage.set("eta-export", "14000")

        mock_redis_client.set.assert_awaited_once_with("p:eta-export", "14000")

    @pytest.mark.asyncio
    async def test_remove_deletes_key(self, mock_redis_client) -> None:
        storage = RedisEstimateStorage(redis_client=mock_redis_client)

        await storage.remove("eta-export")

        mock_redis_client.delete.assert_awaited_once_with("eta:eta-export")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args", [("get", ()), ("set", ("1",)), ("remove", ())])
    async def test_redis_errors_are_wrapped(
        self, mock_redis_client, method, args
    ) -> None:
        error = redis.ConnectionError("Connection refused")
        mock_redis_client.get = AsyncMock(side_effect=error)
        mock_redis_client.set = AsyncMock(side_effect=error)
        mock_redis_client.delete = AsyncMock(side_effect=error)
        storage = RedisEstimateStorage(redis_client=mock_redis_client)

        with pytest.raises(EstimateStorageError) as exc_info:
            await getattr(storage, method)("eta-export", *args)

        assert exc_info.value.is_retryable is True
        assert exc_info.value.details == {"key": "eta-export"}

    @pytest.mark.asyncio
    async def test_lazily_creates_client(self, mock_redis_client) -> None:
        with patch(
            "adaptive_progress.services.progress.redis_storage.get_redis_client",
            new=AsyncMock(return_value=mock_redis_client),
        ) as mock_get_client:
            storage = RedisEstimateStorage()
            await storage.get("a")
            await storage.get("b")

        mock_get_client.assert_awaited_once()


# =============================================================================
# Backend selection
# =============================================================================


class TestGetEstimateStorage:
    """Tests for settings-driven backend selection."""

    def test_memory_backend(self) -> None:
        assert isinstance(get_estimate_storage(), InMemoryEstimateStorage)

    def test_returns_same_instance(self) -> None:
        assert get_estimate_storage() is get_estimate_storage()

    def test_file_backend(self, monkeypatch, tmp_path) -> None:
        path = tmp_path / "eta.json"
        monkeypatch.setenv("ESTIMATE_STORAGE_BACKEND", "file")
        monkeypatch.setenv("ESTIMATE_FILE_PATH", str(path))
        get_settings.cache_clear()
        reset_estimate_storage()

        storage = get_estimate_storage()

        assert isinstance(storage, FileEstimateStorage)
        assert storage.path == path

    def test_redis_backend(self, monkeypatch) -> None:
        monkeypatch.setenv("ESTIMATE_STORAGE_BACKEND", "redis")
        monkeypatch.setenv("ESTIMATE_REDIS_PREFIX", "myapp:eta:")
        get_settings.cache_clear()
        reset_estimate_storage()

        storage = get_estimate_storage()

        assert isinstance(storage, RedisEstimateStorage)
        assert storage.make_key("zip") == "myapp:eta:zip"
