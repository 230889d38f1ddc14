"""Key-value persistence backends for learned estimates.

Every backend stores one string per key and implements the same async
interface (``get``/``set``/``remove``). Failures are raised as
``EstimateStorageError``; the EstimateStore decides how to degrade.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from adaptive_progress.core.config import get_settings
from adaptive_progress.services.exceptions import EstimateStorageError

logger = structlog.get_logger(__name__)


@runtime_checkable
class EstimateStorage(Protocol):
    """Async string key-value store consumed by EstimateStore."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class InMemoryEstimateStorage:
    """Process-local storage. Values are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of all stored values."""
        return dict(self._values)


class FileEstimateStorage:
    """JSON file storage that survives process restarts.

    The whole file is one JSON object mapping key -> value. Writes go to a
    temporary file in the same directory and are moved into place with
    ``os.replace`` so a crash never leaves a half-written file behind.

    NOTE: Uses asyncio.to_thread() so file I/O does not block the event loop.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError as e:
            raise EstimateStorageError(
                "Estimate file is not valid UTF-8",
                details={"path": str(self.path)},
                is_retryable=False,
            ) from e
        except OSError as e:
            raise EstimateStorageError(
                f"Failed to read estimate file: {e}",
                details={"path": str(self.path)},
            ) from e

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise EstimateStorageError(
                "Estimate file is not valid JSON",
                details={"path": str(self.path)},
                is_retryable=False,
            ) from e

        if not isinstance(data, dict):
            raise EstimateStorageError(
                "Estimate file must contain a JSON object",
                details={"path": str(self.path)},
                is_retryable=False,
            )

        return {str(k): str(v) for k, v in data.items()}

    def _dump(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise EstimateStorageError(
                f"Failed to write estimate file: {e}",
                details={"path": str(self.path)},
            ) from e

    def _set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def _remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    async def get(self, key: str) -> str | None:
        data = await asyncio.to_thread(self._load)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)


# Singleton instance
_estimate_storage: EstimateStorage | None = None


def get_estimate_storage() -> EstimateStorage:
    """Get or create the configured estimate storage backend.

    Returns:
        Storage backend selected by ``ESTIMATE_STORAGE_BACKEND``.
    """
    global _estimate_storage

    if _estimate_storage is None:
        settings = get_settings()
        backend = settings.estimate_storage_backend

        if backend == "redis":
            from adaptive_progress.services.progress.redis_storage import (
                RedisEstimateStorage,
            )

            _estimate_storage = RedisEstimateStorage(
                prefix=settings.estimate_redis_prefix
            )
        elif backend == "file":
            _estimate_storage = FileEstimateStorage(settings.estimate_file_path)
        else:
            _estimate_storage = InMemoryEstimateStorage()

        logger.info("estimate_storage_initialized", backend=backend)

    return _estimate_storage


def reset_estimate_storage() -> None:
    """Reset singleton for testing."""
    global _estimate_storage
    _estimate_storage = None
