"""Redis-backed estimate storage.

Key Pattern:
- Learned estimate (no TTL): {prefix}{estimate_key}, default prefix "eta:"

Estimates are shared by every process pointing at the same Redis database.
"""

from __future__ import annotations

from typing import Any

import redis
import structlog

from adaptive_progress.services.exceptions import EstimateStorageError
from adaptive_progress.services.progress.redis_client import get_redis_client

logger = structlog.get_logger(__name__)

DEFAULT_KEY_PREFIX = "eta:"


class RedisEstimateStorage:
    """Estimate storage using an async Redis client."""

    def __init__(
        self,
        redis_client: Any | None = None,
        prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        """Initialize Redis storage.

        Args:
            redis_client: Optional async Redis client. If None, will create one.
            prefix: Namespace prepended to every estimate key.
        """
        self._redis = redis_client
        self.prefix = prefix

    async def _get_redis(self) -> Any:
        if self._redis is not None:
            return self._redis

        self._redis = await get_redis_client()
        return self._redis

    def make_key(self, key: str) -> str:
        """Build the namespaced Redis key for an estimate key."""
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> str | None:
        try:
            client = await self._get_redis()
            value = await client.get(self.make_key(key))
        except (redis.RedisError, OSError) as e:
            raise EstimateStorageError(
                f"Redis read failed: {e}", details={"key": key}
            ) from e

        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            client = await self._get_redis()
            await client.set(self.make_key(key), value)
        except (redis.RedisError, OSError) as e:
            raise EstimateStorageError(
                f"Redis write failed: {e}", details={"key": key}
            ) from e

    async def remove(self, key: str) -> None:
        try:
            client = await self._get_redis()
            await client.delete(self.make_key(key))
        except (redis.RedisError, OSError) as e:
            raise EstimateStorageError(
                f"Redis delete failed: {e}", details={"key": key}
            ) from e
