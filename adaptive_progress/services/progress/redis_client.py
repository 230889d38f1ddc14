"""Async Redis client shared by the Redis estimate storage.

CRITICAL: This is an async client. All operations must be awaited.
"""

from typing import Any

import redis.asyncio as redis
import structlog

from adaptive_progress.core.config import get_settings

logger = structlog.get_logger(__name__)

# Singleton client instance
_redis_client: Any = None


def _redact(url: str) -> str:
    return url[:30] + "..." if len(url) > 30 else url


async def get_redis_client() -> Any:
    """Get or create async Redis client.

    Returns:
        Async Redis client instance with decoded (str) responses.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = get_settings().redis_url
    _redis_client = redis.from_url(redis_url, decode_responses=True)
    logger.info("redis_client_initialized", url=_redact(redis_url))
    return _redis_client


def reset_redis_client() -> None:
    """Reset Redis client singleton.

    Use this for testing to ensure clean state between tests.
    """
    global _redis_client
    _redis_client = None
    logger.debug("redis_client_reset")
