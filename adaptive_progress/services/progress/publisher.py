"""Redis Pub/Sub publisher for progress snapshots.

Broadcasts controller state so a separate rendering layer (WebSocket/SSE
bridge, dashboard) can draw the bar without living in the same process.

Channel naming convention: progress:{estimate_key}

Controller listeners run on the event loop inside countdown ticks, so the
listener only records the latest snapshot per key. A background flush task
per key sends it through the async Redis client. While a publish is in
flight newer snapshots replace the pending one instead of queueing.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from functools import lru_cache
from typing import Any

import redis.asyncio as redis
import structlog

from adaptive_progress.core.config import get_settings
from adaptive_progress.services.exceptions import PublishError
from adaptive_progress.services.progress.controller import ProgressController
from adaptive_progress.services.progress.formatting import (
    display_percent,
    format_remaining_verbose,
)
from adaptive_progress.services.progress.state import ProgressState

logger = structlog.get_logger(__name__)


class ProgressPublisher:
    """Publishes progress snapshots to Redis pub/sub.

    Publishing is non-critical: failures are logged and never interrupt the
    controller. Tick-level updates are collapsed so only changes to the
    displayed percent, busy flag, or idle state are sent. After a failed
    publish nothing is sent for ``backoff_s`` seconds.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        channel_prefix: str | None = None,
        timeout_s: float | None = None,
        backoff_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the publisher.

        Args:
            redis_url: Optional Redis URL. Uses settings if not provided.
            channel_prefix: Optional channel prefix. Uses settings if not provided.
            timeout_s: Connect and socket timeout. Uses settings if not provided.
            backoff_s: Pause after a failure. Uses settings if not provided.
            clock: Monotonic clock in seconds.
        """
        settings = get_settings()
        self.redis_url = redis_url or settings.redis_url
        self.channel_prefix = (
            settings.progress_channel_prefix if channel_prefix is None else channel_prefix
        )
        self.timeout_s = (
            settings.progress_publish_timeout_s if timeout_s is None else timeout_s
        )
        self.backoff_s = (
            settings.progress_publish_backoff_s if backoff_s is None else backoff_s
        )
        self._clock = clock
        self._client: Any = None
        self._last_sent: dict[str, tuple[int, bool, bool]] = {}
        self._retry_at = 0.0
        self._pending: dict[str, ProgressState] = {}
        self._flushing: dict[str, asyncio.Task[None]] = {}

    @property
    def client(self) -> Any:
        """Get or create the async Redis client.

        Returns:
            Async Redis client instance.
        """
        if self._client is None:
            try:
                self._client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=self.timeout_s,
                    socket_timeout=self.timeout_s,
                )
            except Exception as e:
                logger.error("redis_client_init_failed", error=str(e))
                raise PublishError(
                    f"Failed to connect to Redis: {e}",
                    details={"code": "REDIS_CONNECTION_FAILED"},
                ) from e
        return self._client

    def channel_name(self, key: str) -> str:
        """Generate channel name for an estimate key."""
        return f"{self.channel_prefix}{key}"

    def build_message(self, key: str, state: ProgressState) -> dict[str, Any]:
        """Build the JSON payload for a snapshot."""
        message: dict[str, Any] = {"key": key, **state.to_dict()}
        if state.remaining_ms is not None:
            message["label"] = format_remaining_verbose(state.remaining_ms)
        return message

    async def publish(
        self, key: str, state: ProgressState, force: bool = False
    ) -> bool:
        """Publish a snapshot unless it would not change what is displayed.

        Args:
            key: Estimate key the snapshot belongs to.
            state: Snapshot to publish.
            force: Publish even if the display has not changed or a
                backoff is in effect.

        Returns:
            True if a message was published.
        """
        signature = (display_percent(state.percent), state.busy, state.is_idle)
        if not force:
            if self._last_sent.get(key) == signature:
                return False
            if self._clock() < self._retry_at:
                return False

        channel = self.channel_name(key)
        try:
            subscriber_count = await self.client.publish(
                channel, json.dumps(self.build_message(key, state))
            )
        except Exception as e:
            self._retry_at = self._clock() + self.backoff_s
            logger.warning(
                "progress_publish_failed",
                channel=channel,
                error=str(e),
                backoff_s=self.backoff_s,
            )
            return False

        self._last_sent[key] = signature
        logger.debug(
            "progress_published",
            channel=channel,
            percent=signature[0],
            busy=state.busy,
            subscriber_count=subscriber_count,
        )
        return True

    def schedule(self, key: str, state: ProgressState) -> None:
        """Queue a snapshot for publishing without waiting on Redis."""
        self._pending[key] = state
        if key in self._flushing:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("progress_publish_skipped_no_loop", key=key)
            self._pending.pop(key, None)
            return

        self._flushing[key] = loop.create_task(self._flush(key))

    async def _flush(self, key: str) -> None:
        try:
            while key in self._pending:
                await self.publish(key, self._pending.pop(key))
        finally:
            self._flushing.pop(key, None)

    async def drain(self) -> None:
        """Wait until every scheduled snapshot has been handled."""
        while self._flushing:
            await asyncio.gather(*list(self._flushing.values()))

    async def close(self) -> None:
        """Flush pending snapshots and close the Redis connection."""
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def attach(self, controller: ProgressController) -> Callable[[], None]:
        """Publish every state change of a controller.

        Returns:
            Function that detaches the publisher.
        """

        def listener(state: ProgressState) -> None:
            if controller.key is not None:
                self.schedule(controller.key, state)

        return controller.subscribe(listener)


@lru_cache(maxsize=1)
def get_progress_publisher() -> ProgressPublisher:
    """Get singleton progress publisher instance.

    Returns:
        ProgressPublisher instance.
    """
    return ProgressPublisher()
