"""Learned duration estimates per operation key.

Each key holds one expected duration in milliseconds, updated after every
successful run with an exponential moving average:

    next = round((1 - SMOOTHING_WEIGHT) * previous + SMOOTHING_WEIGHT * observed)

Values are clamped to [MIN_ESTIMATE_MS, MAX_ESTIMATE_MS] on every read and
write. Storage faults and unparsable values never propagate: reads fall back
to the caller-supplied default, writes become no-ops.
"""

from __future__ import annotations

import math

import structlog

from adaptive_progress.services.exceptions import (
    EstimateStorageError,
    InvalidEstimateValueError,
)
from adaptive_progress.services.progress.storage import (
    EstimateStorage,
    get_estimate_storage,
)

logger = structlog.get_logger(__name__)

# Configuration
MIN_ESTIMATE_MS = 5_000  # 5 seconds
MAX_ESTIMATE_MS = 15 * 60_000  # 15 minutes
SMOOTHING_WEIGHT = 0.4  # Weight of the newest observation


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return math.floor(value + 0.5)


def clamp_estimate(value: float) -> int:
    """Round and clamp a duration to the representable estimate range."""
    return min(MAX_ESTIMATE_MS, max(MIN_ESTIMATE_MS, round_half_up(value)))


def parse_estimate(key: str, raw: str | None) -> int | None:
    """Parse a persisted estimate.

    Returns:
        Parsed (unclamped) milliseconds, or None if nothing is stored.

    Raises:
        InvalidEstimateValueError: If the stored value is not a finite number.
    """
    if raw is None or not raw.strip():
        return None

    try:
        value = float(raw)
    except ValueError:
        raise InvalidEstimateValueError(key, raw) from None

    if not math.isfinite(value):
        raise InvalidEstimateValueError(key, raw)

    return round_half_up(value)


class EstimateStore:
    """Reads and updates learned durations through a keyed storage backend.

    Example:
        >>> store = EstimateStore(InMemoryEstimateStorage())
        >>> await store.read("generate-zip", 120_000)
        120000
        >>> await store.update("generate-zip", 80_000, previous_default_ms=120_000)
        104000
    """

    def __init__(self, storage: EstimateStorage | None = None) -> None:
        """Initialize the store.

        Args:
            storage: Optional storage backend. Uses the configured one if not provided.
        """
        self._storage = storage

    @property
    def storage(self) -> EstimateStorage:
        """Get or create the storage backend."""
        if self._storage is None:
            self._storage = get_estimate_storage()
        return self._storage

    async def read(self, key: str, default_ms: float) -> int:
        """Read the learned estimate for a key.

        Args:
            key: Operation key (e.g. "generate-zip").
            default_ms: Fallback when nothing usable is stored.

        Returns:
            Estimate in milliseconds, always within the clamp range.
        """
        try:
            raw = await self.storage.get(key)
            value = parse_estimate(key, raw)
        except EstimateStorageError as e:
            logger.warning("estimate_read_failed", key=key, error=e.message)
            value = None
        except InvalidEstimateValueError as e:
            logger.warning(
                "estimate_value_invalid",
                key=key,
                raw_value=e.raw_value[:50],
            )
            value = None
        except Exception as e:
            logger.warning(
                "estimate_read_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            value = None

        if value is None:
            return clamp_estimate(default_ms)
        return clamp_estimate(value)

    async def update(
        self,
        key: str,
        observed_elapsed_ms: float,
        previous_default_ms: float | None = None,
    ) -> int | None:
        """Blend an observed duration into the learned estimate.

        Args:
            key: Operation key.
            observed_elapsed_ms: Measured duration of a successful run.
            previous_default_ms: Previous estimate to assume when none is
                stored. Defaults to the observation itself.

        Returns:
            The persisted estimate, or None if storage was unavailable.
        """
        fallback = (
            observed_elapsed_ms if previous_default_ms is None else previous_default_ms
        )
        previous = await self.read(key, fallback)
        next_ms = clamp_estimate(
            (1 - SMOOTHING_WEIGHT) * previous + SMOOTHING_WEIGHT * observed_elapsed_ms
        )

        try:
            await self.storage.set(key, str(next_ms))
        except EstimateStorageError as e:
            logger.warning("estimate_update_failed", key=key, error=e.message)
            return None
        except Exception as e:
            logger.warning(
                "estimate_update_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        logger.debug(
            "estimate_updated",
            key=key,
            previous_ms=previous,
            observed_ms=round(observed_elapsed_ms),
            next_ms=next_ms,
        )
        return next_ms

    async def clear(self, key: str) -> None:
        """Forget the learned estimate so the next read uses its default."""
        try:
            await self.storage.remove(key)
        except EstimateStorageError as e:
            logger.warning("estimate_clear_failed", key=key, error=e.message)
            return
        except Exception as e:
            logger.warning(
                "estimate_clear_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        logger.info("estimate_cleared", key=key)


# Singleton instance
_estimate_store: EstimateStore | None = None


def get_estimate_store() -> EstimateStore:
    """Get or create estimate store singleton.

    Returns:
        EstimateStore backed by the configured storage.
    """
    global _estimate_store

    if _estimate_store is None:
        _estimate_store = EstimateStore()

    return _estimate_store


def reset_estimate_store() -> None:
    """Reset singleton for testing."""
    global _estimate_store
    _estimate_store = None
