"""Smooth wind-down from "counting" to "idle".

When the real task finishes before the countdown hits zero, jumping straight
to idle looks abrupt, so the bar is forced to 100% and held there for a short
fixed dwell. When the task finishes late the countdown is already at zero and
nothing regresses.
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_DWELL_MS = 200

SetRemaining = Callable[[float | None], None]
SetBusy = Callable[[bool], None]
Sleep = Callable[[float], Awaitable[None]]


class CompletionTransition:
    """Runs the fixed-duration finish sequence."""

    def __init__(
        self,
        dwell_ms: float = DEFAULT_DWELL_MS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if dwell_ms < 0:
            raise ValueError(f"dwell_ms must not be negative, got {dwell_ms}")
        self.dwell_ms = dwell_ms
        self._sleep = sleep

    async def finish(
        self,
        set_remaining: SetRemaining,
        set_busy: SetBusy,
        dwell_ms: float | None = None,
    ) -> None:
        """Show 100%, hold for the dwell, then reset to idle.

        Args:
            set_remaining: Receives 0, then None.
            set_busy: Receives False after the dwell.
            dwell_ms: Override of the configured dwell.
        """
        dwell = self.dwell_ms if dwell_ms is None else dwell_ms
        if dwell < 0:
            raise ValueError(f"dwell_ms must not be negative, got {dwell}")

        set_remaining(0)
        await self._sleep(dwell / 1000)
        set_busy(False)
        set_remaining(None)

        logger.debug("completion_transition_finished", dwell_ms=dwell)
