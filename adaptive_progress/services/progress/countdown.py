"""Simulated countdown for operations that never report progress.

The countdown is a pure prediction. It emits "time remaining" values on a
fixed cadence from the moment it starts, knows nothing about the real task,
and keeps emitting 0 if the task overruns the estimate.

Ticks run as an asyncio task on the caller's event loop, so ``start`` must be
called from inside a running loop.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_STEP_MS = 100

# Type aliases
TickCallback = Callable[[float], None]
Clock = Callable[[], float]


@dataclass(frozen=True)
class CountdownResult:
    """Outcome of a stopped countdown.

    Attributes:
        elapsed_ms: Wall-clock time between start and stop.
    """

    elapsed_ms: float


class CountdownSession:
    """One running countdown, from start to stop.

    Created by CountdownScheduler.start(). ``stop`` is idempotent and can be
    used through a ``with`` block so the tick task never outlives its owner.
    """

    def __init__(
        self,
        expected_ms: float,
        on_tick: TickCallback,
        step_ms: float,
        clock: Clock,
    ) -> None:
        self.expected_ms = expected_ms
        self.step_ms = step_ms
        self._on_tick = on_tick
        self._clock = clock
        self._started_at = clock()
        self._stopped = False
        self._result: CountdownResult | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        """Check if the session is still ticking."""
        return not self._stopped

    def elapsed_ms(self) -> float:
        """Get elapsed time since start in milliseconds."""
        return (self._clock() - self._started_at) * 1000

    def remaining_ms(self) -> float:
        """Get predicted time remaining, never below zero."""
        return max(0.0, self.expected_ms - self.elapsed_ms())

    def _begin(self) -> None:
        loop = asyncio.get_running_loop()
        self._emit(self.expected_ms)
        self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        interval = self.step_ms / 1000
        while not self._stopped:
            await asyncio.sleep(interval)
            # stop() may have run while this task was waiting to resume
            if self._stopped:
                return
            self._emit(self.remaining_ms())

    def _emit(self, remaining_ms: float) -> None:
        try:
            self._on_tick(remaining_ms)
        except Exception as e:
            logger.warning(
                "countdown_tick_callback_failed",
                remaining_ms=round(remaining_ms),
                error=str(e),
            )

    def stop(self) -> CountdownResult:
        """Stop ticking and report elapsed time.

        No tick callback runs after this returns. Calling it again returns
        the result of the first call.

        Returns:
            CountdownResult with elapsed milliseconds since start.
        """
        if self._result is not None:
            return self._result

        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._result = CountdownResult(elapsed_ms=self.elapsed_ms())
        logger.debug(
            "countdown_stopped",
            expected_ms=round(self.expected_ms),
            elapsed_ms=round(self._result.elapsed_ms),
        )
        return self._result

    def __enter__(self) -> CountdownSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()


class CountdownScheduler:
    """Starts countdown sessions on the running event loop.

    Example:
        >>> scheduler = CountdownScheduler()
        >>> session = scheduler.start(30_000, print)  # prints 30000 immediately
        >>> ...
        >>> session.stop().elapsed_ms
        1234.5
    """

    def __init__(
        self,
        step_ms: float = DEFAULT_STEP_MS,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the scheduler.

        Args:
            step_ms: Default tick cadence in milliseconds.
            clock: Monotonic clock returning seconds. Injectable for tests.
        """
        if step_ms <= 0:
            raise ValueError(f"step_ms must be positive, got {step_ms}")
        self.step_ms = step_ms
        self._clock = clock

    def start(
        self,
        expected_ms: float,
        on_tick: TickCallback,
        step_ms: float | None = None,
    ) -> CountdownSession:
        """Start a countdown.

        ``on_tick(expected_ms)`` runs before this returns; after that,
        ``on_tick(max(0, expected_ms - elapsed))`` runs every ``step_ms``
        until the session is stopped.

        Args:
            expected_ms: Predicted duration to count down from.
            on_tick: Receives remaining milliseconds on every tick.
            step_ms: Tick cadence override for this session.

        Returns:
            The running CountdownSession.

        Raises:
            ValueError: If step_ms is not positive or expected_ms is negative.
            RuntimeError: If no event loop is running.
        """
        step = self.step_ms if step_ms is None else step_ms
        if step <= 0:
            raise ValueError(f"step_ms must be positive, got {step}")
        if expected_ms < 0:
            raise ValueError(f"expected_ms must not be negative, got {expected_ms}")

        session = CountdownSession(expected_ms, on_tick, step, self._clock)
        session._begin()

        logger.debug("countdown_started", expected_ms=round(expected_ms), step_ms=step)
        return session
