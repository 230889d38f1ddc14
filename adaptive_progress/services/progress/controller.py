"""Adaptive progress around tasks that never report progress.

ProgressController wraps an arbitrary async unit of work:

1. Reads the learned estimate for the operation key.
2. Starts a simulated countdown from that estimate.
3. Awaits the task.
4. Stops the countdown; on success only, feeds the measured duration back
   into the estimate store.
5. Runs the completion transition (100%, short dwell, idle).

The wrapped task's outcome is returned or re-raised unchanged. Estimation
faults are logged and never reach the caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from adaptive_progress.core.config import get_settings
from adaptive_progress.services.exceptions import ControllerBusyError
from adaptive_progress.services.progress.countdown import (
    CountdownScheduler,
    CountdownSession,
)
from adaptive_progress.services.progress.estimate_store import (
    EstimateStore,
    clamp_estimate,
    get_estimate_store,
)
from adaptive_progress.services.progress.state import ProgressPhase, ProgressState
from adaptive_progress.services.progress.transition import CompletionTransition

logger = structlog.get_logger(__name__)

T = TypeVar("T")

ProgressListener = Callable[[ProgressState], None]


class ProgressController:
    """Drives one progress indicator.

    A controller owns its ProgressState and runs at most one task at a time.
    Separate controllers never coordinate; they only share learned estimates
    through the estimate store.

    Example:
        >>> controller = create_progress_controller()
        >>> controller.subscribe(lambda state: render(state.percent))
        >>> archive = await controller.run_with_estimate(
        ...     "generate-zip", 120_000, lambda: client.generate_zip(doc_ids)
        ... )
    """

    def __init__(
        self,
        store: EstimateStore | None = None,
        scheduler: CountdownScheduler | None = None,
        transition: CompletionTransition | None = None,
        initial_estimate_ms: float | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Estimate store. Uses the shared one if not provided.
            scheduler: Countdown scheduler. Built from settings if not provided.
            transition: Completion transition. Built from settings if not provided.
            initial_estimate_ms: expected_ms reported before the first run.
        """
        settings = get_settings()

        self._store = store or get_estimate_store()
        self._scheduler = scheduler or CountdownScheduler(
            step_ms=settings.countdown_step_ms
        )
        self._transition = transition or CompletionTransition(
            dwell_ms=settings.finish_dwell_ms
        )

        if initial_estimate_ms is None:
            initial_estimate_ms = settings.default_estimate_ms

        self._expected_ms: float = clamp_estimate(initial_estimate_ms)
        self._remaining_ms: float | None = None
        self._busy = False
        self._phase = ProgressPhase.IDLE
        self._key: str | None = None
        self._listeners: list[ProgressListener] = []

    # =========================================================================
    # Presentation boundary
    # =========================================================================

    @property
    def state(self) -> ProgressState:
        """Current progress snapshot."""
        return ProgressState(
            expected_ms=self._expected_ms,
            remaining_ms=self._remaining_ms,
            busy=self._busy,
        )

    @property
    def expected_ms(self) -> float:
        return self._expected_ms

    @property
    def remaining_ms(self) -> float | None:
        return self._remaining_ms

    @property
    def percent(self) -> float:
        return self.state.percent

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def phase(self) -> ProgressPhase:
        return self._phase

    @property
    def key(self) -> str | None:
        """Estimate key of the current or most recent run."""
        return self._key

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener called with a snapshot on every state change.

        Returns:
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(
                    "progress_listener_failed",
                    key=self._key,
                    error=str(e),
                )

    # =========================================================================
    # State setters (tick and transition callbacks)
    # =========================================================================

    def _set_remaining(self, remaining_ms: float | None) -> None:
        self._remaining_ms = remaining_ms
        self._notify()

    def _set_busy(self, busy: bool) -> None:
        if self._busy == busy:
            return
        self._busy = busy
        self._notify()

    def _set_expected(self, expected_ms: float) -> None:
        self._expected_ms = expected_ms
        self._notify()

    def _enter_idle(self) -> None:
        changed = self._busy or self._remaining_ms is not None
        self._busy = False
        self._remaining_ms = None
        self._phase = ProgressPhase.IDLE
        if changed:
            self._notify()

    # =========================================================================
    # Public entry point
    # =========================================================================

    async def run_with_estimate(
        self,
        key: str,
        default_ms: float,
        task: Callable[[], Awaitable[T]],
    ) -> T:
        """Run a task while showing an estimate-driven countdown.

        Args:
            key: Operation key the estimate is learned under.
            default_ms: Estimate to use when nothing has been learned yet.
            task: Zero-argument callable returning an awaitable.

        Returns:
            Whatever the task returns.

        Raises:
            ControllerBusyError: If this controller is already running a task.
            Exception: The task's own exception, unchanged.
        """
        if self._phase is not ProgressPhase.IDLE:
            raise ControllerBusyError(self._key)

        self._key = key
        self._phase = ProgressPhase.RUNNING
        self._set_busy(True)

        session: CountdownSession | None = None
        succeeded = False
        try:
            expected_ms = await self._store.read(key, default_ms)
            self._set_expected(expected_ms)

            session = self._scheduler.start(expected_ms, self._set_remaining)
            logger.info("progress_run_started", key=key, expected_ms=expected_ms)

            try:
                result = await task()
            except Exception as e:
                logger.warning(
                    "progress_task_failed",
                    key=key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            succeeded = True
        finally:
            await self._settle(key, session, succeeded)

        return result

    async def _learn(self, key: str, elapsed_ms: float) -> int | None:
        """Feed a successful run's duration back; never raises."""
        try:
            return await self._store.update(
                key, elapsed_ms, previous_default_ms=self._expected_ms
            )
        except Exception as e:
            logger.warning(
                "progress_estimate_update_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _settle(
        self,
        key: str,
        session: CountdownSession | None,
        succeeded: bool,
    ) -> None:
        """Single cleanup path for success, failure and cancellation."""
        elapsed_ms = session.stop().elapsed_ms if session is not None else None

        try:
            if succeeded and elapsed_ms is not None:
                learned_ms = await self._learn(key, elapsed_ms)
                logger.info(
                    "progress_run_completed",
                    key=key,
                    expected_ms=self._expected_ms,
                    elapsed_ms=round(elapsed_ms),
                    learned_ms=learned_ms,
                )

            self._phase = ProgressPhase.FINISHING
            await self._transition.finish(self._set_remaining, self._set_busy)
        except asyncio.CancelledError:
            logger.debug("progress_settle_cancelled", key=key)
            raise
        finally:
            self._enter_idle()


def create_progress_controller(
    store: EstimateStore | None = None,
    initial_estimate_ms: float | None = None,
    publish: bool | None = None,
) -> ProgressController:
    """Create a progress controller wired from settings.

    Args:
        store: Optional EstimateStore instance (for testing).
        initial_estimate_ms: expected_ms reported before the first run.
        publish: Attach a Redis progress publisher. Defaults to
            PROGRESS_PUBLISH_ENABLED.

    Returns:
        ProgressController instance.
    """
    controller = ProgressController(
        store=store,
        initial_estimate_ms=initial_estimate_ms,
    )

    if publish is None:
        publish = get_settings().progress_publish_enabled

    if publish:
        from adaptive_progress.services.progress.publisher import get_progress_publisher

        get_progress_publisher().attach(controller)

    return controller
