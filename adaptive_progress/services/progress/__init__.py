"""Adaptive progress estimation for tasks without real progress reporting."""

from adaptive_progress.services.progress.controller import (
    ProgressController,
    ProgressListener,
    create_progress_controller,
)
from adaptive_progress.services.progress.countdown import (
    CountdownResult,
    CountdownScheduler,
    CountdownSession,
)
from adaptive_progress.services.progress.estimate_store import (
    MAX_ESTIMATE_MS,
    MIN_ESTIMATE_MS,
    SMOOTHING_WEIGHT,
    EstimateStore,
    clamp_estimate,
    get_estimate_store,
    reset_estimate_store,
)
from adaptive_progress.services.progress.formatting import (
    display_percent,
    format_remaining_verbose,
)
from adaptive_progress.services.progress.state import ProgressPhase, ProgressState
from adaptive_progress.services.progress.storage import (
    EstimateStorage,
    FileEstimateStorage,
    InMemoryEstimateStorage,
    get_estimate_storage,
    reset_estimate_storage,
)
from adaptive_progress.services.progress.transition import CompletionTransition

__all__ = [
    "MAX_ESTIMATE_MS",
    "MIN_ESTIMATE_MS",
    "SMOOTHING_WEIGHT",
    "CompletionTransition",
    "CountdownResult",
    "CountdownScheduler",
    "CountdownSession",
    "EstimateStorage",
    "EstimateStore",
    "FileEstimateStorage",
    "InMemoryEstimateStorage",
    "ProgressController",
    "ProgressListener",
    "ProgressPhase",
    "ProgressState",
    "clamp_estimate",
    "create_progress_controller",
    "display_percent",
    "format_remaining_verbose",
    "get_estimate_storage",
    "get_estimate_store",
    "reset_estimate_storage",
    "reset_estimate_store",
]
