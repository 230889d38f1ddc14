"""Adaptive progress indicator for long-running async operations."""

from adaptive_progress.services.progress import (
    ProgressController,
    ProgressState,
    create_progress_controller,
)

__version__ = "0.1.0"

__all__ = [
    "ProgressController",
    "ProgressState",
    "__version__",
    "create_progress_controller",
]
