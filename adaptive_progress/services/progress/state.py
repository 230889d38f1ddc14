"""Progress state exposed to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProgressPhase(str, Enum):
    """Controller lifecycle: IDLE -> RUNNING -> FINISHING -> IDLE."""

    IDLE = "idle"
    RUNNING = "running"
    FINISHING = "finishing"


@dataclass(frozen=True)
class ProgressState:
    """Immutable snapshot of a controller's progress.

    Attributes:
        expected_ms: Estimate the current (or last) countdown started from.
        remaining_ms: Predicted time remaining, None when idle.
        busy: True from the start of a run until the finish dwell ends.
    """

    expected_ms: float
    remaining_ms: float | None = None
    busy: bool = False

    @property
    def percent(self) -> float:
        """Fraction of the estimate already used up, clamped to 0..100."""
        if self.remaining_ms is None or self.expected_ms <= 0:
            return 0.0
        pct = (self.expected_ms - self.remaining_ms) / self.expected_ms * 100
        return min(100.0, max(0.0, pct))

    @property
    def is_idle(self) -> bool:
        return self.remaining_ms is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "expected_ms": round(self.expected_ms),
            "remaining_ms": None if self.remaining_ms is None else round(self.remaining_ms),
            "percent": round(self.percent, 1),
            "busy": self.busy,
        }
