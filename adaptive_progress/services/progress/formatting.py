"""Display helpers for progress labels and bars."""

import math


def display_percent(percent: float) -> int:
    """Whole-number percent for a bar width, clamped to 0..100."""
    return round(min(100.0, max(0.0, percent)))


def format_remaining_verbose(ms: float) -> str:
    """Format remaining time as e.g. "1 minute, 5 seconds".

    Seconds are rounded up so the label never shows 0 while time remains.
    """
    total_secs = max(0, math.ceil(ms / 1000))
    mins, secs = divmod(total_secs, 60)
    m = "minute" if mins == 1 else "minutes"
    s = "second" if secs == 1 else "seconds"
    return f"{mins} {m}, {secs} {s}"
