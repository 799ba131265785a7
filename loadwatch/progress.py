"""Progress estimation and the text progress bar."""

from __future__ import annotations

BAR_WIDTH = 52

# Above this the bar is drawn full so timing jitter near the end
# never leaves a visibly unfinished bar.
FULL_BAR_THRESHOLD = 0.99


def estimate_fraction(
    completed: int,
    total_expected: int,
    elapsed_seconds: float,
    time_limit_seconds: float,
) -> float:
    """Estimate how far the run has progressed.

    Request-count mode when ``total_expected`` is known (> 0): returns the
    raw ratio, which may exceed 1.0 for inconsistent input. Time-limit mode
    otherwise: elapsed over limit, clamped to 1.0.
    """
    if total_expected > 0:
        return completed / total_expected
    if time_limit_seconds <= 0:
        return 1.0 if elapsed_seconds > 0 else 0.0
    return min(max(elapsed_seconds, 0.0) / time_limit_seconds, 1.0)


def filled_segments(fraction: float, width: int = BAR_WIDTH) -> int:
    """Number of filled bar cells for ``fraction``."""
    if fraction > FULL_BAR_THRESHOLD:
        return width
    return max(0, min(width, int(fraction * width)))


def make_bar(fraction: float, width: int = BAR_WIDTH) -> str:
    """Bracketed fixed-width bar: [#####     ]"""
    filled = filled_segments(fraction, width)
    return "[" + "#" * filled + " " * (width - filled) + "]"


def format_percent(fraction: float) -> str:
    """Percentage with one decimal: ' 42.5%'"""
    return f"{fraction * 100:5.1f}%"
