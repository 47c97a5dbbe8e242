"""
Formatting utilities for WWW Player.
"""

import math
from typing import Optional

TRUTHY_VALUES = ('1', 'true', 'yes', 'on')


def format_time(seconds: float, include_ms: bool = False) -> str:
    """
    Format seconds as a time string.

    Args:
        seconds: Time in seconds
        include_ms: Whether to include hundredths

    Returns:
        Formatted string like "1:23.45" or "1:23"
    """
    if seconds < 0:
        seconds = 0

    minutes = int(seconds // 60)
    secs = seconds % 60

    if include_ms:
        return f"{minutes}:{secs:05.2f}"
    else:
        return f"{minutes}:{int(secs):02d}"


def format_percent(gain: float) -> str:
    """Format a gain in [0, 1] the way the volume slider shows it ("75%")."""
    return f"{round(gain * 100)}%"


def parse_bool(value: Optional[str]) -> bool:
    """
    Parse a query/form flag.

    Missing values are False; "1", "true", "yes" and "on" (any case) are True.
    """
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


def parse_seconds(value, fallback: float = 0.0) -> float:
    """
    Parse a non-negative duration in seconds.

    Anything unparsable becomes fallback; negatives are clamped to 0.
    """
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return max(0.0, parsed)
