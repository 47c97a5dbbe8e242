"""
Easing curves for volume fades.

Every curve maps progress in [0, 1] to eased progress in [0, 1] with
curve(0) == 0 and curve(1) == 1.
"""

from typing import Callable, Dict

DEFAULT_CURVE = "linear"


def linear(t: float) -> float:
    return t


def ease_in(t: float) -> float:
    return t * t


def ease_out(t: float) -> float:
    return t * (2 - t)


def ease_in_out(t: float) -> float:
    if t < 0.5:
        return 2 * t * t
    return -1 + (4 - 2 * t) * t


EASING_FUNCTIONS: Dict[str, Callable[[float], float]] = {
    'linear': linear,
    'ease-in': ease_in,
    'ease-out': ease_out,
    'ease-in-out': ease_in_out,
}

CURVE_NAMES = list(EASING_FUNCTIONS.keys())


def is_known_curve(name: str) -> bool:
    return name in EASING_FUNCTIONS


def get_curve(name: str) -> Callable[[float], float]:
    """Look up a curve by name. Unknown names play linearly."""
    return EASING_FUNCTIONS.get(name, EASING_FUNCTIONS[DEFAULT_CURVE])


def ease(progress: float, name: str = DEFAULT_CURVE) -> float:
    """Apply a named curve to progress, clamping progress into [0, 1] first."""
    progress = max(0.0, min(1.0, progress))
    return get_curve(name)(progress)
