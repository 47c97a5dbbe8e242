"""
Per-track volume memory, persisted in the user preferences file.
"""

import os
import sys
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from config import DEFAULT_VOLUME, PREF_VOLUME_PREFIX
from utils.preferences import get_preference, set_preference

logger = logging.getLogger("WWWPlayer.VolumeStore")


def clamp_gain(value) -> float:
    return max(0.0, min(1.0, value))


def volume_key(track) -> str:
    return f"{PREF_VOLUME_PREFIX}{track.key}"


class VolumeStore:
    """
    Saved gain per track, independent of any playing unit.

    Values are read when a unit is created (its target gain) and written
    when the user moves a volume slider.
    """

    def get(self, track) -> float:
        saved = get_preference(volume_key(track))
        try:
            parsed = float(saved)
        except (TypeError, ValueError):
            return DEFAULT_VOLUME
        if parsed != parsed:  # NaN
            return DEFAULT_VOLUME
        return clamp_gain(parsed)

    def set(self, track, gain: float) -> float:
        gain = clamp_gain(float(gain))
        set_preference(volume_key(track), gain)
        logger.debug(f"Volume for {track.key} saved: {gain:.2f}")
        return gain
