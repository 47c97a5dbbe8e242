"""
Fade settings (overlay time, stop fade time, easing curve), persisted in
the user preferences file.
"""

import os
import sys
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from config import (
    DEFAULT_OVERLAY_SECONDS, DEFAULT_STOP_FADE_SECONDS, DEFAULT_EASING,
    PREF_OVERLAY_TIME, PREF_STOP_FADE_TIME, PREF_OVERLAY_CURVE,
)
from utils.formatting import parse_seconds
from utils.preferences import load_preferences, save_preferences
from .easing import is_known_curve

logger = logging.getLogger("WWWPlayer.Settings")


class PlaybackSettings:
    """
    Transition settings read by the session on every play/stop request.

    Attributes:
        overlay_seconds: Crossfade length for play-over-play (0 = instant switch)
        stop_fade_seconds: Fade length for an explicit stop (0 = instant stop)
        easing: Curve name used by both fades
    """

    def __init__(self, overlay_seconds=DEFAULT_OVERLAY_SECONDS,
                 stop_fade_seconds=DEFAULT_STOP_FADE_SECONDS,
                 easing=DEFAULT_EASING):
        self.overlay_seconds = parse_seconds(overlay_seconds, DEFAULT_OVERLAY_SECONDS)
        self.stop_fade_seconds = parse_seconds(stop_fade_seconds, DEFAULT_STOP_FADE_SECONDS)
        self.easing = easing if is_known_curve(easing) else DEFAULT_EASING

    def update(self, overlay_seconds=None, stop_fade_seconds=None, easing=None):
        """Apply a partial update. Invalid values are sanitized, not rejected."""
        if overlay_seconds is not None:
            self.overlay_seconds = parse_seconds(overlay_seconds, 0.0)
        if stop_fade_seconds is not None:
            self.stop_fade_seconds = parse_seconds(stop_fade_seconds, 0.0)
        if easing is not None:
            self.easing = easing if is_known_curve(easing) else DEFAULT_EASING

    def to_dict(self):
        return {
            'overlay_seconds': self.overlay_seconds,
            'stop_fade_seconds': self.stop_fade_seconds,
            'easing': self.easing,
        }

    @classmethod
    def load(cls):
        """Read the saved settings, falling back to config defaults."""
        prefs = load_preferences()
        return cls(
            overlay_seconds=prefs.get(PREF_OVERLAY_TIME, DEFAULT_OVERLAY_SECONDS),
            stop_fade_seconds=prefs.get(PREF_STOP_FADE_TIME, DEFAULT_STOP_FADE_SECONDS),
            easing=prefs.get(PREF_OVERLAY_CURVE, DEFAULT_EASING),
        )

    def save(self):
        save_preferences({
            PREF_OVERLAY_TIME: self.overlay_seconds,
            PREF_STOP_FADE_TIME: self.stop_fade_seconds,
            PREF_OVERLAY_CURVE: self.easing,
        })
        logger.info(f"Settings saved: overlay={self.overlay_seconds}s "
                    f"stop_fade={self.stop_fade_seconds}s curve={self.easing}")
