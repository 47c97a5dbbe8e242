"""
Progress Reporter: mirrors the current unit's position on its track's
progress bar, once per frame.
"""

import math
import logging
from typing import Optional

logger = logging.getLogger("WWWPlayer.Progress")


def safe_duration(unit) -> float:
    """
    Length of the unit in seconds, or 0 when it is not known yet.

    Falls back to the furthest buffered/seekable position while the real
    duration is unavailable.
    """
    length = unit.duration()
    if length.is_known:
        return length.seconds

    extent = unit.buffered_extent()
    if extent is not None and math.isfinite(extent) and extent > 0:
        return extent
    return 0.0


def progress_fraction(unit) -> float:
    """Played fraction in [0, 1]; 0 while the duration is unknown."""
    duration = safe_duration(unit)
    if duration <= 0:
        return 0.0
    return min(1.0, max(0.0, unit.position) / duration)


class ProgressReporter:
    """
    Bound to at most one unit. Every frame while that unit plays, pushes
    its progress to the view; stops for good once the unit pauses, ends,
    errors or is replaced by another bind().
    """

    def __init__(self, scheduler, view):
        self.scheduler = scheduler
        self.view = view
        self._unit = None
        self._binding = 0

    @property
    def unit(self):
        return self._unit

    def bind(self, unit) -> None:
        self.stop()
        self._binding += 1
        binding = self._binding
        self._unit = unit

        def tick(now):
            if binding != self._binding or self._unit is not unit:
                return
            if unit.released or not unit.is_playing:
                logger.debug(f"Progress for {unit.track.key} stopped (unit idle)")
                self.stop()
                return
            self.view.set_progress(unit.track, progress_fraction(unit))
            self.scheduler.schedule_frame(tick)

        self.scheduler.schedule_frame(tick)

    def stop(self, unit: Optional[object] = None) -> None:
        """
        Stop reporting and hide the bar.

        Args:
            unit: Only stop if this is the bound unit (None = whatever is bound)
        """
        if unit is not None and unit is not self._unit:
            return
        if self._unit is not None:
            self.view.set_progress(self._unit.track, None)
        self._unit = None
        self._binding += 1
