"""
Transition Engine for WWW Player.

Runs the two volume ramps of the player, one step per frame:

1. CROSSFADE: a new unit fades in while the old one fades out, both legs
   driven by the same eased progress value.
2. FADE-TO-STOP: a single unit fades to silence and is then stopped.

Only one transition is live at a time. Every transition takes a fresh
generation number from the session when it starts, and each frame step
checks that its generation is still the session's current one. A stale
step returns without touching any gain and without running its completion,
so the last request always wins and abandoned fades keep whatever partial
gain they reached.
"""

import logging
from concurrent.futures import Future
from enum import Enum, auto
from typing import Optional

from .easing import get_curve

logger = logging.getLogger("WWWPlayer.Transitions")


class TransitionOutcome(Enum):
    """How a play/stop request ended."""
    COMPLETED = auto()   # reached its terminal state
    CANCELLED = auto()   # superseded by a newer transition
    IGNORED = auto()     # nothing to do (e.g. stop for a track that is not playing)


def resolve(future: Future, outcome: TransitionOutcome) -> None:
    if not future.done():
        future.set_result(outcome)


class TransitionEngine:
    """
    Drives crossfades and fade-outs on behalf of a PlaybackSession.

    The engine never changes the session's current pointer itself; when a
    live transition finishes it hands over to the session's commit methods
    (commit_crossfade, commit_stop).
    """

    def __init__(self, session, scheduler):
        self.session = session
        self.scheduler = scheduler

    def _progress(self, start: float, now: float, duration_ms: float) -> float:
        return min(max((now - start) / duration_ms, 0.0), 1.0)

    def crossfade(self, old_unit, new_unit, target_gain: float,
                  duration_seconds: float, curve_name: str,
                  future: Optional[Future] = None) -> Future:
        """
        Fade new_unit in to target_gain while old_unit (if any) fades out.

        Args:
            old_unit: Unit currently playing, or None
            new_unit: Unit that has already started playing (at gain 0)
            target_gain: Final gain of new_unit
            duration_seconds: Fade length, must be > 0
            curve_name: Easing curve name

        Returns:
            Future resolving to a TransitionOutcome
        """
        if duration_seconds <= 0:
            raise ValueError("crossfade needs a positive duration, switch immediately instead")

        future = future or Future()
        generation = self.session.begin_transition()
        curve = get_curve(curve_name)
        start = self.scheduler.now()
        duration_ms = duration_seconds * 1000.0
        old_gain = old_unit.gain if old_unit is not None else 1.0

        old_name = old_unit.track.key if old_unit is not None else "-"
        logger.info(f"[FADE] Crossfade {old_name} -> {new_unit.track.key} "
                    f"({duration_seconds:.2f}s, {curve_name}, gen={generation})")

        def step(now):
            if not self.session.is_live(generation):
                logger.debug(f"[FADE] Crossfade gen={generation} superseded, abandoning")
                resolve(future, TransitionOutcome.CANCELLED)
                return

            progress = self._progress(start, now, duration_ms)
            eased = curve(progress)
            new_unit.gain = target_gain * eased
            if old_unit is not None:
                old_unit.gain = old_gain * (1 - eased)

            if progress < 1:
                self.scheduler.schedule_frame(step)
                return

            self.session.commit_crossfade(old_unit, new_unit, old_gain)
            resolve(future, TransitionOutcome.COMPLETED)

        self.scheduler.schedule_frame(step)
        return future

    def fade_to_stop(self, unit, duration_seconds: float, curve_name: str,
                     future: Optional[Future] = None) -> Future:
        """
        Fade unit to silence, then stop it and rewind it.

        A duration of 0 (or less) stops synchronously without scheduling
        any frame.

        Returns:
            Future resolving to a TransitionOutcome
        """
        future = future or Future()
        if unit is None:
            resolve(future, TransitionOutcome.COMPLETED)
            return future

        generation = self.session.begin_transition()

        if duration_seconds <= 0:
            logger.info(f"[STOP] {unit.track.key} stopped (no fade, gen={generation})")
            self.session.commit_stop(unit)
            resolve(future, TransitionOutcome.COMPLETED)
            return future

        curve = get_curve(curve_name)
        start = self.scheduler.now()
        duration_ms = duration_seconds * 1000.0
        start_gain = unit.gain
        logger.info(f"[STOP] Fading out {unit.track.key} "
                    f"({duration_seconds:.2f}s, {curve_name}, gen={generation})")

        def step(now):
            if not self.session.is_live(generation):
                logger.debug(f"[STOP] Fade-out gen={generation} superseded, abandoning")
                resolve(future, TransitionOutcome.CANCELLED)
                return

            progress = self._progress(start, now, duration_ms)
            unit.gain = start_gain * (1 - curve(progress))

            if progress < 1:
                self.scheduler.schedule_frame(step)
                return

            self.session.commit_stop(unit)
            resolve(future, TransitionOutcome.COMPLETED)

        self.scheduler.schedule_frame(step)
        return future
