"""
Playback Session for WWW Player.

Owns the single "current" PlaybackUnit and decides what a play or stop
request turns into:

- play on an idle player, or with overlay time 0: immediate switch
- play over a playing track, overlay time > 0: crossfade
- play on the track that is already playing: fade-to-stop (toggle)
- stop on the playing track: fade-to-stop

The current pointer only changes at the commit points below (immediate
switch, transition completion, natural end, runtime error), never in the
middle of a fade. While no transition is in flight, current is either None
or a unit that is actually playing, and the playing indicators agree with it.

All methods must be called from the player loop thread.
"""

import logging
from concurrent.futures import Future
from enum import Enum, auto
from typing import Optional

from .errors import PlaybackStartFailure
from .progress import ProgressReporter
from .transitions import TransitionEngine, TransitionOutcome, resolve

logger = logging.getLogger("WWWPlayer.Session")


class SessionState(Enum):
    """Playback state enumeration."""
    IDLE = auto()
    PLAYING = auto()
    TRANSITIONING = auto()   # a crossfade or fade-out is in flight


class PlaybackSession:
    """
    The playback state machine.

    Args:
        media: Opens PlaybackUnits (open(track) -> unit)
        scheduler: FrameScheduler driving fades and progress
        volumes: VolumeStore with the saved gain per track
        settings: PlaybackSettings (overlay, stop fade, curve), read per request
        view: Indicator sink (set_playing_indicator, set_progress, set_status)
    """

    def __init__(self, media, scheduler, volumes, settings, view):
        self.media = media
        self.scheduler = scheduler
        self.volumes = volumes
        self.settings = settings
        self.view = view

        self.current = None
        self.generation = 0
        self._in_flight = False
        # Unit fading in during a crossfade; not current until the fade commits
        self._incoming = None
        # (unit, future) of the live fade-to-stop, if any
        self._stopping = None

        self.progress = ProgressReporter(scheduler, view)
        self.transitions = TransitionEngine(self, scheduler)

    # =========================================================================
    # READ-ONLY STATE
    # =========================================================================

    @property
    def current_track(self):
        return self.current.track if self.current is not None else None

    def is_playing(self, track) -> bool:
        return (self.current is not None
                and self.current.track == track
                and self.current.is_playing)

    @property
    def state(self) -> SessionState:
        if self._in_flight:
            return SessionState.TRANSITIONING
        if self.current is not None:
            return SessionState.PLAYING
        return SessionState.IDLE

    # =========================================================================
    # TRANSITION TOKEN
    # =========================================================================

    def invalidate(self) -> int:
        """Cancel whatever transition is in flight. Returns the new live generation."""
        self.generation += 1
        self._in_flight = False
        self._stopping = None
        return self.generation

    def begin_transition(self) -> int:
        """Invalidate the previous transition and claim the live generation for a new one."""
        generation = self.invalidate()
        self._in_flight = True
        return generation

    def is_live(self, generation: int) -> bool:
        return generation == self.generation

    # =========================================================================
    # REQUESTS
    # =========================================================================

    def request_play(self, track) -> Future:
        """
        Play track, crossfading from the current one when configured.

        Returns:
            Future resolving to a TransitionOutcome once the switch is
            complete. Holds PlaybackStartFailure if the track could not start.
        """
        if self.is_playing(track):
            logger.info(f"[TOGGLE] {track.key} is already playing, stopping it")
            return self.request_stop(track)

        future = Future()
        overlay = self.settings.overlay_seconds
        target_gain = self.volumes.get(track)
        previous = self.current
        will_crossfade = overlay > 0 and previous is not None and previous.is_playing

        unit = self.media.open(track)
        unit.gain = 0.0 if will_crossfade else target_gain
        unit.on('ended', self._on_unit_ended)
        unit.on('error', self._on_unit_error)

        try:
            unit.play()
        except PlaybackStartFailure as e:
            unit.release()
            logger.error(f"[PLAY] {e}")
            self.view.set_status(f"Could not start playback: {track.label}", is_error=True)
            future.set_exception(e)
            return future

        logger.info(f"[PLAY] {track.key} started (gain={unit.gain:.2f})")
        self._drop_incoming()

        if will_crossfade:
            self._incoming = unit
            self.transitions.crossfade(previous, unit, target_gain, overlay,
                                       self.settings.easing, future)
        else:
            self.invalidate()
            if previous is not None:
                self._retire(previous)
            unit.gain = target_gain
            self._promote(unit)
            resolve(future, TransitionOutcome.COMPLETED)
        return future

    def request_stop(self, track) -> Future:
        """
        Fade the playing track out and stop it.

        Asking to stop a track that is not the playing one does nothing.
        """
        if not self.is_playing(track):
            logger.debug(f"[STOP] Ignored, {track.key} is not playing")
            future = Future()
            resolve(future, TransitionOutcome.IGNORED)
            return future

        self._drop_incoming()
        unit = self.current
        future = self.transitions.fade_to_stop(unit,
                                               self.settings.stop_fade_seconds,
                                               self.settings.easing)
        if not future.done():
            self._stopping = (unit, future)
        return future

    def apply_volume(self, track, gain: float) -> None:
        """Live slider update: retune the current unit if it plays track."""
        if self.current is not None and self.current.track == track:
            self.current.gain = gain

    def shutdown(self) -> None:
        """Stop everything immediately, abandoning any transition."""
        self.invalidate()
        self._drop_incoming()
        if self.current is not None:
            self.commit_stop(self.current)
        logger.info("Session shut down")

    # =========================================================================
    # COMMIT POINTS
    # =========================================================================

    def commit_crossfade(self, old_unit, new_unit, old_gain: float) -> None:
        """A live crossfade reached the end: retire the old unit, promote the new one."""
        self._in_flight = False
        if old_unit is not None:
            self._retire(old_unit, restore_gain=old_gain)

        if self._incoming is new_unit:
            self._incoming = None

        if new_unit.released or not new_unit.is_playing:
            # The new track ended during the fade
            logger.info(f"[FADE] {new_unit.track.key} finished before the crossfade did")
            if self.current is old_unit:
                self.current = None
            new_unit.release()
            return

        self._promote(new_unit)

    def commit_stop(self, unit) -> None:
        """A fade-to-stop reached silence (or had no duration)."""
        self._in_flight = False
        self._stopping = None
        unit.stop()
        self.view.set_playing_indicator(unit.track, False)
        self.progress.stop(unit)
        if self.current is unit:
            self.current = None
        unit.release()
        self.view.set_status(f"Stopped: {unit.track.label}")

    def _promote(self, unit) -> None:
        self.current = unit
        self.view.set_playing_indicator(unit.track, True)
        self.view.set_status(f"Playing: {unit.track.label}")
        self.progress.bind(unit)

    def _retire(self, unit, restore_gain: Optional[float] = None) -> None:
        unit.stop()
        if restore_gain is not None:
            unit.gain = restore_gain
        self.view.set_playing_indicator(unit.track, False)
        self.progress.stop(unit)
        if self.current is unit:
            self.current = None
        unit.release()

    def _drop_incoming(self) -> None:
        """Release the fade-in unit of a crossfade that is about to be superseded."""
        if self._incoming is not None:
            logger.debug(f"[FADE] Dropping unfinished fade-in of {self._incoming.track.key}")
            self._incoming.release()
            self._incoming = None

    # =========================================================================
    # MEDIA LIFECYCLE
    # =========================================================================

    def _on_unit_ended(self, unit) -> None:
        if self._stopping is not None and self._stopping[0] is unit:
            # Ran out while fading to stop: the stop is done, drop the fade
            future = self._stopping[1]
            self.invalidate()
            resolve(future, TransitionOutcome.COMPLETED)
        if unit is self.current:
            self.current = None
            self.view.set_playing_indicator(unit.track, False)
            self.progress.stop(unit)
            self.view.set_status(f"Finished: {unit.track.label}")
        elif unit is self._incoming:
            self._incoming = None
        unit.release()

    def _on_unit_error(self, unit, failure) -> None:
        logger.error(f"[ERROR] {failure}")
        was_current = unit is self.current
        self._on_unit_ended(unit)
        if was_current:
            self.view.set_status(f"Playback error: {unit.track.label}", is_error=True)
