"""
Media handles for WWW Player.

A PlaybackUnit is one disposable, playable instance of a Track: it has its
own gain, position and playing state. A new unit is opened for every play
request and released when it is replaced or faded out, so during a
crossfade two units of possibly the same file play side by side.

PygameMedia backs units with pygame.mixer.Sound objects, each on its own
mixer Channel so their volumes can be ramped independently.
"""

import os
import time
import logging
import threading
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

import pygame

from config import (
    SAMPLE_RATE, CHANNELS, MIXER_BUFFER_SIZE, MIXER_NUM_CHANNELS, SOUND_CACHE_SIZE,
)
from .errors import PlaybackStartFailure, PlaybackRuntimeFailure

logger = logging.getLogger("WWWPlayer.Media")


class Duration:
    """
    Total length of a media resource: either known (seconds) or unknown.

    Use Duration.known(seconds) and Duration.UNKNOWN rather than the
    constructor. Only finite, positive lengths count as known.
    """
    __slots__ = ('seconds',)

    UNKNOWN = None  # set below the class

    def __init__(self, seconds: Optional[float]):
        self.seconds = seconds

    @classmethod
    def known(cls, seconds: float) -> 'Duration':
        if seconds is None or not (0 < seconds < float('inf')):
            return cls.UNKNOWN
        return cls(float(seconds))

    @property
    def is_known(self) -> bool:
        return self.seconds is not None

    def __eq__(self, other):
        return isinstance(other, Duration) and other.seconds == self.seconds

    def __hash__(self):
        return hash(self.seconds)

    def __repr__(self):
        return f"Duration({self.seconds:.3f}s)" if self.is_known else "Duration(unknown)"


Duration.UNKNOWN = Duration(None)


class PlaybackUnit:
    """
    Base class for a playable media handle bound to one Track.

    Subclasses implement the actual output. Lifecycle events:
    - 'ended': ()                        - reached the end on its own
    - 'error': (PlaybackRuntimeFailure)  - failed after it had started
    - 'metadata_loaded': (Duration)      - length became available
    """

    EVENTS = ('ended', 'error', 'metadata_loaded')

    def __init__(self, track):
        self.track = track
        self._gain = 1.0
        self.released = False
        self._callbacks: Dict[str, List[Callable]] = {event: [] for event in self.EVENTS}

    # =========================================================================
    # EVENTS
    # =========================================================================

    def on(self, event: str, callback: Callable) -> None:
        if event not in self._callbacks:
            raise ValueError(f"Unknown media event: {event}")
        self._callbacks[event].append(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(self, *args)
            except Exception as e:
                logger.exception(f"Error in media callback for {event}: {e}")

    # =========================================================================
    # GAIN
    # =========================================================================

    @property
    def gain(self) -> float:
        return self._gain

    @gain.setter
    def gain(self, value: float) -> None:
        self._gain = max(0.0, min(1.0, value))
        self._apply_gain(self._gain)

    def _apply_gain(self, gain: float) -> None:
        pass

    # =========================================================================
    # PLAYBACK (implemented by subclasses)
    # =========================================================================

    def play(self) -> None:
        """Start or resume output. Raises PlaybackStartFailure."""
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek_to_start(self) -> None:
        raise NotImplementedError

    @property
    def is_playing(self) -> bool:
        raise NotImplementedError

    @property
    def position(self) -> float:
        """Seconds played so far."""
        raise NotImplementedError

    def duration(self) -> Duration:
        raise NotImplementedError

    def buffered_extent(self) -> Optional[float]:
        """Furthest seekable/buffered position in seconds, if the backend knows it."""
        return None

    def stop(self) -> None:
        """Pause and rewind to the start."""
        self.pause()
        self.seek_to_start()

    def release(self) -> None:
        """Stop for good. A released unit emits no more events."""
        if self.released:
            return
        self.stop()
        self.released = True
        for callbacks in self._callbacks.values():
            callbacks.clear()


class PygameUnit(PlaybackUnit):
    """A PlaybackUnit playing a pygame.mixer.Sound on a dedicated Channel."""

    def __init__(self, track, clock: Callable[[], float] = time.monotonic, sound=None):
        """
        Args:
            track: Track to play
            clock: Returns the current time in seconds
            sound: Already decoded pygame Sound for track (see PygameMedia.preload)
        """
        super().__init__(track)
        self._clock = clock
        self._sound = sound
        self._loaded = False
        self._channel = None
        self._playing = False
        self._started_at: Optional[float] = None  # clock value at position 0
        self._paused_at: Optional[float] = None

    def _load(self):
        if not pygame.mixer.get_init():
            raise PlaybackStartFailure(self.track, "audio output is not available")
        if self._sound is None:
            if not os.path.isfile(self.track.path):
                raise PlaybackStartFailure(self.track, "file not found")
            try:
                self._sound = pygame.mixer.Sound(self.track.path)
            except pygame.error as e:
                raise PlaybackStartFailure(self.track, f"cannot decode: {e}") from e
        self._loaded = True
        logger.debug(f"Loaded {self.track.key} ({self._sound.get_length():.2f}s)")
        self._emit('metadata_loaded', self.duration())

    def play(self) -> None:
        if self.released:
            raise PlaybackStartFailure(self.track, "unit was released")
        if not self._loaded:
            self._load()

        if self._channel is not None and self._paused_at is not None:
            self._channel.unpause()
            self._started_at += self._clock() - self._paused_at
            self._paused_at = None
        else:
            channel = pygame.mixer.find_channel()
            if channel is None:
                raise PlaybackStartFailure(self.track, "no free mixer channel")
            try:
                channel.set_volume(self._gain)
                channel.play(self._sound)
            except pygame.error as e:
                raise PlaybackStartFailure(self.track, f"output error: {e}") from e
            self._channel = channel
            self._started_at = self._clock()
        self._playing = True

    def pause(self) -> None:
        if self._channel is not None and self._playing:
            self._channel.pause()
            self._paused_at = self._clock()
        self._playing = False

    def seek_to_start(self) -> None:
        if self._channel is not None:
            self._channel.stop()
        self._channel = None
        self._started_at = None
        self._paused_at = None
        self._playing = False

    def _apply_gain(self, gain: float) -> None:
        if self._channel is not None:
            self._channel.set_volume(gain)

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def position(self) -> float:
        if self._started_at is None:
            return 0.0
        reference = self._paused_at if self._paused_at is not None else self._clock()
        elapsed = max(0.0, reference - self._started_at)
        length = self.duration()
        return min(elapsed, length.seconds) if length.is_known else elapsed

    def duration(self) -> Duration:
        if self._sound is None:
            return Duration.UNKNOWN
        return Duration.known(self._sound.get_length())

    def poll(self) -> None:
        """Detect natural end and lost channels. Called once per frame."""
        if not self._playing or self._channel is None:
            return
        try:
            busy = self._channel.get_busy()
            owner = self._channel.get_sound() if busy else None
        except pygame.error as e:
            self._fail(str(e))
            return

        if not busy:
            logger.info(f"[END] {self.track.key} reached the end")
            self._channel = None
            self._started_at = None
            self._playing = False
            self._emit('ended')
        elif owner is not self._sound:
            self._fail("mixer channel was taken over")

    def _fail(self, reason):
        logger.error(f"[ERROR] {self.track.key}: {reason}")
        self._channel = None
        self._started_at = None
        self._playing = False
        self._emit('error', PlaybackRuntimeFailure(self.track, reason))


class PygameMedia:
    """
    Opens PygameUnits and keeps track of the live ones so their end/error
    state can be polled every frame.

    Usage:
        media = PygameMedia()
        media.init()
        unit = media.open(track)
        unit.play()
        ...
        media.poll()   # once per frame, from the player loop
    """

    def __init__(self, cache_size: int = SOUND_CACHE_SIZE):
        self.available = False
        self.cache_size = cache_size
        self._units: List[PygameUnit] = []
        # (path, mtime) -> decoded Sound; filled by preload() from request threads
        self._sounds: "OrderedDict[tuple, pygame.mixer.Sound]" = OrderedDict()
        self._sounds_lock = threading.Lock()

    def init(self) -> bool:
        """Initialize the pygame mixer. Returns False when no output device works."""
        try:
            pygame.mixer.init(
                frequency=SAMPLE_RATE,
                size=-16,
                channels=CHANNELS,
                buffer=MIXER_BUFFER_SIZE
            )
            pygame.mixer.set_num_channels(MIXER_NUM_CHANNELS)
            self.available = True
            logger.info(f"Mixer initialized ({SAMPLE_RATE}Hz, {MIXER_NUM_CHANNELS} channels)")
        except pygame.error as e:
            self.available = False
            logger.error(f"Audio output unavailable: {e}")
        return self.available

    def _sound_key(self, track) -> Optional[tuple]:
        try:
            return (track.path, os.stat(track.path).st_mtime_ns)
        except OSError:
            return None

    def preload(self, track) -> bool:
        """
        Decode track into the sound cache.

        Meant to be called from the web request thread before a play command
        is queued, so the player loop never stalls on decoding. Failures are
        left for PygameUnit.play() to report as PlaybackStartFailure.

        Returns:
            True if a decoded sound for track is cached
        """
        key = self._sound_key(track)
        if key is None or not pygame.mixer.get_init():
            return False

        with self._sounds_lock:
            if key in self._sounds:
                self._sounds.move_to_end(key)
                return True

        started = time.monotonic()
        try:
            sound = pygame.mixer.Sound(track.path)
        except pygame.error as e:
            logger.debug(f"Preload of {track.key} failed: {e}")
            return False

        with self._sounds_lock:
            self._sounds[key] = sound
            while len(self._sounds) > self.cache_size:
                self._sounds.popitem(last=False)
        logger.debug(f"Preloaded {track.key} in {time.monotonic() - started:.2f}s")
        return True

    def cached_sound(self, track):
        key = self._sound_key(track)
        with self._sounds_lock:
            return self._sounds.get(key) if key is not None else None

    def open(self, track) -> PygameUnit:
        unit = PygameUnit(track, sound=self.cached_sound(track))
        self._units.append(unit)
        return unit

    def poll(self) -> None:
        self._units = [unit for unit in self._units if not unit.released]
        for unit in list(self._units):
            unit.poll()

    @property
    def live_units(self) -> int:
        return sum(1 for unit in self._units if not unit.released)

    def shutdown(self) -> None:
        for unit in self._units:
            unit.release()
        self._units = []
        with self._sounds_lock:
            self._sounds.clear()
        if self.available:
            pygame.mixer.quit()
            self.available = False
        logger.info("Mixer shut down")
