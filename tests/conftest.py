"""
Shared fixtures: a hand-stepped clock and frame scheduler, fake media units
and an indicator sink that records everything the session tells it.
"""

import math
import os
import sys
import threading

import pytest

os.environ.setdefault('PYGAME_HIDE_SUPPORT_PROMPT', "1")
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.errors import PlaybackStartFailure, PlaybackRuntimeFailure
from backend.media import Duration, PlaybackUnit
from backend.player_state import SharedPlayerState
from backend.scheduler import FrameScheduler
from backend.session import PlaybackSession
from backend.settings import PlaybackSettings
from backend.tracks import Track
from backend.volume_store import VolumeStore


class FakeClock:
    """Seconds, advanced by hand."""

    def __init__(self, start=100.0):
        self.time = start

    def __call__(self):
        return self.time

    def advance(self, seconds):
        self.time += seconds


class FakeUnit(PlaybackUnit):
    """In-memory PlaybackUnit. Position follows the fake clock while playing."""

    def __init__(self, track, clock, length=10.0, fail_on_play=False):
        super().__init__(track)
        self.clock = clock
        self.length = length
        self.fail_on_play = fail_on_play
        self.extent = None
        self.play_calls = 0
        self.gain_history = []
        self._playing = False
        self._started = None

    def _apply_gain(self, gain):
        self.gain_history.append(gain)

    def play(self):
        self.play_calls += 1
        if self.fail_on_play:
            raise PlaybackStartFailure(self.track, "cannot decode")
        if self._started is None:
            self._started = self.clock()
        self._playing = True

    def pause(self):
        self._playing = False

    def seek_to_start(self):
        self._started = None

    @property
    def is_playing(self):
        return self._playing

    @property
    def position(self):
        if self._started is None:
            return 0.0
        return self.clock() - self._started

    def duration(self):
        return Duration.known(self.length)

    def buffered_extent(self):
        return self.extent

    # Test hooks
    def finish(self):
        self._playing = False
        self._emit('ended')

    def crash(self, reason="decoder error"):
        self._playing = False
        self._emit('error', PlaybackRuntimeFailure(self.track, reason))


class FakeMedia:
    """Opens FakeUnits; tracks listed in failing refuse to start."""

    def __init__(self, clock):
        self.clock = clock
        self.units = []
        self.failing = set()
        self.lengths = {}
        self.polls = 0
        self.preloaded = []

    def init(self):
        return True

    def preload(self, track):
        self.preloaded.append((track.key, threading.current_thread().name))
        return True

    def open(self, track):
        unit = FakeUnit(track, self.clock,
                        length=self.lengths.get(track.key, 10.0),
                        fail_on_play=track.key in self.failing)
        self.units.append(unit)
        return unit

    def poll(self):
        self.polls += 1

    def shutdown(self):
        for unit in self.units:
            unit.release()

    def live(self):
        return [unit for unit in self.units if not unit.released]

    def units_for(self, track):
        return [unit for unit in self.units if unit.track == track]


class RecordingView(SharedPlayerState):
    """SharedPlayerState that also keeps every indicator/progress call."""

    def __init__(self):
        super().__init__()
        self.indicator_calls = []
        self.progress_calls = []

    def set_playing_indicator(self, track, is_playing):
        self.indicator_calls.append((track.key, is_playing))
        super().set_playing_indicator(track, is_playing)

    def set_progress(self, track, fraction):
        self.progress_calls.append((track.key, fraction))
        super().set_progress(track, fraction)


def make_track(filename, category="library", hotkey=None):
    prefix = "/audio/" if category == "library" else "/assets/audio/"
    return Track(category, filename, os.path.join("/music", filename),
                 prefix + filename, label=os.path.splitext(filename)[0],
                 hotkey=hotkey)


@pytest.fixture
def prefs_file(tmp_path, monkeypatch):
    path = tmp_path / "data" / "user_preferences.json"
    monkeypatch.setattr("utils.preferences.PREFS_FILE", str(path))
    return path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return FrameScheduler(clock=clock)


@pytest.fixture
def media(clock):
    return FakeMedia(clock)


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def volumes(prefs_file):
    return VolumeStore()


@pytest.fixture
def settings():
    return PlaybackSettings(overlay_seconds=1.5, stop_fade_seconds=0.4, easing="linear")


@pytest.fixture
def session(media, scheduler, volumes, settings, view):
    return PlaybackSession(media, scheduler, volumes, settings, view)


@pytest.fixture
def advance(clock, scheduler):
    """Advance the clock by seconds, running one frame per frame_interval."""
    def _advance(seconds, frame_interval=0.016):
        steps = max(1, math.ceil(seconds / frame_interval))
        for _ in range(steps):
            clock.advance(seconds / steps)
            scheduler.run_frame()
    return _advance


@pytest.fixture
def track_a():
    return make_track("alpha.mp3", hotkey="1")


@pytest.fixture
def track_b():
    return make_track("bravo.mp3", hotkey="2")


@pytest.fixture
def track_c():
    return make_track("charlie.mp3", hotkey="3")
