"""
Backend module for WWW Player.

Contains the playback session, fades, media units and the web server.
The session and its helpers are UI-agnostic and can be driven from tests
with a fake media backend and a hand-stepped frame scheduler.
"""

from .easing import ease, get_curve, CURVE_NAMES
from .errors import (
    PlayerError, PlaybackStartFailure, PlaybackRuntimeFailure,
    TrackListingError, UnknownTrackError, UpdateError,
)
from .media import Duration, PlaybackUnit, PygameMedia, PygameUnit
from .scheduler import FrameScheduler
from .session import PlaybackSession, SessionState
from .transitions import TransitionEngine, TransitionOutcome
from .tracks import Track, TrackRegistry
from .player import Player

__all__ = [
    'ease',
    'get_curve',
    'CURVE_NAMES',
    'PlayerError',
    'PlaybackStartFailure',
    'PlaybackRuntimeFailure',
    'TrackListingError',
    'UnknownTrackError',
    'UpdateError',
    'Duration',
    'PlaybackUnit',
    'PygameMedia',
    'PygameUnit',
    'FrameScheduler',
    'PlaybackSession',
    'SessionState',
    'TransitionEngine',
    'TransitionOutcome',
    'Track',
    'TrackRegistry',
    'Player',
]
