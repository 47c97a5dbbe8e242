"""
Player service for WWW Player.

Wires the track registry, volume memory, fade settings, media backend and
playback session together, and exposes thread-safe operations for the web
server. Everything that touches the session runs on the PlayerLoop thread.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from config import FRAME_INTERVAL, SHUTDOWN_DELAY
from utils.formatting import format_time, format_percent
from .media import PygameMedia
from .player_loop import PlayerLoop
from .player_state import SharedPlayerState
from .progress import safe_duration
from .scheduler import FrameScheduler
from .session import PlaybackSession
from .settings import PlaybackSettings
from .tracks import TrackRegistry
from .transitions import TransitionOutcome
from .volume_store import VolumeStore

logger = logging.getLogger("WWWPlayer.Player")


class Player:
    """
    The running player.

    Usage:
        player = Player()
        player.start()
        player.play_track("library:intro.mp3")
        ...
        player.shutdown()
    """

    def __init__(self, media=None, registry: Optional[TrackRegistry] = None,
                 volumes: Optional[VolumeStore] = None,
                 settings: Optional[PlaybackSettings] = None,
                 scheduler: Optional[FrameScheduler] = None,
                 frame_interval: float = FRAME_INTERVAL):
        self.registry = registry or TrackRegistry()
        self.volumes = volumes or VolumeStore()
        self.settings = settings or PlaybackSettings.load()
        self.media = media or PygameMedia()
        self.scheduler = scheduler or FrameScheduler()
        self.state = SharedPlayerState()
        self.session = PlaybackSession(self.media, self.scheduler, self.volumes,
                                       self.settings, self.state)
        self.loop = PlayerLoop(self.scheduler, self.media, frame_interval)

        # Set by /api/shutdown or after an update; main() waits on it
        self.shutdown_requested = threading.Event()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        self.media.init()
        self.registry.refresh()
        self.loop.start()
        logger.info("Player started")

    def shutdown(self) -> None:
        if self.loop.running:
            try:
                self.loop.call(self.session.shutdown)
            except Exception as e:
                logger.error(f"Could not stop playback cleanly: {e}")
            self.loop.stop()
        self.media.shutdown()
        logger.info("Player stopped")

    def request_shutdown(self, delay: float = SHUTDOWN_DELAY) -> None:
        """Ask main() to exit after delay seconds (lets the HTTP response go out first)."""
        timer = threading.Timer(delay, self.shutdown_requested.set)
        timer.daemon = True
        timer.start()

    # =========================================================================
    # TRACKS
    # =========================================================================

    def refresh_tracks(self) -> int:
        return self.registry.refresh()

    def list_tracks(self, category: str) -> List[Dict[str, Any]]:
        """Tracks of a category with their saved volume, for the UI."""
        result = []
        for track in self.registry.list_tracks(category):
            item = track.to_dict()
            gain = self.volumes.get(track)
            item['volume'] = gain
            item['volume_label'] = format_percent(gain)
            result.append(item)
        return result

    def resolve_track(self, key: Optional[str] = None, hotkey: Optional[str] = None):
        if key is None and hotkey is not None:
            track = self.registry.find_by_hotkey(hotkey)
            if track is not None:
                return track
            key = f"hotkey:{hotkey}"
        return self.registry.get(key)

    # =========================================================================
    # PLAYBACK
    # =========================================================================

    def _await(self, future, wait: bool, timeout: Optional[float]) -> Optional[TransitionOutcome]:
        # Start failures are already set on the future; result() raises them
        if wait or future.done():
            return future.result(timeout)
        return None

    def play_track(self, track, wait: bool = False,
                   timeout: Optional[float] = None) -> Optional[TransitionOutcome]:
        """
        Play (or toggle off) a track.

        Returns the TransitionOutcome, or None when the transition is still
        running and wait is False. Raises PlaybackStartFailure.
        """
        # Decode here, on the caller's thread, so fades keep running meanwhile
        self.media.preload(track)
        future = self.loop.call(self.session.request_play, track)
        return self._await(future, wait, timeout)

    def stop_track(self, track, wait: bool = False,
                   timeout: Optional[float] = None) -> Optional[TransitionOutcome]:
        future = self.loop.call(self.session.request_stop, track)
        return self._await(future, wait, timeout)

    def set_volume(self, track, gain) -> float:
        gain = self.volumes.set(track, gain)
        self.loop.call(self.session.apply_volume, track, gain)
        return gain

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_settings(self) -> Dict[str, Any]:
        return self.loop.call(self.settings.to_dict)

    def update_settings(self, **changes) -> Dict[str, Any]:
        self.loop.call(self.settings.update, **changes)
        self.settings.save()
        return self.get_settings()

    # =========================================================================
    # STATE
    # =========================================================================

    def _collect_state(self) -> Dict[str, Any]:
        state = self.state.get_state()
        unit = self.session.current
        state["session"] = self.session.state.name.lower()
        if unit is not None:
            duration = safe_duration(unit)
            state["current"] = {
                **unit.track.to_dict(),
                "position": unit.position,
                "position_label": format_time(unit.position),
                "duration": duration or None,
                "duration_label": format_time(duration) if duration else None,
                "gain": unit.gain,
            }
        else:
            state["current"] = None
        return state

    def snapshot(self) -> Dict[str, Any]:
        return self.loop.call(self._collect_state)
