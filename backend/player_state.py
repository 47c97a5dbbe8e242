"""
Shared player state: the indicator sink the playback session writes to
(from the player loop thread) and the web server reads from (request
threads).
"""

import threading
from typing import Any, Dict, Optional


class SharedPlayerState:
    """Thread-safe shared state between the player loop and the web server."""

    def __init__(self):
        self._lock = threading.Lock()
        self._playing: Dict[str, bool] = {}
        self._progress: Dict[str, float] = {}
        self._status = ""
        self._status_is_error = False

    def set_playing_indicator(self, track, is_playing: bool) -> None:
        with self._lock:
            if is_playing:
                self._playing[track.key] = True
            else:
                self._playing.pop(track.key, None)

    def set_progress(self, track, fraction: Optional[float]) -> None:
        """Set the bar of track to fraction in [0, 1]; None hides it."""
        with self._lock:
            if fraction is None:
                self._progress.pop(track.key, None)
            else:
                self._progress[track.key] = max(0.0, min(1.0, fraction))

    def set_status(self, message: str, is_error: bool = False) -> None:
        with self._lock:
            self._status = message
            self._status_is_error = is_error

    def is_indicated(self, track) -> bool:
        with self._lock:
            return self._playing.get(track.key, False)

    def get_state(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "playing": sorted(self._playing),
                "progress": dict(self._progress),
                "status": self._status,
                "status_is_error": self._status_is_error,
            }
