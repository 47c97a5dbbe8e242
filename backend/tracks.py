"""
Track Registry for WWW Player.

Scans the audio directories and hands out immutable Track objects. The set
of known tracks is replaced wholesale on every refresh; the playback core
only ever looks tracks up by key.
"""

import os
import sys
import logging
import threading
from typing import Dict, List, Optional
from urllib.parse import quote

# Add parent directory to path for config import
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from config import (
    CATEGORY_SOURCES, CATEGORY_LIBRARY,
    AUDIO_EXTENSIONS, PLAYABLE_EXTENSIONS, HOTKEY_LABELS,
)
from .errors import TrackListingError, UnknownTrackError

logger = logging.getLogger("WWWPlayer.Tracks")


def is_audio_file(filename: str) -> bool:
    """Check the extension against the audio formats the web server serves."""
    return os.path.splitext(filename)[1].lower() in AUDIO_EXTENSIONS


def is_playable_file(filename: str) -> bool:
    """Check the extension against what the host mixer can decode."""
    return os.path.splitext(filename)[1].lower() in PLAYABLE_EXTENSIONS


class Track:
    """
    A playable audio file.

    Attributes:
        key: Stable identity, "<category>:<filename>"
        category: "library" (user audio dir) or "bundled" (shipped assets)
        filename: File name inside the category's directory
        path: Absolute path on disk
        url: URL the web server serves the file under
        label: Display name
        hotkey: Optional hotkey label shown next to the track
    """
    __slots__ = ('key', 'category', 'filename', 'path', 'url', 'label', 'hotkey')

    def __init__(self, category, filename, path, url, label=None, hotkey=None):
        object.__setattr__(self, 'key', f"{category}:{filename}")
        object.__setattr__(self, 'category', category)
        object.__setattr__(self, 'filename', filename)
        object.__setattr__(self, 'path', path)
        object.__setattr__(self, 'url', url)
        object.__setattr__(self, 'label', label or filename)
        object.__setattr__(self, 'hotkey', hotkey)

    def __setattr__(self, name, value):
        raise AttributeError("Track is immutable")

    def __eq__(self, other):
        return isinstance(other, Track) and other.key == self.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return f"Track({self.key!r})"

    def to_dict(self):
        """Serialize for the JSON API."""
        return {
            'key': self.key,
            'category': self.category,
            'filename': self.filename,
            'url': self.url,
            'label': self.label,
            'hotkey': self.hotkey,
        }


class TrackRegistry:
    """
    Maps track keys to Track objects for every category.

    Usage:
        registry = TrackRegistry()
        registry.refresh()
        for track in registry.list_tracks("library"):
            ...
        track = registry.get("library:intro.mp3")
    """

    def __init__(self, sources: Optional[Dict[str, tuple]] = None):
        """
        Args:
            sources: category -> (directory, url_prefix). Defaults to config.
        """
        self.sources = dict(sources or CATEGORY_SOURCES)
        self._lock = threading.Lock()
        self._tracks: Dict[str, List[Track]] = {category: [] for category in self.sources}
        self._by_key: Dict[str, Track] = {}

    def list_filenames(self, category: str) -> List[str]:
        """
        Read the audio file names of one category straight from disk.

        A missing directory is an empty list. Any other failure raises
        TrackListingError.
        """
        directory, _ = self._source(category)
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name.lower())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise TrackListingError(f"Failed to read audio directory {directory}: {e}") from e

        return [e.name for e in entries if e.is_file() and is_audio_file(e.name)]

    def refresh(self) -> int:
        """Rescan every category and replace the known tracks. Returns the track count."""
        tracks = {}
        by_key = {}
        for category in self.sources:
            directory, url_prefix = self._source(category)
            hotkeys = iter(HOTKEY_LABELS if category == CATEGORY_LIBRARY else [])
            category_tracks = []
            for filename in filter(is_playable_file, self.list_filenames(category)):
                track = Track(
                    category,
                    filename,
                    os.path.join(directory, filename),
                    url_prefix + quote(filename),
                    label=os.path.splitext(filename)[0],
                    hotkey=next(hotkeys, None),
                )
                category_tracks.append(track)
                by_key[track.key] = track
            tracks[category] = category_tracks

        with self._lock:
            self._tracks = tracks
            self._by_key = by_key

        logger.info(f"Track list refreshed: {len(by_key)} tracks "
                    f"({', '.join(f'{c}={len(t)}' for c, t in tracks.items())})")
        return len(by_key)

    def list_tracks(self, category: str) -> List[Track]:
        """Ordered tracks of one category from the last refresh."""
        self._source(category)
        with self._lock:
            return list(self._tracks.get(category, []))

    def get(self, key: str) -> Track:
        """Look up a track by key. Raises UnknownTrackError."""
        with self._lock:
            track = self._by_key.get(key)
        if track is None:
            raise UnknownTrackError(f"Unknown track: {key}")
        return track

    def find_by_hotkey(self, hotkey: str) -> Optional[Track]:
        with self._lock:
            for track in self._by_key.values():
                if track.hotkey == hotkey:
                    return track
        return None

    def _source(self, category):
        try:
            return self.sources[category]
        except KeyError:
            raise TrackListingError(f"Unknown category: {category}") from None
