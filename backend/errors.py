"""
Exceptions raised by the WWW Player backend.
"""


class PlayerError(Exception):
    """Base class for all player errors."""


class PlaybackStartFailure(PlayerError):
    """
    A PlaybackUnit could not start (missing file, codec, device, permission).

    The session is left exactly as it was before the request.
    """

    def __init__(self, track, reason):
        self.track = track
        self.reason = reason
        super().__init__(f"Could not start {track.label}: {reason}")


class PlaybackRuntimeFailure(PlayerError):
    """A unit that was already playing failed mid-playback."""

    def __init__(self, track, reason):
        self.track = track
        self.reason = reason
        super().__init__(f"Playback of {track.label} failed: {reason}")


class TrackListingError(PlayerError):
    """An audio directory exists but could not be read."""


class UnknownTrackError(PlayerError):
    """A request named a track key the registry does not know."""


class UpdateError(PlayerError):
    """Checking for or installing a release failed."""
