"""
Configuration constants for WWW Player.

All tunable parameters in one place for easy adjustment and debugging.
Modify these values to fine-tune playback behavior, the server and paths.
"""

import sys
import os

# =============================================================================
# APP
# =============================================================================

APP_NAME = "WWW Player"
APP_VERSION = "1.4.0"

# =============================================================================
# PATHS
# =============================================================================

# HELPER: Detect if we are running as a compiled exe or a script
def get_base_path():
    if getattr(sys, 'frozen', False):
        # We are running as an exe - use the folder the exe is sitting in
        return os.path.dirname(sys.executable)
    else:
        # We are running as a script - use the script's folder
        return os.path.dirname(os.path.abspath(__file__))

# ROOT DIR
BASE_DIR = get_base_path()

# User library: drop audio files here
AUDIO_DIR = os.environ.get("WWW_PLAYER_AUDIO_DIR", os.path.join(BASE_DIR, "audio"))

# Sounds shipped with the app
ASSETS_AUDIO_DIR = os.path.join(BASE_DIR, "assets", "audio")

# Data directory for preferences (volumes, fade settings)
DATA_DIR = os.path.join(BASE_DIR, "data")

LOG_DIR = os.path.join(BASE_DIR, "logs")

# =============================================================================
# TRACK CATEGORIES
# =============================================================================

CATEGORY_LIBRARY = "library"
CATEGORY_BUNDLED = "bundled"

# category -> (directory on disk, URL prefix it is served under)
CATEGORY_SOURCES = {
    CATEGORY_LIBRARY: (AUDIO_DIR, "/audio/"),
    CATEGORY_BUNDLED: (ASSETS_AUDIO_DIR, "/assets/audio/"),
}

# Files the web server lists and serves
AUDIO_EXTENSIONS = {'.mp3', '.wav', '.ogg', '.m4a', '.flac'}

# Files pygame (SDL_mixer) can decode on the host; AAC/m4a is not among them
PLAYABLE_EXTENSIONS = {'.mp3', '.wav', '.ogg', '.flac'}

# Hotkey labels handed out to the first library tracks, in order
HOTKEY_LABELS = ['1', '2', '3', '4', '5', '6', '7', '8', '9', '0']

CONTENT_TYPES = {
    '.html': 'text/html; charset=utf-8',
    '.js': 'application/javascript; charset=utf-8',
    '.css': 'text/css; charset=utf-8',
    '.json': 'application/json; charset=utf-8',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.svg': 'image/svg+xml',
    '.mp3': 'audio/mpeg',
    '.wav': 'audio/wav',
    '.ogg': 'audio/ogg',
    '.m4a': 'audio/mp4',
    '.flac': 'audio/flac',
}

# =============================================================================
# WEB SERVER SETTINGS
# =============================================================================

SERVER_HOST = os.environ.get("HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("PORT", "3000"))

# Grace period before the process exits after /api/shutdown or an update (seconds)
SHUTDOWN_DELAY = 0.5

# How long a web request waits for a play/stop to be picked up by the player loop
COMMAND_TIMEOUT = 5.0

# =============================================================================
# AUDIO ENGINE SETTINGS
# =============================================================================

# Sample rate for audio output (Hz)
SAMPLE_RATE = 44100

# Number of audio channels (2 = stereo)
CHANNELS = 2

# Pygame mixer buffer size (lower = less latency, but more CPU)
MIXER_BUFFER_SIZE = 1024

# Mixer channels to allocate. A crossfade only ever needs two, the rest
# is headroom for units that are still being released.
MIXER_NUM_CHANNELS = 8

# Decoded sounds kept in memory so replaying a track needs no decoding
SOUND_CACHE_SIZE = 8

# =============================================================================
# PLAYBACK TRANSITION SETTINGS
# =============================================================================

# Crossfade length when a new track starts over a playing one (seconds)
# TUNABLE: 0 switches instantly
DEFAULT_OVERLAY_SECONDS = 1.5

# Fade length when the playing track is stopped (seconds)
DEFAULT_STOP_FADE_SECONDS = 0.4

# Volume curve used by both fades: linear, ease-in, ease-out, ease-in-out
DEFAULT_EASING = "linear"

# Gain used for tracks that have no saved volume
DEFAULT_VOLUME = 1.0

# Preference keys
PREF_OVERLAY_TIME = "player:overlayTime"
PREF_STOP_FADE_TIME = "player:stopFadeTime"
PREF_OVERLAY_CURVE = "player:overlayCurve"
PREF_VOLUME_PREFIX = "player:volume:"

# =============================================================================
# PLAYER LOOP SETTINGS
# =============================================================================

# Duration of one display frame (seconds)
# 0.016 = ~60 FPS, matches a browser's animation frame rate
FRAME_INTERVAL = 0.016

# =============================================================================
# SELF-UPDATE SETTINGS
# =============================================================================

REPO_OWNER = "hokoo"
REPO_NAME = "www-player"
GITHUB_API_URL = f"https://api.github.com/repos/{REPO_OWNER}/{REPO_NAME}"
UPDATE_USER_AGENT = "www-player-updater"

# Timeout for each GitHub request (seconds)
UPDATE_TIMEOUT = 30
