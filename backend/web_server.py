"""
Web Server for WWW Player.

Serves the player page, the audio files (with byte-range support so the
browser and phones can seek) and a small JSON API that drives the player
running on this machine. Designed for a soundboard-style setup: the host
plays the audio, any device on the same network can trigger tracks.

Usage:
    The server is started/stopped from main.py.
    It binds to 0.0.0.0 on port 3000 by default (PORT env var).

    Devices on the same WiFi network can open the player at:
        http://<your-local-ip>:<port>
"""

import io
import os
import sys
import socket
import logging
import threading
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

logger = logging.getLogger("WWWPlayer.WebServer")

import qrcode
from flask import Flask, jsonify, request, Response, send_file

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
from config import (
    APP_NAME, APP_VERSION, CATEGORY_LIBRARY, CATEGORY_BUNDLED,
    CONTENT_TYPES, COMMAND_TIMEOUT, SERVER_PORT,
)
from utils import updater
from utils.formatting import parse_bool, format_percent
from .easing import CURVE_NAMES
from .errors import PlaybackStartFailure, TrackListingError, UnknownTrackError, UpdateError
from .tracks import is_audio_file


def get_local_ip():
    """Get the machine's local network IP address."""
    try:
        # Connect to a public DNS to determine local IP
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.settimeout(0.5)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "127.0.0.1"


def get_content_type(file_path):
    ext = os.path.splitext(file_path)[1].lower()
    return CONTENT_TYPES.get(ext, 'application/octet-stream')


def safe_resolve(base_dir, requested):
    """
    Resolve requested inside base_dir.

    Returns the absolute path, or None if it would escape base_dir (or is
    base_dir itself).
    """
    base = os.path.realpath(base_dir)
    resolved = os.path.realpath(os.path.join(base, requested.lstrip('/')))
    if resolved == base or os.path.commonpath([base, resolved]) != base:
        return None
    return resolved


# =========================================================================
# HTML PAGE (embedded - mobile-first responsive design)
# =========================================================================

PLAYER_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>""" + APP_NAME + """</title>
<style>
  * { margin: 0; padding: 0; box-sizing: border-box; }

  :root {
    --bg: #0d1117;
    --surface: #161b22;
    --text: #e6edf3;
    --dim: #7d8590;
    --green: #3fb950;
    --red: #f85149;
    --blue: #58a6ff;
  }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
    background: var(--bg);
    color: var(--text);
    min-height: 100vh;
  }

  .header {
    background: var(--surface);
    padding: 12px 16px;
    border-bottom: 1px solid #30363d;
    display: flex;
    flex-wrap: wrap;
    gap: 12px;
    align-items: center;
    justify-content: space-between;
    position: sticky;
    top: 0;
    z-index: 10;
  }
  .header h1 { font-size: 16px; font-weight: 700; }
  .settings { display: flex; gap: 10px; font-size: 12px; color: var(--dim); align-items: center; }
  .settings input { width: 56px; }
  .status { font-size: 13px; color: var(--dim); padding: 8px 16px; }
  .status.error { color: var(--red); }

  .content { padding: 12px; max-width: 720px; margin: 0 auto; }
  .section-title { font-size: 11px; text-transform: uppercase; color: var(--dim); letter-spacing: 1px; margin: 16px 0 8px; }

  .track-card {
    background: var(--surface);
    border-radius: 10px;
    padding: 12px;
    margin-bottom: 8px;
    border: 1px solid #30363d;
    position: relative;
    overflow: hidden;
  }
  .track-card.playing { border-color: var(--green); }
  .track-row { display: flex; align-items: center; gap: 10px; }
  .track-name { flex: 1; font-size: 15px; font-weight: 600; }
  .hotkey { font-family: 'SF Mono', 'Consolas', monospace; font-size: 11px; color: var(--dim);
            border: 1px solid #30363d; border-radius: 4px; padding: 1px 6px; }
  .play { background: var(--blue); color: #fff; border: 0; border-radius: 6px; padding: 6px 12px; cursor: pointer; }
  .track-card.playing .play { background: var(--red); }
  .volume { display: flex; align-items: center; gap: 6px; font-size: 12px; color: var(--dim); }
  .progress { position: absolute; left: 0; bottom: 0; height: 3px; background: var(--green); width: 0; }
  .empty-state { text-align: center; padding: 40px 20px; color: var(--dim); font-size: 14px; }
</style>
</head>
<body>

<div class="header">
  <h1>""" + APP_NAME + """</h1>
  <div class="settings">
    <label>Crossfade <input id="overlayTime" type="number" min="0" step="0.1"> s</label>
    <label>Stop fade <input id="stopFadeTime" type="number" min="0" step="0.1"> s</label>
    <label>Curve <select id="overlayCurve"></select></label>
  </div>
</div>
<div class="status" id="status"></div>

<div class="content">
  <div class="section-title">Library</div>
  <div id="library"></div>
  <div class="section-title">Bundled</div>
  <div id="bundled"></div>
</div>

<script>
const CURVES = """ + repr(CURVE_NAMES) + """;
const cards = {};

async function api(path, body) {
  const opts = body === undefined ? {} : {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify(body),
  };
  const res = await fetch(path, opts);
  const data = await res.json();
  if (!res.ok) throw new Error(data.error || res.statusText);
  return data;
}

function setStatus(text, isError) {
  const el = document.getElementById('status');
  el.textContent = text;
  el.className = isError ? 'status error' : 'status';
}

function createTrackCard(track) {
  const card = document.createElement('div');
  card.className = 'track-card';
  const row = document.createElement('div');
  row.className = 'track-row';

  const name = document.createElement('div');
  name.className = 'track-name';
  name.textContent = track.label;
  row.appendChild(name);

  if (track.hotkey) {
    const hk = document.createElement('span');
    hk.className = 'hotkey';
    hk.textContent = track.hotkey;
    row.appendChild(hk);
  }

  const volume = document.createElement('label');
  volume.className = 'volume';
  const range = document.createElement('input');
  range.type = 'range'; range.min = '0'; range.max = '1'; range.step = '0.01';
  range.value = track.volume;
  const value = document.createElement('span');
  value.textContent = track.volume_label;
  range.addEventListener('input', async () => {
    try {
      const data = await api('/api/volume', {track: track.key, gain: parseFloat(range.value)});
      value.textContent = data.volume_label;
    } catch (e) { setStatus(e.message, true); }
  });
  volume.append(range, value);
  row.appendChild(volume);

  const play = document.createElement('button');
  play.className = 'play';
  play.textContent = 'Play';
  play.addEventListener('click', () => playTrack({track: track.key}));
  row.appendChild(play);

  const bar = document.createElement('div');
  bar.className = 'progress';
  card.append(row, bar);
  cards[track.key] = {card, bar, play};
  return card;
}

async function playTrack(body) {
  try { await api('/api/play', body); } catch (e) { setStatus(e.message, true); }
}

async function loadTracks(category, containerId) {
  const container = document.getElementById(containerId);
  try {
    const data = await api('/api/tracks?category=' + category);
    container.innerHTML = '';
    if (!data.tracks.length) {
      container.innerHTML = '<div class="empty-state">No playable audio files found (mp3, wav, ogg, flac).</div>';
      return;
    }
    data.tracks.forEach((t) => container.appendChild(createTrackCard(t)));
  } catch (e) {
    container.innerHTML = '<div class="empty-state">Could not load the track list.</div>';
  }
}

async function initSettings() {
  const select = document.getElementById('overlayCurve');
  CURVES.forEach((c) => { const o = document.createElement('option'); o.value = c; o.textContent = c; select.appendChild(o); });
  const s = await api('/api/settings');
  document.getElementById('overlayTime').value = s.overlay_seconds;
  document.getElementById('stopFadeTime').value = s.stop_fade_seconds;
  select.value = s.easing;

  const save = async () => {
    const data = await api('/api/settings', {
      overlay_seconds: document.getElementById('overlayTime').value,
      stop_fade_seconds: document.getElementById('stopFadeTime').value,
      easing: select.value,
    });
    document.getElementById('overlayTime').value = data.overlay_seconds;
    document.getElementById('stopFadeTime').value = data.stop_fade_seconds;
  };
  ['overlayTime', 'stopFadeTime', 'overlayCurve'].forEach((id) =>
    document.getElementById(id).addEventListener('change', save));
}

async function poll() {
  try {
    const state = await api('/api/state');
    Object.entries(cards).forEach(([key, c]) => {
      const playing = state.playing.includes(key);
      c.card.classList.toggle('playing', playing);
      c.play.textContent = playing ? 'Stop' : 'Play';
      const p = state.progress[key];
      c.bar.style.width = p === undefined ? '0' : (p * 100) + '%';
    });
    if (state.status) setStatus(state.status, state.status_is_error);
  } catch (e) {
    setStatus('Connection lost', true);
  }
}

document.addEventListener('keydown', (e) => {
  if (e.target.tagName === 'INPUT' || e.target.tagName === 'SELECT') return;
  if (/^[0-9]$/.test(e.key)) playTrack({hotkey: e.key});
});

initSettings();
loadTracks('library', 'library');
loadTracks('bundled', 'bundled');
setInterval(poll, 250);
poll();
</script>
</body>
</html>"""


# =========================================================================
# FLASK APP
# =========================================================================

def _error(message, status, **extra):
    payload = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


def create_flask_app(player, app_version: str = APP_VERSION):
    """Create and configure the Flask app."""
    app = Flask(__name__)
    app.logger.setLevel(logging.WARNING)  # Suppress request logs

    # Suppress werkzeug logs
    wlog = logging.getLogger('werkzeug')
    wlog.setLevel(logging.ERROR)

    flags = {"shutting_down": False}
    update_lock = threading.Lock()

    def _list_files(category):
        try:
            files = player.registry.list_filenames(category)
        except TrackListingError as e:
            logger.error(str(e))
            return _error("Failed to read audio directory", 500)
        return jsonify({"files": files})

    def _serve_audio(category, requested):
        base_dir, _ = player.registry.sources[category]
        file_path = safe_resolve(base_dir, requested)
        if file_path is None:
            return Response("Forbidden", status=403)
        if not is_audio_file(file_path) or not os.path.isfile(file_path):
            return Response("Not Found", status=404)
        return send_file(file_path, mimetype=get_content_type(file_path), conditional=True)

    def _json_body():
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    def _track_from(body):
        return player.resolve_track(key=body.get("track"), hotkey=body.get("hotkey"))

    def _wait_timeout():
        settings = player.settings
        return max(settings.overlay_seconds, settings.stop_fade_seconds) + COMMAND_TIMEOUT

    def _transition_response(action, body):
        try:
            track = _track_from(body)
        except UnknownTrackError as e:
            return _error(str(e), 404)

        wait = parse_bool(str(body.get("wait", "")))
        try:
            outcome = action(track, wait=wait, timeout=_wait_timeout())
        except PlaybackStartFailure as e:
            return _error(str(e), 422, track=track.key)
        except FutureTimeoutError:
            outcome = None

        return jsonify({
            "track": track.key,
            "outcome": outcome.name.lower() if outcome else "pending",
            "state": player.snapshot(),
        })

    # ---------------------------------------------------------------------
    # Page & files
    # ---------------------------------------------------------------------

    @app.route('/')
    def index():
        return Response(PLAYER_HTML, mimetype='text/html')

    @app.route('/audio/<path:requested>', methods=['GET', 'HEAD'])
    def audio_file(requested):
        return _serve_audio(CATEGORY_LIBRARY, requested)

    @app.route('/assets/audio/<path:requested>', methods=['GET', 'HEAD'])
    def assets_audio_file(requested):
        return _serve_audio(CATEGORY_BUNDLED, requested)

    @app.route('/qr.png')
    def qr_code():
        url = f"http://{get_local_ip()}:{app.config.get('PLAYER_PORT', SERVER_PORT)}"

        qr = qrcode.QRCode(version=1, box_size=8, border=2)
        qr.add_data(url)
        qr.make(fit=True)
        img = qr.make_image(fill_color="white", back_color="#0d1117")

        buf = io.BytesIO()
        img.save(buf, format='PNG')
        buf.seek(0)
        return Response(buf.getvalue(), mimetype='image/png')

    # ---------------------------------------------------------------------
    # Listing & info
    # ---------------------------------------------------------------------

    @app.route('/api/audio')
    def api_audio():
        return _list_files(CATEGORY_LIBRARY)

    @app.route('/api/assets-audio')
    def api_assets_audio():
        return _list_files(CATEGORY_BUNDLED)

    @app.route('/api/tracks')
    def api_tracks():
        category = request.args.get('category', CATEGORY_LIBRARY)
        if category not in player.registry.sources:
            return _error(f"Unknown category: {category}", 400)
        try:
            if parse_bool(request.args.get('refresh')):
                player.refresh_tracks()
            tracks = player.list_tracks(category)
        except TrackListingError as e:
            logger.error(str(e))
            return _error("Failed to read audio directory", 500)
        return jsonify({"category": category, "tracks": tracks})

    @app.route('/api/version')
    def api_version():
        return jsonify({"version": app_version})

    # ---------------------------------------------------------------------
    # Playback control
    # ---------------------------------------------------------------------

    @app.route('/api/state')
    def api_state():
        return jsonify(player.snapshot())

    @app.route('/api/play', methods=['POST'])
    def api_play():
        return _transition_response(player.play_track, _json_body())

    @app.route('/api/stop', methods=['POST'])
    def api_stop():
        return _transition_response(player.stop_track, _json_body())

    @app.route('/api/volume', methods=['POST'])
    def api_volume():
        body = _json_body()
        try:
            track = _track_from(body)
        except UnknownTrackError as e:
            return _error(str(e), 404)
        try:
            gain = float(body.get("gain"))
        except (TypeError, ValueError):
            return _error("gain must be a number between 0 and 1", 400)
        gain = player.set_volume(track, gain)
        return jsonify({"track": track.key, "volume": gain,
                        "volume_label": format_percent(gain)})

    @app.route('/api/settings', methods=['GET', 'POST'])
    def api_settings():
        if request.method == 'GET':
            return jsonify(player.get_settings())
        body = _json_body()
        return jsonify(player.update_settings(
            overlay_seconds=body.get("overlay_seconds"),
            stop_fade_seconds=body.get("stop_fade_seconds"),
            easing=body.get("easing"),
        ))

    # ---------------------------------------------------------------------
    # Server lifecycle & updates
    # ---------------------------------------------------------------------

    @app.route('/api/shutdown', methods=['POST'])
    def api_shutdown():
        if flags["shutting_down"]:
            return jsonify({"message": "Server is already stopping"}), 409
        flags["shutting_down"] = True
        logger.info("Shutdown requested. Stopping server...")
        player.request_shutdown()
        return jsonify({"message": "Server is stopping"})

    @app.route('/api/update/check')
    def api_update_check():
        allow_prerelease = parse_bool(request.args.get('allowPrerelease'))
        try:
            return jsonify(updater.check_for_update(app_version, allow_prerelease))
        except UpdateError as e:
            logger.error(f"Update check failed: {e}")
            return _error("Could not check for updates", 500, details=str(e))

    @app.route('/api/update/apply', methods=['POST'])
    def api_update_apply():
        if not update_lock.acquire(blocking=False):
            return jsonify({"message": "An update is already running"}), 409
        try:
            allow_prerelease = parse_bool(request.args.get('allowPrerelease'))
            result = updater.apply_update(app_version, allow_prerelease)
            if not result['updated']:
                return jsonify({"message": "The latest version is already installed"})
            player.request_shutdown()
            return jsonify({"message": "Update installed. The server will restart.",
                            "version": result['version']})
        except UpdateError as e:
            logger.error(f"Update apply failed: {e}")
            return _error("Could not install the update", 500, details=str(e))
        finally:
            update_lock.release()

    return app


# =========================================================================
# SERVER MANAGER
# =========================================================================

class PlayerWebServer:
    """
    Manages the Flask web server lifecycle.

    Usage:
        server = PlayerWebServer(player)
        server.start()        # Non-blocking, runs in thread
        ...
        server.stop()
    """

    def __init__(self, player, host: str = "0.0.0.0", port: int = SERVER_PORT):
        self.player = player
        self.host = host
        self.port = port
        self._thread: Optional[threading.Thread] = None
        self._server = None
        self.running = False
        self.url = ""

    def start(self) -> str:
        """Start the web server. Returns the URL."""
        if self.running:
            return self.url

        ip = get_local_ip()
        self.url = f"http://{ip}:{self.port}"

        app = create_flask_app(self.player)
        app.config['PLAYER_PORT'] = self.port

        # Use werkzeug's make_server for clean shutdown
        from werkzeug.serving import make_server
        self._server = make_server(self.host, self.port, app, threaded=True)

        def _run():
            logger.info(f"Web server starting on {self.url}")
            try:
                self._server.serve_forever()
            except Exception as e:
                logger.error(f"Web server error: {e}")
            finally:
                self.running = False
                logger.info("Web server stopped")

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()
        self.running = True

        logger.info(f"Player available at: {self.url}")
        return self.url

    def stop(self):
        """Stop the web server."""
        if self._server:
            self._server.shutdown()
            self._server = None
        self.running = False
        logger.info("Web server shutdown requested")

    def get_url(self) -> str:
        return self.url if self.running else ""
