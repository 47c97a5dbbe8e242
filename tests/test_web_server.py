import json
import os
import time

import pytest

from backend.errors import TrackListingError, UpdateError
from backend.player import Player
from backend.settings import PlaybackSettings
from backend.tracks import TrackRegistry
from backend.volume_store import VolumeStore
from backend.web_server import create_flask_app, safe_resolve
from tests.conftest import FakeMedia

AUDIO_BYTES = bytes(range(100))


@pytest.fixture
def audio_dirs(tmp_path):
    library = tmp_path / "audio"
    library.mkdir()
    (library / "alpha.mp3").write_bytes(AUDIO_BYTES)
    (library / "bravo.wav").write_bytes(AUDIO_BYTES)
    (library / "notes.txt").write_text("not audio")
    (tmp_path / "secret.mp3").write_bytes(b"secret")
    return {
        "library": (str(library), "/audio/"),
        "bundled": (str(tmp_path / "assets" / "audio"), "/assets/audio/"),
    }


@pytest.fixture
def media():
    return FakeMedia(time.monotonic)


@pytest.fixture
def player(audio_dirs, media, prefs_file):
    player = Player(
        media=media,
        registry=TrackRegistry(audio_dirs),
        volumes=VolumeStore(),
        settings=PlaybackSettings(overlay_seconds=0, stop_fade_seconds=0),
        frame_interval=0.001,
    )
    player.start()
    yield player
    player.shutdown()


@pytest.fixture
def client(player):
    app = create_flask_app(player)
    app.config['TESTING'] = True
    return app.test_client()


def post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type='application/json')


# =============================================================================
# PAGE, LISTINGS, FILES
# =============================================================================

def test_index_page(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.mimetype == 'text/html'
    assert b"WWW Player" in response.data


def test_list_audio_files(client):
    assert client.get('/api/audio').get_json() == {"files": ["alpha.mp3", "bravo.wav"]}
    assert client.get('/api/assets-audio').get_json() == {"files": []}


def test_list_audio_error(client, player, monkeypatch):
    def broken(category):
        raise TrackListingError("permission denied")

    monkeypatch.setattr(player.registry, "list_filenames", broken)
    response = client.get('/api/audio')
    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to read audio directory"}


def test_list_tracks(client):
    data = client.get('/api/tracks?category=library').get_json()
    assert data["category"] == "library"
    first = data["tracks"][0]
    assert first["key"] == "library:alpha.mp3"
    assert first["hotkey"] == "1"
    assert first["volume"] == 1.0
    assert first["volume_label"] == "100%"

    assert client.get('/api/tracks?category=podcasts').status_code == 400


def test_version(client):
    assert client.get('/api/version').get_json() == {"version": "1.4.0"}


def test_serve_audio_file(client):
    response = client.get('/audio/alpha.mp3')
    assert response.status_code == 200
    assert response.mimetype == 'audio/mpeg'
    assert response.data == AUDIO_BYTES
    assert response.headers['Accept-Ranges'] == 'bytes'

    head = client.head('/audio/bravo.wav')
    assert head.status_code == 200
    assert head.mimetype == 'audio/wav'


def test_serve_audio_byte_range(client):
    response = client.get('/audio/alpha.mp3', headers={'Range': 'bytes=10-19'})
    assert response.status_code == 206
    assert response.headers['Content-Range'] == 'bytes 10-19/100'
    assert response.data == AUDIO_BYTES[10:20]

    response = client.get('/audio/alpha.mp3', headers={'Range': 'bytes=500-'})
    assert response.status_code == 416


def test_m4a_is_served_but_not_offered_for_playback(client, audio_dirs):
    library_dir, _ = audio_dirs["library"]
    with open(os.path.join(library_dir, "jingle.m4a"), "wb") as f:
        f.write(AUDIO_BYTES)

    assert "jingle.m4a" in client.get('/api/audio').get_json()["files"]
    response = client.get('/audio/jingle.m4a')
    assert response.status_code == 200
    assert response.mimetype == 'audio/mp4'

    tracks = client.get('/api/tracks?category=library&refresh=1').get_json()["tracks"]
    assert [t["key"] for t in tracks] == ["library:alpha.mp3", "library:bravo.wav"]
    assert post(client, '/api/play', {"track": "library:jingle.m4a"}).status_code == 404


def test_serve_audio_rejects_non_audio_and_missing(client):
    assert client.get('/audio/notes.txt').status_code == 404
    assert client.get('/audio/missing.mp3').status_code == 404
    assert client.get('/assets/audio/alpha.mp3').status_code == 404


def test_serve_audio_never_leaves_the_directory(client):
    response = client.get('/audio/..%2Fsecret.mp3')
    assert response.status_code in (403, 404)
    assert response.data != b"secret"


def test_safe_resolve(tmp_path):
    base = str(tmp_path)
    assert safe_resolve(base, "../secret.mp3") is None
    assert safe_resolve(base, "") is None
    assert safe_resolve(base, "a/../../b.mp3") is None
    assert safe_resolve(base, "sub/a.mp3") == os.path.join(os.path.realpath(base), "sub", "a.mp3")


def test_qr_code(client):
    response = client.get('/qr.png')
    assert response.status_code == 200
    assert response.mimetype == 'image/png'
    assert response.data.startswith(b"\x89PNG")


# =============================================================================
# PLAYBACK CONTROL
# =============================================================================

def test_play_and_stop(client, media):
    response = post(client, '/api/play', {"track": "library:alpha.mp3"})
    assert response.status_code == 200
    data = response.get_json()
    assert data["outcome"] == "completed"
    assert data["state"]["playing"] == ["library:alpha.mp3"]
    assert data["state"]["current"]["key"] == "library:alpha.mp3"
    assert data["state"]["session"] == "playing"

    response = post(client, '/api/stop', {"track": "library:alpha.mp3", "wait": True})
    assert response.get_json()["outcome"] == "completed"

    state = client.get('/api/state').get_json()
    assert state["playing"] == []
    assert state["current"] is None
    assert state["status"] == "Stopped: alpha"
    assert media.live() == []


def test_track_is_decoded_off_the_player_loop(client, media):
    post(client, '/api/play', {"track": "library:alpha.mp3"})

    [(key, thread_name)] = media.preloaded
    assert key == "library:alpha.mp3"
    assert thread_name != "player-loop"


def test_play_by_hotkey(client):
    data = post(client, '/api/play', {"hotkey": "2"}).get_json()
    assert data["track"] == "library:bravo.wav"


def test_play_unknown_track(client):
    assert post(client, '/api/play', {"track": "library:nope.mp3"}).status_code == 404
    assert post(client, '/api/play', {"hotkey": "7"}).status_code == 404


def test_play_start_failure(client, media):
    post(client, '/api/play', {"track": "library:alpha.mp3"})
    media.failing.add("library:bravo.wav")

    response = post(client, '/api/play', {"track": "library:bravo.wav"})

    assert response.status_code == 422
    assert response.get_json()["track"] == "library:bravo.wav"
    state = client.get('/api/state').get_json()
    assert state["playing"] == ["library:alpha.mp3"]
    assert state["status_is_error"]


def test_stop_track_that_is_not_playing(client):
    data = post(client, '/api/stop', {"track": "library:alpha.mp3"}).get_json()
    assert data["outcome"] == "ignored"


def test_play_with_wait_through_a_crossfade(client, player):
    player.update_settings(overlay_seconds=0.05)
    post(client, '/api/play', {"track": "library:alpha.mp3"})

    data = post(client, '/api/play', {"track": "library:bravo.wav", "wait": "true"}).get_json()

    assert data["outcome"] == "completed"
    assert data["state"]["playing"] == ["library:bravo.wav"]


def test_method_not_allowed(client):
    assert client.get('/api/play').status_code == 405
    assert client.put('/audio/alpha.mp3').status_code == 405


def test_volume(client, player):
    post(client, '/api/play', {"track": "library:alpha.mp3"})
    response = post(client, '/api/volume', {"track": "library:alpha.mp3", "gain": 0.25})
    assert response.get_json() == {"track": "library:alpha.mp3", "volume": 0.25, "volume_label": "25%"}

    tracks = client.get('/api/tracks?category=library').get_json()["tracks"]
    assert tracks[0]["volume"] == 0.25
    assert player.snapshot()["current"]["gain"] == pytest.approx(0.25)

    assert post(client, '/api/volume', {"track": "library:alpha.mp3", "gain": "loud"}).status_code == 400


def test_settings(client, prefs_file):
    assert client.get('/api/settings').get_json() == {
        'overlay_seconds': 0.0, 'stop_fade_seconds': 0.0, 'easing': 'linear',
    }

    data = post(client, '/api/settings', {"overlay_seconds": "2", "easing": "ease-in"}).get_json()
    assert data == {'overlay_seconds': 2.0, 'stop_fade_seconds': 0.0, 'easing': 'ease-in'}

    saved = json.loads(prefs_file.read_text())
    assert saved["player:overlayTime"] == 2.0
    assert saved["player:overlayCurve"] == "ease-in"


# =============================================================================
# LIFECYCLE & UPDATES
# =============================================================================

def test_shutdown(client, player):
    response = client.post('/api/shutdown')
    assert response.status_code == 200
    assert client.post('/api/shutdown').status_code == 409
    assert player.shutdown_requested.wait(2.0)


def test_update_check(client, monkeypatch):
    def fake_fetch(url, timeout=None):
        return {"tag_name": "v1.5.0", "name": "Spring", "html_url": "https://example.org/r",
                "tarball_url": "https://example.org/t.tar.gz"}

    monkeypatch.setattr("utils.updater.fetch_json", fake_fetch)
    data = client.get('/api/update/check').get_json()
    assert data == {
        'current_version': '1.4.0',
        'latest_version': '1.5.0',
        'has_update': True,
        'release_url': 'https://example.org/r',
        'is_prerelease': False,
        'release_name': 'Spring',
    }


def test_update_check_failure(client, monkeypatch):
    def offline(url, timeout=None):
        raise UpdateError("network unreachable")

    monkeypatch.setattr("utils.updater.fetch_json", offline)
    response = client.get('/api/update/check')
    assert response.status_code == 500
    assert response.get_json()["details"] == "network unreachable"


def test_update_apply_restarts(client, player, monkeypatch):
    monkeypatch.setattr("utils.updater.apply_update",
                        lambda current, allow_prerelease: {'updated': True, 'version': '1.5.0'})
    response = client.post('/api/update/apply')
    assert response.get_json()["version"] == "1.5.0"
    assert player.shutdown_requested.wait(2.0)


def test_update_apply_when_current(client, player, monkeypatch):
    monkeypatch.setattr("utils.updater.apply_update",
                        lambda current, allow_prerelease: {'updated': False, 'version': current})
    response = client.post('/api/update/apply')
    assert response.status_code == 200
    assert not player.shutdown_requested.is_set()


def test_update_apply_failure_is_json(client, player, monkeypatch):
    def broken(current, allow_prerelease):
        raise UpdateError("Could not install the release files: Permission denied")

    monkeypatch.setattr("utils.updater.apply_update", broken)
    response = client.post('/api/update/apply')
    assert response.status_code == 500
    assert response.get_json()["error"] == "Could not install the update"
    assert not player.shutdown_requested.is_set()
    # The lock is released again
    monkeypatch.setattr("utils.updater.apply_update",
                        lambda current, allow_prerelease: {'updated': False, 'version': current})
    assert client.post('/api/update/apply').status_code == 200
