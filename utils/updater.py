"""
Self-update from GitHub releases.

Checks the repository's releases for a newer version and installs it by
downloading the release tarball and copying its contents over the app
directory. The caller restarts the process afterwards.
"""

import os
import re
import sys
import json
import time
import shutil
import logging
import tarfile
import tempfile
import urllib.request
from typing import Any, Dict, Optional

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from config import GITHUB_API_URL, UPDATE_USER_AGENT, UPDATE_TIMEOUT, BASE_DIR
from backend.errors import UpdateError

logger = logging.getLogger("WWWPlayer.Updater")

# Number of retry attempts per download
MAX_RETRIES = 3

_RELEASE_VERSION_RE = re.compile(r'v(\d+(?:\.\d+)*)', re.IGNORECASE)


# =============================================================================
# VERSIONS
# =============================================================================

def normalize_version(version) -> Optional[str]:
    """Strip a leading "v" and whitespace. Non-strings are None."""
    if not isinstance(version, str):
        return None
    return re.sub(r'^v', '', version.strip(), flags=re.IGNORECASE).strip()


def _version_parts(version):
    parts = []
    for part in version.split('.'):
        match = re.match(r'\d+', part)
        parts.append(int(match.group()) if match else 0)
    return parts


def compare_versions(a, b) -> int:
    """
    Compare dotted versions numerically.

    Returns 1 if a > b, -1 if a < b, 0 if equal or either is unusable.
    Missing parts count as 0, so "1.2" == "1.2.0".
    """
    left = normalize_version(a)
    right = normalize_version(b)
    if not left or not right:
        return 0

    left_parts = _version_parts(left)
    right_parts = _version_parts(right)
    max_len = max(len(left_parts), len(right_parts))
    left_parts += [0] * (max_len - len(left_parts))
    right_parts += [0] * (max_len - len(right_parts))

    for l, r in zip(left_parts, right_parts):
        if l > r:
            return 1
        if l < r:
            return -1
    return 0


def parse_release_version(release) -> Optional[str]:
    """First "v<digits>" found in the release's tag name, then its name."""
    if not release:
        return None
    for value in (release.get('tag_name'), release.get('name')):
        if not isinstance(value, str):
            continue
        match = _RELEASE_VERSION_RE.search(value)
        if match:
            return match.group(1)
    return None


# =============================================================================
# GITHUB API
# =============================================================================

def fetch_json(url: str, timeout: float = UPDATE_TIMEOUT):
    """GET a JSON document. urllib follows redirects on its own."""
    req = urllib.request.Request(url, headers={'User-Agent': UPDATE_USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            if response.status != 200:
                raise UpdateError(f"GitHub API responded with status {response.status}")
            return json.loads(response.read().decode('utf-8'))
    except UpdateError:
        raise
    except (OSError, ValueError) as e:
        raise UpdateError(f"Request to {url} failed: {e}") from e


def fetch_latest_prerelease() -> Optional[Dict[str, Any]]:
    releases = fetch_json(f"{GITHUB_API_URL}/releases?per_page=20")
    if not isinstance(releases, list):
        return None
    for release in releases:
        if release and not release.get('draft') and release.get('prerelease'):
            return release
    return None


def _release_info(release, version, is_prerelease):
    release = release or {}
    return {
        'latest_version': version,
        'tarball_url': release.get('tarball_url'),
        'html_url': release.get('html_url'),
        'is_prerelease': is_prerelease,
        'release_name': release.get('name'),
    }


def get_latest_release_info(current_version: str, allow_prerelease: bool = False) -> Dict[str, Any]:
    """
    Find the newest release to offer.

    The latest stable release wins if it is newer than current_version;
    otherwise, when allowed, the newest non-draft prerelease is tried. If
    nothing is newer, the latest stable release is reported anyway.
    """
    release = fetch_json(f"{GITHUB_API_URL}/releases/latest")
    release_version = parse_release_version(release)

    if release_version and compare_versions(release_version, current_version) > 0:
        return _release_info(release, release_version, False)

    if allow_prerelease:
        prerelease = fetch_latest_prerelease()
        prerelease_version = parse_release_version(prerelease)
        if prerelease_version and compare_versions(prerelease_version, current_version) > 0:
            return _release_info(prerelease, prerelease_version, True)

    return _release_info(release, release_version, False)


def check_for_update(current_version: str, allow_prerelease: bool = False) -> Dict[str, Any]:
    """Update summary as served by /api/update/check."""
    info = get_latest_release_info(current_version, allow_prerelease)
    latest = info['latest_version'] or None
    has_update = compare_versions(latest, current_version) > 0 if latest else False
    return {
        'current_version': current_version,
        'latest_version': latest,
        'has_update': has_update,
        'release_url': info['html_url'] or None,
        'is_prerelease': bool(info['is_prerelease']),
        'release_name': info['release_name'] or None,
    }


# =============================================================================
# INSTALL
# =============================================================================

def _download_with_retry(url, dest_path, max_retries=MAX_RETRIES, timeout=UPDATE_TIMEOUT):
    """
    Download a file with retry logic and timeout.

    Raises:
        UpdateError on final failure
    """
    last_error = None

    for attempt in range(max_retries):
        try:
            if attempt > 0:
                wait = min(2 ** attempt, 10)  # exponential backoff, max 10s
                time.sleep(wait)

            req = urllib.request.Request(url, headers={'User-Agent': UPDATE_USER_AGENT})
            with urllib.request.urlopen(req, timeout=timeout) as response, open(dest_path, 'wb') as f:
                shutil.copyfileobj(response, f, 65536)
            return

        except OSError as e:
            last_error = e
            logger.warning(f"Download attempt {attempt + 1}/{max_retries} failed: {e}")
            # Clean up partial download
            if os.path.exists(dest_path):
                os.remove(dest_path)

    raise UpdateError(f"Download failed after {max_retries} attempts: {last_error}")


def _find_extracted_root(temp_dir, archive_name):
    for entry in sorted(os.scandir(temp_dir), key=lambda e: e.name):
        if entry.is_dir() and entry.name != archive_name:
            return entry.path
    raise UpdateError("Could not find the contents of the release archive")


def apply_update(current_version: str, allow_prerelease: bool = False,
                 target_dir: str = BASE_DIR) -> Dict[str, Any]:
    """
    Download and install the newest release over target_dir.

    Returns:
        {'updated': bool, 'version': str or None}
    """
    info = get_latest_release_info(current_version, allow_prerelease)
    latest = info['latest_version'] or None
    has_update = compare_versions(latest, current_version) > 0 if latest else False

    if not has_update:
        logger.info("Already on the latest version")
        return {'updated': False, 'version': current_version}

    if not info['tarball_url']:
        raise UpdateError("Could not find a release archive to download")

    logger.info(f"Installing version {latest} from {info['tarball_url']}")
    with tempfile.TemporaryDirectory(prefix='www-player-update-') as temp_dir:
        archive_path = os.path.join(temp_dir, 'release.tar.gz')
        _download_with_retry(info['tarball_url'], archive_path)

        try:
            with tarfile.open(archive_path, 'r:gz') as archive:
                archive.extractall(temp_dir, filter='data')
        except (tarfile.TarError, OSError) as e:
            raise UpdateError(f"Could not unpack the release archive: {e}") from e

        extracted_root = _find_extracted_root(temp_dir, 'release.tar.gz')
        try:
            shutil.copytree(extracted_root, target_dir, dirs_exist_ok=True)
        except OSError as e:
            raise UpdateError(f"Could not install the release files: {e}") from e

    logger.info(f"Update to {latest} installed")
    return {'updated': True, 'version': latest}
