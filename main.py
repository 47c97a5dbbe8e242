#!/usr/bin/env python3
"""
WWW Player - Network Soundboard

Plays the audio files of a folder on this machine, with crossfades between
tracks and fade-outs on stop. Any phone or laptop on the same network can
trigger tracks from the browser.

Usage:
    python main.py [--host HOST] [--port PORT] [--debug] [--no-browser]
"""

import os
import sys

# Must be done BEFORE importing pygame (which happens in backend imports)
os.environ['PYGAME_HIDE_SUPPORT_PROMPT'] = "1"

import logging
import argparse
import webbrowser
from datetime import datetime

# Ensure we can import from our package
sys.path.insert(0, os.path.dirname(__file__))

from config import APP_NAME, APP_VERSION, SERVER_HOST, SERVER_PORT, AUDIO_DIR, LOG_DIR


# =============================================================================
# UTILS
# =============================================================================

def setup_logging(debug: bool = False) -> logging.Logger:
    os.makedirs(LOG_DIR, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(LOG_DIR, f"www_player_{timestamp}.log")

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler(log_file)]
    )
    return logging.getLogger("WWWPlayer")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--host", default=SERVER_HOST)
    parser.add_argument("--port", type=int, default=SERVER_PORT)
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--no-browser", action="store_true",
                        help="don't open the player page on startup")
    return parser.parse_args(argv)


# =============================================================================
# MAIN
# =============================================================================

def main(argv=None):
    args = parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.info(f"{APP_NAME} {APP_VERSION} starting")
    logger.info(f"Audio folder: {AUDIO_DIR}")

    # Late import so pygame sees the environment set above
    from backend.player import Player
    from backend.web_server import PlayerWebServer

    player = Player()
    server = PlayerWebServer(player, host=args.host, port=args.port)

    try:
        player.start()
        url = server.start()
    except OSError as e:
        logger.error(f"Could not start server on port {args.port}: {e}")
        player.shutdown()
        return 1

    if not args.no_browser:
        webbrowser.open(f"http://localhost:{args.port}")

    try:
        # Event.wait with a timeout keeps Ctrl+C responsive on Windows
        while not player.shutdown_requested.wait(0.5):
            pass
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        server.stop()
        player.shutdown()
        logger.info(f"{APP_NAME} exiting ({url})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
