"""
Player loop: the single thread that owns the playback session.

Web requests arrive on werkzeug's worker threads, but the session, its
units and its fades are single-threaded. Every request is therefore put
on a command queue and executed here, between frames. Each iteration:

1. runs queued commands (play, stop, volume, settings, snapshot)
2. polls the media backend for units that ended or failed
3. runs one frame of scheduled callbacks (fade steps, progress ticks)
"""

import time
import queue
import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional

from config import FRAME_INTERVAL, COMMAND_TIMEOUT

logger = logging.getLogger("WWWPlayer.PlayerLoop")


class PlayerLoop:
    """
    Usage:
        loop = PlayerLoop(scheduler, media)
        loop.start()                                 # Non-blocking, runs in thread
        future = loop.call(session.request_play, track)
        ...
        loop.stop()
    """

    def __init__(self, scheduler, media, frame_interval: float = FRAME_INTERVAL):
        self.scheduler = scheduler
        self.media = media
        self.frame_interval = frame_interval
        self._commands: "queue.Queue" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._stop = False
        self.running = False

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        """Queue fn to run on the loop thread. Returns a Future with its result."""
        future = Future()
        if threading.current_thread() is self._thread:
            self._execute(fn, args, kwargs, future)
        else:
            self._commands.put((fn, args, kwargs, future))
        return future

    def call(self, fn: Callable, *args, timeout: float = COMMAND_TIMEOUT, **kwargs):
        """Run fn on the loop thread and wait for its return value."""
        return self.submit(fn, *args, **kwargs).result(timeout)

    def _execute(self, fn, args, kwargs, future):
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            logger.debug(f"Command {getattr(fn, '__name__', fn)} raised {e!r}")
            future.set_exception(e)
        else:
            future.set_result(result)

    def _drain_commands(self) -> int:
        count = 0
        while True:
            try:
                fn, args, kwargs, future = self._commands.get_nowait()
            except queue.Empty:
                return count
            self._execute(fn, args, kwargs, future)
            count += 1

    # =========================================================================
    # LOOP
    # =========================================================================

    def run_once(self) -> None:
        """One iteration: commands, media polling, one frame."""
        self._drain_commands()
        self.media.poll()
        self.scheduler.run_frame()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop = False
        self._thread = threading.Thread(target=self._run, name="player-loop", daemon=True)
        self._thread.start()
        self.running = True

    def _run(self) -> None:
        logger.debug("Player loop started")
        while not self._stop:
            started = time.monotonic()
            try:
                self.run_once()
            except Exception as e:
                logger.exception(f"Player loop error: {e}")
            elapsed = time.monotonic() - started
            time.sleep(max(0.0, self.frame_interval - elapsed))

        # Commands queued after stop() still get an answer
        self._drain_commands()
        self.running = False
        logger.debug("Player loop stopped")

    def stop(self, timeout: float = 2.0) -> None:
        self._stop = True
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        self.running = False
