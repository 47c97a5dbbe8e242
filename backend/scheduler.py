"""
Frame scheduler: the player's equivalent of requestAnimationFrame.

Fades and the progress bar advance one step per frame. Whoever owns the
scheduler decides when a frame happens: the PlayerLoop thread calls
run_frame() every FRAME_INTERVAL, tests call it by hand with a fake clock.
"""

import time
import logging
from typing import Callable, List

logger = logging.getLogger("WWWPlayer.Scheduler")


class FrameScheduler:
    """
    Queue of callbacks for the next frame.

    Callbacks receive the frame timestamp in milliseconds. A callback that
    schedules itself again runs on the following frame, never twice in the
    same one.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            clock: Returns the current time in seconds
        """
        self._clock = clock
        self._pending: List[Callable[[float], None]] = []
        self.frame_count = 0

    def now(self) -> float:
        """Current time in milliseconds."""
        return self._clock() * 1000.0

    def schedule_frame(self, callback: Callable[[float], None]) -> None:
        self._pending.append(callback)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def run_frame(self) -> int:
        """Run every callback queued before this frame. Returns how many ran."""
        callbacks, self._pending = self._pending, []
        if not callbacks:
            return 0

        now = self.now()
        self.frame_count += 1
        for callback in callbacks:
            try:
                callback(now)
            except Exception as e:
                logger.exception(f"Error in frame callback: {e}")
        return len(callbacks)

    def clear(self) -> None:
        self._pending = []
