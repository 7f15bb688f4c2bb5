"""
Request epoch tracking.

An epoch identifies the currently authoritative request. Async continuations
capture the epoch at dispatch time and must check ``is_current`` before they
mutate shared state. Superseded work is abandoned, never queued.
"""

import asyncio
from typing import Callable, Optional

from .logging_config import get_logger


logger = get_logger("epoch")


class EpochTracker:
    """Monotonic request counter with a single pending completion timer."""

    def __init__(self):
        self._epoch = 0
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def current(self) -> int:
        """The live epoch."""
        return self._epoch

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def begin_new_request(self) -> int:
        """
        Invalidate all in-flight work and return the new live epoch.

        Any completion timer scheduled for an earlier request is cancelled.
        """
        self.cancel_pending()
        self._epoch += 1
        logger.debug(f"Epoch advanced to {self._epoch}")
        return self._epoch

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def schedule(self, epoch: int, delay: float, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` after ``delay`` seconds if ``epoch`` is still live.

        Replaces any previously scheduled completion timer.

        Args:
            epoch: Epoch captured by the caller
            delay: Delay in seconds
            callback: Synchronous state mutation to run
        """
        if not self.is_current(epoch):
            return

        self.cancel_pending()
        loop = asyncio.get_running_loop()

        def _fire():
            self._pending = None
            if not self.is_current(epoch):
                logger.debug(f"Skipping completion timer for stale epoch {epoch}")
                return
            callback()

        self._pending = loop.call_later(delay, _fire)
