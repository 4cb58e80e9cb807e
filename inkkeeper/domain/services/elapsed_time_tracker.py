"""Elapsed reading time accounting for the timer screen."""

import logging
import math
from datetime import datetime
from typing import Optional

from ..clock import Clock, as_utc, utc_now

logger = logging.getLogger(__name__)


class ElapsedTimeTracker:
    """
    Counts active reading seconds, tolerant of the app being suspended.

    ``tick()`` is driven once per second by the host's repeating timer.
    While the app is suspended that timer may starve, so the suspended
    interval is measured from wall-clock timestamps on resume instead.
    Ticks that still arrive while suspended are ignored, which keeps the
    total equal to the wall-clock running time either way.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self.accumulated_seconds: int = 0
        self.is_running: bool = False
        self.backgrounded_at: Optional[datetime] = None

    @property
    def is_suspended(self) -> bool:
        return self.backgrounded_at is not None

    def start(self) -> None:
        if self.is_running:
            return
        self.is_running = True

    def pause(self) -> None:
        self.is_running = False
        self.backgrounded_at = None

    def tick(self) -> None:
        if self.is_running and not self.is_suspended:
            self.accumulated_seconds += 1

    def on_suspend(self) -> None:
        if self.is_running and not self.is_suspended:
            self.backgrounded_at = self._clock()

    def on_resume(self) -> int:
        """Credit the suspended interval.

        Returns:
            int: Seconds added to the total.
        """
        if not self.is_running or self.backgrounded_at is None:
            self.backgrounded_at = None
            return 0

        gap = (as_utc(self._clock()) - as_utc(self.backgrounded_at)).total_seconds()
        delta = max(0, math.floor(gap))
        self.accumulated_seconds += delta
        self.backgrounded_at = None
        logger.debug(f"Resumed after {gap:.1f}s in background, credited {delta}s")
        return delta

    def reset(self) -> None:
        self.accumulated_seconds = 0
        self.is_running = False
        self.backgrounded_at = None
