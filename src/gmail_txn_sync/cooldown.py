"""Process-wide rate-limit cooldown for the classification service."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from .constants import AI_COOLDOWN_LOG_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class Cooldown:
    """A single shared "cooldown-until" deadline.

    ``extend`` only ever moves the deadline forward, so concurrent rate-limit
    signals leave it at the latest of the requested deadlines regardless of
    arrival order.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        log_interval: float = AI_COOLDOWN_LOG_INTERVAL_SECONDS,
    ) -> None:
        self._clock = clock
        self._log_interval = log_interval
        self._lock = threading.Lock()
        self._until = 0.0
        self._last_log = float("-inf")

    @property
    def until(self) -> float:
        with self._lock:
            return self._until

    def active(self) -> bool:
        return self._clock() < self.until

    def remaining(self) -> float:
        return max(0.0, self.until - self._clock())

    def extend(self, seconds: float) -> float:
        """Push the deadline to ``now + seconds`` unless it is already later."""
        now = self._clock()
        with self._lock:
            self._until = max(self._until, now + seconds)
            until = self._until
            should_log = now - self._last_log > self._log_interval
            if should_log:
                self._last_log = now

        if should_log:
            logger.info("Classification service rate-limited; cooling down for ~%ss", int(seconds))
        return until

    def reset(self) -> None:
        with self._lock:
            self._until = 0.0
            self._last_log = float("-inf")


# Shared by every classifier in the process
AI_COOLDOWN = Cooldown()
