"""Fixed-window rate limiting keyed by client address."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
DEFAULT_WINDOW = 15 * 60


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float


class FixedWindowRateLimiter:
    """
    Counts hits per key inside fixed windows.

    The counter update is a read-modify-write under one lock, so concurrent
    requests from the same address cannot both take the last slot.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT, window: int = DEFAULT_WINDOW,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
            self._prune(now)

        reset_at = started + self.window
        if count > self.limit:
            logger.info(f"Rate limit exceeded for {key}")
            return RateLimitResult(False, self.limit, 0, reset_at)
        return RateLimitResult(True, self.limit, self.limit - count, reset_at)

    def _prune(self, now: float) -> None:
        # Caller holds the lock. Drop expired windows once the table grows.
        if len(self._windows) < 10000:
            return
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
