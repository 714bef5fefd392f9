"""
Token-bucket rate limiter for photo uploads.

The People API caps photo updates at roughly 60 per minute per user, across
every client of the account. A sync run shares a single limiter for all of
its uploads; the bucket holds at most one token, so there are no bursts.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

# One upload every 1.5 seconds stays safely below the per-minute quota
DEFAULT_RATE_LIMIT_INTERVAL = 1.5  # seconds

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket with capacity 1 refilled once per interval.

    ``acquire`` blocks until a token is available and consumes it. The
    first call returns immediately.

    Attributes:
        interval: Seconds between tokens

    Usage:
        limiter = RateLimiter(interval=1.5)
        for photo in photos:
            limiter.acquire()
            api.upload_photo(resource_name, photo)
    """

    def __init__(
        self,
        interval: float = DEFAULT_RATE_LIMIT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the rate limiter.

        Args:
            interval: Seconds per token (must be > 0)
            clock: Monotonic time source
            sleep: Function used to wait for the next token
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = 1.0
        self._last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill
        if elapsed > 0:
            self._tokens = min(1.0, self._tokens + elapsed / self.interval)
        self._last_refill = now

    def try_acquire(self) -> bool:
        """
        Consume a token if one is available, without waiting.

        Returns:
            True if a token was consumed
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def acquire(self) -> float:
        """
        Block until a token is available, then consume it.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    if waited:
                        logger.debug(f"Rate limiter released after {waited:.2f}s")
                    return waited
                wait = (1.0 - self._tokens) * self.interval

            self._sleep(wait)
            waited += wait
