"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- One global window for all clients. When it ends the whole counter table is
  dropped at once, so a client can spend its budget just before a boundary
  and again just after it.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key inside a shared fixed window.

    Windows are anchored at construction time: the table is cleared at
    ``started + window``, ``started + 2 * window`` and so on, regardless of
    when each client made its first request. The rollover is evaluated
    against the clock on every call, which behaves like a timer armed at
    construction without a background task holding the event loop.

    Rejected requests are counted too; counters are never decremented.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_ms: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of requests allowed per window.
            window_ms: Window length in milliseconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_ms are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._limit = limit
        self._window_seconds = window_ms / 1000
        self._clock = clock
        self._lock = threading.RLock()
        self._counts: dict[str, int] = {}
        self._window_start = clock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _roll_window_locked(self, now: float) -> float:
        """Advance to the window containing ``now`` and return its end.

        Clears the counter table when at least one boundary was crossed.
        """
        elapsed = now - self._window_start
        if elapsed >= self._window_seconds:
            skipped = math.floor(elapsed / self._window_seconds)
            self._window_start += skipped * self._window_seconds
            if self._counts:
                logger.debug(
                    "rate_limit.reset",
                    extra={"keys_cleared": len(self._counts), "windows_elapsed": skipped},
                )
            self._counts.clear()
        return self._window_start + self._window_seconds

    def increment(self, key: str) -> int:
        """Count one request for ``key`` and return the post-increment count.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            self._roll_window_locked(self._clock())
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            return count

    def consume(self, key: str) -> RateLimitResult:
        """Count a request for ``key`` and decide whether it may proceed.

        The request is counted whether or not it is allowed.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            reset_at = self._roll_window_locked(now)
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count

        remaining = max(0, self._limit - count)
        if count <= self._limit:
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                count=count,
                remaining=remaining,
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            count=count,
            remaining=0,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
        )

    def count_for(self, key: str) -> int:
        """Return the current-window count for ``key`` (0 if unseen)."""
        with self._lock:
            self._roll_window_locked(self._clock())
            return self._counts.get(key, 0)

    def reset_all(self) -> None:
        """Drop every counter immediately."""
        with self._lock:
            self._counts.clear()
