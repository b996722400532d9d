"""Rate limiter interfaces.

The pipeline depends on this abstraction (not the concrete implementation)
so the counter table can later move to a shared store without touching the
request stages.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        count: Requests counted for the key in the current window,
            including this one.
        remaining: Requests left in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Seconds until the window ends, rounded up.
            Only set when blocked.
    """

    allowed: bool
    limit: int
    count: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def increment(self, key: str) -> int:
        """Count one request for ``key`` and return the post-increment count."""
        raise NotImplementedError

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identity (e.g., network address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset_all(self) -> None:
        """Clear every counter at once."""
        raise NotImplementedError
