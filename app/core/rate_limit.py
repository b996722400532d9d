"""Rate limiting stage for the weather request pipeline.

This module wires the rate limiting adapter into the request pipeline.

Design goals:
- Minimal coupling: the pipeline only sees a stage callable.
- Swap-friendly: counter storage sits behind AbstractRateLimiter.
- Runs first: rejected requests never reach the cache or the upstream.

Client identity, in priority order:
1. the connection's client address;
2. the first address of the X-Forwarded-For header;
3. the constant "global" (all anonymous callers share one budget).
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.errors import ErrorDetails, RateLimitAppError
from app.core.logging import hash_identifier
from app.core.pipeline import Handler, ProxyRequest, ProxyResponse

logger = logging.getLogger(__name__)

FALLBACK_CLIENT_KEY = "global"


def client_key_for(client_host: str | None, forwarded_for: str | None) -> str:
    """Derive the limiter key for a request.

    Examples:
        >>> client_key_for("10.0.0.5", "203.0.113.7")
        '10.0.0.5'
        >>> client_key_for(None, "203.0.113.7, 10.0.0.1")
        '203.0.113.7'
        >>> client_key_for(None, None)
        'global'
    """

    if client_host:
        return client_host

    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    return FALLBACK_CLIENT_KEY


class RateLimitStage:
    """Pipeline stage enforcing a per-client request budget.

    Every request is counted, including rejected ones. When the count for
    the current window exceeds the limit, raises ``RateLimitAppError`` and
    does not call the rest of the pipeline.
    """

    def __init__(self, limiter: AbstractRateLimiter, *, include_headers: bool = True) -> None:
        self.limiter = limiter
        self.include_headers = include_headers

    async def __call__(self, request: ProxyRequest, call_next: Handler) -> ProxyResponse:
        key = client_key_for(request.client_host, request.forwarded_for)
        key_hash = hash_identifier(key)

        result = self.limiter.consume(key)
        if result.allowed:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "key_hash": key_hash,
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return await call_next(request)

        retry_after = result.retry_after_seconds or 1
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": key_hash,
                "limit": result.limit,
                "count": result.count,
                "retry_after_s": retry_after,
            },
        )

        details: ErrorDetails = {"retry_after": retry_after}
        if self.include_headers:
            details["limit"] = result.limit
            details["remaining"] = result.remaining
            details["reset_at"] = result.reset_at

        raise RateLimitAppError(
            code="rate_limited",
            message="Too many requests",
            details=details,
        )


def build_rate_limit_stage(
    window_ms: int,
    max_requests: int,
    *,
    include_headers: bool = True,
    clock: Callable[[], float] = time.time,
) -> RateLimitStage:
    """Create a rate limit stage backed by a fresh in-memory counter table.

    The window starts when this function is called.

    Args:
        window_ms: Window length in milliseconds.
        max_requests: Requests allowed per client per window.
        include_headers: Add X-RateLimit-* details to rejections.
        clock: Time source returning UNIX seconds.

    Returns:
        RateLimitStage: Stage owning its limiter state.
    """

    limiter = InMemoryFixedWindowRateLimiter(
        limit=max_requests,
        window_ms=window_ms,
        clock=clock,
    )
    return RateLimitStage(limiter, include_headers=include_headers)
