"""Response cache stage for the weather request pipeline.

On a fresh hit the stored payload is returned directly and the rest of the
pipeline is skipped. On a miss the stage awaits the downstream result and
stores it only if it is a success; errors propagate and are not cached.
"""

from __future__ import annotations

import time
from typing import Callable

from app.core.pipeline import Handler, ProxyRequest, ProxyResponse
from app.utils.simple_cache import SimpleTTLCache

CACHEABLE_METHODS = frozenset({"GET", "HEAD"})
CACHE_STATUS_HEADER = "X-Cache"


def cache_control_header(ttl_seconds: float) -> str:
    """Public cacheability hint matching the server-side TTL."""
    return f"public, max-age={int(ttl_seconds)}"


class ResponseCacheStage:
    """Pipeline stage memoizing successful responses per request signature."""

    def __init__(self, cache: SimpleTTLCache) -> None:
        self.cache = cache

    async def __call__(self, request: ProxyRequest, call_next: Handler) -> ProxyResponse:
        if request.method.upper() not in CACHEABLE_METHODS:
            return await call_next(request)

        signature = request.signature
        payload = self.cache.lookup(signature)
        if payload is not None:
            return ProxyResponse(
                payload=payload,
                headers={
                    "Cache-Control": cache_control_header(self.cache.ttl_seconds),
                    CACHE_STATUS_HEADER: "HIT",
                },
            )

        response = await call_next(request)
        if response.is_success:
            self.cache.store(signature, response.payload)
            response.headers[CACHE_STATUS_HEADER] = "MISS"
        return response


def build_cache_stage(
    ttl_seconds: float,
    max_entries: int | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> ResponseCacheStage:
    """Create a cache stage owning a fresh TTL store.

    Args:
        ttl_seconds: Freshness window for stored responses.
        max_entries: Optional capacity bound (None keeps every signature).
        clock: Time source returning UNIX seconds.
    """

    return ResponseCacheStage(SimpleTTLCache(ttl_seconds, max_entries, clock=clock))
