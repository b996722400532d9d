"""In-memory TTL cache for normalized weather responses.

Entries are keyed by request signature and stamped with the time they were
stored. Freshness is decided at lookup time; stale entries stay in place
until the next successful response for the same signature overwrites them.

By default the store is unbounded: signatures that stop being requested are
kept until the process restarts. Pass ``max_entries`` to cap it, in which
case the least recently used entry is evicted first.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)


Payload = dict[str, Any]


@dataclass
class CacheEntry:
    """A stored response payload and when it was stored."""

    signature: str
    stored_at: float
    payload: Payload


class SimpleTTLCache:
    """Thread-safe, in-memory TTL cache with optional LRU bound.

    Attributes:
        ttl_seconds: Freshness window applied to all entries.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: float = 60,
        max_entries: int | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")

        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SimpleTTLCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def lookup(self, signature: str) -> Payload | None:
        """Return the stored payload if it is still fresh.

        An entry is fresh while ``now - stored_at < ttl_seconds``.

        Args:
            signature: Request signature.

        Returns:
            Cached payload or None if absent or stale.
        """

        with self._lock:
            entry = self._store.get(signature)
            if entry is None:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": hash_identifier(signature), "reason": "not_found"},
                )
                return None

            age = self._clock() - entry.stored_at
            if age >= self._ttl:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={
                        "cache_key": hash_identifier(signature),
                        "reason": "expired",
                        "age_s": round(age, 3),
                    },
                )
                return None

            self._hits += 1
            self._store.move_to_end(signature)  # mark as recently used
            logger.debug(
                "cache.hit",
                extra={"cache_key": hash_identifier(signature), "age_s": round(age, 3)},
            )
            return entry.payload

    def store(self, signature: str, payload: Payload) -> CacheEntry:
        """Store ``payload`` under ``signature``, replacing any previous entry.

        Args:
            signature: Request signature.
            payload: JSON-serializable response body.

        Returns:
            The entry that was written.
        """

        with self._lock:
            entry = CacheEntry(signature=signature, stored_at=self._clock(), payload=payload)
            self._store[signature] = entry
            self._store.move_to_end(signature)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "cache.store",
                extra={
                    "cache_key": hash_identifier(signature),
                    "size": len(self._store),
                    "ttl_s": self._ttl,
                },
            )
            return entry

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1


def build_signature(method: str, path: str, query_string: str = "") -> str:
    """Build the cache signature for a request.

    The query string is used exactly as the client sent it, so parameter
    order matters.

    Examples:
        >>> build_signature("get", "/api/weather", "q=Singapore&units=metric")
        'GET /api/weather?q=Singapore&units=metric'
        >>> build_signature("GET", "/api/weather")
        'GET /api/weather'
    """

    target = f"{path}?{query_string}" if query_string else path
    return f"{method.upper()} {target}"
