"""Bounded TTL + LRU cache for GET responses.

Entries live in an OrderedDict in least-recently-used order. Expired entries
are dropped on read and swept before any LRU eviction. The hard cap keeps the
map bounded regardless of traffic shape.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field

# Per-route TTLs in seconds, longest prefix wins.
ROUTE_TTLS: dict[str, int] = {
    "/api/skills": 5 * 60,
    "/api/learning-paths": 5 * 60,
    "/api/users": 10 * 60,
    "/api/exchanges": 3 * 60,
    "/api/conversations": 2 * 60,
}

# Route groups whose cached reads depend on writes to a given prefix.
INVALIDATION_MAP: dict[str, tuple[str, ...]] = {
    "/api/auth": ("/api/users",),
    "/api/users": ("/api/users", "/api/exchanges"),
    "/api/skills": ("/api/skills", "/api/users"),
    "/api/exchanges": ("/api/exchanges", "/api/learning-paths", "/api/users", "/api/conversations"),
    "/api/learning-paths": ("/api/learning-paths", "/api/exchanges", "/api/users"),
    "/api/conversations": ("/api/conversations",),
}


def ttl_for_path(path: str) -> int | None:
    """Return the TTL configured for a path, or None if it is not cacheable."""
    matches = [prefix for prefix in ROUTE_TTLS if path == prefix or path.startswith(prefix + "/")]
    if not matches:
        return None
    return ROUTE_TTLS[max(matches, key=len)]


def invalidation_targets(path: str) -> tuple[str, ...]:
    """Return the cache prefixes to clear after a successful write to ``path``."""
    for prefix, targets in INVALIDATION_MAP.items():
        if path == prefix or path.startswith(prefix + "/"):
            return targets
    return ()


@dataclass
class CachedResponse:
    body: bytes
    status_code: int
    media_type: str | None
    stored_at: float
    ttl: float
    headers: dict[str, str] = field(default_factory=dict)

    def expired(self, now: float) -> bool:
        return now - self.stored_at >= self.ttl


class ResponseCache:
    """Capacity- and TTL-bounded response cache keyed by (credential, URL)."""

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, CachedResponse] = OrderedDict()
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._clock = clock
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> CachedResponse | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return entry

    def set(
        self,
        key: str,
        body: bytes,
        status_code: int = 200,
        media_type: str | None = "application/json",
        ttl: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        now = self._clock()
        self._entries[key] = CachedResponse(
            body=body,
            status_code=status_code,
            media_type=media_type,
            stored_at=now,
            ttl=self._default_ttl if ttl is None else ttl,
            headers=headers or {},
        )
        self._entries.move_to_end(key)

        if len(self._entries) > self._max_entries:
            self._sweep_expired(now)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            self._evictions += 1

    def age(self, entry: CachedResponse) -> int:
        """Seconds since the entry was stored."""
        return int(self._clock() - entry.stored_at)

    def clear(self, pattern: str) -> int:
        """Drop every entry whose key contains ``pattern``. Returns the count removed."""
        doomed = [key for key in self._entries if pattern in key]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear_all(self) -> None:
        self._entries.clear()

    def _sweep_expired(self, now: float) -> None:
        for key in [k for k, entry in self._entries.items() if entry.expired(now)]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @property
    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }
