"""
Task Analytics — TTL Response Cache

Bounded in-process store for computed analytics payloads. Entries expire
lazily: an entry past `created_at + ttl` is treated as absent and dropped on
the next lookup. The clock is injectable so tests can advance time without
sleeping.

All mutations are synchronous, so get/put are atomic with respect to the
event loop; no locking is needed.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
import os
import time

from logging_system import get_logger
from scope import Scope


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    created_at: float
    ttl: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


def build_cache_key(route: str, scope: Scope, params: Optional[Mapping[str, Any]] = None) -> str:
    """Key = route | scope partition | sorted query params.

    Two members never share a key, and admin keys never match a member's.
    """
    parts = [route, scope.cache_partition]
    if params:
        parts.append("&".join(f"{k}={params[k]}" for k in sorted(params)))
    return "|".join(parts)


class ResponseCache:
    """TTL cache with a hard entry limit and an injected clock"""

    def __init__(self, max_entries: int = 1024, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """The live entry for `key`, or None. A stored None payload is still a hit."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if not entry.is_valid(self._clock()):
            del self._entries[key]
            self._expirations += 1
            self._misses += 1
            get_logger().cache("expired", key)
            return None
        self._hits += 1
        return entry

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.lookup(key)
        return entry.payload if entry is not None else default

    def put(self, key: str, payload: Any, ttl: float) -> CacheEntry:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        entry = CacheEntry(key=key, payload=payload, created_at=self._clock(), ttl=ttl)
        # Re-inserting moves the key to the newest position
        self._entries.pop(key, None)
        self._entries[key] = entry
        if len(self._entries) > self.max_entries:
            self._make_room()
        get_logger().cache("store", key, ttl=ttl)
        return entry

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_valid(now)]
        for key in expired:
            del self._entries[key]
        self._expirations += len(expired)
        return len(expired)

    def _make_room(self) -> None:
        self.purge_expired()
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            self._evictions += 1
            get_logger().cache("evict", key)

    def stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate_pct": round(self._hits / lookups * 100, 2) if lookups else 0,
            "evictions": self._evictions,
            "expirations": self._expirations,
        }


# Global singleton
_cache: Optional[ResponseCache] = None


def get_response_cache() -> ResponseCache:
    """Get or create the process-wide response cache"""
    global _cache
    if _cache is None:
        _cache = ResponseCache(max_entries=int(os.getenv("RESPONSE_CACHE_MAX_ENTRIES", "1024")))
    return _cache
