import time
from typing import Any, Callable

from .types import CacheEntry

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_CAPACITY = 50


class ResultCache:
    """Bounded TTL cache of transformed images keyed by request key.

    Eviction is by insertion order; reads neither promote an entry nor
    extend its lifetime.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")

        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        return entry.result

    def put(self, key: str, result: str) -> CacheEntry:
        # Re-putting a key counts as a fresh insertion.
        self._entries.pop(key, None)

        while len(self._entries) >= self.capacity:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]

        now = self._clock()
        entry = CacheEntry(
            key=key,
            result=result,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        self._entries[key] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        oldest_entry = (
            min(entry.created_at for entry in self._entries.values())
            if self._entries
            else None
        )
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            "oldest_entry": oldest_entry,
        }

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)
