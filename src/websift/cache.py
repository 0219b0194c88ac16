"""In-memory bounded caches for fetched pages and search results.

Eviction is FIFO by insertion order, not LRU: reading an entry never saves it
from eviction. Expiry is a read-time check layered on top; an expired entry
reads as absent and is dropped on that read. There is no background sweep;
all eviction happens inside ``set``.

Cache operations never suspend, so a capacity check and the insert that
follows it cannot interleave with another task's cache access.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from websift.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from websift.config import CacheSettings

log = structlog.get_logger()

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """Capacity- and TTL-bounded key→value store."""

    def __init__(
        self,
        capacity: int,
        ttl_seconds: float,
        *,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        # dict preserves insertion order; the first key is always the oldest.
        self._entries: dict[str, CacheEntry[V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def get(self, key: str) -> V | None:
        """Return the cached value, or ``None`` when absent or older than the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if now - entry.inserted_at > self.ttl_seconds:
            del self._entries[key]
            log.debug("cache_entry_expired", cache=self.name, key=key)
            return None
        entry.last_access = now
        return entry.value

    def set(self, key: str, value: V) -> None:
        """Insert ``value``, evicting the oldest-inserted entries to stay within capacity.

        Re-setting an existing key replaces it and counts as a fresh insertion.
        """
        self._entries.pop(key, None)
        while len(self._entries) >= self.capacity:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            log.debug("cache_evicted", cache=self.name, key=oldest)
        self._entries[key] = CacheEntry(key=key, value=value, inserted_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def status(self) -> dict[str, int]:
        return {"size": len(self._entries), "capacity": self.capacity}


@dataclass
class ContentCaches:
    """The two process-wide caches shared by every session."""

    search: BoundedCache[str]  # Rendered search results keyed by normalized query
    pages: BoundedCache[str]  # Page markdown keyed by resolved URL

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> ContentCaches:
        return cls(
            search=BoundedCache(
                settings.search_max_entries, settings.ttl_seconds, name="search"
            ),
            pages=BoundedCache(settings.page_max_entries, settings.ttl_seconds, name="pages"),
        )
