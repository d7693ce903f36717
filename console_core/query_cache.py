"""
In-memory cache for event-list reads.

Entries are keyed by tuples whose first element names the query
(see QueryKeys). An entry is served as-is while fresh (younger than
stale_seconds), refetched once stale, and dropped entirely after gc_seconds
without being read.

Any write that can change events or allocations must call
invalidate_event_data() in the same operation; serving a pre-write list after
a write is a bug, not just staleness.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable, TypeVar

from .config import get_event_cache_windows

logger = logging.getLogger(__name__)

T = TypeVar("T")

QueryKey = tuple[Hashable, ...]


class QueryKeys:
    """Key factory, so every reader and invalidator agrees on key shapes."""

    @staticmethod
    def training_events(scope_key: tuple = ()) -> QueryKey:
        return ("training-events", *scope_key)

    @staticmethod
    def course_instance(event_id: int | str) -> QueryKey:
        return ("courseInstance", str(event_id))

    @staticmethod
    def course_allocations(event_id: int | str) -> QueryKey:
        return ("courseAllocations", str(event_id))

    @staticmethod
    def client_events(client_id: str) -> QueryKey:
        return ("client-events", client_id)

    @staticmethod
    def analytics(event_id: int | str) -> QueryKey:
        return ("analytics", str(event_id))


@dataclass
class _Entry:
    value: Any
    fetched_at: float
    last_used_at: float


class QueryCache:
    def __init__(
        self,
        stale_seconds: float = 30.0,
        gc_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_seconds = stale_seconds
        self.gc_seconds = gc_seconds
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}
        # Bumped on every invalidation; a fetch that overlapped one is not stored
        self._epoch = 0

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _collect_garbage(self, now: float) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.last_used_at >= self.gc_seconds
        ]
        for key in expired:
            del self._entries[key]

    def get_fresh(self, key: QueryKey) -> Any | None:
        """Cached value if present and fresh, else None."""
        now = self._clock()
        self._collect_garbage(now)
        entry = self._entries.get(key)
        if entry is None:
            return None
        entry.last_used_at = now
        if now - entry.fetched_at >= self.stale_seconds:
            return None
        return entry.value

    async def get_or_fetch(self, key: QueryKey, fetcher: Callable[[], Awaitable[T]]) -> T:
        cached = self.get_fresh(key)
        if cached is not None:
            return cached

        epoch = self._epoch
        value = await fetcher()
        if epoch == self._epoch:
            now = self._clock()
            self._entries[key] = _Entry(value=value, fetched_at=now, last_used_at=now)
        else:
            logger.debug("Not caching %s: invalidated while fetching", key)
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with prefix. Returns count dropped."""
        self._epoch += 1
        matching = [key for key in self._entries if key[: len(prefix)] == prefix]
        for key in matching:
            del self._entries[key]
        return len(matching)

    def clear(self) -> None:
        self._epoch += 1
        self._entries.clear()


def invalidate_event_data(
    cache: QueryCache,
    event_id: int | str,
    host_client_id: str | None = None,
    previous_host_client_id: str | None = None,
) -> None:
    """
    Invalidate everything a write to one event (or its allocations) can change.

    Covers all scoped event lists, the event's detail and allocation set, and
    the event lists of the hosting organization before and after the write.
    """
    cache.invalidate(QueryKeys.training_events())
    cache.invalidate(QueryKeys.course_instance(event_id))
    cache.invalidate(QueryKeys.course_allocations(event_id))
    for client_id in {host_client_id, previous_host_client_id}:
        if client_id:
            cache.invalidate(QueryKeys.client_events(client_id))


# Process-wide cache (created on first use)
_cache: QueryCache | None = None


def get_query_cache() -> QueryCache:
    global _cache
    if _cache is None:
        stale, gc = get_event_cache_windows()
        _cache = QueryCache(stale_seconds=stale, gc_seconds=gc)
    return _cache


def set_query_cache(cache: QueryCache | None) -> None:
    """Replace the process-wide cache (used by tests)."""
    global _cache
    _cache = cache
