"""Bounded, time-expiring cache of search results keyed by query text."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Sequence
import logging
import time
from typing import TYPE_CHECKING

from ..domain.search import CacheEntry, CacheStats, SearchResult


if TYPE_CHECKING:
    from ..config import Settings


logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 50
DEFAULT_MAX_AGE_SECONDS = 5 * 60


class QueryCache:
    """FIFO-bounded TTL cache from case-folded query to result list.

    - Keys are lowercased, so ``"React"`` and ``"react"`` share an entry.
    - Expiry is lazy: an entry older than ``max_age`` is dropped when read.
    - When full, the oldest *inserted* key is evicted before a new key goes
      in. Reads never change eviction order, and overwriting an existing key
      keeps its original slot and never evicts anything else.

    Insertion order lives in an explicit key queue rather than relying on
    dict iteration order.

    Not thread-safe; every method is synchronous and meant to be driven from
    a single event loop.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        max_age: float = DEFAULT_MAX_AGE_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if max_age <= 0:
            raise ValueError("max_age must be positive")
        self.max_size = max_size
        self.max_age = max_age
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._order: deque[str] = deque()

    @classmethod
    def from_settings(cls, settings: Settings) -> QueryCache:
        return cls(max_size=settings.search_cache_max_size, max_age=settings.search_cache_max_age_seconds)

    @staticmethod
    def _key(query: str) -> str:
        return query.lower()

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.max_age

    def _remove(self, key: str) -> None:
        del self._entries[key]
        self._order.remove(key)

    def get(self, query: str) -> list[SearchResult] | None:
        """Return cached results for ``query`` or ``None`` on a miss."""
        key = self._key(query)
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self._clock()):
            self._remove(key)
            logger.debug("Cache entry for %r expired", key)
            return None

        return entry.results

    def set(self, query: str, results: Sequence[SearchResult]) -> None:
        """Store ``results`` for ``query``, replacing any previous value."""
        key = self._key(query)
        entry = CacheEntry(query=query, results=list(results), timestamp=self._clock())

        if key in self._entries:
            self._entries[key] = entry
            return

        if len(self._entries) >= self.max_size:
            oldest = self._order.popleft()
            del self._entries[oldest]
            logger.debug("Cache full (%d entries), evicted %r", self.max_size, oldest)

        self._entries[key] = entry
        self._order.append(key)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()
        self._order.clear()

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: object) -> bool:
        return isinstance(query, str) and self._key(query) in self._entries

    def keys(self) -> list[str]:
        """Cached keys, oldest insertion first."""
        return list(self._order)

    def get_stats(self) -> CacheStats:
        """Count valid and expired entries without evicting anything."""
        now = self._clock()
        entries = list(self._entries.values())
        valid = sum(1 for entry in entries if not self._is_expired(entry, now))
        oldest = min((entry.timestamp for entry in entries), default=now)
        return CacheStats(
            total=len(entries),
            valid=valid,
            expired=len(entries) - valid,
            oldest_timestamp=min(oldest, now),
        )
