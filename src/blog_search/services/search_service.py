"""Debounced, cache-first search session over the post index.

State machine per session::

    IDLE --set_query--> DEBOUNCING --timer--> cache hit  --> IDLE
                             ^                cache miss --> SEARCHING --> IDLE
                             |__ set_query (cancels the pending timer)

Only one debounce timer is ever pending. Arming a new one cancels the old
handle first, and each timer carries the generation it was armed for, so a
callback that somehow outlives its cancellation cannot publish stale
results.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
import logging
from typing import TYPE_CHECKING

from ..exceptions import SearchSessionClosedError
from ..observability.metrics import SEARCH_CACHE_ENTRIES, SEARCH_LATENCY, SEARCH_QUERIES, track_latency
from ..observability.tracing import create_span
from .query_cache import QueryCache


if TYPE_CHECKING:
    from ..config import Settings
    from ..domain.search import SearchResult
    from ..search.index import PostSearchIndex


logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.2

Listener = Callable[["SearchExecutor"], None]


class SearchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    SEARCHING = "searching"


class SearchExecutor:
    """One search session: current query, results and loading flag.

    The executor is driven from a single asyncio event loop. ``set_query``
    must be called from that loop; the actual match runs in a
    ``loop.call_later`` callback once the debounce window passes quietly.

    The cache is injected so several sessions can share one instance while
    tests use a fresh one each.
    """

    def __init__(
        self,
        index: PostSearchIndex,
        cache: QueryCache,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if debounce_seconds < 0:
            raise ValueError("debounce_seconds must not be negative")
        self.index = index
        self.cache = cache
        self.debounce_seconds = debounce_seconds
        self._loop = loop

        self._query = ""
        self._results: list[SearchResult] = []
        self._is_loading = False
        self._state = SearchState.IDLE
        self._cache_hits = 0

        self._pending: asyncio.TimerHandle | None = None
        self._generation = 0
        self._closed = False
        self._listeners: list[Listener] = []
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_settings(cls, index: PostSearchIndex, cache: QueryCache, settings: Settings) -> SearchExecutor:
        return cls(index, cache, debounce_seconds=settings.debounce_seconds)

    @property
    def query(self) -> str:
        return self._query

    @property
    def results(self) -> list[SearchResult]:
        return self._results

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def cache_hits(self) -> int:
        return self._cache_hits

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(self)`` after every results update.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_query(self, value: str) -> None:
        """Update the query and (re)start the debounce window.

        Blank input resets results immediately without touching the cache.
        """
        if self._closed:
            raise SearchSessionClosedError("Search session is closed")

        self._query = value
        self._generation += 1
        self._cancel_pending()

        if not value.strip():
            self._is_loading = False
            self._state = SearchState.IDLE
            self._publish([])
            return

        loop = self._loop or asyncio.get_running_loop()
        self._state = SearchState.DEBOUNCING
        self._idle.clear()
        self._pending = loop.call_later(self.debounce_seconds, self._on_debounce_elapsed, self._generation)

    def _on_debounce_elapsed(self, generation: int) -> None:
        if generation != self._generation or self._closed:
            logger.debug("Dropping stale search timer (generation %d)", generation)
            return
        self._pending = None

        query = self._query
        try:
            cached = self._lookup(query)
            if cached is not None:
                self._state = SearchState.IDLE
                self._publish(cached)
                return

            self._is_loading = True
            self._state = SearchState.SEARCHING
            self._publish(self._run_match(query))
        finally:
            self._is_loading = False
            self._state = SearchState.IDLE
            if self._pending is None:
                self._idle.set()

    def search(self, query: str) -> list[SearchResult]:
        """Run ``query`` right away through the cache, bypassing debounce."""
        if not query.strip():
            SEARCH_QUERIES.labels(outcome="empty").inc()
            return []
        cached = self._lookup(query)
        if cached is not None:
            return cached
        return self._run_match(query)

    def _lookup(self, query: str) -> list[SearchResult] | None:
        cached = self.cache.get(query)
        if cached is None:
            return None
        self._cache_hits += 1
        SEARCH_QUERIES.labels(outcome="hit").inc()
        logger.debug("Cache hit for %r (%d hits this session)", query, self._cache_hits)
        return cached

    def _run_match(self, query: str) -> list[SearchResult]:
        SEARCH_QUERIES.labels(outcome="miss").inc()
        with (
            create_span("search.match", attributes={"search.query_length": len(query)}) as span,
            track_latency(SEARCH_LATENCY),
        ):
            results = self.index.match(query)
            span.set_attribute("search.result_count", len(results))
        self.cache.set(query, results)
        SEARCH_CACHE_ENTRIES.labels().set(len(self.cache))
        return results

    def _publish(self, results: list[SearchResult]) -> None:
        self._results = results
        for listener in list(self._listeners):
            listener(self)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._idle.set()

    def clear_search(self) -> None:
        """Reset query and results; cached entries stay."""
        self._generation += 1
        self._cancel_pending()
        self._query = ""
        self._is_loading = False
        self._state = SearchState.IDLE
        self._publish([])

    def clear_search_cache(self) -> None:
        """Drop every cached query and reset the hit counter."""
        self.cache.clear()
        self._cache_hits = 0
        SEARCH_CACHE_ENTRIES.labels().set(0)

    async def wait_idle(self) -> None:
        """Wait until no debounce timer is pending."""
        await self._idle.wait()

    def close(self) -> None:
        """Cancel any pending timer; the session accepts no further queries."""
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._cancel_pending()
        self._state = SearchState.IDLE
        self._listeners.clear()
