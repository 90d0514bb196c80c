"""Service layer for dependency injection and better testability."""

from .query_cache import QueryCache
from .search_service import SearchExecutor, SearchState


__all__ = [
    "QueryCache",
    "SearchExecutor",
    "SearchState",
]
