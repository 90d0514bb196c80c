"""Domain layer - posts and search value objects with no infrastructure dependencies."""

from blog_search.domain.model import PostRecord
from blog_search.domain.search import CacheEntry, CacheStats, FieldMatch, SearchResult


__all__ = [
    "CacheEntry",
    "CacheStats",
    "FieldMatch",
    "PostRecord",
    "SearchResult",
]
