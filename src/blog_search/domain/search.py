"""Domain models for search functionality.

Result types are plain frozen dataclasses: a ``SearchResult`` holds a
reference to the indexed ``PostRecord`` rather than a validated copy, so the
cache and the UI always see the same post object the index was built from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict

from .model import PostRecord


@dataclass(frozen=True)
class FieldMatch:
    """Character ranges of one field value that matched the query.

    ``indices`` are inclusive ``(start, end)`` pairs, ready for highlighting.
    ``ref_index`` is the element position for list fields such as tags.
    """

    key: str
    value: str
    indices: tuple[tuple[int, int], ...]
    ref_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "key": self.key,
            "value": self.value,
            "indices": [list(pair) for pair in self.indices],
        }
        if self.ref_index is not None:
            payload["ref_index"] = self.ref_index
        return payload


@dataclass(frozen=True)
class SearchResult:
    """A matched post with its relevance score (lower is better)."""

    item: PostRecord
    matches: tuple[FieldMatch, ...] = ()
    score: float = 0.0
    ref_index: int = 0


@dataclass
class CacheEntry:
    """Cached results for one query, keyed by the case-folded query text."""

    query: str
    results: list[SearchResult] = field(default_factory=list)
    timestamp: float = 0.0


class CacheStats(BaseModel):
    """Point-in-time snapshot of the query cache."""

    model_config = ConfigDict(frozen=True)

    total: int
    valid: int
    expired: int
    oldest_timestamp: float
