"""Weighted fuzzy index over a fixed collection of posts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
import logging
import sys
from typing import TYPE_CHECKING

from blog_search.domain.model import PostRecord
from blog_search.domain.search import FieldMatch, SearchResult
from blog_search.exceptions import DuplicateSlugError
from blog_search.search.analyzers import field_length_norm, normalize_query
from blog_search.search.fuzzy import approximate_search


if TYPE_CHECKING:
    from blog_search.config import Settings


logger = logging.getLogger(__name__)

DEFAULT_FIELD_WEIGHTS: dict[str, float] = {
    "title": 0.3,
    "description": 0.25,
    "body": 0.3,
    "tags": 0.15,
}
DEFAULT_THRESHOLD = 0.3
DEFAULT_MIN_MATCH_CHAR_LENGTH = 2

# Stands in for a perfect per-field score so the product stays informative
_EPSILON = sys.float_info.epsilon


@dataclass(frozen=True)
class _IndexedValue:
    original: str
    normalized: str
    norm: float
    ref_index: int | None = None


def _normalize_weights(weights: Mapping[str, float]) -> dict[str, float]:
    if not weights:
        raise ValueError("At least one search field is required")
    for name, weight in weights.items():
        if name not in PostRecord.model_fields:
            raise ValueError(f"Unknown post field '{name}'")
        if weight <= 0:
            raise ValueError(f"Weight for '{name}' must be positive, got {weight}")
    total = sum(weights.values())
    return {name: weight / total for name, weight in weights.items()}


class PostSearchIndex:
    """Immutable fuzzy index over posts with per-field weights.

    The collection is fixed at construction; build a new index to pick up
    new posts. Field weights are normalized to sum to 1.0.

    Scoring follows the classic weighted-product scheme: every matched field
    value contributes ``score ** (weight * norm)`` where ``score`` is its
    error ratio (0 = perfect) and ``norm`` damps long values. Lower totals
    rank first; equal totals keep collection order.
    """

    def __init__(
        self,
        posts: Sequence[PostRecord],
        *,
        field_weights: Mapping[str, float] | None = None,
        threshold: float = DEFAULT_THRESHOLD,
        min_match_char_length: int = DEFAULT_MIN_MATCH_CHAR_LENGTH,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if min_match_char_length < 1:
            raise ValueError("min_match_char_length must be at least 1")

        self.field_weights = _normalize_weights(field_weights or DEFAULT_FIELD_WEIGHTS)
        self.threshold = threshold
        self.min_match_char_length = min_match_char_length

        seen: set[str] = set()
        for post in posts:
            if post.slug in seen:
                raise DuplicateSlugError(post.slug)
            seen.add(post.slug)

        self._posts: tuple[PostRecord, ...] = tuple(posts)
        self._records = [self._index_post(post) for post in self._posts]
        logger.info(
            "Built search index over %d posts (fields=%s, threshold=%.2f)",
            len(self._posts),
            ",".join(self.field_weights),
            threshold,
        )

    @classmethod
    def from_settings(cls, posts: Sequence[PostRecord], settings: Settings) -> PostSearchIndex:
        """Build an index using the search knobs from ``Settings``."""
        return cls(
            posts,
            field_weights=settings.field_weights(),
            threshold=settings.search_threshold,
            min_match_char_length=settings.search_min_match_char_length,
        )

    def __len__(self) -> int:
        return len(self._posts)

    @property
    def posts(self) -> tuple[PostRecord, ...]:
        return self._posts

    def _index_post(self, post: PostRecord) -> dict[str, list[_IndexedValue]]:
        return {name: list(self._index_values(getattr(post, name, None))) for name in self.field_weights}

    def _index_values(self, raw) -> Iterable[_IndexedValue]:
        if raw is None:
            return
        if isinstance(raw, str):
            if raw:
                yield _IndexedValue(original=raw, normalized=raw.lower(), norm=field_length_norm(raw))
            return
        for position, element in enumerate(raw):
            if not element:
                continue
            text = str(element)
            yield _IndexedValue(
                original=text,
                normalized=text.lower(),
                norm=field_length_norm(text),
                ref_index=position,
            )

    def match(self, query: str, limit: int | None = None) -> list[SearchResult]:
        """Return posts fuzzily matching ``query``, best first.

        Blank queries and queries shorter than the minimum match length
        return an empty list.
        """
        pattern = normalize_query(query)
        if len(pattern) < self.min_match_char_length:
            return []

        scored: list[SearchResult] = []
        for ref_index, (post, record) in enumerate(zip(self._posts, self._records, strict=True)):
            result = self._score_record(pattern, post, record, ref_index)
            if result is not None:
                scored.append(result)

        # list.sort is stable, so equal scores keep collection order
        scored.sort(key=lambda result: result.score)
        if limit is not None:
            scored = scored[:limit]
        logger.debug("Query %r matched %d posts", pattern, len(scored))
        return scored

    def _score_record(
        self,
        pattern: str,
        post: PostRecord,
        record: dict[str, list[_IndexedValue]],
        ref_index: int,
    ) -> SearchResult | None:
        total = 1.0
        matches: list[FieldMatch] = []

        for name, weight in self.field_weights.items():
            for value in record[name]:
                found = approximate_search(
                    pattern,
                    value.normalized,
                    self.threshold,
                    self.min_match_char_length,
                )
                if found is None:
                    continue
                base = _EPSILON if found.score == 0 else found.score
                total *= base ** (weight * value.norm)
                matches.append(
                    FieldMatch(
                        key=name,
                        value=value.original,
                        indices=found.indices,
                        ref_index=value.ref_index,
                    )
                )

        if not matches:
            return None
        return SearchResult(item=post, matches=tuple(matches), score=total, ref_index=ref_index)
