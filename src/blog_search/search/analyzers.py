"""Analyzer utilities for post search.

A small composable tokenizer/filter design: tokenizers turn raw text into
``Token`` objects and filters transform the stream. The fuzzy matcher works
on whole field values, so analyzers are only used to normalize queries and
to count the words of a field for length normalization.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
import math
import re
from typing import Protocol


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class WordTokenizer:
    """Tokenizer that keeps dotted and hyphenated terms intact.

    Tech names like ``Node.js`` or ``server-side`` stay a single token, which
    is what readers type into the search box.
    """

    _WORD_PATTERN = re.compile(r"\w+(?:[.\-']\w+)*", re.UNICODE)

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self._WORD_PATTERN.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class LowercaseFilter:
    """Filter that lowercases token text."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if not token.text.islower():
                token.text = token.text.lower()
            yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        return list(stream)


_DEFAULT_ANALYZER = AnalyzerPipeline(WordTokenizer(), [LowercaseFilter()])
_WHITESPACE = re.compile(r"\s+")


def analyze(text: str | None) -> list[Token]:
    """Tokenize and lowercase ``text`` with the default pipeline."""
    if not text:
        return []
    return _DEFAULT_ANALYZER(text)


def normalize_query(query: str | None) -> str:
    """Lowercase a query and collapse runs of whitespace.

    >>> normalize_query("  React   Hooks ")
    'react hooks'
    """
    if not query:
        return ""
    return _WHITESPACE.sub(" ", query.strip()).lower()


def field_length_norm(text: str | None) -> float:
    """Weight damping for long fields: ``1 / sqrt(word count)``, 3 decimals.

    A hit in a two-word tag counts for more than the same hit buried in a
    two-thousand-word body.
    """
    count = len(analyze(text)) or 1
    return round(1 / math.sqrt(count), 3)
