"""Approximate substring matching for typo-tolerant post search.

The matcher answers one question per field value: where does the query
occur in this text with at most ``k`` edits, where ``k`` follows from the
error threshold and the query length?

- A bit-parallel Wu-Manber (shift-and with errors) scan finds every end
  position with its minimal error count in a single pass over the text.
- Neighbouring ends belong to the same occurrence, so they are grouped and
  only the best end of each group is kept.
- One reversed edit-distance table per kept end recovers where the match
  starts, so ranges can be highlighted.

Patterns longer than ``MAX_PATTERN_LENGTH`` are cut to that length, which
bounds the work per value the same way Fuse's 32-bit bitap does.
"""

from __future__ import annotations

from dataclasses import dataclass


MAX_PATTERN_LENGTH = 32


@dataclass(frozen=True)
class ApproximateMatch:
    """Outcome of matching a pattern against one text value."""

    errors: int
    score: float
    indices: tuple[tuple[int, int], ...]


def max_errors_for(pattern_length: int, threshold: float) -> int:
    """Largest edit count whose error ratio stays within ``threshold``.

    Always leaves at least one pattern character that must really match.

    >>> max_errors_for(5, 0.3)
    1
    >>> max_errors_for(3, 0.3)
    0
    """
    if pattern_length <= 0:
        return 0
    allowed = int(threshold * pattern_length + 1e-9)
    return max(0, min(allowed, pattern_length - 1))


def _scan_end_positions(pattern: str, text: str, max_errors: int) -> list[tuple[int, int]]:
    """Return ``(end_index, errors)`` for every end where the pattern fits."""
    m = len(pattern)
    full = (1 << m) - 1
    accept = 1 << (m - 1)

    char_masks: dict[str, int] = {}
    for i, char in enumerate(pattern):
        char_masks[char] = char_masks.get(char, 0) | (1 << i)

    # rows[d]: bit i set when pattern[: i + 1] matches a suffix of the text
    # read so far with at most d edits
    rows = [(1 << d) - 1 for d in range(max_errors + 1)]
    ends: list[tuple[int, int]] = []

    for j, char in enumerate(text):
        mask = char_masks.get(char, 0)
        prev_old = rows[0]
        rows[0] = ((prev_old << 1) | 1) & mask
        for d in range(1, max_errors + 1):
            cur_old = rows[d]
            rows[d] = (
                (((cur_old << 1) | 1) & mask)  # match
                | prev_old  # extra text character
                | ((prev_old << 1) | 1)  # substitution
                | ((rows[d - 1] << 1) | 1)  # skipped pattern character
            ) & full
            prev_old = cur_old
        for d in range(max_errors + 1):
            if rows[d] & accept:
                ends.append((j, d))
                break

    return ends


def _suffix_distances(pattern: str, window: str) -> list[int]:
    """Edit distance from ``pattern`` to every suffix of ``window``.

    ``result[j]`` is the distance to the last ``j`` characters. Both strings
    are walked backwards so a single table covers all start positions.

    >>> _suffix_distances("ab", "xab")
    [2, 1, 0, 1]
    """
    rev_pattern = pattern[::-1]
    rev_window = window[::-1]
    n = len(rev_window)

    prev_row = list(range(n + 1))
    curr_row = [0] * (n + 1)
    for i, p_char in enumerate(rev_pattern, start=1):
        curr_row[0] = i
        for j in range(1, n + 1):
            cost = 0 if p_char == rev_window[j - 1] else 1
            curr_row[j] = min(
                prev_row[j] + 1,  # deletion
                curr_row[j - 1] + 1,  # insertion
                prev_row[j - 1] + cost,  # substitution
            )
        prev_row, curr_row = curr_row, prev_row

    return prev_row


def _locate_start(pattern: str, text: str, end: int, errors: int) -> int:
    """Find the start of the best window ending at ``end`` with ``errors`` edits.

    Among equally close windows the one nearest the pattern length wins.
    """
    m = len(pattern)
    window_start = max(0, end - m + 1 - errors)
    distances = _suffix_distances(pattern, text[window_start : end + 1])
    best_length = min(
        range(1, len(distances)),
        key=lambda length: (distances[length], abs(length - m)),
    )
    return end - best_length + 1


def _best_ends(ends: list[tuple[int, int]], reach: int) -> list[tuple[int, int]]:
    """Keep one ``(end, errors)`` per group of ends whose windows can overlap.

    ``reach`` is the widest window a match can span. Within a group the end
    with the fewest errors wins, the earliest one on ties.
    """
    kept: list[tuple[int, int]] = []
    group_last = -1
    for end, errors in ends:
        if kept and end - reach < group_last:
            if errors < kept[-1][1]:
                kept[-1] = (end, errors)
        else:
            kept.append((end, errors))
        group_last = end
    return kept


def _collapse(candidates: list[tuple[int, int, int]]) -> list[tuple[int, int]]:
    """Merge overlapping ``(start, end, errors)`` candidates.

    Each cluster of overlapping windows is reported once, using the window
    with the fewest errors (the earliest one on ties).
    """
    spans: list[tuple[int, int]] = []
    cluster_end = -1
    best: tuple[int, int, int] | None = None

    for start, end, errors in candidates:
        if best is not None and start <= cluster_end:
            cluster_end = max(cluster_end, end)
            if errors < best[2]:
                best = (start, end, errors)
            continue
        if best is not None:
            spans.append((best[0], best[1]))
        best = (start, end, errors)
        cluster_end = end

    if best is not None:
        spans.append((best[0], best[1]))
    return spans


def approximate_search(
    pattern: str,
    text: str,
    threshold: float,
    min_match_char_length: int = 1,
) -> ApproximateMatch | None:
    """Match ``pattern`` anywhere inside ``text`` within an error ratio.

    Both arguments are expected to be lowercased already.

    Args:
        pattern: The normalized query.
        text: The normalized field value.
        threshold: Maximum ``errors / len(pattern)`` (0 = exact only).
        min_match_char_length: Highlight ranges shorter than this are
            dropped; a value without any remaining range does not match.

    Returns:
        The match with score 0 for an exact whole-value match, otherwise
        ``max(0.001, errors / len(pattern))``; ``None`` when nothing fits.

    Examples:
        >>> approximate_search("react", "react hooks guide", 0.3).indices
        ((0, 4),)
        >>> approximate_search("python", "react hooks guide", 0.3) is None
        True
    """
    if not pattern or not text:
        return None

    if pattern == text:
        if len(text) < min_match_char_length:
            return None
        return ApproximateMatch(errors=0, score=0.0, indices=((0, len(text) - 1),))

    pattern = pattern[:MAX_PATTERN_LENGTH]
    m = len(pattern)
    max_errors = max_errors_for(m, threshold)

    if max_errors == 0:
        candidates = []
        position = text.find(pattern)
        while position != -1:
            candidates.append((position, position + m - 1, 0))
            position = text.find(pattern, position + 1)
    else:
        ends = _scan_end_positions(pattern, text, max_errors)
        candidates = [
            (_locate_start(pattern, text, end, errors), end, errors)
            for end, errors in _best_ends(ends, m + max_errors)
        ]
        candidates.sort()

    if not candidates:
        return None

    spans = [span for span in _collapse(candidates) if span[1] - span[0] + 1 >= min_match_char_length]
    if not spans:
        return None

    errors = min(candidate[2] for candidate in candidates)
    return ApproximateMatch(
        errors=errors,
        score=max(0.001, errors / m),
        indices=tuple(spans),
    )
