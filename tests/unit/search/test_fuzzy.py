"""Unit tests for approximate substring matching."""

import pytest

from blog_search.search.fuzzy import (
    MAX_PATTERN_LENGTH,
    _best_ends,
    _suffix_distances,
    approximate_search,
    max_errors_for,
)


@pytest.mark.unit
class TestSuffixDistances:
    """Edit distance from the pattern to each suffix of a window."""

    def test_every_suffix_length(self):
        assert _suffix_distances("ab", "xab") == [2, 1, 0, 1]

    def test_substitution(self):
        assert _suffix_distances("react", "reakt")[5] == 1

    def test_empty_window(self):
        assert _suffix_distances("abc", "") == [3]


@pytest.mark.unit
class TestBestEnds:
    """Grouping of neighbouring end positions."""

    def test_neighbours_collapse_to_fewest_errors(self):
        assert _best_ends([(3, 1), (4, 0), (5, 1)], reach=6) == [(4, 0)]

    def test_ties_keep_earliest(self):
        assert _best_ends([(3, 1), (4, 1)], reach=6) == [(3, 1)]

    def test_distant_ends_stay_separate(self):
        assert _best_ends([(3, 0), (20, 1)], reach=6) == [(3, 0), (20, 1)]

@pytest.mark.unit
class TestMaxErrors:
    """Error budget derived from threshold and pattern length."""

    @pytest.mark.parametrize(
        ("length", "threshold", "expected"),
        [
            (5, 0.3, 1),
            (3, 0.3, 0),
            (10, 0.3, 3),
            (4, 0.0, 0),
            (10, 1.0, 9),
            (0, 0.5, 0),
        ],
    )
    def test_budget(self, length, threshold, expected):
        assert max_errors_for(length, threshold) == expected


@pytest.mark.unit
class TestApproximateSearch:
    """Matching one normalized pattern against one normalized value."""

    def test_whole_value_match_scores_zero(self):
        match = approximate_search("react", "react", 0.3)

        assert match is not None
        assert match.errors == 0
        assert match.score == 0.0
        assert match.indices == ((0, 4),)

    def test_exact_substring_gets_score_floor(self):
        match = approximate_search("react", "react hooks guide", 0.3)

        assert match is not None
        assert match.score == pytest.approx(0.001)
        assert match.indices == ((0, 4),)

    def test_single_typo_within_threshold(self):
        match = approximate_search("reakt", "react hooks", 0.3)

        assert match is not None
        assert match.errors == 1
        assert match.score == pytest.approx(0.2)
        assert match.indices == ((0, 4),)

    def test_zero_threshold_requires_exact_substring(self):
        assert approximate_search("reakt", "react", 0.0) is None
        assert approximate_search("act", "react", 0.0) is not None

    def test_every_occurrence_is_reported(self):
        match = approximate_search("go", "go go", 0.3)

        assert match is not None
        assert match.indices == ((0, 1), (3, 4))

    def test_no_match_returns_none(self):
        assert approximate_search("python", "react hooks guide", 0.3) is None

    def test_empty_inputs(self):
        assert approximate_search("", "react", 0.3) is None
        assert approximate_search("react", "", 0.3) is None

    def test_short_ranges_are_dropped(self):
        assert approximate_search("go", "go home", 0.3, min_match_char_length=2) is not None
        assert approximate_search("go", "go home", 0.3, min_match_char_length=3) is None
        assert approximate_search("go", "go", 0.3, min_match_char_length=3) is None

    def test_full_threshold_still_needs_one_real_character(self):
        assert approximate_search("xyz", "abc", 1.0) is None

    def test_long_pattern_is_cut_to_max_length(self):
        pattern = "abcdefghij" * 4
        match = approximate_search(pattern, "xx" + pattern + "yy", 0.3)

        assert match is not None
        assert match.errors == 0
        assert match.indices == ((2, MAX_PATTERN_LENGTH + 1),)

    def test_typo_in_repeated_text_reports_each_occurrence(self):
        match = approximate_search("reakt", "react and react", 0.3)

        assert match is not None
        assert match.errors == 1
        assert match.indices == ((0, 4), (10, 14))
