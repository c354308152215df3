"""Tests for keystride.core.alignment – edit-distance alignment and live comparison."""

from __future__ import annotations

import itertools
from functools import lru_cache

import pytest

from keystride.core.alignment import (
    EditOp,
    SegmentKind,
    TextSegment,
    align,
    compare,
    levenshtein_distance,
)
from keystride.core.errors import InvalidInputError, KeystrideError


# ---------------------------------------------------------------------------
# align – edge cases
# ---------------------------------------------------------------------------

class TestAlignEdgeCases:
    def test_both_empty(self):
        assert align("", "").steps == ()

    def test_empty_input_is_all_deletes(self):
        alignment = align("", "abc")
        assert alignment.operations == (EditOp.DELETE,) * 3
        assert [s.target_index for s in alignment.steps] == [0, 1, 2]
        assert all(s.input_index is None for s in alignment.steps)

    def test_empty_target_is_all_inserts(self):
        alignment = align("abc", "")
        assert alignment.operations == (EditOp.INSERT,) * 3
        assert [s.input_index for s in alignment.steps] == [0, 1, 2]

    def test_identical_strings_all_match(self):
        alignment = align("hello", "hello")
        assert alignment.operations == (EditOp.MATCH,) * 5
        assert alignment.unfixed_error_count == 0

    def test_single_substitution(self):
        alignment = align("The cat sit.", "The cat sat.")
        assert alignment.count(EditOp.MATCH) == 11
        assert alignment.count(EditOp.SUBSTITUTE) == 1
        sub = [s for s in alignment.steps if s.op is EditOp.SUBSTITUTE][0]
        assert sub.input_index == 9
        assert sub.target_index == 9

    def test_unicode_code_points(self):
        alignment = align("café", "cafe")
        assert alignment.operations[-1] is EditOp.SUBSTITUTE


# ---------------------------------------------------------------------------
# align – deterministic tie-breaking
# ---------------------------------------------------------------------------

class TestAlignTieBreak:
    def test_swapped_pair_prefers_diagonal(self):
        assert align("ab", "ba").operations == (EditOp.SUBSTITUTE, EditOp.SUBSTITUTE)

    def test_extra_character_reported_as_insert(self):
        assert align("aab", "ab").operations == (EditOp.INSERT, EditOp.MATCH, EditOp.MATCH)

    def test_missing_character_reported_as_delete(self):
        assert align("ab", "aab").operations == (EditOp.DELETE, EditOp.MATCH, EditOp.MATCH)

    def test_repeatable(self):
        assert align("kitten", "sitting") == align("kitten", "sitting")


# ---------------------------------------------------------------------------
# align – consistency properties
# ---------------------------------------------------------------------------

class TestAlignProperties:
    @pytest.mark.parametrize(
        "typed,target",
        [
            ("kitten", "sitting"),
            ("flaw", "lawn"),
            ("", "abc"),
            ("abcdef", "xy"),
            ("xy", "abcdef"),
            ("The quick brown fox", "The quikc brown fx"),
        ],
    )
    def test_unfixed_errors_equal_edit_distance(self, typed, target):
        assert align(typed, target).unfixed_error_count == levenshtein_distance(typed, target)

    @pytest.mark.parametrize("typed,target", [("abcdef", "xy"), ("xy", "abcdef"), ("same", "same")])
    def test_steps_consume_both_sequences(self, typed, target):
        steps = align(typed, target).steps
        consumed_input = [s.input_index for s in steps if s.input_index is not None]
        consumed_target = [s.target_index for s in steps if s.target_index is not None]
        assert consumed_input == list(range(len(typed)))
        assert consumed_target == list(range(len(target)))

    def test_insert_delete_balance(self):
        alignment = align("abcdef", "xy")
        assert alignment.count(EditOp.INSERT) - alignment.count(EditOp.DELETE) == 4


_SMALL_STRINGS = [
    "".join(chars)
    for alphabet, length in [("abc", n) for n in range(4)] + [("ab", 4)]
    for chars in itertools.product(alphabet, repeat=length)
]


@lru_cache(maxsize=None)
def _reference_distance(a: str, b: str) -> int:
    if not a or not b:
        return len(a) + len(b)
    if a[0] == b[0]:
        return _reference_distance(a[1:], b[1:])
    return 1 + min(
        _reference_distance(a[1:], b),
        _reference_distance(a, b[1:]),
        _reference_distance(a[1:], b[1:]),
    )


class TestAlignExhaustive:
    """Every pair of short strings over a small alphabet."""

    @pytest.mark.parametrize("typed", _SMALL_STRINGS)
    def test_alignment_is_minimal(self, typed):
        for target in _SMALL_STRINGS:
            alignment = align(typed, target)
            expected = _reference_distance(typed, target)
            assert alignment.unfixed_error_count == expected, (typed, target)
            assert levenshtein_distance(typed, target) == expected, (typed, target)

    @pytest.mark.parametrize("typed", _SMALL_STRINGS)
    def test_steps_are_well_formed(self, typed):
        for target in _SMALL_STRINGS:
            steps = align(typed, target).steps
            assert [s.input_index for s in steps if s.input_index is not None] == list(range(len(typed)))
            assert [s.target_index for s in steps if s.target_index is not None] == list(range(len(target)))
            for step in steps:
                if step.op is EditOp.MATCH:
                    assert typed[step.input_index] == target[step.target_index]
                elif step.op is EditOp.SUBSTITUTE:
                    assert typed[step.input_index] != target[step.target_index]
                elif step.op is EditOp.INSERT:
                    assert step.target_index is None
                else:
                    assert step.input_index is None


# ---------------------------------------------------------------------------
# align – size ceiling
# ---------------------------------------------------------------------------

class TestAlignCeiling:
    def test_input_too_long(self):
        with pytest.raises(InvalidInputError) as exc_info:
            align("a" * 11, "a", max_length=10)
        assert exc_info.value.length == 11
        assert exc_info.value.limit == 10

    def test_target_too_long(self):
        with pytest.raises(InvalidInputError):
            align("a", "b" * 11, max_length=10)

    def test_at_limit_is_allowed(self):
        assert align("a" * 10, "a" * 10, max_length=10).unfixed_error_count == 0

    def test_error_hierarchy(self):
        with pytest.raises(KeystrideError):
            align("abc", "", max_length=2)
        with pytest.raises(ValueError):
            align("abc", "", max_length=2)


# ---------------------------------------------------------------------------
# levenshtein_distance
# ---------------------------------------------------------------------------

class TestLevenshtein:
    def test_known_value(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_symmetric(self):
        assert levenshtein_distance("flaw", "lawn") == levenshtein_distance("lawn", "flaw") == 2

    def test_empty(self):
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("", "") == 0


# ---------------------------------------------------------------------------
# compare – live highlight
# ---------------------------------------------------------------------------

class TestCompare:
    def test_substitution_segments(self):
        result = compare("The cat sat.", "The cat sit.")
        assert result.segments == (
            TextSegment("The cat s", SegmentKind.CORRECT),
            TextSegment("i", SegmentKind.INCORRECT),
            TextSegment("t.", SegmentKind.CORRECT),
        )
        assert result.accuracy_percentage == pytest.approx(11 / 12 * 100)
        assert result.progress_percentage == pytest.approx(100.0)
        assert result.unfixed_errors == 1
        assert result.correct_characters == 11
        assert result.total_typed == 12

    def test_nothing_typed(self):
        result = compare("hello", "")
        assert result.segments == (TextSegment("hello", SegmentKind.PENDING),)
        assert result.accuracy_percentage == 100.0
        assert result.progress_percentage == 0.0

    def test_partial_input_leaves_pending_tail(self):
        result = compare("hello", "he")
        assert result.segments == (
            TextSegment("he", SegmentKind.CORRECT),
            TextSegment("llo", SegmentKind.PENDING),
        )
        assert result.progress_percentage == pytest.approx(40.0)
        assert result.unfixed_errors == 3

    def test_empty_target(self):
        result = compare("", "abc")
        assert result.segments == (TextSegment("abc", SegmentKind.INCORRECT),)
        assert result.progress_percentage == 0.0
        assert result.accuracy_percentage == 0.0

    def test_overtyping_caps_progress(self):
        result = compare("abc", "abcd")
        assert result.segments[-1] == TextSegment("d", SegmentKind.INCORRECT)
        assert result.progress_percentage == pytest.approx(100.0)
        assert result.accuracy_percentage == pytest.approx(75.0)

    def test_incorrect_segment_shows_typed_characters(self):
        result = compare("cat", "cxt")
        assert TextSegment("x", SegmentKind.INCORRECT) in result.segments

    def test_respects_ceiling(self):
        with pytest.raises(InvalidInputError):
            compare("abc", "x" * 20, max_length=10)
