"""Character-level global alignment between typed input and a reference text.

The alignment is a classic Levenshtein alignment: insertion, deletion and
substitution cost one, an exact character match costs nothing. It backs the
live colour-coded diff and the "unfixed error" count.

Orientation: rows follow the typed input, columns follow the target.

* ``MATCH`` / ``SUBSTITUTE`` consume one input and one target character.
* ``INSERT`` consumes an input character the target does not have.
* ``DELETE`` consumes a target character that was not typed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from keystride.core.errors import InvalidInputError


DEFAULT_MAX_ALIGNMENT_LENGTH = 2500


class EditOp(str, Enum):
    MATCH = "match"
    SUBSTITUTE = "substitute"
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class AlignmentStep:
    """One operation of an alignment and the indices it consumes."""

    op: EditOp
    input_index: Optional[int]
    target_index: Optional[int]


@dataclass(frozen=True)
class Alignment:
    """Ordered alignment steps from the start of both sequences to the end."""

    steps: Tuple[AlignmentStep, ...]

    @property
    def operations(self) -> Tuple[EditOp, ...]:
        return tuple(step.op for step in self.steps)

    @property
    def unfixed_error_count(self) -> int:
        """Number of non-match steps (equals the edit distance)."""
        return sum(1 for step in self.steps if step.op is not EditOp.MATCH)

    def count(self, op: EditOp) -> int:
        return sum(1 for step in self.steps if step.op is op)


def align(
    user_input: str,
    target: str,
    max_length: int = DEFAULT_MAX_ALIGNMENT_LENGTH,
) -> Alignment:
    """Compute the minimum-edit-distance alignment of ``user_input`` to ``target``.

    Backtracking prefers the diagonal (match or substitute), then the vertical
    move (insert), then the horizontal move (delete), so the result is
    deterministic.

    Raises:
        InvalidInputError: if either sequence is longer than ``max_length``.
    """
    rows = len(user_input)
    cols = len(target)
    if rows > max_length:
        raise InvalidInputError(rows, max_length)
    if cols > max_length:
        raise InvalidInputError(cols, max_length)

    table = _distance_table(user_input, target)

    steps: List[AlignmentStep] = []
    i, j = rows, cols
    while i > 0 or j > 0:
        if i > 0 and j > 0:
            same = user_input[i - 1] == target[j - 1]
            if table[i][j] == table[i - 1][j - 1] + (0 if same else 1):
                op = EditOp.MATCH if same else EditOp.SUBSTITUTE
                steps.append(AlignmentStep(op, i - 1, j - 1))
                i -= 1
                j -= 1
                continue
        if i > 0 and (j == 0 or table[i][j] == table[i - 1][j] + 1):
            steps.append(AlignmentStep(EditOp.INSERT, i - 1, None))
            i -= 1
            continue
        steps.append(AlignmentStep(EditOp.DELETE, None, j - 1))
        j -= 1

    steps.reverse()
    return Alignment(steps=tuple(steps))


def _distance_table(user_input: str, target: str) -> List[List[int]]:
    rows = len(user_input)
    cols = len(target)
    table = [[0] * (cols + 1) for _ in range(rows + 1)]
    for i in range(rows + 1):
        table[i][0] = i
    for j in range(cols + 1):
        table[0][j] = j

    for i in range(1, rows + 1):
        previous = table[i - 1]
        current = table[i]
        ch = user_input[i - 1]
        for j in range(1, cols + 1):
            substitution = previous[j - 1] + (0 if ch == target[j - 1] else 1)
            current[j] = min(previous[j] + 1, current[j - 1] + 1, substitution)
    return table


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings using two rolling rows."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + (ca != cb))
        previous = current
    return previous[-1]


# ---------------------------------------------------------------------------
# Live comparison
# ---------------------------------------------------------------------------


class SegmentKind(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    PENDING = "pending"


@dataclass(frozen=True)
class TextSegment:
    text: str
    kind: SegmentKind


@dataclass(frozen=True)
class ComparisonResult:
    """Display segments and summary numbers for one input snapshot."""

    segments: Tuple[TextSegment, ...]
    progress_percentage: float
    accuracy_percentage: float
    unfixed_errors: int
    correct_characters: int
    total_typed: int


def compare(
    target: str,
    user_input: str,
    max_length: int = DEFAULT_MAX_ALIGNMENT_LENGTH,
) -> ComparisonResult:
    """Build highlight segments for ``user_input`` typed against ``target``.

    Matches show the target character, substitutions and insertions show the
    typed character, and target characters not typed yet are pending.
    """
    alignment = align(user_input, target, max_length=max_length)

    segments: List[TextSegment] = []
    correct = 0
    for step in alignment.steps:
        if step.op is EditOp.MATCH:
            correct += 1
            _append(segments, target[step.target_index], SegmentKind.CORRECT)
        elif step.op is EditOp.DELETE:
            _append(segments, target[step.target_index], SegmentKind.PENDING)
        else:
            _append(segments, user_input[step.input_index], SegmentKind.INCORRECT)

    typed = len(user_input)
    progress = min(typed, len(target)) / len(target) * 100.0 if target else 0.0
    accuracy = correct / typed * 100.0 if typed else 100.0

    return ComparisonResult(
        segments=tuple(segments),
        progress_percentage=progress,
        accuracy_percentage=accuracy,
        unfixed_errors=alignment.unfixed_error_count,
        correct_characters=correct,
        total_typed=typed,
    )


def _append(segments: List[TextSegment], char: str, kind: SegmentKind) -> None:
    if segments and segments[-1].kind is kind:
        segments[-1] = TextSegment(segments[-1].text + char, kind)
    else:
        segments.append(TextSegment(char, kind))
