"""Speed and accuracy scoring for a typed reproduction of a reference text.

Metrics:
  * **Gross WPM** – typed words / elapsed minutes.
  * **Accuracy** – positional character accuracy over the overlapping prefix
    of the normalized input and target.
  * **Net WPM** – typed words discounted by accuracy / elapsed minutes.
  * **Quality score** – net WPM scaled by the accuracy fraction.
  * **KSPC** – raw keystrokes per reference character.
  * **Backspace rate** – share of keystrokes that were deletions.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Tuple

from keystride.core.errors import FormulaInvalidError

logger = logging.getLogger(__name__)

MIN_ELAPSED_MINUTES = 1e-6
DEFAULT_FORMULA_TOLERANCE = 0.03

_LINE_BREAKS = re.compile(r"\r\n|\r|\u2028|\u2029")
# Tab, NBSP, ideographic space and the other Unicode space separators.
_SPACE_VARIANTS = re.compile(r"[\t\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]")


@dataclass(frozen=True)
class ScoreSnapshot:
    """Live or final score for one input snapshot."""

    gross_wpm: float = 0.0
    net_wpm: float = 0.0
    accuracy: float = 100.0
    quality_score: float = 0.0
    completion_percentage: float = 0.0
    total_errors: int = 0
    error_rate: float = 0.0
    matched_words: int = 0
    total_words: int = 0
    kspc: float = 0.0
    backspace_rate: float = 0.0
    total_keystrokes: int = 0
    backspace_count: int = 0


def normalize_for_scoring(text: str) -> str:
    """Canonical form used for character accuracy.

    NFC composition, every line-break variant becomes ``\\n``, every space
    variant becomes a single ASCII space, and only the outer whitespace is
    trimmed.
    """
    text = unicodedata.normalize("NFC", text)
    text = _LINE_BREAKS.sub("\n", text)
    text = _SPACE_VARIANTS.sub(" ", text)
    return text.strip()


def word_count(text: str) -> int:
    return len(text.split())


def character_accuracy(user_input: str, target: str) -> float:
    """Percentage of matching characters over the overlapping prefix."""
    typed = normalize_for_scoring(user_input)
    if not typed:
        return 100.0
    reference = normalize_for_scoring(target)
    compared = min(len(typed), len(reference))
    if compared == 0:
        return 0.0
    correct = sum(1 for a, b in zip(typed[:compared], reference[:compared]) if a == b)
    return correct / compared * 100.0


def matched_word_count(user_input: str, target: str) -> int:
    """Number of words equal to the target word at the same position."""
    return sum(1 for a, b in zip(user_input.split(), target.split()) if a == b)


class ScoringEngine:
    """Stateless scorer; identical inputs always produce identical snapshots."""

    def score(
        self,
        user_input: str,
        target: str,
        elapsed_seconds: float,
        total_keystrokes: int = 0,
        backspace_count: int = 0,
    ) -> ScoreSnapshot:
        minutes = max(max(elapsed_seconds, 0.0) / 60.0, MIN_ELAPSED_MINUTES)

        typed_words = word_count(user_input)
        target_words = word_count(target)
        accuracy = character_accuracy(user_input, target)

        gross_wpm = typed_words / minutes
        estimated_correct_words = typed_words * accuracy / 100.0
        net_wpm = estimated_correct_words / minutes

        if target_words:
            completion = min(100.0, typed_words / target_words * 100.0)
        else:
            completion = 0.0

        typed_chars = len(normalize_for_scoring(user_input))
        total_errors = round(typed_chars * (100.0 - accuracy) / 100.0)
        error_rate = total_errors / typed_chars * 100.0 if typed_chars else 0.0

        kspc = total_keystrokes / len(target) if target else 0.0
        backspace_rate = backspace_count / total_keystrokes * 100.0 if total_keystrokes else 0.0

        return ScoreSnapshot(
            gross_wpm=gross_wpm,
            net_wpm=net_wpm,
            accuracy=accuracy,
            quality_score=net_wpm * accuracy / 100.0,
            completion_percentage=completion,
            total_errors=total_errors,
            error_rate=error_rate,
            matched_words=matched_word_count(user_input, target),
            total_words=target_words,
            kspc=kspc,
            backspace_rate=backspace_rate,
            total_keystrokes=total_keystrokes,
            backspace_count=backspace_count,
        )


# ---------------------------------------------------------------------------
# Formula cross-checks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FormulaCheck:
    """Outcome of the snapshot cross-checks."""

    issues: Tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def raise_if_invalid(self) -> None:
        if self.issues:
            raise FormulaInvalidError(self.issues)


def _relative_deviation(actual: float, expected: float) -> float:
    return abs(actual - expected) / max(abs(actual), MIN_ELAPSED_MINUTES)


def validate_formula(
    snapshot: ScoreSnapshot,
    target_length: int,
    tolerance: float = DEFAULT_FORMULA_TOLERANCE,
) -> FormulaCheck:
    """Cross-check derived metrics against their defining formulas."""
    issues = []

    expected_net = snapshot.gross_wpm * snapshot.accuracy / 100.0
    if _relative_deviation(snapshot.net_wpm, expected_net) > tolerance:
        issues.append(
            f"net WPM {snapshot.net_wpm:.2f} deviates from gross x accuracy {expected_net:.2f}"
        )

    expected_kspc = snapshot.total_keystrokes / target_length if target_length > 0 else 0.0
    if _relative_deviation(snapshot.kspc, expected_kspc) > tolerance:
        issues.append(f"KSPC {snapshot.kspc:.3f} does not match keystrokes/characters {expected_kspc:.3f}")

    if snapshot.total_keystrokes:
        expected_rate = snapshot.backspace_count / snapshot.total_keystrokes * 100.0
    else:
        expected_rate = 0.0
    if _relative_deviation(snapshot.backspace_rate, expected_rate) > tolerance:
        issues.append(f"backspace rate {snapshot.backspace_rate:.2f}% does not match counts {expected_rate:.2f}%")

    if not 0.0 <= snapshot.accuracy <= 100.0:
        issues.append(f"accuracy {snapshot.accuracy:.2f} outside 0-100")

    if issues:
        logger.debug("Formula check failed: %s", "; ".join(issues))
    return FormulaCheck(issues=tuple(issues))
