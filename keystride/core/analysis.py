"""Categorical tagging of typing mistakes from the full alignment."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from keystride.core.alignment import DEFAULT_MAX_ALIGNMENT_LENGTH, EditOp, align


class ErrorCategory(str, Enum):
    SUBSTITUTION = "substitution"
    CASE = "case"
    ADJACENT_KEY = "adjacent_key"
    INSERTION = "insertion"
    DELETION = "deletion"

    @property
    def display_name(self) -> str:
        return {
            ErrorCategory.SUBSTITUTION: "Wrong character",
            ErrorCategory.CASE: "Case error",
            ErrorCategory.ADJACENT_KEY: "Adjacent key",
            ErrorCategory.INSERTION: "Extra character",
            ErrorCategory.DELETION: "Missing character",
        }[self]


# QWERTY neighbours on the letter rows.
_ADJACENT_KEYS: Dict[str, str] = {
    "q": "wa", "w": "qeas", "e": "wrsd", "r": "etdf", "t": "ryfg",
    "y": "tugh", "u": "yihj", "i": "uojk", "o": "ipkl", "p": "ol",
    "a": "qwsz", "s": "awedzx", "d": "serfxc", "f": "drtgcv", "g": "ftyhvb",
    "h": "gyujbn", "j": "huiknm", "k": "jiolm", "l": "kopm",
    "z": "asx", "x": "zsdc", "c": "xdfv", "v": "cfgb", "b": "vghn",
    "n": "bhjm", "m": "njkl",
}


@dataclass(frozen=True)
class CharacterError:
    category: ErrorCategory
    input_index: Optional[int]
    target_index: Optional[int]
    typed: Optional[str]
    expected: Optional[str]


@dataclass(frozen=True)
class ErrorAnalysis:
    total_errors: int
    accuracy: float
    completion_rate: float
    breakdown: Dict[ErrorCategory, int]
    character_errors: Tuple[CharacterError, ...]
    most_common: Tuple[ErrorCategory, ...]
    suggestions: Tuple[str, ...]
    pending_characters: int = 0


def categorize_substitution(typed: str, expected: str) -> ErrorCategory:
    if typed.lower() == expected.lower():
        return ErrorCategory.CASE
    if expected.lower() in _ADJACENT_KEYS.get(typed.lower(), ""):
        return ErrorCategory.ADJACENT_KEY
    return ErrorCategory.SUBSTITUTION


def analyze_errors(
    user_input: str,
    target: str,
    max_length: int = DEFAULT_MAX_ALIGNMENT_LENGTH,
) -> ErrorAnalysis:
    """Tag every non-matching alignment step with an error category.

    Target characters after the last typed character are not mistakes yet;
    they are counted in ``pending_characters`` instead of as deletions.
    """
    steps = align(user_input, target, max_length=max_length).steps

    # Trailing DELETE steps are the untyped remainder of the text.
    tail = len(steps)
    while tail > 0 and steps[tail - 1].op is EditOp.DELETE:
        tail -= 1
    pending = len(steps) - tail

    errors: List[CharacterError] = []
    correct = 0
    for step in steps[:tail]:
        if step.op is EditOp.MATCH:
            correct += 1
            continue
        typed = user_input[step.input_index] if step.input_index is not None else None
        expected = target[step.target_index] if step.target_index is not None else None
        if step.op is EditOp.SUBSTITUTE:
            category = categorize_substitution(typed, expected)
        elif step.op is EditOp.INSERT:
            category = ErrorCategory.INSERTION
        else:
            category = ErrorCategory.DELETION
        errors.append(CharacterError(category, step.input_index, step.target_index, typed, expected))

    breakdown = Counter(e.category for e in errors)
    typed_len = len(user_input)
    return ErrorAnalysis(
        total_errors=len(errors),
        accuracy=correct / typed_len * 100.0 if typed_len else 100.0,
        completion_rate=min(100.0, typed_len / len(target) * 100.0) if target else 0.0,
        breakdown=dict(breakdown),
        character_errors=tuple(errors),
        most_common=tuple(category for category, _ in breakdown.most_common(3)),
        suggestions=tuple(_suggestions(breakdown)),
        pending_characters=pending,
    )


def _suggestions(breakdown: Counter) -> List[str]:
    tips = []
    if breakdown[ErrorCategory.CASE] > 0:
        tips.append("Practice maintaining proper capitalization")
    if breakdown[ErrorCategory.ADJACENT_KEY] > 2:
        tips.append("Focus on finger placement to avoid adjacent key mistakes")
    if breakdown[ErrorCategory.INSERTION] > 3:
        tips.append("Slow down to avoid extra keystrokes")
    if breakdown[ErrorCategory.DELETION] > 2:
        tips.append("Read more carefully to avoid missing characters")
    if breakdown[ErrorCategory.SUBSTITUTION] > 5:
        tips.append("Keep your eyes on the text rather than the keyboard")
    return tips
