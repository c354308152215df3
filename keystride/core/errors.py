"""Exception types raised by the typing assessment engine."""

from __future__ import annotations

from typing import Sequence


class KeystrideError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(KeystrideError, ValueError):
    """Raised when an alignment input is longer than the configured ceiling."""

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"Input too large for alignment: {length} characters (limit {limit})")
        self.length = length
        self.limit = limit


class InvalidTaskError(KeystrideError, ValueError):
    """Raised when a session is started without a usable reference text."""


class ConfigError(KeystrideError, ValueError):
    """Raised when a configuration file has invalid values."""


class FormulaInvalidError(KeystrideError):
    """Score cross-checks failed; the snapshot should not be exported."""

    def __init__(self, issues: Sequence[str]) -> None:
        self.issues = tuple(issues)
        super().__init__("; ".join(self.issues) or "formula check failed")
