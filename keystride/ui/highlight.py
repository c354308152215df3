"""Rich-text rendering of a live comparison for QLabel / QTextBrowser."""

from __future__ import annotations

import html

from keystride.core.alignment import ComparisonResult, SegmentKind, TextSegment
from keystride.ui.colors import HighlightColors

CURSOR_HTML = f'<span style="color:{HighlightColors.CURSOR}; font-weight:700;">|</span>'


def _escape(text: str) -> str:
    return html.escape(text).replace("\n", "<br>")


def segment_to_html(segment: TextSegment) -> str:
    color = HighlightColors.for_kind(segment.kind)
    text = _escape(segment.text)
    if segment.kind is SegmentKind.INCORRECT:
        return (
            f'<span style="color:{color}; background:{HighlightColors.INCORRECT_BG}; '
            f'text-decoration:underline;">{text}</span>'
        )
    return f'<span style="color:{color};">{text}</span>'


def comparison_to_html(result: ComparisonResult, show_cursor: bool = True) -> str:
    """Render the segments in order; the cursor goes before the first pending run."""
    parts = []
    cursor_placed = not show_cursor
    for segment in result.segments:
        if not cursor_placed and segment.kind is SegmentKind.PENDING:
            parts.append(CURSOR_HTML)
            cursor_placed = True
        parts.append(segment_to_html(segment))
    if not cursor_placed:
        parts.append(CURSOR_HTML)
    return "".join(parts)
