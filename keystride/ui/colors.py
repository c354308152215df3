"""Theme colors and color utilities for the UI."""

from keystride.core.alignment import SegmentKind


class Palette:
    """Light theme used by the practice window."""

    BG = "#f5f7fa"
    SURFACE = "#ffffff"
    BORDER = "#d9e1ea"

    PRIMARY = "#0a84ff"
    PRIMARY_DARK = "#0060c7"

    TEXT_PRIMARY = "#1c1c1e"
    TEXT_SECONDARY = "#48484a"
    TEXT_MUTED = "#8e8e93"

    GOLD = "#d4a017"
    ORANGE = "#ff9500"
    PURPLE = "#af52de"
    BLUE = "#007aff"
    GRAY = "#8e8e93"


class HighlightColors:
    CORRECT = "#34C759"
    INCORRECT = "#FF3B30"
    PENDING = "#8E8E93"
    INCORRECT_BG = "#FFE5E3"
    CURSOR = "#0A84FF"

    @classmethod
    def for_kind(cls, kind: SegmentKind) -> str:
        return {
            SegmentKind.CORRECT: cls.CORRECT,
            SegmentKind.INCORRECT: cls.INCORRECT,
            SegmentKind.PENDING: cls.PENDING,
        }[kind]


BADGE_COLORS = {
    "orange": Palette.ORANGE,
    "gold": Palette.GOLD,
    "green": HighlightColors.CORRECT,
    "blue": Palette.BLUE,
    "purple": Palette.PURPLE,
    "gray": Palette.GRAY,
}


def blend_hex(a: str, b: str, t: float) -> str:
    """Blend two #RRGGBB colors. t=0 -> a, t=1 -> b."""
    a = a.strip()
    b = b.strip()
    if not (a.startswith("#") and b.startswith("#") and len(a) == 7 and len(b) == 7):
        return a
    try:
        ar, ag, ab = int(a[1:3], 16), int(a[3:5], 16), int(a[5:7], 16)
        br, bg, bb = int(b[1:3], 16), int(b[3:5], 16), int(b[5:7], 16)
    except ValueError:
        return a
    t = max(0.0, min(1.0, float(t)))
    r = int(ar + (br - ar) * t)
    g = int(ag + (bg - ag) * t)
    bl = int(ab + (bb - ab) * t)
    return f"#{r:02X}{g:02X}{bl:02X}"


def accuracy_color(accuracy: float) -> str:
    """Red below 90%, orange at 90% blending to green at 100%."""
    if accuracy < 90.0:
        return HighlightColors.INCORRECT
    return blend_hex(Palette.ORANGE.upper(), HighlightColors.CORRECT, (accuracy - 90.0) / 10.0)
