"""Theme colors and color utilities for the UI."""

from bihua.core.session import Severity


class Palette:
    """Light theme palette."""

    BG_TOP = "#f3f0ff"
    BG_BOTTOM = "#e3e8ff"

    PRIMARY = "#667eea"
    PRIMARY_LIGHT = "#8fa2f0"
    PRIMARY_DARK = "#4c5fd5"

    CARD_BG = "rgba(255, 255, 255, 0.9)"
    CARD_BORDER = "rgba(102, 126, 234, 0.25)"

    TEXT_PRIMARY = "#1f2933"
    TEXT_SECONDARY = "#4a5568"
    TEXT_MUTED = "#718096"

    # Feedback line
    INFO = "#2b6cb0"
    SUCCESS = "#2f855a"
    ERROR = "#d64545"

    # Practice grid (米字格) guide lines
    GRID_LINE = "#e2e2e2"


def blend_hex(a: str, b: str, t: float) -> str:
    """Blend two #RRGGBB colors. t=0 -> a, t=1 -> b."""
    try:
        a = a.strip()
        b = b.strip()
        if not (a.startswith("#") and b.startswith("#") and len(a) == 7 and len(b) == 7):
            return a
        t = max(0.0, min(1.0, float(t)))
        ar, ag, ab = int(a[1:3], 16), int(a[3:5], 16), int(a[5:7], 16)
        br, bg, bb = int(b[1:3], 16), int(b[3:5], 16), int(b[5:7], 16)
        r = int(ar + (br - ar) * t)
        g = int(ag + (bg - ag) * t)
        bl = int(ab + (bb - ab) * t)
        return f"#{r:02X}{g:02X}{bl:02X}"
    except ValueError:
        return a


def severity_color(severity: Severity) -> str:
    return {
        Severity.INFO: Palette.INFO,
        Severity.SUCCESS: Palette.SUCCESS,
        Severity.ERROR: Palette.ERROR,
    }[severity]


def severity_background(severity: Severity) -> str:
    """Pale tint of the severity colour for the feedback pill."""
    return blend_hex(severity_color(severity), "#FFFFFF", 0.85)
