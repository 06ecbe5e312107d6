# ============================================================
# nlql - Natural Language SQL Terminal
# core/themes.py - Color palettes
# ============================================================

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Mapping, Tuple

RGB = Tuple[int, int, int]


@dataclass(frozen=True)
class Theme:
    name: str
    bg: RGB
    fg: RGB
    accent: RGB
    border: RGB
    selection: RGB
    error: RGB
    success: RGB
    warning: RGB
    muted: RGB

    def hex(self, slot: str) -> str:
        r, g, b = getattr(self, slot)
        return f"#{r:02x}{g:02x}{b:02x}"

    def style(self, slot: str, bold: bool = False, on: Optional[str] = None) -> str:
        """Rich style string for a palette slot, e.g. style('accent', bold=True)."""
        parts = []
        if bold:
            parts.append("bold")
        parts.append(self.hex(slot))
        if on:
            parts.append(f"on {self.hex(on)}")
        return " ".join(parts)

    @property
    def is_light(self) -> bool:
        r, g, b = self.bg
        return (r + g + b) / 3 > 128


def _theme(name, bg, fg, accent, border, selection, error, success, warning, muted) -> Theme:
    return Theme(name, bg, fg, accent, border, selection, error, success, warning, muted)


THEMES: List[Theme] = [
    _theme("dark",
           (20, 20, 30), (220, 220, 230), (100, 150, 255), (60, 60, 80), (50, 50, 70),
           (255, 100, 100), (100, 255, 150), (255, 200, 100), (120, 120, 140)),
    _theme("light",
           (250, 250, 252), (30, 30, 40), (50, 100, 200), (200, 200, 210), (230, 240, 255),
           (200, 50, 50), (50, 150, 80), (200, 150, 50), (140, 140, 150)),
    _theme("dracula",
           (40, 42, 54), (248, 248, 242), (189, 147, 249), (68, 71, 90), (68, 71, 90),
           (255, 85, 85), (80, 250, 123), (255, 184, 108), (98, 114, 164)),
    _theme("nord",
           (46, 52, 64), (236, 239, 244), (136, 192, 208), (67, 76, 94), (67, 76, 94),
           (191, 97, 106), (163, 190, 140), (235, 203, 139), (76, 86, 106)),
    _theme("catppuccin latte",
           (239, 241, 245), (76, 79, 105), (114, 135, 253), (204, 208, 218), (188, 192, 204),
           (210, 15, 57), (64, 160, 43), (223, 142, 29), (108, 111, 133)),
    _theme("catppuccin frappe",
           (48, 52, 70), (198, 208, 245), (186, 187, 241), (65, 69, 89), (81, 87, 109),
           (231, 130, 132), (166, 209, 137), (229, 200, 144), (165, 173, 206)),
    _theme("catppuccin macchiato",
           (36, 39, 58), (202, 211, 245), (183, 189, 248), (54, 58, 79), (73, 77, 100),
           (237, 135, 150), (166, 218, 149), (238, 212, 159), (165, 173, 203)),
    _theme("catppuccin mocha",
           (30, 30, 46), (205, 214, 244), (180, 190, 254), (49, 50, 68), (69, 71, 90),
           (243, 139, 168), (166, 227, 161), (249, 226, 175), (166, 173, 200)),
    _theme("rose pine",
           (25, 23, 36), (224, 222, 244), (196, 167, 231), (38, 35, 58), (57, 53, 82),
           (235, 111, 146), (156, 207, 216), (246, 193, 119), (110, 106, 134)),
    _theme("rose pine moon",
           (35, 33, 54), (224, 222, 244), (196, 167, 231), (57, 53, 82), (68, 65, 90),
           (235, 111, 146), (156, 207, 216), (246, 193, 119), (110, 106, 134)),
    _theme("rose pine dawn",
           (250, 244, 237), (87, 82, 121), (144, 122, 169), (242, 233, 225), (223, 218, 217),
           (180, 99, 122), (86, 148, 159), (234, 157, 52), (152, 147, 165)),
]

THEME_NAMES: List[str] = [t.name for t in THEMES]
_BY_NAME: Dict[str, Theme] = {t.name: t for t in THEMES}


def get_theme(name: str) -> Theme:
    """Palette by name; unknown names fall back to dark."""
    return _BY_NAME.get(name.strip().lower(), THEMES[0])


def theme_index(name: str) -> int:
    try:
        return THEME_NAMES.index(name)
    except ValueError:
        return 0


def detect_theme(environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Guess light/dark from COLORFGBG ("fg;bg"). Backgrounds 7 and 15
    are the light ones; anything else, or no hint, means dark.
    """
    environ = os.environ if environ is None else environ
    value = environ.get("COLORFGBG", "")
    bg = value.rsplit(";", 1)[-1].strip() if value else ""
    return "light" if bg in ("7", "15") else "dark"


def resolve_theme_name(configured: Optional[str], environ: Optional[Mapping[str, str]] = None) -> str:
    if configured and configured.strip().lower() in _BY_NAME:
        return configured.strip().lower()
    return detect_theme(environ)
