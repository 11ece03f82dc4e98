"""
CSS color normalization.

Computed styles report colors as ``rgb()``/``rgba()``; authored values may be
hex or named. Everything is reduced to lowercase ``#rrggbb``, or
``#rrggbbaa`` when partially transparent. Fully transparent and unparseable
values normalize to None.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

NAMED_COLORS = {
    "black": "#000000",
    "white": "#ffffff",
    "red": "#ff0000",
    "green": "#008000",
    "blue": "#0000ff",
    "yellow": "#ffff00",
    "orange": "#ffa500",
    "purple": "#800080",
    "gray": "#808080",
    "grey": "#808080",
    "silver": "#c0c0c0",
    "maroon": "#800000",
    "olive": "#808000",
    "lime": "#00ff00",
    "aqua": "#00ffff",
    "cyan": "#00ffff",
    "teal": "#008080",
    "navy": "#000080",
    "fuchsia": "#ff00ff",
    "magenta": "#ff00ff",
    "pink": "#ffc0cb",
    "brown": "#a52a2a",
    "gold": "#ffd700",
    "indigo": "#4b0082",
    "violet": "#ee82ee",
    "coral": "#ff7f50",
    "salmon": "#fa8072",
    "tomato": "#ff6347",
    "crimson": "#dc143c",
    "khaki": "#f0e68c",
    "beige": "#f5f5dc",
    "ivory": "#fffff0",
    "lavender": "#e6e6fa",
    "turquoise": "#40e0d0",
    "tan": "#d2b48c",
    "darkgray": "#a9a9a9",
    "darkgrey": "#a9a9a9",
    "lightgray": "#d3d3d3",
    "lightgrey": "#d3d3d3",
    "whitesmoke": "#f5f5f5",
    "gainsboro": "#dcdcdc",
}

NON_COLORS = frozenset({"", "transparent", "none", "currentcolor", "inherit", "initial", "unset", "revert"})

_FUNCTION = re.compile(r"^rgba?\(\s*(?P<args>[^)]*)\)$", re.IGNORECASE)
_HEX = re.compile(r"^#(?P<digits>[0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$", re.IGNORECASE)
_FIRST_COLOR = re.compile(r"rgba?\([^)]*\)|#[0-9a-f]{3,8}\b|[a-z]+", re.IGNORECASE)


def _channel(token: str) -> int:
    token = token.strip()
    if token.endswith("%"):
        value = float(token[:-1]) * 255 / 100
    else:
        value = float(token)
    return max(0, min(255, round(value)))


def _alpha(token: str) -> float:
    token = token.strip()
    if token.endswith("%"):
        return float(token[:-1]) / 100
    return float(token)


def parse_rgb(value: str) -> Optional[Tuple[int, int, int, float]]:
    """Parse ``rgb()``/``rgba()`` in comma or space syntax."""
    match = _FUNCTION.match(value.strip())
    if not match:
        return None
    args = match.group("args")
    alpha = 1.0
    if "/" in args:
        args, alpha_part = args.split("/", 1)
        parts = args.split()
        alpha_token: Optional[str] = alpha_part
    else:
        parts = [p for p in re.split(r"[\s,]+", args.strip()) if p]
        alpha_token = parts[3] if len(parts) == 4 else None
        parts = parts[:3]
    if len(parts) != 3:
        return None
    try:
        r, g, b = (_channel(p) for p in parts)
        if alpha_token is not None:
            alpha = _alpha(alpha_token)
    except ValueError:
        return None
    return r, g, b, alpha


def rgb_to_hex(r: int, g: int, b: int, alpha: float = 1.0) -> str:
    if alpha >= 1:
        return f"#{r:02x}{g:02x}{b:02x}"
    return f"#{r:02x}{g:02x}{b:02x}{round(alpha * 255):02x}"


def normalize_color(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip().lower()
    if text in NON_COLORS:
        return None

    hex_match = _HEX.match(text)
    if hex_match:
        digits = hex_match.group("digits")
        if len(digits) in (3, 4):
            digits = "".join(c * 2 for c in digits)
        if len(digits) == 8:
            alpha = int(digits[6:], 16)
            if alpha == 0:
                return None
            if alpha == 255:
                digits = digits[:6]
        return f"#{digits}"

    if text.startswith("rgb"):
        parsed = parse_rgb(text)
        if parsed is None:
            return None
        r, g, b, alpha = parsed
        if alpha <= 0:
            return None
        return rgb_to_hex(r, g, b, alpha)

    return NAMED_COLORS.get(text)


def first_color(value: Optional[str]) -> Optional[str]:
    """Normalize the first color in a multi-value property such as ``border-color``."""
    if not value:
        return None
    for token in _FIRST_COLOR.findall(value):
        normalized = normalize_color(token)
        if normalized is not None:
            return normalized
    return None


def is_visible_color(value: Optional[str]) -> bool:
    return normalize_color(value) is not None
