"""
Shared numeric helpers for layout and pixel treatments.

All treatments clamp and round through `to_channels` so every transform
writes back channel values the same way.
"""

import math
import re
from typing import Tuple, Union

import numpy as np

RGB = Tuple[int, int, int]

_RGB_FUNC = re.compile(r"rgba?\(\s*([^)]*)\)", re.IGNORECASE)


def clamp(value: float, low: float = 0.0, high: float = 255.0) -> float:
    return min(max(value, low), high)


def lerp(a, b, t):
    """Linear interpolation; works on scalars and numpy arrays alike."""
    return a + (b - a) * t


def round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; layout sizes round .5 up
    return int(math.floor(value + 0.5))


def to_channels(values: np.ndarray) -> np.ndarray:
    """Round and clip float channel values back into uint8."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def parse_color(color: Union[str, RGB, None], default: RGB = (0, 0, 0)) -> RGB:
    """
    Parse a CSS-style color into an RGB triple.

    Accepts "#rgb", "#rrggbb", "#rrggbbaa", "rgb(r, g, b)", "rgba(r, g, b, a)"
    or an existing tuple. Anything unparseable returns `default`.
    """
    if color is None:
        return default
    if isinstance(color, (tuple, list)):
        return tuple(int(clamp(c)) for c in color[:3])

    text = color.strip()
    if text.startswith("#"):
        hex_part = text[1:]
        if len(hex_part) in (3, 4):
            hex_part = "".join(ch * 2 for ch in hex_part[:3])
        try:
            return (int(hex_part[0:2], 16), int(hex_part[2:4], 16), int(hex_part[4:6], 16))
        except ValueError:
            return default

    match = _RGB_FUNC.match(text)
    if match:
        parts = [p.strip() for p in match.group(1).split(",")]
        if len(parts) < 3:
            return default
        try:
            return tuple(int(clamp(float(p))) for p in parts[:3])
        except ValueError:
            return default

    return default


def color_alpha(color: Union[str, None], default: float = 1.0) -> float:
    """Alpha component of an rgba() or #rrggbbaa color, else `default`."""
    if not color:
        return default
    text = color.strip()
    if text.startswith("#") and len(text) == 9:
        try:
            return int(text[7:9], 16) / 255
        except ValueError:
            return default
    match = _RGB_FUNC.match(text)
    if match:
        parts = [p.strip() for p in match.group(1).split(",")]
        if len(parts) == 4:
            try:
                return clamp(float(parts[3]), 0.0, 1.0)
            except ValueError:
                return default
    return default
