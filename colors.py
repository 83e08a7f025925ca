# colors.py
import math
import re
from typing import Tuple

COLOR_NAMES = (
    "black", "dark gray", "gray", "white", "light gray", "dark",
    "red", "dark red", "orange", "brown", "yellow", "olive",
    "green", "dark green", "cyan", "teal", "blue", "navy",
    "purple", "dark purple", "pink", "dark pink", "unknown",
)

GRAY_TOLERANCE = 20

# (start, end, light name, dark name); red wraps around 0
HUE_BUCKETS = [
    (15, 45, "orange", "brown"),
    (45, 75, "yellow", "olive"),
    (75, 165, "green", "dark green"),
    (165, 195, "cyan", "teal"),
    (195, 255, "blue", "navy"),
    (255, 285, "purple", "dark purple"),
    (285, 345, "pink", "dark pink"),
]

_HEX_RE = re.compile(r"#?([0-9a-fA-F]{6})")


def _round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))

def round_channel(x) -> int:
    v = _round_half_up(x or 0)
    return 0 if v < 0 else 255 if v > 255 else v

def rgb_to_hex(red, green, blue) -> str:
    return "#" + "".join(f"{round_channel(c):02x}" for c in (red, green, blue))

def hex_to_rgb(value: str) -> Tuple[int, int, int]:
    m = _HEX_RE.fullmatch((value or "").strip())
    if not m:
        raise ValueError(f"not a hex color: {value!r}")
    h = m.group(1)
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def hsb(red, green, blue) -> Tuple[int, float, float]:
    """Hue in whole degrees [0, 360), saturation and brightness in [0, 1]."""
    r, g, b = float(red), float(green), float(blue)
    mx, mn = max(r, g, b), min(r, g, b)
    delta = mx - mn
    if delta == 0:
        hue = 0.0
    elif mx == r:
        hue = ((g - b) / delta) % 6
    elif mx == g:
        hue = (b - r) / delta + 2
    else:
        hue = (r - g) / delta + 4
    hue_deg = _round_half_up(hue * 60) % 360
    saturation = 0.0 if mx == 0 else delta / mx
    brightness = mx / 255.0
    return hue_deg, saturation, brightness


def classify_color(red, green, blue) -> str:
    """
    Name an RGB color (0..255 per channel, ints or floats).
    Near-equal channels are grays bucketed by lightness; everything else is
    bucketed on the HSB hue circle with a light/dark split at brightness 0.5.
    """
    r, g, b = float(red or 0), float(green or 0), float(blue or 0)

    if abs(r - g) < GRAY_TOLERANCE and abs(g - b) < GRAY_TOLERANCE and abs(r - b) < GRAY_TOLERANCE:
        lightness = (r + g + b) / 3
        if lightness < 50: return "black"
        if lightness < 120: return "dark gray"
        if lightness < 200: return "gray"
        return "white"

    hue, saturation, brightness = hsb(r, g, b)
    dark = brightness < 0.5

    if saturation < 0.1:
        return "dark gray" if dark else "light gray"
    if brightness < 0.2:
        return "dark"

    if hue >= 345 or hue < 15:
        return "dark red" if dark else "red"
    for start, end, light_name, dark_name in HUE_BUCKETS:
        if start <= hue < end:
            return dark_name if dark else light_name
    return "unknown"
