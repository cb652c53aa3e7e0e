"""
Color math: WCAG contrast ratios and lightness adjustment.
"""
import colorsys
import re
from typing import Optional

HEX_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def is_hex_color(value: Optional[str]) -> bool:
    return bool(value) and bool(HEX_PATTERN.match(value.strip()))


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    value = value.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{r:02x}{g:02x}{b:02x}"


def relative_luminance(value: str) -> float:
    """WCAG 2.x relative luminance of a hex color."""
    def channel(c: int) -> float:
        c = c / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = hex_to_rgb(value)
    return 0.2126 * channel(r) + 0.7152 * channel(g) + 0.0722 * channel(b)


def contrast_ratio(foreground: str, background: str) -> float:
    """WCAG contrast ratio between two hex colors (1.0 - 21.0)."""
    l1 = relative_luminance(foreground)
    l2 = relative_luminance(background)
    lighter, darker = max(l1, l2), min(l1, l2)
    return round((lighter + 0.05) / (darker + 0.05), 2)


def adjust_lightness(value: str, delta: float) -> str:
    """Shift HLS lightness by delta (-1.0 to 1.0)."""
    r, g, b = hex_to_rgb(value)
    h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    l = min(1.0, max(0.0, l + delta))
    r2, g2, b2 = colorsys.hls_to_rgb(h, l, s)
    return rgb_to_hex(round(r2 * 255), round(g2 * 255), round(b2 * 255))


def ensure_contrast(foreground: str, background: str, minimum: float = 4.5) -> str:
    """
    Darken (or lighten, on dark backgrounds) the foreground until it meets
    the minimum contrast ratio against the background.
    """
    step = -0.05 if relative_luminance(background) > 0.5 else 0.05
    color = foreground
    for _ in range(20):
        if contrast_ratio(color, background) >= minimum:
            return color
        color = adjust_lightness(color, step)
    return color
