# src/scoring/color.py — v1
"""Color descriptor parsing, relative luminance and channel variance.

Pure numeric functions with no hidden state. Providers describe the
representative color of an image in different shapes (hex string, rgb
mapping, plain sequence); anything unrecognized falls back to neutral
mid-gray instead of failing the search.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Maximum population variance of three values in [0, 1], reached at (1, 0, 0).
MAX_CHANNEL_VARIANCE = 2.0 / 9.0


class RGB(NamedTuple):
    r: int
    g: int
    b: int


NEUTRAL_GRAY = RGB(128, 128, 128)


def parse_color(descriptor: Any) -> RGB | None:
    """Parse a provider color descriptor into 0-255 channels.

    Returns None when the descriptor is missing or malformed.
    """
    if descriptor is None:
        return None

    if isinstance(descriptor, str):
        match = _HEX_RE.match(descriptor.strip())
        if not match:
            return None
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return RGB(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))

    if isinstance(descriptor, Mapping):
        try:
            values = [descriptor[k] for k in ("r", "g", "b")]
        except KeyError:
            return None
        return _from_channels(values)

    if isinstance(descriptor, Sequence) and not isinstance(descriptor, (bytes, bytearray)):
        if len(descriptor) != 3:
            return None
        return _from_channels(list(descriptor))

    return None


def _from_channels(values: list[Any]) -> RGB | None:
    channels: list[int] = []
    for value in values:
        # bool is an int subclass and never a channel value
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        if not 0 <= value <= 255:
            return None
        channels.append(value)
    return RGB(*channels)


def color_or_neutral(descriptor: Any) -> RGB:
    """Parse a descriptor, falling back to mid-gray."""
    rgb = parse_color(descriptor)
    if rgb is None:
        if descriptor is not None:
            logger.debug("Unrecognized color descriptor %r, using neutral gray", descriptor)
        return NEUTRAL_GRAY
    return rgb


def _linearize(channel: int) -> float:
    """sRGB channel (0-255) to linear light."""
    c = channel / 255.0
    if c <= 0.04045:
        return c / 12.92
    return ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: RGB) -> float:
    """Relative luminance in [0, 1]: 0.2126 R + 0.7152 G + 0.0722 B, linearized."""
    return (
        0.2126 * _linearize(rgb.r)
        + 0.7152 * _linearize(rgb.g)
        + 0.0722 * _linearize(rgb.b)
    )


def channel_variance(rgb: RGB) -> float:
    """Normalized variance of the three channels in [0, 1].

    0 for any gray, 1 for a fully saturated primary.
    """
    channels = (rgb.r / 255.0, rgb.g / 255.0, rgb.b / 255.0)
    mean = sum(channels) / 3.0
    variance = sum((c - mean) ** 2 for c in channels) / 3.0
    return min(1.0, variance / MAX_CHANNEL_VARIANCE)
