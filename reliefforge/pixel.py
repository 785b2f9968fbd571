"""
Pixel value type and channel math.

A pixel stores four 8-bit channels (R, G, B, A). Every write is clamped
to [0, 255], so arithmetic on pixels never needs its own range checks.

Also provides the conversions used by the normal-map encoding:
- pack_component: signed unit component [-1, 1] -> byte [0, 255]
- unpack_component: byte [0, 255] -> signed unit component [-1, 1]
"""

from __future__ import annotations
from typing import Iterable, Optional, Union

import numpy as np

from .errors import EmptyNeighborhoodError

CHANNEL_MAX = 255


def clamp_channel(value: int) -> int:
    """Clamp a channel value to [0, 255]."""
    return max(0, min(CHANNEL_MAX, int(value)))


class Pixel:
    """A four-channel color value with clamped channels."""

    __slots__ = ('_r', '_g', '_b', '_a')

    def __init__(self, r: int = 0, g: int = 0, b: int = 0, a: int = CHANNEL_MAX):
        self.r = r
        self.g = g
        self.b = b
        self.a = a

    @property
    def r(self) -> int:
        return self._r

    @r.setter
    def r(self, value: int):
        self._r = clamp_channel(value)

    @property
    def g(self) -> int:
        return self._g

    @g.setter
    def g(self, value: int):
        self._g = clamp_channel(value)

    @property
    def b(self) -> int:
        return self._b

    @b.setter
    def b(self, value: int):
        self._b = clamp_channel(value)

    @property
    def a(self) -> int:
        return self._a

    @a.setter
    def a(self, value: int):
        self._a = clamp_channel(value)

    @property
    def intensity(self) -> float:
        """Mean of the color channels, normalized to [0, 1]."""
        return (self._r + self._g + self._b) / (3.0 * CHANNEL_MAX)

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self._r, self._g, self._b, self._a)

    def copy(self) -> Pixel:
        return Pixel(self._r, self._g, self._b, self._a)

    def __repr__(self) -> str:
        return f"Pixel({self._r}, {self._g}, {self._b}, {self._a})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pixel):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    __hash__ = None


def pack_component(value: Union[float, np.ndarray]) -> Union[int, np.ndarray]:
    """Encode a signed unit component into a byte.

    byte = round((value + 1) * 127.5), rounding halves up and clamping
    to [0, 255].

    Args:
        value: Float or array of floats, nominally in [-1, 1]

    Returns:
        int for scalar input, uint8 array otherwise
    """
    scaled = (np.asarray(value, dtype=np.float64) + 1.0) * (CHANNEL_MAX / 2.0)
    packed = np.clip(np.floor(scaled + 0.5), 0, CHANNEL_MAX).astype(np.uint8)
    if packed.ndim == 0:
        return int(packed)
    return packed


def unpack_component(value: Union[int, np.ndarray]) -> Union[float, np.ndarray]:
    """Decode a byte back into a signed unit component in [-1, 1].

    Inverse of pack_component up to 1/255.
    """
    unpacked = np.asarray(value, dtype=np.float64) * 2.0 / CHANNEL_MAX - 1.0
    if unpacked.ndim == 0:
        return float(unpacked)
    return unpacked


def mean(pixels: Iterable[Optional[Pixel]]) -> Pixel:
    """Average each channel over the present pixels.

    Absent entries (None) are left out of the divisor rather than counted
    as black. Channel means are truncated to integers.

    Raises:
        EmptyNeighborhoodError: if no pixel is present
    """
    total_r = total_g = total_b = total_a = 0
    count = 0

    for pixel in pixels:
        if pixel is None:
            continue
        total_r += pixel.r
        total_g += pixel.g
        total_b += pixel.b
        total_a += pixel.a
        count += 1

    if count == 0:
        raise EmptyNeighborhoodError("cannot average a neighborhood with no present pixels")

    return Pixel(total_r // count, total_g // count, total_b // count, total_a // count)


def scale(pixel: Pixel, factor: float) -> Pixel:
    """Scale the color channels by factor, truncating; alpha is kept."""
    return Pixel(int(pixel.r * factor), int(pixel.g * factor), int(pixel.b * factor), pixel.a)
