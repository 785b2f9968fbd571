"""
PixelBuffer - a 2D grid of optional pixels.

Cells may be absent (no pixel). Reading any coordinate outside the grid
also yields an absent cell instead of raising, which is what the
neighborhood filters rely on at image borders.
"""

from __future__ import annotations
from typing import Iterator, Optional, Tuple

import numpy as np

from .errors import InvalidArgumentError
from .pixel import Pixel, CHANNEL_MAX

BYTES_PER_PIXEL = 4


class PixelBuffer:
    """Grid of optional RGBA pixels.

    Storage is two numpy arrays:
    - channels: (height, width, 4) int32, RGBA order
    - present: (height, width) bool, False for absent cells

    Channels of absent cells are kept at zero.
    """

    __slots__ = ('_width', '_height', '_channels', '_present')

    def __init__(self, width: int, height: int):
        """Create an empty buffer where every cell is absent.

        Args:
            width: Width in pixels
            height: Height in pixels
        """
        if width < 0 or height < 0:
            raise InvalidArgumentError(f"buffer dimensions must be non-negative, got {width}x{height}")
        self._width = int(width)
        self._height = int(height)
        self._channels = np.zeros((self._height, self._width, 4), dtype=np.int32)
        self._present = np.zeros((self._height, self._width), dtype=bool)

    @classmethod
    def from_arrays(cls, channels: np.ndarray, present: Optional[np.ndarray] = None) -> PixelBuffer:
        """Build a buffer from a (H, W, 4) RGBA array and optional presence mask.

        Channel values are clamped to [0, 255]. Without a mask every cell
        is present.
        """
        channels = np.asarray(channels)
        if channels.ndim != 3 or channels.shape[2] != 4:
            raise InvalidArgumentError(f"channels must have shape (H, W, 4), got {channels.shape}")

        height, width = channels.shape[:2]
        buffer = cls(width, height)
        if present is None:
            present = np.ones((height, width), dtype=bool)
        else:
            present = np.asarray(present, dtype=bool)
            if present.shape != (height, width):
                raise InvalidArgumentError(f"present mask must have shape {(height, width)}, got {present.shape}")

        buffer._present = present.copy()
        buffer._channels = np.clip(channels, 0, CHANNEL_MAX).astype(np.int32)
        buffer._channels[~buffer._present] = 0
        return buffer

    @classmethod
    def filled(cls, width: int, height: int, pixel: Pixel) -> PixelBuffer:
        """Create a buffer with every cell set to a copy of pixel."""
        channels = np.empty((height, width, 4), dtype=np.int32)
        channels[:, :] = pixel.as_tuple()
        return cls.from_arrays(channels)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def stride(self) -> int:
        """Size of one row in bytes."""
        return self._width * BYTES_PER_PIXEL

    @property
    def size(self) -> int:
        """Size of the whole buffer in bytes."""
        return self.stride * self._height

    @property
    def shape(self) -> Tuple[int, int]:
        """(width, height)"""
        return (self._width, self._height)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self._width and 0 <= y < self._height

    def __getitem__(self, key: Tuple[int, int]) -> Optional[Pixel]:
        x, y = key
        if not self.in_bounds(x, y) or not self._present[y, x]:
            return None
        r, g, b, a = self._channels[y, x]
        return Pixel(r, g, b, a)

    def __setitem__(self, key: Tuple[int, int], pixel: Optional[Pixel]) -> None:
        x, y = key
        if not self.in_bounds(x, y):
            raise IndexError(f"pixel ({x}, {y}) outside {self._width}x{self._height} buffer")
        if pixel is None:
            self._present[y, x] = False
            self._channels[y, x] = 0
        else:
            self._present[y, x] = True
            self._channels[y, x] = pixel.as_tuple()

    def neighborhood(self, x: int, y: int) -> list[Optional[Pixel]]:
        """The 3x3 neighborhood centered on (x, y), row by row."""
        return [self[x + dx, y + dy] for dy in (-1, 0, 1) for dx in (-1, 0, 1)]

    def pixels(self) -> Iterator[Tuple[int, int, Optional[Pixel]]]:
        """Iterate over (x, y, pixel) in row-major order."""
        for y in range(self._height):
            for x in range(self._width):
                yield x, y, self[x, y]

    def channels(self) -> np.ndarray:
        """Copy of the (H, W, 4) RGBA channel array."""
        return self._channels.copy()

    def present_mask(self) -> np.ndarray:
        """Copy of the (H, W) presence mask."""
        return self._present.copy()

    def absent_count(self) -> int:
        return int(self._present.size - np.count_nonzero(self._present))

    def is_complete(self) -> bool:
        """True if no cell is absent."""
        return bool(self._present.all())

    def same_shape(self, other: PixelBuffer) -> bool:
        return self.shape == other.shape

    def copy(self) -> PixelBuffer:
        return PixelBuffer.from_arrays(self._channels, self._present)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.shape == other.shape
            and np.array_equal(self._present, other._present)
            and np.array_equal(self._channels, other._channels)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelBuffer({self._width}x{self._height}, absent={self.absent_count()})"
