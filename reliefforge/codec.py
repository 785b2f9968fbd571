"""
Raw byte codec for PixelBuffer.

The byte layout is tightly packed BGRA: 4 bytes per pixel in B, G, R, A
order, rows top to bottom, stride = width * 4. This is the layout image
codecs hand over for 32-bit BGRA bitmaps, so the order must not change.
"""

from __future__ import annotations
import logging

import numpy as np

from .errors import InvalidArgumentError
from .pixel_buffer import PixelBuffer, BYTES_PER_PIXEL

LOGGER = logging.getLogger("reliefforge.codec")

# Index of R, G, B, A inside one BGRA pixel
_BGRA_ORDER = [2, 1, 0, 3]


def decode_buffer(raw: bytes, width: int, height: int) -> PixelBuffer:
    """Interpret packed BGRA bytes as a PixelBuffer.

    Args:
        raw: Packed pixel bytes (bytes, bytearray or memoryview)
        width: Width in pixels
        height: Height in pixels

    Returns:
        PixelBuffer with every cell present

    Raises:
        InvalidArgumentError: for negative dimensions or if raw is not
            exactly width * height * 4 bytes long
    """
    if width < 0 or height < 0:
        raise InvalidArgumentError(f"buffer dimensions must be non-negative, got {width}x{height}")

    expected = width * height * BYTES_PER_PIXEL
    data = np.frombuffer(bytes(raw), dtype=np.uint8)
    if data.size != expected:
        raise InvalidArgumentError(
            f"expected {expected} bytes for a {width}x{height} BGRA buffer, got {data.size}"
        )

    bgra = data.reshape((height, width, BYTES_PER_PIXEL))
    rgba = bgra[:, :, _BGRA_ORDER].astype(np.int32)

    LOGGER.debug("Decoded %dx%d buffer (%d bytes)", width, height, expected)
    return PixelBuffer.from_arrays(rgba)


def encode_buffer(buffer: PixelBuffer) -> bytes:
    """Pack a PixelBuffer into BGRA bytes.

    Absent cells encode as four zero bytes.
    """
    rgba = buffer.channels()
    rgba[~buffer.present_mask()] = 0

    bgra = np.empty_like(rgba, dtype=np.uint8)
    bgra[:, :, _BGRA_ORDER] = rgba

    LOGGER.debug("Encoded %dx%d buffer (%d bytes)", buffer.width, buffer.height, buffer.size)
    return bgra.tobytes()
