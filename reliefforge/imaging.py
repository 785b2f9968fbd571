"""
Pillow interop for PixelBuffer.

Converts between PIL images and PixelBuffers through the packed BGRA
layout of the codec, and loads/saves image files.
"""

from __future__ import annotations
from pathlib import Path
from typing import Union
import logging

import numpy as np
from PIL import Image

from .codec import decode_buffer, encode_buffer
from .pixel_buffer import PixelBuffer

LOGGER = logging.getLogger("reliefforge.imaging")

# RGBA <-> BGRA channel swap
_SWAP_RB = [2, 1, 0, 3]


def buffer_from_image(image: Image.Image) -> PixelBuffer:
    """Convert a PIL image (any mode) into a PixelBuffer."""
    rgba = np.asarray(image.convert('RGBA'), dtype=np.uint8)
    height, width = rgba.shape[:2]
    raw = rgba[:, :, _SWAP_RB].tobytes()
    return decode_buffer(raw, width, height)


def image_from_buffer(buffer: PixelBuffer) -> Image.Image:
    """Convert a PixelBuffer into an RGBA PIL image.

    Absent cells become transparent black.
    """
    bgra = np.frombuffer(encode_buffer(buffer), dtype=np.uint8)
    bgra = bgra.reshape((buffer.height, buffer.width, 4))
    return Image.fromarray(np.ascontiguousarray(bgra[:, :, _SWAP_RB]))


def load_buffer(filename: Union[str, Path]) -> PixelBuffer:
    """Load an image file into a PixelBuffer."""
    path = Path(filename)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {filename}")

    with Image.open(path) as img:
        buffer = buffer_from_image(img)

    LOGGER.info("Loaded %s (%dx%d)", path, buffer.width, buffer.height)
    return buffer


def save_buffer(buffer: PixelBuffer, filename: Union[str, Path]) -> None:
    """Save a PixelBuffer; the file extension picks the format."""
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    image_from_buffer(buffer).save(path)
    LOGGER.info("Saved %s (%dx%d)", path, buffer.width, buffer.height)
