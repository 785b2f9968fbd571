"""
Image filters for normal-map extraction and relighting.

Implements:
- smooth: 3x3 box mean that skips absent pixels
- normal_map: Sobel gradients of pixel intensity packed as a tangent-space normal map
- relight: diffuse + specular shading of a buffer from its normal map

Every filter builds and returns a new PixelBuffer; inputs are never
modified. Work is vectorized with numpy and can be split into row bands
that run on a thread pool.
"""

from __future__ import annotations
import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Sequence, Tuple, Union

import numpy as np

from .errors import InvalidArgumentError, EmptyNeighborhoodError
from .pixel import Pixel, CHANNEL_MAX, pack_component, unpack_component
from .pixel_buffer import PixelBuffer
from .vec3 import Vec3

LOGGER = logging.getLogger("reliefforge.filters")

DEFAULT_BAND_HEIGHT = 64

VectorLike = Union[Vec3, Sequence[float], np.ndarray]

# (dx, dy) offsets of a 3x3 neighborhood, row by row
_NEIGHBORHOOD = [(dx, dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)]


def resolve_thread_count(num_threads: int) -> int:
    """Turn a thread setting into a worker count (0 = one per CPU)."""
    if num_threads < 0:
        raise InvalidArgumentError(f"num_threads must be >= 0, got {num_threads}")
    if num_threads == 0:
        return os.cpu_count() or 4
    return num_threads


def _row_bands(start: int, stop: int, band_height: int) -> List[Tuple[int, int]]:
    """Split rows [start, stop) into bands of at most band_height rows."""
    if band_height <= 0:
        raise InvalidArgumentError(f"band_height must be positive, got {band_height}")
    return [(y, min(y + band_height, stop)) for y in range(start, stop, band_height)]


def _run_bands(
    kernel: Callable[[int, int], None],
    start: int,
    stop: int,
    num_threads: int,
    band_height: int,
) -> None:
    """Run kernel(y0, y1) over every row band.

    Kernels write to disjoint row slices of preallocated arrays, so bands
    can run concurrently.
    """
    bands = _row_bands(start, stop, band_height)
    workers = resolve_thread_count(num_threads)

    if workers > 1 and len(bands) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # list() re-raises any exception from a band
            list(executor.map(lambda band: kernel(*band), bands))
    else:
        for y0, y1 in bands:
            kernel(y0, y1)


def as_vector(value: VectorLike, name: str) -> np.ndarray:
    """Convert a Vec3 or 3-sequence to a float64 array."""
    if isinstance(value, Vec3):
        return value.to_array()
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape != (3,):
        raise InvalidArgumentError(f"{name} must have 3 components, got shape {arr.shape}")
    return arr


def smooth(
    buffer: PixelBuffer,
    num_threads: int = 1,
    band_height: int = DEFAULT_BAND_HEIGHT,
) -> PixelBuffer:
    """Apply a 3x3 mean (box) filter.

    Each output cell is the per-channel mean of the present cells in the
    3x3 neighborhood around it, center included. Neighbors outside the
    buffer and absent neighbors are left out of the divisor, so border
    cells average fewer pixels.

    Args:
        buffer: Source buffer
        num_threads: Worker threads (1 = run inline, 0 = one per CPU)
        band_height: Rows per work band

    Returns:
        New buffer of the same dimensions

    Raises:
        EmptyNeighborhoodError: if some cell has no present pixel in its
            neighborhood
    """
    width, height = buffer.shape
    LOGGER.debug("smooth: %dx%d", width, height)

    present = buffer.present_mask()
    padded = np.pad(buffer.channels(), ((1, 1), (1, 1), (0, 0)))
    padded_present = np.pad(present, 1).astype(np.int32)

    out_channels = np.zeros((height, width, 4), dtype=np.int32)
    counts = np.zeros((height, width), dtype=np.int32)

    def kernel(y0: int, y1: int) -> None:
        totals = np.zeros((y1 - y0, width, 4), dtype=np.int64)
        count = np.zeros((y1 - y0, width), dtype=np.int32)
        for dx, dy in _NEIGHBORHOOD:
            rows = slice(y0 + 1 + dy, y1 + 1 + dy)
            cols = slice(1 + dx, 1 + dx + width)
            totals += padded[rows, cols]
            count += padded_present[rows, cols]
        counts[y0:y1] = count
        out_channels[y0:y1] = totals // np.maximum(count, 1)[..., None]

    _run_bands(kernel, 0, height, num_threads, band_height)

    empty = np.argwhere(counts == 0)
    if empty.size:
        y, x = empty[0]
        raise EmptyNeighborhoodError(
            f"no present pixels around ({x}, {y}); {len(empty)} cell(s) cannot be averaged"
        )

    return PixelBuffer.from_arrays(out_channels)


def intensity_map(buffer: PixelBuffer) -> np.ndarray:
    """Per-cell Pixel.intensity as an (H, W) float array (0 for absent cells)."""
    channels = buffer.channels()
    return channels[:, :, :3].sum(axis=2) / (3.0 * CHANNEL_MAX)


def normal_height(strength: float) -> float:
    """Validate a bump strength and return the z component 1 / strength."""
    if not math.isfinite(strength) or strength <= 0:
        raise InvalidArgumentError(f"normal map strength must be positive, got {strength}")
    with np.errstate(over='ignore'):
        gz = float(np.float64(1.0) / np.float64(strength))
    if not math.isfinite(gz):
        raise InvalidArgumentError(f"normal map strength is too small, got {strength}")
    return gz


def normal_map(
    buffer: PixelBuffer,
    strength: float,
    num_threads: int = 1,
    band_height: int = DEFAULT_BAND_HEIGHT,
) -> PixelBuffer:
    """Extract a tangent-space normal map with a Sobel filter.

    Intensities around each interior pixel are labelled::

        a b c
        d x e
        f g h

    and the normal is normalize(gx, gy, 1 / strength) with
    gx = (f + 2g + h) - (a + 2b + c) and gy = (c + 2e + h) - (a + 2d + f).
    Components are packed into R, G, B; alpha is copied from the center.

    Border rows and columns stay absent, as does any interior cell whose
    neighborhood contains an absent pixel. Smaller strength gives a
    larger z component and flatter normals.

    Args:
        buffer: Source buffer (usually smoothed first)
        strength: Bump strength, must be > 0
        num_threads: Worker threads (1 = run inline, 0 = one per CPU)
        band_height: Rows per work band

    Returns:
        New buffer of the same dimensions

    Raises:
        InvalidArgumentError: if strength is not a positive finite number
            or 1 / strength overflows
    """
    gz = normal_height(strength)

    width, height = buffer.shape
    LOGGER.debug("normal_map: %dx%d strength=%s", width, height, strength)

    out_channels = np.zeros((height, width, 4), dtype=np.int32)
    out_present = np.zeros((height, width), dtype=bool)
    if width < 3 or height < 3:
        return PixelBuffer.from_arrays(out_channels, out_present)

    intensity = intensity_map(buffer)
    present = buffer.present_mask()
    alpha = buffer.channels()[:, :, 3]

    def kernel(y0: int, y1: int) -> None:
        def at(dx: int, dy: int, grid: np.ndarray) -> np.ndarray:
            return grid[y0 + dy:y1 + dy, 1 + dx:width - 1 + dx]

        a, b, c = at(-1, -1, intensity), at(0, -1, intensity), at(1, -1, intensity)
        d, e = at(-1, 0, intensity), at(1, 0, intensity)
        f, g, h = at(-1, 1, intensity), at(0, 1, intensity), at(1, 1, intensity)

        gx = (f + 2.0 * g + h) - (a + 2.0 * b + c)
        gy = (c + 2.0 * e + h) - (a + 2.0 * d + f)
        # hypot keeps the length finite and nonzero for tiny or huge gz
        length = np.hypot(np.hypot(gx, gy), gz)

        band = out_channels[y0:y1, 1:width - 1]
        band[:, :, 0] = pack_component(gx / length)
        band[:, :, 1] = pack_component(gy / length)
        band[:, :, 2] = pack_component(gz / length)
        band[:, :, 3] = alpha[y0:y1, 1:width - 1]

        complete = np.ones(gx.shape, dtype=bool)
        for dx, dy in _NEIGHBORHOOD:
            complete &= at(dx, dy, present)
        out_present[y0:y1, 1:width - 1] = complete

    _run_bands(kernel, 1, height - 1, num_threads, band_height)

    return PixelBuffer.from_arrays(out_channels, out_present)


def decode_normal(pixel: Pixel) -> Vec3:
    """Unpack the normal stored in a normal-map pixel (not renormalized)."""
    return Vec3(
        unpack_component(pixel.r),
        unpack_component(pixel.g),
        unpack_component(pixel.b),
    )


def light_intensity(normal: Vec3, light: Vec3, eye: Vec3) -> float:
    """Shading factor for one pixel, clamped to [0, 1].

    diffuse = n.l, specular = r.v with r = l - 2n(n.l). There is no
    ambient term.
    """
    diffuse = normal.dot(light)
    reflected = light.reflect(normal)
    specular = reflected.dot(eye)
    return min(1.0, max(0.0, diffuse + specular))


def relight(
    buffer: PixelBuffer,
    normals: PixelBuffer,
    light: VectorLike,
    eye: VectorLike,
    num_threads: int = 1,
    band_height: int = DEFAULT_BAND_HEIGHT,
) -> PixelBuffer:
    """Shade a buffer using its normal map and a light/eye vector pair.

    For each cell present in both buffers the normal is unpacked from the
    normal map's R, G, B and the source color is scaled by
    light_intensity(n, light, eye), truncating channels and keeping
    alpha. Cells absent from either buffer are absent in the result.
    Neither vector is normalized here.

    Args:
        buffer: Source (unsmoothed) image
        normals: Normal map with the same dimensions as buffer
        light: Light vector
        eye: Eye vector
        num_threads: Worker threads (1 = run inline, 0 = one per CPU)
        band_height: Rows per work band

    Returns:
        New, relit buffer

    Raises:
        InvalidArgumentError: if the buffers differ in size or a vector
            does not have 3 components
    """
    if not buffer.same_shape(normals):
        raise InvalidArgumentError(
            f"normal map is {normals.width}x{normals.height} "
            f"but source is {buffer.width}x{buffer.height}"
        )

    l = as_vector(light, "light")
    v = as_vector(eye, "eye")
    width, height = buffer.shape
    LOGGER.debug("relight: %dx%d light=%s eye=%s", width, height, l.tolist(), v.tolist())

    source = buffer.channels()
    present = buffer.present_mask() & normals.present_mask()
    n = unpack_component(normals.channels()[:, :, :3])

    out_channels = np.zeros((height, width, 4), dtype=np.int32)

    def kernel(y0: int, y1: int) -> None:
        nb = n[y0:y1]
        n_dot_l = nb[:, :, 0] * l[0] + nb[:, :, 1] * l[1] + nb[:, :, 2] * l[2]
        r = l - (nb * 2.0) * n_dot_l[..., None]
        r_dot_v = r[:, :, 0] * v[0] + r[:, :, 1] * v[1] + r[:, :, 2] * v[2]
        factor = np.clip(n_dot_l + r_dot_v, 0.0, 1.0)

        out_channels[y0:y1, :, :3] = np.trunc(source[y0:y1, :, :3] * factor[..., None])
        out_channels[y0:y1, :, 3] = source[y0:y1, :, 3]

    _run_bands(kernel, 0, height, num_threads, band_height)

    return PixelBuffer.from_arrays(out_channels, present)
