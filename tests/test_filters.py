"""Tests for smoothing, normal map extraction and relighting."""

import math
import sys
import warnings

import pytest
import numpy as np

from reliefforge.errors import InvalidArgumentError, EmptyNeighborhoodError
from reliefforge.filters import (
    smooth, normal_map, relight, light_intensity, decode_normal,
    intensity_map, resolve_thread_count
)
from reliefforge.pixel import Pixel, mean, scale, pack_component
from reliefforge.pixel_buffer import PixelBuffer
from reliefforge.vec3 import Vec3

FLAT_NORMAL = Pixel(128, 128, 255, 255)
STEP = 1.0 / 255


def random_buffer(width, height, seed=0):
    rng = np.random.default_rng(seed)
    return PixelBuffer.from_arrays(rng.integers(0, 256, size=(height, width, 4)))


def gray_buffer(width, height, value, alpha=255):
    return PixelBuffer.filled(width, height, Pixel(value, value, value, alpha))


def ramp_buffer(width, height, step=40):
    """Intensity increases with x."""
    buf = PixelBuffer(width, height)
    for x, y, _ in list(buf.pixels()):
        v = min(255, x * step)
        buf[x, y] = Pixel(v, v, v, 255)
    return buf


def reference_normal(buffer, x, y, strength):
    """Per-pixel normal computed with Pixel and Vec3 only."""
    def i(dx, dy):
        return buffer[x + dx, y + dy].intensity

    gx = (i(-1, 1) + 2.0 * i(0, 1) + i(1, 1)) - (i(-1, -1) + 2.0 * i(0, -1) + i(1, -1))
    gy = (i(1, -1) + 2.0 * i(1, 0) + i(1, 1)) - (i(-1, -1) + 2.0 * i(-1, 0) + i(-1, 1))
    n = Vec3(gx, gy, 1.0 / strength).normalize()
    return Pixel(pack_component(n.x), pack_component(n.y), pack_component(n.z), buffer[x, y].a)


class TestSmooth:
    """Tests for the 3x3 mean filter."""

    def test_preserves_dimensions(self):
        result = smooth(random_buffer(7, 5))
        assert result.shape == (7, 5)
        assert result.is_complete()

    def test_uniform_buffer_unchanged(self):
        buf = PixelBuffer.filled(6, 4, Pixel(12, 34, 56, 78))
        assert smooth(buf) == buf

    def test_corner_uses_fewer_neighbors(self):
        buf = PixelBuffer(2, 2)
        for v, (x, y) in zip((0, 4, 8, 12), ((0, 0), (1, 0), (0, 1), (1, 1))):
            buf[x, y] = Pixel(v, v, v, v)
        result = smooth(buf)
        # Every neighborhood covers all four cells: (0 + 4 + 8 + 12) / 4
        for _, _, p in result.pixels():
            assert p == Pixel(6, 6, 6, 6)

    def test_row(self):
        buf = PixelBuffer(3, 1)
        for x, v in enumerate((0, 3, 9)):
            buf[x, 0] = Pixel(v, 0, 0, 255)
        result = smooth(buf)
        assert [result[x, 0].r for x in range(3)] == [1, 4, 6]

    def test_matches_pixel_mean(self):
        buf = random_buffer(9, 7, seed=5)
        for x, y, _ in list(buf.pixels()):
            if (x + y) % 3 == 0:
                buf[x, y] = None
        result = smooth(buf)
        for x, y, p in result.pixels():
            assert p == mean(buf.neighborhood(x, y))

    def test_absent_cell_with_neighbors_becomes_present(self):
        buf = gray_buffer(3, 3, 90)
        buf[1, 1] = None
        result = smooth(buf)
        assert result[1, 1] == Pixel(90, 90, 90, 255)

    def test_all_absent_raises(self):
        with pytest.raises(EmptyNeighborhoodError):
            smooth(PixelBuffer(3, 3))

    def test_isolated_region_raises(self):
        buf = PixelBuffer(5, 5)
        buf[0, 0] = Pixel(1, 2, 3, 4)
        with pytest.raises(EmptyNeighborhoodError):
            smooth(buf)

    def test_single_pixel(self):
        buf = PixelBuffer.filled(1, 1, Pixel(1, 2, 3, 4))
        assert smooth(buf) == buf

    def test_empty_buffer(self):
        assert smooth(PixelBuffer(0, 0)).shape == (0, 0)

    def test_does_not_modify_input(self):
        buf = random_buffer(6, 6, seed=2)
        before = buf.copy()
        smooth(buf)
        assert buf == before

    def test_threaded_matches_inline(self):
        buf = random_buffer(40, 37, seed=9)
        assert smooth(buf, num_threads=4, band_height=5) == smooth(buf)


class TestNormalMap:
    """Tests for Sobel normal map extraction."""

    def test_preserves_dimensions(self):
        assert normal_map(random_buffer(8, 6), 1.0).shape == (8, 6)

    def test_border_is_absent(self):
        result = normal_map(random_buffer(6, 5), 1.0)
        for x, y, p in result.pixels():
            on_border = x in (0, 5) or y in (0, 4)
            assert (p is None) == on_border

    @pytest.mark.parametrize("strength", [1e-300, 0.01, 0.5, 1.0, 10.0, 1000.0, 1e200, sys.float_info.max])
    def test_flat_region_faces_viewer(self, strength):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            result = normal_map(gray_buffer(5, 5, 77), strength)
        assert result[2, 2] == FLAT_NORMAL
        for x in range(1, 4):
            for y in range(1, 4):
                n = decode_normal(result[x, y])
                assert abs(n.x) <= STEP + 1e-12
                assert abs(n.y) <= STEP + 1e-12
                assert abs(n.z - 1.0) <= STEP + 1e-12

    def test_three_by_three_gray(self):
        result = normal_map(gray_buffer(3, 3, 128), 1.0)
        assert result[1, 1] == FLAT_NORMAL
        assert result.absent_count() == 8

    def test_alpha_carried_from_center(self):
        buf = gray_buffer(3, 3, 50)
        buf[1, 1] = Pixel(50, 50, 50, 17)
        assert normal_map(buf, 1.0)[1, 1].a == 17

    def test_horizontal_ramp_tilts_green(self):
        result = normal_map(ramp_buffer(5, 5), 1.0)
        p = result[2, 2]
        assert p.r == 128  # no change along y
        assert p.g > 128
        assert p.b < 255

    def test_strength_controls_bumpiness(self):
        buf = ramp_buffer(5, 5)
        gentle = normal_map(buf, 0.5)[2, 2]
        strong = normal_map(buf, 2.0)[2, 2]
        assert strong.b < gentle.b
        assert strong.g > gentle.g

    def test_matches_scalar_reference(self):
        buf = random_buffer(12, 9, seed=4)
        strength = 1.7
        result = normal_map(buf, strength)
        for x in range(1, 11):
            for y in range(1, 8):
                expected = reference_normal(buf, x, y, strength)
                actual = result[x, y]
                diffs = [abs(a - b) for a, b in zip(actual.as_tuple(), expected.as_tuple())]
                assert max(diffs) <= 1

    @pytest.mark.parametrize("strength", [0, 0.0, -1.0, math.inf, math.nan])
    def test_invalid_strength_raises(self, strength):
        with pytest.raises(InvalidArgumentError):
            normal_map(gray_buffer(3, 3, 128), strength)

    def test_huge_strength_on_slope(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            result = normal_map(ramp_buffer(5, 5), 1e200)
        for x in range(1, 4):
            for y in range(1, 4):
                assert result[x, y] == Pixel(128, 255, 128, 255)

    @pytest.mark.parametrize("strength", [1e-310, 5e-324])
    def test_strength_with_overflowing_height_raises(self, strength):
        with pytest.raises(InvalidArgumentError):
            normal_map(gray_buffer(3, 3, 128), strength)

    def test_invalid_strength_is_value_error(self):
        with pytest.raises(ValueError):
            normal_map(gray_buffer(3, 3, 128), 0)

    def test_small_buffer_all_absent(self):
        result = normal_map(gray_buffer(2, 5, 10), 1.0)
        assert result.shape == (2, 5)
        assert result.absent_count() == 10

    def test_absent_neighbor_leaves_cell_absent(self):
        buf = gray_buffer(5, 5, 60)
        buf[0, 0] = None
        result = normal_map(buf, 1.0)
        assert result[1, 1] is None
        assert result[2, 2] == FLAT_NORMAL
        assert result[3, 3] == FLAT_NORMAL

    def test_does_not_modify_input(self):
        buf = random_buffer(6, 6, seed=1)
        before = buf.copy()
        normal_map(buf, 2.0)
        assert buf == before

    def test_threaded_matches_inline(self):
        buf = random_buffer(31, 45, seed=8)
        assert normal_map(buf, 0.8, num_threads=3, band_height=4) == normal_map(buf, 0.8)


class TestLightIntensity:
    """Tests for the per-pixel shading model."""

    def test_light_along_normal(self):
        n = Vec3(0, 0, 1)
        assert light_intensity(n, n, Vec3(0, 0, 0)) == 1.0

    def test_clamped_high(self):
        assert light_intensity(Vec3(0, 0, 1), Vec3(0, 0, 5), Vec3(0, 0, 0)) == 1.0

    def test_clamped_low(self):
        assert light_intensity(Vec3(0, 0, 1), Vec3(0, 0, -1), Vec3(0, 0, 0)) == 0.0

    def test_orthogonal_light(self):
        assert light_intensity(Vec3(0, 0, 1), Vec3(1, 0, 0), Vec3(0, 0, 0)) == 0.0

    def test_specular_term(self):
        # diffuse 0.25, r = (0, 0, -0.25), r.v = 0.25
        n = Vec3(0, 0, 1)
        assert light_intensity(n, Vec3(0, 0, 0.25), Vec3(0, 0, -1)) == pytest.approx(0.5)

    def test_decode_normal(self):
        n = decode_normal(Pixel(0, 255, 128))
        assert n.x == -1.0
        assert n.y == 1.0
        assert n.z == pytest.approx(STEP)


class TestRelight:
    """Tests for relighting with a normal map."""

    @pytest.fixture
    def flat_normals(self):
        return PixelBuffer.filled(3, 3, FLAT_NORMAL)

    def test_light_equal_to_normal_keeps_pixel(self, flat_normals):
        source = PixelBuffer.filled(3, 3, Pixel(200, 100, 50, 255))
        light = decode_normal(flat_normals[1, 1])
        result = relight(source, flat_normals, light, Vec3(0, 0, 0))
        assert result == source

    def test_orthogonal_light_is_black(self, flat_normals):
        source = PixelBuffer.filled(3, 3, Pixel(200, 100, 50, 99))
        result = relight(source, flat_normals, Vec3(1, -1, 0), Vec3(0, 0, 0))
        for _, _, p in result.pixels():
            assert p == Pixel(0, 0, 0, 99)

    def test_half_light(self, flat_normals):
        source = PixelBuffer.filled(3, 3, Pixel(200, 101, 51, 90))
        result = relight(source, flat_normals, (0, 0, 0.5), (0, 0, 0))
        assert result[1, 1] == Pixel(100, 50, 25, 90)

    def test_specular_contribution(self, flat_normals):
        source = PixelBuffer.filled(3, 3, Pixel(200, 100, 50, 255))
        result = relight(source, flat_normals, Vec3(0, 0, 0.25), Vec3(0, 0, -1))
        assert result[1, 1] == Pixel(100, 50, 25, 255)

    def test_pipeline_on_gray_image(self):
        source = gray_buffer(3, 3, 128)
        normals = normal_map(smooth(source), 1.0)
        result = relight(source, normals, decode_normal(normals[1, 1]), Vec3(0, 0, 0))
        assert result[1, 1] == source[1, 1]
        assert result.absent_count() == 8

    def test_absent_cells_propagate(self, flat_normals):
        source = PixelBuffer.filled(3, 3, Pixel(10, 20, 30, 40))
        source[0, 0] = None
        normals = flat_normals.copy()
        normals[2, 2] = None
        result = relight(source, normals, Vec3(0, 0, 1), Vec3(0, 0, 0))
        assert result[0, 0] is None
        assert result[2, 2] is None
        assert result[1, 1] == Pixel(10, 20, 30, 40)

    def test_matches_scalar_reference(self):
        source = random_buffer(10, 8, seed=6)
        normals = random_buffer(10, 8, seed=7)
        light = Vec3(0.3, -0.4, 0.8)
        eye = Vec3(0.1, 0.2, 0.5)
        result = relight(source, normals, light, eye)
        for x, y, p in result.pixels():
            factor = light_intensity(decode_normal(normals[x, y]), light, eye)
            assert p == scale(source[x, y], factor)

    def test_dimension_mismatch_raises(self):
        with pytest.raises(InvalidArgumentError):
            relight(gray_buffer(3, 3, 1), gray_buffer(3, 4, 1), Vec3(0, 0, 1), Vec3())

    def test_bad_vector_raises(self, flat_normals):
        with pytest.raises(InvalidArgumentError):
            relight(flat_normals, flat_normals, (0, 1), Vec3())

    def test_does_not_modify_inputs(self):
        source = random_buffer(5, 5, seed=1)
        normals = normal_map(source, 1.0)
        source_before, normals_before = source.copy(), normals.copy()
        relight(source, normals, Vec3(0.2, 0.2, 0.9), Vec3(0, 0, 1))
        assert source == source_before
        assert normals == normals_before

    def test_threaded_matches_inline(self):
        source = random_buffer(33, 41, seed=12)
        normals = random_buffer(33, 41, seed=13)
        light, eye = Vec3(0.1, 0.5, 0.7), Vec3(0, 0, 1)
        threaded = relight(source, normals, light, eye, num_threads=4, band_height=6)
        assert threaded == relight(source, normals, light, eye)


class TestHelpers:
    """Tests for the smaller filter helpers."""

    def test_intensity_map(self):
        buf = PixelBuffer.filled(2, 2, Pixel(30, 60, 90))
        np.testing.assert_array_almost_equal(intensity_map(buf), np.full((2, 2), 180 / 765))

    def test_resolve_thread_count(self):
        import os
        assert resolve_thread_count(3) == 3
        assert resolve_thread_count(0) == (os.cpu_count() or 4)
        with pytest.raises(InvalidArgumentError):
            resolve_thread_count(-1)
