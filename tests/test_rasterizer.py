"""Tests for frame rasterization and the debug overlay."""

import numpy as np
import pytest

from core.rasterizer import rasterize, rasterize_splat, draw_field_overlay, draw_displacement
from core.simulation import ParticleSystem
from fields.base import VectorField


def _line_image(colors):
    img = np.zeros((1, len(colors), 4), dtype=np.uint8)
    for i, c in enumerate(colors):
        img[0, i] = c
    return img


def _system(img):
    h, w = img.shape[:2]
    return ParticleSystem.from_image(img, w, h)


class TestNearest:
    def test_at_rest_reproduces_image(self, gradient_image):
        frame = rasterize(_system(gradient_image))
        assert frame.shape == (24, 32, 4)
        assert frame.dtype == np.uint8
        assert np.array_equal(frame, gradient_image)

    def test_deterministic(self, gradient_image):
        system = _system(gradient_image)
        rng = np.random.default_rng(0)
        system.x = rng.uniform(0, 32, len(system))
        system.y = rng.uniform(0, 24, len(system))
        assert rasterize(system).tobytes() == rasterize(system).tobytes()

    def test_collision_highest_id_wins(self):
        colors = [(10, 0, 0, 255), (20, 0, 0, 255), (30, 0, 0, 255), (40, 0, 0, 255)]
        system = _system(_line_image(colors))
        system.x[:] = 1.0
        frame = rasterize(system)
        assert tuple(frame[0, 1]) == (40, 0, 0, 255)
        assert tuple(frame[0, 0]) == (0, 0, 0, 255)
        assert tuple(frame[0, 3]) == (0, 0, 0, 255)

    def test_rounds_half_up(self):
        system = _system(_line_image([(0, 0, 0, 255), (0, 0, 0, 255), (200, 0, 0, 255)]))
        system.x[2] = 0.5
        frame = rasterize(system)
        assert frame[0, 1, 0] == 200
        assert frame[0, 2, 0] == 0

    def test_out_of_bounds_skipped(self):
        system = _system(_line_image([(200, 0, 0, 255), (0, 90, 0, 255)]))
        system.x[0] = -0.6
        frame = rasterize(system)
        assert tuple(frame[0, 0]) == (0, 0, 0, 255)
        assert tuple(frame[0, 1]) == (0, 90, 0, 255)

    def test_read_only(self, uniform_image):
        frame = rasterize(_system(uniform_image))
        with pytest.raises(ValueError):
            frame[0, 0, 0] = 1


class TestSplat:
    def test_integer_positions_match_nearest_rgb(self, gradient_image):
        system = _system(gradient_image)
        assert np.array_equal(rasterize_splat(system)[..., :3], gradient_image[..., :3])

    def test_half_position_splits(self):
        system = _system(_line_image([(255, 255, 255, 255), (0, 0, 0, 255), (0, 0, 0, 255)]))
        system.x[0] = 0.5
        frame = rasterize_splat(system)
        assert frame[0, 0, 0] == 128
        assert frame[0, 1, 0] == 128
        assert frame[0, 2, 0] == 0

    def test_saturates(self):
        system = _system(_line_image([(200, 200, 200, 255), (200, 200, 200, 255)]))
        system.x[:] = 0.0
        frame = rasterize_splat(system)
        assert frame[0, 0, 0] == 255
        assert np.all(frame[..., 3] == 255)


class TestFieldOverlay:
    def test_draws_on_a_copy(self):
        frame = np.zeros((32, 32, 4), dtype=np.uint8)
        frame[..., 3] = 255
        field = VectorField.from_components(np.ones((8, 8)), np.zeros((8, 8)), kind="test")
        out = draw_field_overlay(frame, field)
        assert out.shape == frame.shape
        assert out[..., 1].any()
        assert not frame[..., 1].any()

    def test_zero_field_draws_nothing(self):
        frame = np.zeros((16, 16, 3), dtype=np.uint8)
        out = draw_field_overlay(frame, VectorField.zeros(4, 4))
        assert np.array_equal(out, frame)


class TestDisplacement:
    def _black(self, size=20):
        img = np.zeros((size, size, 4), dtype=np.uint8)
        img[..., 3] = 255
        return img

    def test_at_rest_only_dots(self):
        img = self._black()
        system = _system(img)
        out = draw_displacement(rasterize(system), system, every=10)
        green = out[..., 1] > 0
        red = out[..., 0] > 0
        assert red.any()
        assert not green.any()

    def test_line_from_origin_to_position(self):
        img = self._black()
        system = _system(img)
        system.x[0] = 10.0  # particle 0 starts at (0, 0)
        out = draw_displacement(rasterize(system), system, every=10)
        assert out[0, 5, 1] > 0
        assert np.all(out[..., 3] == 255)

    def test_input_untouched(self):
        img = self._black()
        system = _system(img)
        system.y[:] = (system.y + 3) % 20
        frame = rasterize(system)
        kept = frame.copy()
        draw_displacement(frame, system)
        assert np.array_equal(frame, kept)
