"""Tests for the particle arena and its per-tick update."""

import numpy as np
import pytest

from core.params import SimulationParams
from core.segmentation import segment_image, assign_regions
from core.simulation import ParticleSystem, wrap, clamp_velocity
from fields.base import VectorField


def _system(img):
    h, w = img.shape[:2]
    return ParticleSystem.from_image(img, w, h)


class TestFromImage:
    def test_one_particle_per_pixel(self, gradient_image):
        system = _system(gradient_image)
        assert len(system) == 32 * 24
        assert system.x[33] == 1.0 and system.y[33] == 1.0
        assert np.array_equal(system.colors[5], gradient_image[0, 5])
        assert np.all(system.vx == 0) and np.all(system.region_id == -1)

    def test_source_arrays_read_only(self, gradient_image):
        system = _system(gradient_image)
        for arr in (system.ox, system.oy, system.brightness, system.colors):
            with pytest.raises(ValueError):
                arr[0] = 0

    def test_does_not_alias_input(self, uniform_image):
        system = _system(uniform_image)
        uniform_image[0, 0] = (9, 9, 9, 9)
        assert system.colors[0, 0] == 0


class TestWrap:
    def test_wraps_into_bounds(self):
        x, y = wrap(np.array([-0.5, 10.0, 23.5]), np.array([-3.0, 4.0, 8.0]), 10, 8)
        assert x.tolist() == pytest.approx([9.5, 0.0, 3.5])
        assert y.tolist() == pytest.approx([5.0, 4.0, 0.0])

    def test_tiny_negative_stays_below_bound(self):
        x, y = wrap(np.array([-1e-18]), np.array([-1e-18]), 10, 8)
        assert 0 <= x[0] < 10
        assert 0 <= y[0] < 8

    def test_random_positions_end_inside(self):
        rng = np.random.default_rng(0)
        x, y = wrap(rng.uniform(-1e4, 1e4, 5000), rng.uniform(-1e4, 1e4, 5000), 17, 13)
        assert (x >= 0).all() and (x < 17).all()
        assert (y >= 0).all() and (y < 13).all()


class TestForces:
    def test_brightness_force(self):
        img = np.full((2, 2, 4), 255, dtype=np.uint8)
        fx, fy = _system(img).brightness_force(1.0)
        assert np.allclose(fy, -0.1)
        assert np.allclose(fx, 0.0, atol=1e-12)

    def test_region_force_zero_when_unassigned(self, block_image):
        fx, fy = _system(block_image).region_force()
        assert not fx.any() and not fy.any()

    def test_region_force_zero_on_centre(self):
        img = np.zeros((5, 5, 4), dtype=np.uint8)
        img[..., 3] = 255
        system = _system(img)
        regions = segment_image(img, 5, 5, 30)
        system.assign_regions(regions, assign_regions(regions, 5, 5))
        fx, fy = system.region_force()
        centre = 2 * 5 + 2
        assert fx[centre] == 0.0 and fy[centre] == 0.0
        assert fx[0] != 0.0

    def test_assign_regions_shape_checked(self, block_image):
        with pytest.raises(ValueError, match="Region map"):
            _system(block_image).assign_regions([], np.zeros(3))


class TestStep:
    def test_constant_field_drives_velocity(self):
        img = np.zeros((4, 4, 4), dtype=np.uint8)
        img[..., 3] = 255
        system = _system(img)
        field = VectorField(np.ones((1, 1)), np.zeros((1, 1)), np.ones((1, 1)))
        system.step(field, 10.0, SimulationParams(), np.random.default_rng(0))
        # (1 * 0.1 field + jitter) * 10 ms * 0.5 speed
        assert np.allclose(system.vx, 0.5, atol=0.01)
        # dark pixels sink: +0.1 * 0.25 * 10 * 0.5
        assert np.allclose(system.vy, 0.125, atol=0.01)
        assert system.elapsed_ms == 10.0

    def test_positions_unchanged_until_integrate(self, gradient_image):
        system = _system(gradient_image)
        system.step(None, 16.0, SimulationParams(), np.random.default_rng(0))
        assert np.array_equal(system.x, system.ox)
        system.integrate()
        assert not np.array_equal(system.x, system.ox)

    def test_velocity_clamped(self, gradient_image):
        system = _system(gradient_image)
        params = SimulationParams(movement_speed=0.5)
        field = VectorField(np.full((6, 8), 500.0), np.full((6, 8), -500.0), np.ones((6, 8)))
        system.step(field, 50.0, params, np.random.default_rng(0))
        speed = np.hypot(system.vx, system.vy)
        assert speed.max() <= 1.5 + 1e-9

    def test_stays_in_bounds_under_strong_field(self, gradient_image):
        system = _system(gradient_image)
        params = SimulationParams(movement_speed=2.0)
        rng = np.random.default_rng(3)
        for _ in range(100):
            field = VectorField(rng.normal(size=(6, 8)) * 50, rng.normal(size=(6, 8)) * 50,
                                np.ones((6, 8)))
            system.step(field, 50.0, params, rng)
            system.integrate()
        assert (system.x >= 0).all() and (system.x < 32).all()
        assert (system.y >= 0).all() and (system.y < 24).all()

    def test_bilinear_sampling_mode(self, gradient_image):
        system = _system(gradient_image)
        params = SimulationParams(field_sampling="bilinear")
        field = VectorField(np.ones((6, 8)), np.zeros((6, 8)), np.ones((6, 8)))
        system.step(field, 10.0, params, np.random.default_rng(0))
        assert np.isfinite(system.vx).all()

    def test_reset(self, gradient_image):
        system = _system(gradient_image)
        for _ in range(5):
            system.step(None, 30.0, SimulationParams(), np.random.default_rng(1))
            system.integrate()
        system.reset()
        assert np.array_equal(system.x, system.ox)
        assert np.array_equal(system.y, system.oy)
        assert not system.vx.any()
        assert system.elapsed_ms == 0.0


def test_clamp_velocity_keeps_direction(uniform_image):
    system = _system(uniform_image)
    system.vx[:] = 3.0
    system.vy[:] = 4.0
    clamp_velocity(system, 1.0)
    assert np.allclose(system.vx, 0.6)
    assert np.allclose(system.vy, 0.8)
