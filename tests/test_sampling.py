"""Tests for field sampling, interpolation and brightness blending."""

import numpy as np
import pytest

from fields.base import VectorField
from fields.sampling import (
    canvas_to_field, sample_nearest, sample_bilinear, sample_field,
    interpolate_fields, composite_fields, brightness_field, blend_brightness,
)


def _random_field(width=7, height=5, seed=0):
    rng = np.random.default_rng(seed)
    return VectorField(rng.normal(size=(height, width)), rng.normal(size=(height, width)),
                       rng.random((height, width)), kind="test")


class TestSamplers:
    def test_bilinear_equals_nearest_on_grid(self):
        field = _random_field()
        ys, xs = np.mgrid[0:5, 0:7].astype(float)
        near = sample_nearest(field, xs, ys)
        bil = sample_bilinear(field, xs, ys)
        for a, b in zip(near, bil):
            assert np.array_equal(a, b)

    def test_nearest_floors(self):
        field = _random_field()
        x, y, m = sample_nearest(field, 2.9, 1.2)
        assert x == field.x[1, 2]
        assert m == field.magnitude[1, 2]

    def test_out_of_range_clamps(self):
        field = _random_field()
        x, _, _ = sample_nearest(field, np.array([-5.0, 100.0]), np.array([-1.0, 50.0]))
        assert x[0] == field.x[0, 0]
        assert x[1] == field.x[4, 6]
        bx, _, _ = sample_bilinear(field, np.array([-5.0, 100.0]), np.array([-1.0, 50.0]))
        assert np.array_equal(x, bx)

    def test_bilinear_midpoint(self):
        field = VectorField(np.array([[0.0, 2.0]]), np.array([[4.0, 0.0]]), np.array([[1.0, 3.0]]))
        x, y, m = sample_bilinear(field, 0.5, 0.0)
        assert x == pytest.approx(1.0)
        assert y == pytest.approx(2.0)
        assert m == pytest.approx(2.0)

    def test_canvas_to_field_scaling(self):
        fx, fy = canvas_to_field(40.0, 20.0, 80, 40, 20, 10)
        assert fx == pytest.approx(10.0)
        assert fy == pytest.approx(5.0)

    def test_sample_field_modes(self):
        field = _random_field()
        xs = np.array([0.0, 13.3, 27.9])
        ys = np.array([0.0, 9.1, 19.9])
        near = sample_field(field, xs, ys, 28, 20)
        bil = sample_field(field, xs, ys, 28, 20, mode="bilinear")
        assert near[0].shape == (3,)
        assert bil[0].shape == (3,)

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown sampling mode"):
            sample_field(_random_field(), 0.0, 0.0, 10, 10, mode="cubic")


class TestBlending:
    def test_interpolate_endpoints(self):
        a = _random_field(seed=1)
        b = _random_field(seed=2)
        assert np.allclose(interpolate_fields(a, b, 0.0).x, a.x)
        assert np.allclose(interpolate_fields(a, b, 1.0).y, b.y)
        mid = interpolate_fields(a, b, 0.5)
        assert np.allclose(mid.magnitude, (a.magnitude + b.magnitude) / 2)

    def test_interpolate_shape_mismatch(self):
        with pytest.raises(ValueError, match="shapes differ"):
            interpolate_fields(_random_field(4, 4), _random_field(5, 4), 0.5)

    def test_composite_weights(self):
        a = VectorField.from_components(np.ones((2, 2)), np.zeros((2, 2)), kind="a")
        b = VectorField.from_components(np.zeros((2, 2)), np.ones((2, 2)), kind="b")
        out = composite_fields([(a, 3.0), (b, 4.0)])
        assert out.kind == "composite"
        assert np.allclose(out.x, 3.0)
        assert np.allclose(out.y, 4.0)
        assert np.allclose(out.magnitude, 5.0)

    def test_composite_empty(self):
        with pytest.raises(ValueError):
            composite_fields([])

    def test_brightness_field_directions(self):
        bright = brightness_field(np.ones((8, 8)), 1.0, 4, 4)
        dark = brightness_field(np.zeros((8, 8)), 1.0, 4, 4)
        assert np.allclose(bright.y, -0.5)
        assert np.allclose(dark.y, 0.5)
        assert np.allclose(bright.x, 0.0, atol=1e-12)

    def test_blend_brightness_thirty_percent(self):
        zero = VectorField.zeros(4, 4)
        out = blend_brightness(zero, np.ones((16, 16)), 1.0)
        assert np.allclose(out.y, -0.15)
