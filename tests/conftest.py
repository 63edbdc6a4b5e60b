"""
Conftest: shared fixtures for all PixelDrift test modules.

1. Synthetic images (uniform, gradient, blocks) -- no image files needed
2. Seeded FieldContext with a fixed permutation table
3. Warnings-as-errors for numpy RuntimeWarnings (catches divide-by-zero)
"""

import os
import sys
import warnings

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fields.base import FieldContext
from fields.noise import make_permutation


def _make_uniform_image(width=8, height=8, color=(0, 0, 0, 255)):
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :] = color
    return img


def _make_gradient_image(width=32, height=24):
    """Horizontal red ramp, constant green, vertical blue ramp."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[:, :, 0] = np.linspace(0, 255, width, dtype=np.uint8)[None, :]
    img[:, :, 1] = 128
    img[:, :, 2] = np.linspace(0, 255, height, dtype=np.uint8)[:, None]
    img[:, :, 3] = 255
    return img


def _make_block_image(width=20, height=20):
    """Four flat quadrants: black, white, red, blue (each 10x10 = 100 px)."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[..., 3] = 255
    hw, hh = width // 2, height // 2
    img[:hh, hw:, :3] = (255, 255, 255)
    img[hh:, :hw, :3] = (255, 0, 0)
    img[hh:, hw:, :3] = (0, 0, 255)
    return img


@pytest.fixture
def uniform_image():
    return _make_uniform_image()


@pytest.fixture
def gradient_image():
    return _make_gradient_image()


@pytest.fixture
def block_image():
    return _make_block_image()


@pytest.fixture
def fixed_permutation():
    return make_permutation(np.random.default_rng(1234))


@pytest.fixture
def ctx(fixed_permutation):
    """Field context with deterministic noise and generator state."""
    return FieldContext.create(seed=7, permutation=fixed_permutation)


@pytest.fixture(autouse=True)
def _numpy_warnings_are_errors():
    """Any divide-by-zero / invalid-value warning fails the test."""
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        yield
