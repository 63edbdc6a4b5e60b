"""
PixelDrift -- Noise-Driven Flow Fields
perlin, turbulent, directional and wave generators.

Every generator takes the shared FieldContext first, then the grid size
and the field clock, and returns a VectorField of shape (height, width).
"""

import numpy as np

from fields.base import VectorField, grid


def perlin_flow(ctx, width: int, height: int, time: float = 0.0,
                scale: float = 0.01) -> VectorField:
    """Coherent noise with time as the third axis.

    Angle is noise * 2pi, magnitude is |noise|.
    """
    xs, ys = grid(width, height)
    n = ctx.noise.noise3d(xs * scale, ys * scale, time)
    return VectorField.from_angle(n * np.pi * 2, np.abs(n), kind="perlin")


def turbulent_flow(ctx, width: int, height: int, time: float = 0.0,
                   scale: float = 0.01, octaves: int = 4) -> VectorField:
    """Fractal (fBm) noise; angle scaled by 4pi for a more chaotic look."""
    xs, ys = grid(width, height)
    n = ctx.noise.fbm3d(xs, ys, time, octaves=octaves, scale=scale)
    return VectorField.from_angle(n * np.pi * 4, np.abs(n), kind="turbulent", aux=n)


def directional_flow(ctx, width: int, height: int, time: float = 0.0,
                     direction: float = 45.0, strength: float = 1.0,
                     noise_influence: float = 0.3, scale: float = 0.01) -> VectorField:
    """Constant base vector plus a noise-perturbed component.

    Args:
        direction: Base heading in degrees.
        strength: Length of the base vector.
        noise_influence: Scale of the noise perturbation (0-1).
    """
    xs, ys = grid(width, height)
    rad = np.radians(direction)
    base_x = np.cos(rad) * strength
    base_y = np.sin(rad) * strength

    n = ctx.noise.noise2d(xs * scale, ys * scale) * noise_influence
    angle = n * np.pi * 2
    fx = base_x + np.cos(angle) * np.abs(n)
    fy = base_y + np.sin(angle) * np.abs(n)
    return VectorField.from_components(fx, fy, kind="directional")


def wave_flow(ctx, width: int, height: int, time: float = 0.0,
              wavelength: float = 50.0, amplitude: float = 1.0,
              direction: float | None = None) -> VectorField:
    """Sinusoid along a projected axis, vectors perpendicular to propagation.

    When direction is None the propagation axis turns with the clock
    (time * 10 degrees).
    """
    if direction is None:
        direction = time * 10.0
    xs, ys = grid(width, height)
    k = 2 * np.pi / max(wavelength, 1e-6)
    rad = np.radians(direction)

    projected = xs * np.cos(rad) + ys * np.sin(rad)
    wave = np.sin(projected * k) * amplitude
    perp = rad + np.pi / 2
    return VectorField(
        np.cos(perp) * wave, np.sin(perp) * wave, np.abs(wave),
        kind="wave", aux=wave,
    )
