"""
PixelDrift -- Centre-Based Flow Fields
vortex, centrifugal, radial, lidar and black_hole generators.

All of these have a singular centre. Cells exactly on it get a zero
vector; every inverse or exponential term uses an explicit clamp.
"""

import numpy as np

from fields.base import VectorField, grid, polar, unit, rotate


def _centre(width, height, center):
    if center is None:
        return width / 2.0, height / 2.0
    return float(center[0]), float(center[1])


def vortex_flow(ctx, width: int, height: int, time: float = 0.0,
                strength: float = 1.0, falloff: float = 0.01,
                center=None) -> VectorField:
    """Tangential swirl, magnitude strength * e^(-distance * falloff).

    Rotation sense is fixed (clockwise in screen coordinates).
    """
    cx, cy = _centre(width, height, center)
    xs, ys = grid(width, height)
    dx, dy, dist, singular = polar(xs, ys, cx, cy)
    ux, uy = unit(dx, dy, dist)

    magnitude = strength * np.exp(-dist * max(falloff, 0.0))
    magnitude = np.where(singular, 0.0, magnitude)
    # atan2 + pi/2  ->  (-uy, ux)
    return VectorField(-uy * magnitude, ux * magnitude, magnitude,
                       kind="vortex", aux=dist)


def centrifugal_flow(ctx, width: int, height: int, time: float = 0.0,
                     strength: float = 1.0, rotation_speed: float = 0.02,
                     center=None) -> VectorField:
    """Outward push growing with distance plus a time-rotating swirl.

    The tangential term decays with distance (spinning disc) and a
    spiral ripple rides on top of it.
    """
    cx, cy = _centre(width, height, center)
    xs, ys = grid(width, height)
    dx, dy, dist, singular = polar(xs, ys, cx, cy)
    nx, ny = unit(dx, dy, dist)

    tx, ty = rotate(-ny, nx, time * rotation_speed)

    outward = strength * np.minimum(dist * 0.3 * strength, 8.0 * strength)
    swirl = strength * np.exp(-dist * 0.003) * 3.0 * strength

    fx = nx * outward + tx * swirl
    fy = ny * outward + ty * swirl

    n = ctx.noise.noise3d(xs * 0.01, ys * 0.01, time * 0.5)
    noise_angle = n * np.pi * 0.1
    fx += np.cos(noise_angle) * strength * 0.05
    fy += np.sin(noise_angle) * strength * 0.05

    spiral = np.sin(dist * 0.1 + time * 2) * strength
    fx += tx * spiral
    fy += ty * spiral

    fx = np.where(singular, 0.0, fx)
    fy = np.where(singular, 0.0, fy)
    return VectorField.from_components(fx, fy, kind="centrifugal", aux=dist)


def radial_flow(ctx, width: int, height: int, time: float = 0.0,
                strength: float = 1.0, center=None) -> VectorField:
    """Outward explosion with gentle distance falloff and a slow pulse."""
    cx, cy = _centre(width, height, center)
    xs, ys = grid(width, height)
    dx, dy, dist, singular = polar(xs, ys, cx, cy)
    nx, ny = unit(dx, dy, dist)

    radial = strength * np.maximum(0.6, np.exp(-dist * 0.002)) * strength

    n = ctx.noise.noise3d(xs * 0.02, ys * 0.02, time * 0.3)
    noise_angle = n * np.pi * 0.05
    noise_x = np.cos(noise_angle) * strength * 0.02
    noise_y = np.sin(noise_angle) * strength * 0.02

    pulse = 1.0 + np.sin(time + dist * 0.02) * 0.05 * strength
    fx = (nx * radial + noise_x) * pulse
    fy = (ny * radial + noise_y) * pulse

    fx = np.where(singular, 0.0, fx)
    fy = np.where(singular, 0.0, fy)
    return VectorField.from_components(fx, fy, kind="radial", aux=dist)


def lidar_flow(ctx, width: int, height: int, time: float = 0.0,
               strength: float = 1.0, band: float = 0.3) -> VectorField:
    """Rotating scan line; a tangential kick inside the band, zero elsewhere.

    Args:
        band: Half-width of the scan band in radians (linear falloff).
    """
    cx, cy = width / 2.0, height / 2.0
    xs, ys = grid(width, height)
    dx, dy, dist, singular = polar(xs, ys, cx, cy)

    two_pi = np.pi * 2
    scan_angle = (time * 0.5) % two_pi
    pixel_angle = np.mod(np.arctan2(dy, dx) + two_pi, two_pi)

    diff = np.abs(pixel_angle - scan_angle)
    diff = np.where(diff > np.pi, two_pi - diff, diff)
    band = max(band, 1e-6)
    influence = np.where(diff < band, 1.0 - diff / band, 0.0)
    influence = np.where(singular, 0.0, influence)

    fx = np.cos(scan_angle) * influence * 5.0 * strength
    fy = np.sin(scan_angle) * influence * 5.0 * strength
    return VectorField.from_components(fx, fy, kind="lidar", aux=influence)


def black_hole_flow(ctx, width: int, height: int, time: float = 0.0,
                    strength: float = 1.0) -> VectorField:
    """One persistent attractor pulling pixels into a spiral.

    Inward gravity (inverse-square, capped) and orbital motion
    (inverse-linear, capped) are blended by a strength-dependent ratio;
    the orbital tangent rotates with the clock.
    """
    if ctx.black_hole is None or ctx.black_hole_grid != (width, height):
        ctx.reinit_black_hole(width, height)
    bx, by = ctx.black_hole

    xs, ys = grid(width, height)
    # direction points toward the hole
    dx, dy, dist, _ = polar(-xs, -ys, -bx, -by)
    inside = dist < 1.0
    safe = np.maximum(dist, 1.0)
    ux = dx / safe
    uy = dy / safe

    tx, ty = rotate(-uy, ux, time * 0.5)

    gravity = np.minimum(strength * 200.0, strength * 50000.0 / np.maximum(dist * dist, 25.0))
    orbital = np.minimum(strength * 100.0, strength * 8000.0 / np.maximum(dist, 10.0))
    inward_ratio = min(0.8, strength * 0.2)
    orbital_ratio = 1.0 - inward_ratio

    fx = ux * gravity * inward_ratio + tx * orbital * orbital_ratio
    fy = uy * gravity * inward_ratio + ty * orbital * orbital_ratio

    n = ctx.noise.noise2d(xs * 0.01 + time, ys * 0.01 + time)
    fx += np.cos(n * np.pi * 2) * strength * 0.5
    fy += np.sin(n * np.pi * 2) * strength * 0.5

    fx = np.where(inside, 0.0, fx)
    fy = np.where(inside, 0.0, fy)
    return VectorField.from_components(fx, fy, kind="black_hole", aux=dist)
