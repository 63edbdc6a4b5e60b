"""
PixelDrift -- Pattern & Feedback Flow Fields
chromatic, time_displacement, feedback_echo and ifs_fractal generators.

chromatic is deliberately non-physical: three periodic patterns summed
with cubic strength scaling. time_displacement works at full canvas
resolution and desynchronises coarse blocks of the image. feedback_echo
reads back previously rendered frames.
"""

import math

import numpy as np

from fields.base import VectorField, grid, polar
from fields.flow import perlin_flow


def chromatic_flow(ctx, width: int, height: int, time: float = 0.0,
                   strength: float = 1.0) -> VectorField:
    """Spiral, pulse and interference patterns plus an explosive radial term."""
    xs, ys = grid(width, height)
    dx, dy, dist, _ = polar(xs, ys, width / 2.0, height / 2.0)
    angle = np.arctan2(dy, dx)

    spiral1 = np.sin(dist * 0.3 + angle * 3 + time * 5)
    spiral2 = np.cos(dist * 0.2 - angle * 2 + time * 3)
    pulse1 = np.sin(dist * 0.1 + time * 8)
    pulse2 = np.cos(dist * 0.15 - time * 6)
    rotation = time * 2
    inter1 = np.sin(xs * 0.2 + ys * 0.3 + rotation)
    inter2 = np.cos(xs * 0.15 - ys * 0.25 - rotation)

    base = strength ** 3
    fx = (spiral1 * 0.4 + pulse1 * 0.3 + inter1 * 0.3) * base * 10.0
    fy = (spiral2 * 0.4 + pulse2 * 0.3 + inter2 * 0.3) * base * 10.0

    # no radial term within one cell of the centre
    outside = dist > 1.0
    safe = np.where(outside, dist, 1.0)
    radial = np.sin(time * 4 + dist * 0.1) * base * 4.0
    fx += np.where(outside, dx / safe * radial, 0.0)
    fy += np.where(outside, dy / safe * radial, 0.0)
    return VectorField.from_components(fx, fy, kind="chromatic")


def block_layout(width: int, height: int, region_count: int):
    """Coarse grid used by time_displacement.

    Returns (cell_size, grid_w, grid_h). The number of blocks aims for
    4-16 regardless of how many regions the image has.
    """
    effective = max(1, region_count // 2)
    target = max(4, min(16, math.ceil(effective / 15)))
    cell = max(1, int(min(width, height) / math.sqrt(target)))
    return cell, math.ceil(width / cell), math.ceil(height / cell)


def time_displacement_flow(ctx, width: int, height: int, time: float = 0.0,
                           regions=None) -> VectorField:
    """Blocky, desynchronised motion; each block runs on its own clock.

    Falls back to plain coherent noise when no regions are available.
    """
    if not regions:
        return perlin_flow(ctx, width, height, time, scale=0.01)

    cell, gw, gh = block_layout(width, height, len(regions))
    gys, gxs = np.mgrid[0:gh, 0:gw].astype(np.float64)
    index = gys * gw + gxs
    total = gw * gh

    spatial = (gxs / gw + gys / gh) * np.pi * 4
    offset = index / total * np.pi * 8
    block_time = time + spatial + offset

    block_noise = ctx.noise.noise2d(gxs * 0.1, block_time)
    modulation = np.sin(block_time) * 0.8
    angle = block_time + block_noise * np.pi * 2
    magnitude = (0.8 + np.abs(block_noise) * 0.4) * (1 + modulation)

    def expand(a):
        return np.repeat(np.repeat(a, cell, axis=0), cell, axis=1)[:height, :width]

    bx = expand(np.cos(angle) * magnitude)
    by = expand(np.sin(angle) * magnitude)
    return VectorField(bx, by, expand(magnitude), kind="time_displacement",
                       aux=expand(block_time))


def _echo_influence(frame, gw, gh, grid_size, width, height, time, strength):
    """Colour of one downsampled frame at each coarse cell centre -> vectors."""
    fh, fw = frame.shape[:2]
    gx = np.arange(gw, dtype=np.float64)
    gy = np.arange(gh, dtype=np.float64)
    cx = np.minimum(width - 1, gx * grid_size + grid_size / 2.0)
    cy = np.minimum(height - 1, gy * grid_size + grid_size / 2.0)
    sx = np.clip(np.floor(cx / width * fw).astype(np.int64), 0, fw - 1)
    sy = np.clip(np.floor(cy / height * fh).astype(np.int64), 0, fh - 1)

    sample = frame[sy[:, None], sx[None, :]].astype(np.float64)
    r, g, b = sample[..., 0], sample[..., 1], sample[..., 2]
    brightness = (r + g + b) / (3 * 255.0)
    angle = np.arctan2(g - 128.0, r - 128.0) + time * 0.2
    return (np.cos(angle) * brightness * strength * 3,
            np.sin(angle) * brightness * strength * 3)


def feedback_echo_flow(ctx, width: int, height: int, time: float = 0.0,
                       frames=None, strength: float = 1.0,
                       echo_decay: float = 0.8, grid_size: int = 8) -> VectorField:
    """Field derived from the last few rendered frames.

    Args:
        frames: Downsampled RGBA frames, oldest first (at most 3 are read).
        echo_decay: Weight multiplier per step back in time.
        grid_size: Coarse sampling cell in field units.
    """
    if not frames:
        return perlin_flow(ctx, width, height, time, scale=0.02)

    grid_size = max(1, int(grid_size))
    gw = math.ceil(width / grid_size)
    gh = math.ceil(height / grid_size)

    recent = list(frames)[-3:]
    echo_x = np.zeros((gh, gw))
    echo_y = np.zeros((gh, gw))
    weight_sum = 0.0
    for age, frame in enumerate(reversed(recent)):
        weight = echo_decay ** age
        ix, iy = _echo_influence(frame, gw, gh, grid_size, width, height, time, strength)
        echo_x += ix * weight
        echo_y += iy * weight
        weight_sum += weight
    if weight_sum > 0:
        echo_x /= weight_sum
        echo_y /= weight_sum

    # the echo feeds on itself
    phase = time + echo_x + echo_y
    echo_x = echo_x + np.sin(phase) * 0.5 * strength
    echo_y = echo_y + np.cos(phase) * 0.5 * strength

    def expand(a):
        return np.repeat(np.repeat(a, grid_size, axis=0), grid_size, axis=1)[:height, :width]

    fx = expand(echo_x)
    fy = expand(echo_y)

    xs, ys = grid(width, height)
    n = ctx.noise.noise2d(xs * 0.02, ys * 0.02 + time)
    base_mag = np.abs(n) * 0.4
    base_x = np.cos(n * np.pi * 2) * base_mag
    base_y = np.sin(n * np.pi * 2) * base_mag

    blend = np.minimum(1.0, np.sqrt(fx * fx + fy * fy) / 2.0)
    out_x = fx * blend + base_x * (1 - blend)
    out_y = fy * blend + base_y * (1 - blend)
    return VectorField.from_components(out_x, out_y, kind="feedback_echo", aux=blend)


# ─── IFS / fractal ───

_TRI_CORNERS = ((0.0, 0.0), (1.0, 0.0), (0.5, 1.0))


def triangular_angle(nx, ny, scale, time):
    """Flow direction from which triangular sub-region a tiled point is in."""
    wx = np.mod(nx, 1.0)
    wy = np.mod(ny, 1.0)
    angle = np.select(
        [(wy > 0.5) & (wx < 0.5), (wy <= 0.5) & (wx < wy)],
        [-np.pi / 2, np.pi * 5 / 6],
        default=np.pi / 6,
    )
    angle = angle + time * (1.0 + scale)
    angle = angle + np.sin(wx * np.pi * 6) * 0.3
    angle = angle + np.cos(wy * np.pi * 4) * 0.2
    return angle


def triangular_magnitude(nx, ny, scale, time):
    """Strongest near the triangle corners, weakest in the tile centre."""
    wx = np.mod(nx, 1.0)
    wy = np.mod(ny, 1.0)
    from_centre = np.sqrt((wx - 0.5) ** 2 + (wy - 0.5) ** 2)
    nearest = np.full(np.shape(wx), np.inf)
    for cx, cy in _TRI_CORNERS:
        nearest = np.minimum(nearest, np.sqrt((wx - cx) ** 2 + (wy - cy) ** 2))
    magnitude = (1.0 - nearest) * 0.7 + 0.1
    magnitude = magnitude * (np.sin(time * 2 + from_centre * 8) * 0.3 + 0.7)
    return magnitude * scale


# (tiling factor, pattern scale, time factor, weight)
_IFS_LEVELS = ((1.0, 1.0, 1.0, 1.0), (2.0, 0.5, 1.5, 0.6), (4.0, 0.25, 2.0, 0.3))


def ifs_fractal_flow(ctx, width: int, height: int, time: float = 0.0,
                     strength: float = 1.0) -> VectorField:
    """Self-similar triangular subdivision at three nested scales."""
    xs, ys = grid(width, height)
    nx = xs / width
    ny = ys / height

    total_x = np.zeros_like(xs)
    total_y = np.zeros_like(xs)
    for tile, scale, speed, weight in _IFS_LEVELS:
        t = time * speed
        angle = triangular_angle(nx * tile, ny * tile, scale, t)
        mag = triangular_magnitude(nx * tile, ny * tile, scale, t)
        total_x += np.cos(angle) * mag * weight
        total_y += np.sin(angle) * mag * weight

    return VectorField.from_components(total_x * strength * 0.8, total_y * strength * 0.8,
                                       kind="ifs_fractal")
