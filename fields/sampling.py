"""
PixelDrift -- Field Sampling & Blending
Maps canvas positions onto a field grid and reads vectors back out.

All samplers are vectorised over arrays of positions and return
(x, y, magnitude) arrays of the same shape.
"""

import numpy as np

from fields.base import VectorField


def canvas_to_field(x, y, canvas_w: int, canvas_h: int, field_w: int, field_h: int):
    """Linear scaling from canvas pixels to (fractional) field cells."""
    fx = np.asarray(x, dtype=np.float64) * (field_w / max(canvas_w, 1))
    fy = np.asarray(y, dtype=np.float64) * (field_h / max(canvas_h, 1))
    return fx, fy


def _clamp(fx, fy, field: VectorField):
    fx = np.clip(fx, 0, field.width - 1)
    fy = np.clip(fy, 0, field.height - 1)
    return fx, fy


def sample_nearest(field: VectorField, fx, fy):
    """Clamp to the grid, then floor."""
    cx, cy = _clamp(np.asarray(fx, dtype=np.float64), np.asarray(fy, dtype=np.float64), field)
    ix = np.floor(cx).astype(np.int64)
    iy = np.floor(cy).astype(np.int64)
    return field.x[iy, ix], field.y[iy, ix], field.magnitude[iy, ix]


def sample_bilinear(field: VectorField, fx, fy):
    """Four-tap interpolation over x, y and magnitude.

    Neighbours past the last row/column are clamped, so at integer grid
    coordinates this returns exactly what sample_nearest does.
    """
    cx, cy = _clamp(np.asarray(fx, dtype=np.float64), np.asarray(fy, dtype=np.float64), field)
    x1 = np.floor(cx).astype(np.int64)
    y1 = np.floor(cy).astype(np.int64)
    x2 = np.minimum(x1 + 1, field.width - 1)
    y2 = np.minimum(y1 + 1, field.height - 1)
    tx = cx - x1
    ty = cy - y1

    def tap(arr):
        top = arr[y1, x1] + (arr[y1, x2] - arr[y1, x1]) * tx
        bottom = arr[y2, x1] + (arr[y2, x2] - arr[y2, x1]) * tx
        return top + (bottom - top) * ty

    return tap(field.x), tap(field.y), tap(field.magnitude)


SAMPLERS = {
    "nearest": sample_nearest,
    "bilinear": sample_bilinear,
}


def sample_field(field: VectorField, x, y, canvas_w: int, canvas_h: int, mode: str = "nearest"):
    """Sample at canvas positions using the named sampler."""
    if mode not in SAMPLERS:
        raise ValueError(f"Unknown sampling mode: {mode}. Available: {', '.join(SAMPLERS)}")
    fx, fy = canvas_to_field(x, y, canvas_w, canvas_h, field.width, field.height)
    return SAMPLERS[mode](field, fx, fy)


def _check_shapes(a: VectorField, b: VectorField):
    if a.shape != b.shape:
        raise ValueError(f"Field shapes differ: {a.shape} vs {b.shape}")


def interpolate_fields(a: VectorField, b: VectorField, factor: float) -> VectorField:
    """Component-wise lerp from a (factor 0) to b (factor 1)."""
    _check_shapes(a, b)
    factor = float(factor)
    return VectorField(
        a.x + (b.x - a.x) * factor,
        a.y + (b.y - a.y) * factor,
        a.magnitude + (b.magnitude - a.magnitude) * factor,
        kind=a.kind,
    )


def composite_fields(layers) -> VectorField:
    """Weighted sum of (field, weight) pairs; magnitude is recomputed."""
    layers = list(layers)
    if not layers:
        raise ValueError("composite_fields needs at least one (field, weight) pair")
    first = layers[0][0]
    total_x = np.zeros(first.shape)
    total_y = np.zeros(first.shape)
    for field, weight in layers:
        _check_shapes(first, field)
        total_x += field.x * weight
        total_y += field.y * weight
    return VectorField.from_components(total_x, total_y, kind="composite")


def brightness_field(brightness_map: np.ndarray, sensitivity: float,
                     field_w: int, field_h: int) -> VectorField:
    """Bright areas push up, dark areas push down, with a sideways drift.

    ``brightness_map`` is the full-resolution (h, w) luma map; each field
    cell reads the pixel at its top-left canvas corner.
    """
    h, w = brightness_map.shape
    ys = np.minimum(h - 1, np.floor(np.arange(field_h) * (h / field_h)).astype(np.int64))
    xs = np.minimum(w - 1, np.floor(np.arange(field_w) * (w / field_w)).astype(np.int64))
    b = brightness_map[ys[:, None], xs[None, :]].astype(np.float64)

    vertical = (b - 0.5) * sensitivity
    horizontal = np.sin(b * np.pi * 2) * 0.1
    return VectorField.from_components(horizontal, -vertical, kind="brightness")


# Share of the brightness field when blended over a generated one
BRIGHTNESS_BLEND = 0.3


def blend_brightness(field: VectorField, brightness_map: np.ndarray,
                     sensitivity: float, factor: float = BRIGHTNESS_BLEND) -> VectorField:
    """Lerp a generated field toward the brightness field (30% by default)."""
    bright = brightness_field(brightness_map, sensitivity, field.width, field.height)
    return interpolate_fields(field, bright, factor)
