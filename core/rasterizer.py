"""
PixelDrift -- Frame Rasterizer
Draws particles back into a fresh RGBA frame every tick.
"""

import cv2
import numpy as np


def _blank(width: int, height: int) -> np.ndarray:
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    frame[..., 3] = 255
    return frame


def _round_half_up(v):
    return np.floor(v + 0.5).astype(np.int64)


def rasterize(system) -> np.ndarray:
    """Nearest-cell rasterization onto opaque black.

    Each in-bounds particle writes its original RGBA to its rounded
    position. When several land on one cell the highest particle id
    wins, so identical particle arrays always give identical frames.
    The returned buffer is read-only.
    """
    w, h = system.width, system.height
    frame = _blank(w, h)
    ix = _round_half_up(system.x)
    iy = _round_half_up(system.y)
    inside = (ix >= 0) & (ix < w) & (iy >= 0) & (iy < h)

    ids = np.flatnonzero(inside)
    cells = iy[ids] * w + ix[ids]
    # first hit in reversed order == highest id per cell
    _, first = np.unique(cells[::-1], return_index=True)
    winners = ids[::-1][first]

    flat = frame.reshape(h * w, 4)
    flat[iy[winners] * w + ix[winners]] = system.colors[winners]
    frame.flags.writeable = False
    return frame


def rasterize_splat(system) -> np.ndarray:
    """Additive bilinear splat: each particle spreads over its 4 neighbours.

    Colour sums saturate at 255; alpha is always 255.
    """
    w, h = system.width, system.height
    acc = np.zeros((h * w, 3), dtype=np.float64)
    x0 = np.floor(system.x).astype(np.int64)
    y0 = np.floor(system.y).astype(np.int64)
    tx = system.x - x0
    ty = system.y - y0
    rgb = system.colors[:, :3].astype(np.float64)

    for ox, oy, weight in ((0, 0, (1 - tx) * (1 - ty)), (1, 0, tx * (1 - ty)),
                           (0, 1, (1 - tx) * ty), (1, 1, tx * ty)):
        cx = x0 + ox
        cy = y0 + oy
        inside = (cx >= 0) & (cx < w) & (cy >= 0) & (cy < h) & (weight > 0)
        np.add.at(acc, cy[inside] * w + cx[inside], rgb[inside] * weight[inside, None])

    frame = _blank(w, h)
    frame.reshape(h * w, 4)[:, :3] = np.clip(np.floor(acc + 0.5), 0, 255).astype(np.uint8)
    frame.flags.writeable = False
    return frame


def draw_field_overlay(frame: np.ndarray, field, step: int = 2,
                       color=(0, 255, 0, 255), scale: float = 8.0) -> np.ndarray:
    """Debug view: arrows for every ``step``-th field cell drawn over a copy of ``frame``."""
    h, w = frame.shape[:2]
    out = np.ascontiguousarray(frame).copy()
    step = max(1, int(step))
    cell_w = w / field.width
    cell_h = h / field.height
    peak = float(np.abs(field.magnitude).max()) or 1.0
    if out.shape[2] == 3:
        color = color[:3]

    for fy in range(0, field.height, step):
        for fx in range(0, field.width, step):
            vx = field.x[fy, fx]
            vy = field.y[fy, fx]
            length = np.hypot(vx, vy)
            if length == 0:
                continue
            sx = (fx + 0.5) * cell_w
            sy = (fy + 0.5) * cell_h
            reach = scale * min(1.0, abs(field.magnitude[fy, fx]) / peak + 0.25)
            ex = sx + vx / length * reach
            ey = sy + vy / length * reach
            cv2.arrowedLine(out, (int(sx), int(sy)), (int(ex), int(ey)), color, 1, tipLength=0.3)
    return out


def draw_displacement(frame: np.ndarray, system, every: int = 10,
                      line_color=(0, 255, 0, 255), dot_color=(255, 0, 0, 255),
                      alpha: float = 0.5) -> np.ndarray:
    """Debug view: for every ``every``-th particle, a line from its source
    pixel to its current position and a dot where it is now.

    Strokes are blended at ``alpha`` over a copy of ``frame``.
    """
    base = np.ascontiguousarray(frame).copy()
    overlay = base.copy()
    if base.shape[2] == 3:
        line_color = line_color[:3]
        dot_color = dot_color[:3]

    ids = np.arange(0, len(system), max(1, int(every)))
    x0 = system.ox[ids]
    y0 = system.oy[ids]
    x1 = _round_half_up(system.x[ids])
    y1 = _round_half_up(system.y[ids])
    for ax, ay, bx, by in zip(x0, y0, x1, y1):
        if ax != bx or ay != by:
            cv2.line(overlay, (int(ax), int(ay)), (int(bx), int(by)), line_color, 1)
        cv2.circle(overlay, (int(bx), int(by)), 1, dot_color, -1)

    out = cv2.addWeighted(overlay, alpha, base, 1 - alpha, 0)
    if out.shape[2] == 4:
        out[..., 3] = base[..., 3]
    return out
