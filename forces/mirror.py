"""
PixelDrift -- Mirror Chords
Reflective lines stretched between two canvas edges. A particle about to
cross one bounces off it.
"""

import numpy as np

MAX_MIRRORS = 10
MIRROR_REGEN_TICKS = 240

# top, right, bottom, left
EDGES = 4


def edge_point(edge: int, t: float, width: int, height: int) -> tuple[float, float]:
    """Point at fraction ``t`` along one canvas edge."""
    if edge == 0:
        return t * width, 0.0
    if edge == 1:
        return float(width), t * height
    if edge == 2:
        return t * width, float(height)
    return 0.0, t * height


class MirrorChords:
    """``mirror_count`` chords, each joining points on two different edges."""

    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)
        self.chords = None      # (n, 4): ax, ay, bx, by
        self._age = 0
        self._grid = None

    def invalidate(self):
        self.chords = None

    def reinit(self, count: int, width: int, height: int) -> np.ndarray:
        count = max(0, min(MAX_MIRRORS, int(count)))
        chords = np.zeros((count, 4))
        for i in range(count):
            first = int(self.rng.integers(EDGES))
            second = (first + int(self.rng.integers(1, EDGES))) % EDGES
            ax, ay = edge_point(first, self.rng.random(), width, height)
            bx, by = edge_point(second, self.rng.random(), width, height)
            chords[i] = (ax, ay, bx, by)
        self.chords = chords
        self._age = 0
        self._grid = (width, height)
        return chords

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        count = params.mirror_count
        if count <= 0:
            return
        if (self.chords is None or len(self.chords) != count or self._age >= MIRROR_REGEN_TICKS
                or self._grid != (system.width, system.height)):
            self.reinit(count, system.width, system.height)
        self._age += 1

        px, py = system.x, system.y
        vx, vy = system.vx, system.vy
        bounced = np.zeros(len(system), dtype=bool)

        for ax, ay, bx, by in self.chords:
            dx = bx - ax
            dy = by - ay
            length = np.hypot(dx, dy)
            if length == 0:
                continue
            # solve p + t*v == a + s*d
            denom = vx * dy - vy * dx
            ok = (np.abs(denom) > 1e-12) & ~bounced
            if not ok.any():
                continue
            safe = np.where(ok, denom, 1.0)
            qx = ax - px
            qy = ay - py
            t = (qx * dy - qy * dx) / safe
            s = (qx * vy - qy * vx) / safe
            hit = ok & (t > 0) & (t <= 1) & (s >= 0) & (s <= 1)
            if not hit.any():
                continue

            nx = -dy / length
            ny = dx / length
            dot = vx[hit] * nx + vy[hit] * ny
            px[hit] = px[hit] + vx[hit] * t[hit]
            py[hit] = py[hit] + vy[hit] * t[hit]
            vx[hit] = vx[hit] - 2 * dot * nx
            vy[hit] = vy[hit] - 2 * dot * ny
            bounced |= hit
