"""
PixelDrift -- Gravity Wells
A handful of point attractors that pull nearby particles in.
"""

import math

import numpy as np

MAX_WELLS = 10
WELL_REGEN_TICKS = 180
WELL_RADIUS = 0.25      # fraction of the shorter canvas side
MIN_WELL_DISTANCE = 5.0
NUDGE = 0.1             # share of the pull applied straight to position
FRAME_MS = 16.67


class GravityWells:
    """Up to MAX_WELLS attractors, re-scattered every WELL_REGEN_TICKS ticks.

    Well count is ceil(gravity_strength). Each well adds
    strength * 0.5 / max(d, 5) toward itself to every particle within its
    radius, scaled by dt / 16.67 ms, plus a small direct position nudge.
    """

    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)
        self.wells = None
        self._age = 0
        self._grid = None

    def invalidate(self):
        """Force a rebuild on the next tick."""
        self.wells = None

    def reinit(self, strength: float, width: int, height: int) -> np.ndarray:
        count = min(MAX_WELLS, math.ceil(strength))
        if count <= 0:
            self.wells = np.zeros((0, 2))
        else:
            self.wells = self.rng.random((count, 2)) * np.array([width, height], dtype=np.float64)
        self._age = 0
        self._grid = (width, height)
        return self.wells

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        strength = params.gravity_strength
        if strength <= 0:
            return
        expected = min(MAX_WELLS, math.ceil(strength))
        if (self.wells is None or len(self.wells) != expected or self._age >= WELL_REGEN_TICKS
                or self._grid != (system.width, system.height)):
            self.reinit(strength, system.width, system.height)
        self._age += 1

        radius = WELL_RADIUS * min(system.width, system.height)
        scale = dt_ms / FRAME_MS
        for wx, wy in self.wells:
            dx = wx - system.x
            dy = wy - system.y
            dist = np.sqrt(dx * dx + dy * dy)
            near = (dist < radius) & (dist > 0)
            if not near.any():
                continue
            safe = np.where(near, dist, 1.0)
            pull = strength * 0.5 / np.maximum(safe, MIN_WELL_DISTANCE) * scale
            ax = np.where(near, dx / safe * pull, 0.0)
            ay = np.where(near, dy / safe * pull, 0.0)
            system.vx += ax
            system.vy += ay
            system.x += ax * NUDGE
            system.y += ay * NUDGE
