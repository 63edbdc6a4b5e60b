"""
PixelDrift -- Motion Trails
A small sample of particles remembers where it has been; the frame gets
faint strokes along those paths.
"""

import cv2
import numpy as np

MAX_TRAIL_PARTICLES = 5000
MAX_TRAIL_LENGTH = 24
TRAIL_REFRESH_TICKS = 300
TRAIL_ALPHA = 0.35


def trail_length(intensity: float) -> int:
    return int(min(MAX_TRAIL_LENGTH, 4 + 2 * round(intensity)))


class Trails:
    """Position history for intensity * 0.5% of the particles.

    History is a ring of ``trail_length(intensity)`` points per tracked
    particle. The tracked set is re-drawn every TRAIL_REFRESH_TICKS ticks;
    particles that drop out lose their history.
    """

    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)
        self.selected = None            # particle ids, ascending
        self.history = None             # (k, length, 2), NaN where unfilled
        self.colors = None              # (k, 4) uint8
        self._head = 0
        self._age = 0
        self._intensity = None

    def invalidate(self):
        self.selected = None

    def clear(self):
        self.selected = None
        self.history = None
        self.colors = None
        self._head = 0
        self._intensity = None

    def __len__(self):
        return 0 if self.selected is None else len(self.selected)

    def reinit(self, system, intensity: float):
        n = len(system)
        count = min(MAX_TRAIL_PARTICLES, int(n * intensity * 0.005), n)
        length = trail_length(intensity)
        chosen = np.sort(self.rng.choice(n, size=count, replace=False)) if count else np.zeros(0, np.int64)
        history = np.full((count, length, 2), np.nan)

        # carry over paths of particles that stay selected
        if self.selected is not None and self.history is not None and len(chosen):
            keep = min(length, self.history.shape[1])
            _, old_i, new_i = np.intersect1d(self.selected, chosen, return_indices=True)
            ordered = np.roll(self.history, -self._head, axis=1)[:, -keep:]
            history[new_i, length - keep:] = ordered[old_i]

        self.selected = chosen
        self.history = history
        self.colors = system.colors[chosen].copy()
        self._head = 0
        self._age = 0
        self._intensity = intensity

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        """Keep the tracked selection current. Points are added by record()."""
        intensity = params.trails
        if intensity <= 0:
            if self.selected is not None:
                self.clear()
            return
        if self.selected is None or self._age >= TRAIL_REFRESH_TICKS or self._intensity != intensity:
            self.reinit(system, intensity)
        self._age += 1

    def record(self, system):
        """Append the tracked particles' current (integrated, wrapped) positions."""
        if not len(self):
            return
        self.history[:, self._head, 0] = system.x[self.selected]
        self.history[:, self._head, 1] = system.y[self.selected]
        self._head = (self._head + 1) % self.history.shape[1]

    def paths(self):
        """Per tracked particle, its recorded points oldest first (NaN rows dropped)."""
        if not len(self):
            return []
        ordered = np.roll(self.history, -self._head, axis=1)
        out = []
        for row in ordered:
            pts = row[~np.isnan(row[:, 0])]
            out.append(pts)
        return out

    def draw(self, frame: np.ndarray) -> np.ndarray:
        """Blend faint polylines over ``frame``. Strokes break at wrap jumps."""
        if not len(self):
            return frame
        h, w = frame.shape[:2]
        base = np.array(frame)
        overlay = base.copy()
        for pts, color in zip(self.paths(), self.colors):
            if len(pts) < 2:
                continue
            step = np.abs(np.diff(pts, axis=0))
            breaks = np.flatnonzero((step[:, 0] > w / 2) | (step[:, 1] > h / 2)) + 1
            stroke = tuple(int(c) for c in color[:overlay.shape[2]])
            for piece in np.split(pts, breaks):
                if len(piece) < 2:
                    continue
                line = np.round(piece).astype(np.int32).reshape(-1, 1, 2)
                cv2.polylines(overlay, [line], False, stroke, 1)
        out = cv2.addWeighted(overlay, TRAIL_ALPHA, base, 1 - TRAIL_ALPHA, 0)
        if out.shape[2] == 4:
            out[..., 3] = base[..., 3]
        return out
