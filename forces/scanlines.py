"""
PixelDrift -- Scan-Line Interference & Kaleidoscope
Two screen-space distortions: horizontal band jitter, and angular folding
around the canvas centre.
"""

import numpy as np

FRAME_MS = 16.67


def band_height(intensity: float) -> int:
    """Bands shrink from 12 px at intensity 0 to 4 px at intensity 10."""
    return int(max(4, min(12, round(12 - intensity * 0.8))))


class ScanLines:
    """Horizontal bands of the canvas shove particles sideways in sync.

    Each band's phase is sin(band * 1.7 + t * 6). A few random bands
    flicker harder each tick. Above intensity 5 the bands also displace
    particle x directly, tearing the image.
    """

    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)

    def invalidate(self):
        pass

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        intensity = params.scan_line_interference
        if intensity <= 0:
            return
        bh = band_height(intensity)
        t = system.elapsed_ms * 0.001
        bands = np.floor(system.y / bh).astype(np.int64)
        n_bands = system.height // bh + 2
        band_phase = np.sin(np.arange(n_bands) * 1.7 + t * 6)

        # glitching bands
        flicker = self.rng.random(n_bands) < intensity * 0.01
        band_phase = np.where(flicker, band_phase * 3.0, band_phase)

        phase = band_phase[np.clip(bands, 0, n_bands - 1)]
        system.vx += phase * intensity * 0.05 * (dt_ms / FRAME_MS)
        if intensity > 5:
            system.x += phase * (intensity - 5) * 0.5


class Kaleidoscope:
    """Steers particles toward their mirror image inside angular segments.

    N = 2 + round(intensity) segments around the centre. Above 4 a second,
    finer set of segments is nested inside the inner half; above 7 spiral
    and pulse terms join in; above 6 particles are also displaced directly.
    """

    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)
        self.rotation = None
        self._segments = None

    def invalidate(self):
        self.rotation = None

    @staticmethod
    def fold(angle, segments: int, rotation: float = 0.0):
        """Mirror an angle inside its segment (offset o -> seg - o)."""
        seg = 2 * np.pi / segments
        rel = angle - rotation
        k = np.floor(rel / seg)
        offset = rel - k * seg
        return rotation + k * seg + (seg - offset)

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        intensity = params.kaleidoscope_fractal
        if intensity <= 0:
            return
        segments = 2 + int(round(intensity))
        if self.rotation is None or self._segments != segments:
            self.rotation = float(self.rng.random() * 2 * np.pi)
            self._segments = segments

        cx = system.width / 2.0
        cy = system.height / 2.0
        dx = system.x - cx
        dy = system.y - cy
        r = np.sqrt(dx * dx + dy * dy)
        off_centre = r > 0
        angle = np.arctan2(dy, dx)
        scale = dt_ms / FRAME_MS

        target = self.fold(angle, segments, self.rotation)
        if intensity > 4:
            inner = r < 0.5 * r.max()
            nested = self.fold(angle, segments * 2, self.rotation)
            target = np.where(inner, nested, target)

        tx = cx + np.cos(target) * r
        ty = cy + np.sin(target) * r
        gain = intensity * 0.002 * scale
        fx = (tx - system.x) * gain
        fy = (ty - system.y) * gain

        if intensity > 7:
            extra = (intensity - 7) * 0.05 * scale
            safe = np.where(off_centre, r, 1.0)
            ux = dx / safe
            uy = dy / safe
            pulse = np.sin(system.elapsed_ms * 0.004 + r * 0.05)
            fx += (-uy + ux * pulse) * extra
            fy += (ux + uy * pulse) * extra

        fx = np.where(off_centre, fx, 0.0)
        fy = np.where(off_centre, fy, 0.0)
        system.vx += fx
        system.vy += fy

        if intensity > 6:
            pull = (intensity - 6) * 0.01
            system.x += np.where(off_centre, (tx - system.x) * pull, 0.0)
            system.y += np.where(off_centre, (ty - system.y) * pull, 0.0)
