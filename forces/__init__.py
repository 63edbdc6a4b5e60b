"""
PixelDrift -- Auxiliary Force Chain
Discrete effects applied between the velocity update and integration.
Every module is an object with apply(system, params, tick, dt_ms, now_ms)
and invalidate(); each owns its own random generator and does nothing
(not even draw random numbers) while its strength is 0.

Trails are the exception on timing: apply() only keeps their selection
current, and record() stores positions after integration.
"""

import numpy as np

from core.params import Recompute
from forces.harmony import ColorHarmony
from forces.gravity import GravityWells
from forces.scatter import Scatter, PulseScheduler
from forces.mirror import MirrorChords
from forces.scanlines import ScanLines, Kaleidoscope
from forces.trails import Trails

# Fixed application order
FORCE_ORDER = ("harmony", "gravity", "scatter", "mirror", "scanlines", "kaleidoscope", "trails")

FORCES = {
    "harmony": ColorHarmony,
    "gravity": GravityWells,
    "scatter": Scatter,
    "mirror": MirrorChords,
    "scanlines": ScanLines,
    "kaleidoscope": Kaleidoscope,
    "trails": Trails,
}


class ForceChain:
    """Runs the enabled force modules in FORCE_ORDER.

    Args:
        seed: Seeds every module's generator (independent child streams).
        modules: Names to enable; None enables all of them.
    """

    def __init__(self, seed=None, modules=None):
        if modules is None:
            modules = FORCE_ORDER
        unknown = [m for m in modules if m not in FORCES]
        if unknown:
            available = ", ".join(FORCE_ORDER)
            raise ValueError(f"Unknown force module(s): {', '.join(unknown)}. Available: {available}")

        if not isinstance(seed, np.random.SeedSequence):
            seed = np.random.SeedSequence(seed)
        streams = seed.spawn(len(FORCE_ORDER))
        self.modules = {}
        for name, stream in zip(FORCE_ORDER, streams):
            if name in modules:
                self.modules[name] = FORCES[name](seed=stream)

    def __contains__(self, name):
        return name in self.modules

    def __getitem__(self, name):
        return self.modules[name]

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        for name in FORCE_ORDER:
            module = self.modules.get(name)
            if module is not None:
                module.apply(system, params, tick, dt_ms, now_ms)

    def record(self, system):
        """Post-integration hook: store trail points at the final positions."""
        trails = self.modules.get("trails")
        if trails is not None:
            trails.record(system)

    def set_regions(self, regions):
        """Hand the current segmentation to modules that group by region."""
        harmony = self.modules.get("harmony")
        if harmony is not None:
            harmony.set_regions(regions)

    def recompute(self, flags: Recompute):
        """Rebuild whatever a parameter change asked for."""
        if Recompute.WELLS in flags and "gravity" in self.modules:
            self.modules["gravity"].invalidate()
        if Recompute.MIRRORS in flags and "mirror" in self.modules:
            self.modules["mirror"].invalidate()
        if Recompute.TRAILS in flags and "trails" in self.modules:
            self.modules["trails"].invalidate()

    def reset(self):
        for module in self.modules.values():
            module.invalidate()
        if "trails" in self.modules:
            self.modules["trails"].clear()

    def draw(self, frame: np.ndarray) -> np.ndarray:
        """Post-raster overlays (currently only trails)."""
        trails = self.modules.get("trails")
        if trails is None:
            return frame
        return trails.draw(frame)


__all__ = [
    "ForceChain", "FORCE_ORDER", "FORCES",
    "ColorHarmony", "GravityWells", "Scatter", "PulseScheduler", "MirrorChords",
    "ScanLines", "Kaleidoscope", "Trails",
]
