"""
PixelDrift -- Colour Harmony
Regions of similar colour drift together: each colour group gets one
shared heading, spread evenly around the circle and swaying +-30 degrees.
"""

import numpy as np

from core.segmentation import group_regions_by_color

HARMONY_FORCE = 0.05
GROUP_THRESHOLD = 50.0
SWAY_DEG = 30.0
FRAME_MS = 16.67


def group_lookup(regions, threshold: float = GROUP_THRESHOLD):
    """Region id -> colour group index, and the number of groups."""
    groups = group_regions_by_color(regions, threshold)
    lookup = np.full(len(regions), -1, dtype=np.int64)
    for g, group in enumerate(groups):
        for region in group:
            lookup[region.id] = g
    return lookup, len(groups)


def headings(groups, group_count: int, tick: int):
    """Heading (radians) of each group index at a given tick."""
    sway = np.sin(tick * 0.01) * SWAY_DEG
    return np.radians(np.asarray(groups, dtype=np.float64) / max(group_count, 1) * 360.0 + sway)


class ColorHarmony:
    """Shared drift per colour group.

    Every particle whose region belongs to group g of G gets
    0.05 * color_harmony along (g / G) * 360 + sin(tick * 0.01) * 30
    degrees, scaled by dt / 16.67 ms. Unassigned particles are left alone.
    """

    def __init__(self, seed=None):
        self.regions = []
        self.lookup = None
        self.group_count = 0

    def set_regions(self, regions):
        self.regions = list(regions)
        self.lookup = None

    def invalidate(self):
        self.lookup = None

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        strength = params.color_harmony
        if strength <= 0 or not self.regions:
            return
        if self.lookup is None:
            self.lookup, self.group_count = group_lookup(self.regions)

        rid = system.region_id
        known = (rid >= 0) & (rid < len(self.lookup))
        groups = np.full(len(rid), -1, dtype=np.int64)
        groups[known] = self.lookup[rid[known]]
        member = groups >= 0
        if not member.any():
            return

        angle = headings(groups[member], self.group_count, tick)
        push = HARMONY_FORCE * strength * (dt_ms / FRAME_MS)
        system.vx[member] += np.cos(angle) * push
        system.vy[member] += np.sin(angle) * push
