"""
PixelDrift -- Region Segmentation
Groups pixels into colour-coherent regions at load time.

Region growing compares every candidate against the colour of the seed
pixel (not a running mean), so membership depends only on the seed, the
threshold and 4-connectivity. Runs wholesale on every new image or
threshold change.
"""

import logging
import math
import time
from dataclasses import dataclass

import cv2
import numpy as np

MIN_REGION_SIZE = 50
MAX_REGIONS = 100

LUMA = (0.299, 0.587, 0.114)


@dataclass
class Region:
    """A colour-coherent patch of pixels.

    ``pixels`` holds flat indices (y * width + x) in ascending order.
    ``bounds`` is (min_x, max_x, min_y, max_y).
    """
    id: int
    pixels: np.ndarray
    mean_color: tuple[int, int, int]
    brightness: float
    bounds: tuple[int, int, int, int]
    center: tuple[float, float]
    size: int
    hue: float = 0.0
    saturation: float = 0.0
    velocity_multiplier: float = 1.0
    mass: float = 0.0

    def to_dict(self) -> dict:
        """JSON-safe summary without the pixel list."""
        min_x, max_x, min_y, max_y = self.bounds
        return {
            "id": int(self.id),
            "size": int(self.size),
            "mean_color": [int(c) for c in self.mean_color],
            "brightness": round(float(self.brightness), 4),
            "bounds": {"min_x": int(min_x), "max_x": int(max_x),
                       "min_y": int(min_y), "max_y": int(max_y)},
            "center": {"x": float(self.center[0]), "y": float(self.center[1])},
            "hue": round(float(self.hue), 2),
            "saturation": round(float(self.saturation), 4),
            "velocity_multiplier": round(float(self.velocity_multiplier), 4),
            "mass": round(float(self.mass), 4),
        }


def color_distance(c1, c2) -> float:
    """Euclidean distance in RGB."""
    dr = float(c1[0]) - float(c2[0])
    dg = float(c1[1]) - float(c2[1])
    db = float(c1[2]) - float(c2[2])
    return math.sqrt(dr * dr + dg * dg + db * db)


def rgb_to_hue(color) -> float:
    """HSV hue in degrees [0, 360)."""
    r, g, b = (c / 255.0 for c in color[:3])
    high = max(r, g, b)
    low = min(r, g, b)
    diff = high - low
    if diff == 0:
        return 0.0
    if high == r:
        hue = (g - b) / diff + (6 if g < b else 0)
    elif high == g:
        hue = (b - r) / diff + 2
    else:
        hue = (r - g) / diff + 4
    return (hue * 60.0) % 360.0


def rgb_to_saturation(color) -> float:
    r, g, b = (c / 255.0 for c in color[:3])
    high = max(r, g, b)
    if high == 0:
        return 0.0
    return (high - min(r, g, b)) / high


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _grow(seed: int, width: int, height: int, colors, visited: bytearray, limit_sq: float):
    """Collect the 4-connected pixels within the threshold of the seed colour."""
    sr, sg, sb = colors[seed]
    stack = [seed]
    members = []
    while stack:
        idx = stack.pop()
        if visited[idx]:
            continue
        r, g, b = colors[idx]
        dr, dg, db = r - sr, g - sg, b - sb
        if dr * dr + dg * dg + db * db > limit_sq:
            continue
        visited[idx] = 1
        members.append(idx)

        x = idx % width
        if x + 1 < width:
            stack.append(idx + 1)
        if x > 0:
            stack.append(idx - 1)
        if idx + width < width * height:
            stack.append(idx + width)
        if idx >= width:
            stack.append(idx - width)
    return members


def _build_region(members, width: int, rgb: np.ndarray) -> Region:
    pixels = np.sort(np.asarray(members, dtype=np.int64))
    xs = pixels % width
    ys = pixels // width
    sums = rgb[pixels].sum(axis=0, dtype=np.int64)
    n = len(pixels)
    mean = tuple(_round_half_up(s / n) for s in sums)
    brightness = (mean[0] * LUMA[0] + mean[1] * LUMA[1] + mean[2] * LUMA[2]) / 255.0
    bounds = (int(xs.min()), int(xs.max()), int(ys.min()), int(ys.max()))
    center = ((bounds[0] + bounds[1]) / 2.0, (bounds[2] + bounds[3]) / 2.0)
    return Region(id=-1, pixels=pixels, mean_color=mean, brightness=brightness,
                  bounds=bounds, center=center, size=n)


def velocity_multiplier(brightness: float, size: int, rng) -> float:
    """Brighter and larger regions move slower, with per-region jitter."""
    brightness_factor = math.sqrt(max(0.0, 1.0 - brightness))
    size_factor = 1.0 / (1.0 + math.log(max(size, 1)) / 1000.0)
    return brightness_factor * size_factor * rng.uniform(0.5, 1.0)


def segment_image(rgba, width: int, height: int, threshold: float, rng=None) -> list[Region]:
    """Split an RGBA image into at most MAX_REGIONS colour regions.

    Args:
        rgba: (height, width, 4) or flat uint8 buffer.
        threshold: Max RGB distance from a region's seed colour.
        rng: numpy Generator for the velocity-multiplier jitter.

    Returns:
        Regions sorted by size (largest first), ids 0..n-1. Never raises
        for degenerate input; an empty image gives [].
    """
    width = int(width)
    height = int(height)
    if width <= 0 or height <= 0:
        return []
    if rng is None:
        rng = np.random.default_rng()

    started = time.perf_counter()
    rgb = np.asarray(rgba, dtype=np.uint8).reshape(height * width, -1)[:, :3].astype(np.int64)
    colors = [tuple(c) for c in rgb.tolist()]
    visited = bytearray(width * height)
    limit_sq = float(max(threshold, 0)) ** 2
    min_size = min(MIN_REGION_SIZE, width * height)

    found = []
    for seed in range(width * height):
        if visited[seed]:
            continue
        members = _grow(seed, width, height, colors, visited, limit_sq)
        if len(members) >= min_size:
            found.append(_build_region(members, width, rgb))

    # stable: equal sizes keep discovery (row-major) order
    found.sort(key=lambda r: r.size, reverse=True)
    regions = found[:MAX_REGIONS]
    for i, region in enumerate(regions):
        region.id = i
        region.hue = rgb_to_hue(region.mean_color)
        region.saturation = rgb_to_saturation(region.mean_color)
        region.velocity_multiplier = velocity_multiplier(region.brightness, region.size, rng)
        region.mass = math.log(region.size + 1) / 10.0

    logging.info(
        "Segmented %dx%d image into %d regions (threshold %s) in %.1f ms",
        width, height, len(regions), threshold, (time.perf_counter() - started) * 1000,
    )
    return regions


def assign_regions(regions: list[Region], width: int, height: int) -> np.ndarray:
    """Flat pixel -> region id map, -1 where unassigned."""
    out = np.full(width * height, -1, dtype=np.int32)
    for region in regions:
        out[region.pixels] = region.id
    return out


def brightness_map(rgba: np.ndarray) -> np.ndarray:
    """Luma in [0, 1], shape (height, width)."""
    rgb = np.asarray(rgba)[..., :3].astype(np.float64)
    return (rgb[..., 0] * LUMA[0] + rgb[..., 1] * LUMA[1] + rgb[..., 2] * LUMA[2]) / 255.0


def edge_map(rgba: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude of the channel mean; the one-pixel border is zero."""
    gray = np.asarray(rgba)[..., :3].astype(np.float32).mean(axis=2)
    gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
    mag = np.sqrt(gx * gx + gy * gy)
    mag[0, :] = 0
    mag[-1, :] = 0
    mag[:, 0] = 0
    mag[:, -1] = 0
    return mag


def group_regions_by_color(regions: list[Region], threshold: float = 50) -> list[list[Region]]:
    """Greedy grouping: each ungrouped region collects all later ones within threshold."""
    groups = []
    taken = set()
    for i, region in enumerate(regions):
        if i in taken:
            continue
        group = [region]
        taken.add(i)
        for j in range(i + 1, len(regions)):
            if j in taken:
                continue
            if color_distance(region.mean_color, regions[j].mean_color) < threshold:
                group.append(regions[j])
                taken.add(j)
        groups.append(group)
    return groups


def region_palette(count: int) -> np.ndarray:
    """Golden-angle spaced HSL colours (s=0.7, l=0.5) as (count, 3) uint8 RGB."""
    if count <= 0:
        return np.zeros((0, 3), dtype=np.uint8)
    hue = (np.arange(count) * 137.508) % 360
    hls = np.zeros((count, 1, 3), dtype=np.uint8)
    hls[:, 0, 0] = np.round(hue / 2).astype(np.uint8) % 180
    hls[:, 0, 1] = 128
    hls[:, 0, 2] = 178
    return cv2.cvtColor(hls, cv2.COLOR_HLS2RGB)[:, 0, :]


def region_overlay(rgba: np.ndarray, regions: list[Region]) -> np.ndarray:
    """Original image with each region tinted 30% toward its palette colour.

    Region centres are marked with green rings.
    """
    h, w = rgba.shape[:2]
    out = np.ascontiguousarray(rgba, dtype=np.uint8).copy()
    flat = out.reshape(h * w, -1)
    palette = region_palette(len(regions)).astype(np.float64)
    for i, region in enumerate(regions):
        tinted = flat[region.pixels, :3].astype(np.float64) * 0.7 + palette[i] * 0.3
        flat[region.pixels, :3] = np.floor(tinted + 0.5).astype(np.uint8)

    ring = (0, 255, 0, 255) if out.shape[2] == 4 else (0, 255, 0)
    for region in regions:
        cx, cy = region.center
        cv2.circle(out, (int(round(cx)), int(round(cy))), 5, ring, 2)
    return out
