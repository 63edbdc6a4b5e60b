"""
PixelDrift -- Particle Simulation
Every source pixel is a particle; this module owns their positions and
velocities.

Particles live in a struct-of-arrays arena keyed by id = oy * width + ox.
The per-tick order is: step() (field + brightness + region + jitter into
velocity), then the auxiliary force chain, then integrate() (move + wrap).
"""

from dataclasses import dataclass

import numpy as np

from core.segmentation import LUMA
from fields.sampling import sample_field

# Velocity damping per tick
DAMPING = 0.95

# Force mix
BRIGHTNESS_WEIGHT = 0.25
REGION_WEIGHT = 0.1
JITTER_WEIGHT = 0.05

REGION_PULL = 0.0005
REGION_OSCILLATION = 0.01
JITTER_RANGE = 0.025


@dataclass
class ParticleSystem:
    """Struct-of-arrays particle arena.

    ``ox``/``oy``/``brightness``/``colors`` describe the source pixel and
    are read-only. ``x``/``y``/``vx``/``vy`` are owned by the simulation
    and the force chain.
    """
    width: int
    height: int
    ox: np.ndarray
    oy: np.ndarray
    x: np.ndarray
    y: np.ndarray
    vx: np.ndarray
    vy: np.ndarray
    region_id: np.ndarray
    brightness: np.ndarray
    colors: np.ndarray
    elapsed_ms: float = 0.0
    centers: np.ndarray | None = None

    @classmethod
    def from_image(cls, rgba: np.ndarray, width: int, height: int):
        """One particle per pixel, at rest at its original coordinates."""
        colors = np.ascontiguousarray(np.asarray(rgba, dtype=np.uint8).reshape(width * height, 4)).copy()
        ids = np.arange(width * height, dtype=np.int64)
        ox = (ids % width).astype(np.int32)
        oy = (ids // width).astype(np.int32)
        rgb = colors[:, :3].astype(np.float64)
        brightness = (rgb[:, 0] * LUMA[0] + rgb[:, 1] * LUMA[1] + rgb[:, 2] * LUMA[2]) / 255.0

        for arr in (ox, oy, brightness, colors):
            arr.flags.writeable = False

        return cls(
            width=width,
            height=height,
            ox=ox,
            oy=oy,
            x=ox.astype(np.float64),
            y=oy.astype(np.float64),
            vx=np.zeros(width * height),
            vy=np.zeros(width * height),
            region_id=np.full(width * height, -1, dtype=np.int32),
            brightness=brightness,
            colors=colors,
        )

    def __len__(self):
        return len(self.ox)

    def assign_regions(self, regions, region_ids: np.ndarray):
        """Install a pixel -> region id map (from segmentation.assign_regions)."""
        region_ids = np.asarray(region_ids, dtype=np.int32)
        if region_ids.shape != (len(self),):
            raise ValueError(f"Region map has shape {region_ids.shape}, expected ({len(self)},)")
        self.region_id = region_ids.copy()
        if regions:
            centers = np.array([r.center for r in regions], dtype=np.float64)
        else:
            centers = np.zeros((0, 2))
        self.centers = centers

    def reset(self):
        """Back to the original coordinates with zero velocity."""
        self.x = self.ox.astype(np.float64)
        self.y = self.oy.astype(np.float64)
        self.vx = np.zeros(len(self))
        self.vy = np.zeros(len(self))
        self.elapsed_ms = 0.0

    # ─── Forces ───

    def brightness_force(self, sensitivity: float):
        """Bright pixels rise, dark ones sink, with a sideways drift."""
        vertical = (self.brightness - 0.5) * sensitivity * 0.2
        return np.sin(self.brightness * np.pi * 2) * 0.1, -vertical

    def region_force(self):
        """Weak pull toward the region centre plus a slow oscillation.

        Zero for unassigned particles and for particles exactly on their
        region's centre.
        """
        fx = np.zeros(len(self))
        fy = np.zeros(len(self))
        centers = self.centers
        assigned = self.region_id >= 0
        if centers is None or len(centers) == 0 or not assigned.any():
            return fx, fy

        idx = np.flatnonzero(assigned)
        rid = self.region_id[idx]
        px = self.x[idx]
        py = self.y[idx]
        dx = centers[rid, 0] - px
        dy = centers[rid, 1] - py
        dist = np.sqrt(dx * dx + dy * dy)
        moving = dist > 0
        safe = np.where(moving, dist, 1.0)
        t = self.elapsed_ms * 0.001

        rx = dx / safe * REGION_PULL + np.sin(t + px * 0.01) * REGION_OSCILLATION
        ry = dy / safe * REGION_PULL + np.cos(t + py * 0.01) * REGION_OSCILLATION
        fx[idx] = np.where(moving, rx, 0.0)
        fy[idx] = np.where(moving, ry, 0.0)
        return fx, fy

    def step(self, field, dt_ms: float, params, rng, field_weight: float = 0.1):
        """Update velocities for one tick (positions are not moved here).

        Args:
            field: Current VectorField, or None for no field force.
            dt_ms: Frame delta in milliseconds (already clamped by the caller).
            params: SimulationParams (movement_speed, brightness_sensitivity,
                field_sampling are read).
            rng: numpy Generator for the jitter term.
            field_weight: Generator-specific share of the field force.
        """
        self.elapsed_ms += dt_ms
        n = len(self)

        if field is not None:
            flow_x, flow_y, _ = sample_field(field, self.x, self.y, self.width, self.height,
                                             mode=params.field_sampling)
        else:
            flow_x = flow_y = np.zeros(n)

        bright_x, bright_y = self.brightness_force(params.brightness_sensitivity)
        region_x, region_y = self.region_force()
        jitter_x = rng.uniform(-JITTER_RANGE, JITTER_RANGE, n)
        jitter_y = rng.uniform(-JITTER_RANGE, JITTER_RANGE, n)

        total_x = (flow_x * field_weight + bright_x * BRIGHTNESS_WEIGHT
                   + region_x * REGION_WEIGHT + jitter_x * JITTER_WEIGHT)
        total_y = (flow_y * field_weight + bright_y * BRIGHTNESS_WEIGHT
                   + region_y * REGION_WEIGHT + jitter_y * JITTER_WEIGHT)

        speed = params.movement_speed
        self.vx = self.vx * DAMPING + total_x * dt_ms * speed
        self.vy = self.vy * DAMPING + total_y * dt_ms * speed
        clamp_velocity(self, 3.0 * speed)

    def integrate(self):
        """Move by velocity and wrap toroidally into [0, width) x [0, height)."""
        self.x, self.y = wrap(self.x + self.vx, self.y + self.vy, self.width, self.height)


def clamp_velocity(system: ParticleSystem, max_speed: float):
    speed = np.sqrt(system.vx * system.vx + system.vy * system.vy)
    over = speed > max_speed
    if over.any():
        scale = max_speed / speed[over]
        system.vx[over] *= scale
        system.vy[over] *= scale


def wrap(x, y, width: int, height: int):
    """Toroidal wrap. np.mod can return exactly the bound for tiny negatives."""
    x = np.mod(x, width)
    y = np.mod(y, height)
    x = np.where(x >= width, 0.0, x)
    y = np.where(y >= height, 0.0, y)
    return x, y
