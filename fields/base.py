"""
PixelDrift -- Vector Field Types & Generator State

A VectorField is a (height, width) grid of direction + magnitude samples.
Generators never keep module-level state: anything that must persist
between regenerations (boids, cells, poles, the black hole centre) lives
on a FieldContext that the caller owns and passes into every call.
"""

from dataclasses import dataclass, field

import numpy as np

from fields.noise import CoherentNoise

# Distances below this count as "on" a singular point
SINGULAR_EPS = 1e-9

# Hard caps on persistent generator state
MAX_BOIDS = 64
MAX_CELL_TARGET = 32
CELL_CAP_FACTOR = 2.5
MAX_POLES = 16


@dataclass
class VectorField:
    """Directional force grid, read-only once built.

    Attributes:
        x, y: Vector components, shape (height, width).
        magnitude: Per-cell magnitude (generator-defined, not always |(x, y)|).
        kind: Name of the generator that produced it.
        aux: Optional generator-specific tag grid (turbulence, scan influence).
    """
    x: np.ndarray
    y: np.ndarray
    magnitude: np.ndarray
    kind: str = "perlin"
    aux: np.ndarray | None = None

    def __post_init__(self):
        for name in ("x", "y", "magnitude", "aux"):
            arr = getattr(self, name)
            if arr is None:
                continue
            arr = np.ascontiguousarray(arr, dtype=np.float64)
            arr.flags.writeable = False
            setattr(self, name, arr)

    @property
    def height(self) -> int:
        return self.x.shape[0]

    @property
    def width(self) -> int:
        return self.x.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return self.x.shape

    def is_finite(self) -> bool:
        return bool(
            np.isfinite(self.x).all()
            and np.isfinite(self.y).all()
            and np.isfinite(self.magnitude).all()
        )

    @classmethod
    def zeros(cls, width: int, height: int, kind: str = "zero"):
        z = np.zeros((height, width), dtype=np.float64)
        return cls(z, z.copy(), z.copy(), kind=kind)

    @classmethod
    def from_components(cls, x, y, kind: str, aux=None):
        """Build a field whose magnitude is the Euclidean length of (x, y)."""
        return cls(x, y, np.sqrt(x * x + y * y), kind=kind, aux=aux)

    @classmethod
    def from_angle(cls, angle, magnitude, kind: str, aux=None):
        """Unit direction from angle, stored magnitude kept separately."""
        return cls(np.cos(angle), np.sin(angle), magnitude, kind=kind, aux=aux)


def grid(width: int, height: int):
    """Return (x, y) float coordinate grids of shape (height, width)."""
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    return xs, ys


def polar(xs, ys, cx: float, cy: float):
    """Offsets, distance and a singular mask relative to a centre point."""
    dx = xs - cx
    dy = ys - cy
    dist = np.sqrt(dx * dx + dy * dy)
    singular = dist < SINGULAR_EPS
    return dx, dy, dist, singular


def unit(dx, dy, dist):
    """Unit vector (dx, dy)/dist with zeros where dist is singular."""
    safe = np.where(dist < SINGULAR_EPS, 1.0, dist)
    ux = np.where(dist < SINGULAR_EPS, 0.0, dx / safe)
    uy = np.where(dist < SINGULAR_EPS, 0.0, dy / safe)
    return ux, uy


def rotate(x, y, angle: float):
    c, s = np.cos(angle), np.sin(angle)
    return x * c - y * s, x * s + y * c


# ─── Persistent generator state ───

@dataclass
class SwarmAgents:
    """Flocking agents in field-grid coordinates."""
    x: np.ndarray
    y: np.ndarray
    vx: np.ndarray
    vy: np.ndarray
    speed: np.ndarray
    variance: np.ndarray
    width: int
    height: int

    def __len__(self):
        return len(self.x)


@dataclass
class CellColony:
    """Pulsing cells; grows by division up to ``cap`` members."""
    x: np.ndarray
    y: np.ndarray
    radius: np.ndarray
    growth: np.ndarray
    phase: np.ndarray
    timer: np.ndarray
    current_radius: np.ndarray
    target: int
    cap: int
    width: int
    height: int

    def __len__(self):
        return len(self.x)


@dataclass
class MagneticPoles:
    x: np.ndarray
    y: np.ndarray
    charge: np.ndarray
    strength: np.ndarray
    polarity: str
    base_strength: float
    width: int
    height: int

    def __len__(self):
        return len(self.x)


@dataclass
class FieldContext:
    """Everything a generator may read or mutate between calls.

    Use the reinit_* methods (or reset) to rebuild state explicitly; a
    generator only calls them itself when its slot is empty or was built
    for a different grid size or count.
    """
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    noise: CoherentNoise | None = None
    swarm: SwarmAgents | None = None
    cells: CellColony | None = None
    poles: MagneticPoles | None = None
    black_hole: tuple[float, float] | None = None
    black_hole_grid: tuple[int, int] | None = None

    def __post_init__(self):
        if self.noise is None:
            self.noise = CoherentNoise(permutation=None, seed=int(self.rng.integers(0, 2**31)))

    @classmethod
    def create(cls, seed=None, permutation=None):
        rng = np.random.default_rng(seed)
        noise = CoherentNoise(seed=int(rng.integers(0, 2**31)), permutation=permutation)
        return cls(rng=rng, noise=noise)

    def reset(self):
        """Drop all persistent generator state (the noise table is kept)."""
        self.swarm = None
        self.cells = None
        self.poles = None
        self.black_hole = None
        self.black_hole_grid = None

    def reinit_swarm(self, count: int, width: int, height: int) -> SwarmAgents:
        count = int(max(1, min(MAX_BOIDS, count)))
        rng = self.rng
        angle = rng.random(count) * 2 * np.pi
        speed = 0.3 + rng.random(count) * 0.7
        self.swarm = SwarmAgents(
            x=rng.random(count) * width,
            y=rng.random(count) * height,
            vx=np.cos(angle) * speed,
            vy=np.sin(angle) * speed,
            speed=speed,
            variance=rng.random(count) * 0.5,
            width=width,
            height=height,
        )
        return self.swarm

    def reinit_cells(self, target: int, width: int, height: int) -> CellColony:
        target = int(max(1, min(MAX_CELL_TARGET, target)))
        rng = self.rng
        radius = 8.0 + rng.random(target) * 12.0
        self.cells = CellColony(
            x=rng.random(target) * width,
            y=rng.random(target) * height,
            radius=radius,
            growth=0.03 + rng.random(target) * 0.04,
            phase=rng.random(target) * 2 * np.pi,
            timer=50.0 + rng.random(target) * 150.0,
            current_radius=radius.copy(),
            target=target,
            cap=int(target * CELL_CAP_FACTOR),
            width=width,
            height=height,
        )
        return self.cells

    def reinit_poles(self, count: int, width: int, height: int,
                     strength: float = 1.0, polarity: str = "mixed") -> MagneticPoles:
        count = int(max(1, min(MAX_POLES, count)))
        rng = self.rng
        if polarity == "all_positive":
            charge = np.ones(count)
        elif polarity == "all_negative":
            charge = -np.ones(count)
        else:
            charge = np.where(np.arange(count) % 2 == 0, 1.0, -1.0)
        self.poles = MagneticPoles(
            x=rng.random(count) * width,
            y=rng.random(count) * height,
            charge=charge,
            strength=strength * (0.8 + rng.random(count) * 0.4),
            polarity=polarity,
            base_strength=strength,
            width=width,
            height=height,
        )
        return self.poles

    def reinit_black_hole(self, width: int, height: int) -> tuple[float, float]:
        self.black_hole = (float(self.rng.random() * width), float(self.rng.random() * height))
        self.black_hole_grid = (width, height)
        return self.black_hole
