"""
PixelDrift -- Vector Field Registry
Provides a uniform interface over every flow-field generator.
Every generator is a function: (ctx, width, height, time, **params) -> VectorField
"""

import inspect
import math

from fields.base import VectorField, FieldContext
from fields.sampling import composite_fields
from fields.flow import perlin_flow, turbulent_flow, directional_flow, wave_flow
from fields.radial import vortex_flow, centrifugal_flow, radial_flow, lidar_flow, black_hole_flow
from fields.agents import swarm_flow, magnetic_flow, cellular_flow
from fields.patterns import chromatic_flow, time_displacement_flow, feedback_echo_flow, ifs_fractal_flow

# How much of the sampled field reaches particle velocity
DEFAULT_WEIGHT = 0.1

# Ticks between regenerations
DEFAULT_CADENCE = 30

# Canvas pixels per field cell for reduced-resolution generators
FIELD_DOWNSAMPLE = 4

# Keys the engine supplies from its own state; only passed when accepted
_INJECTED = ("regions", "frames", "scale", "strength")

# Master registry: name -> generator, defaults and scheduling
FIELDS = {
    # === NOISE ===
    "perlin": {
        "fn": perlin_flow,
        "category": "noise",
        "params": {"scale": 0.01},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Smooth coherent noise drifting through time",
    },
    "turbulent": {
        "fn": turbulent_flow,
        "category": "noise",
        "params": {"scale": 0.01, "octaves": 4},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Multi-octave fractal noise with chaotic angles",
    },
    "directional": {
        "fn": directional_flow,
        "category": "noise",
        "params": {"direction": 45.0, "strength": 1.0, "noise_influence": 0.3, "scale": 0.01},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Constant heading perturbed by noise",
    },
    "wave": {
        "fn": wave_flow,
        "category": "noise",
        "params": {"wavelength": 50.0, "amplitude": 1.0, "direction": None},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Sinusoidal bands perpendicular to a turning axis",
    },

    # === RADIAL ===
    "vortex": {
        "fn": vortex_flow,
        "category": "radial",
        "params": {"strength": 1.0, "falloff": 0.01, "center": None},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Swirl around the centre with exponential falloff",
    },
    "centrifugal": {
        "fn": centrifugal_flow,
        "category": "radial",
        "params": {"strength": 1.0, "rotation_speed": 0.02, "center": None},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Spinning disc throwing pixels outward",
    },
    "radial": {
        "fn": radial_flow,
        "category": "radial",
        "params": {"strength": 1.0, "center": None},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Outward explosion with a slow pulse",
    },
    "lidar": {
        "fn": lidar_flow,
        "category": "radial",
        "params": {"strength": 1.0, "band": 0.3},
        "weight": DEFAULT_WEIGHT,
        "cadence": 5,
        "resolution": "reduced",
        "description": "Rotating scan beam kicking pixels it passes",
    },
    "black_hole": {
        "fn": black_hole_flow,
        "category": "radial",
        "params": {"strength": 1.0},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Persistent attractor pulling pixels into orbit",
    },

    # === AGENTS ===
    "swarm": {
        "fn": swarm_flow,
        "category": "agents",
        "params": {"boids": 8, "strength": 1.0},
        "weight": DEFAULT_WEIGHT,
        "cadence": 10,
        "resolution": "reduced",
        "description": "Flocking agents dragging pixels along",
    },
    "magnetic": {
        "fn": magnetic_flow,
        "category": "agents",
        "params": {"poles": 4, "strength": 1.0, "polarity": "mixed"},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Magnetic poles with curved dipole lines",
    },
    "cellular": {
        "fn": cellular_flow,
        "category": "agents",
        "params": {"cells": 8, "strength": 1.0},
        "weight": DEFAULT_WEIGHT,
        "cadence": 10,
        "resolution": "reduced",
        "description": "Pulsing cells that divide over time",
    },

    # === PATTERN ===
    "chromatic": {
        "fn": chromatic_flow,
        "category": "pattern",
        "params": {"strength": 1.0},
        "weight": 0.8,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Explosive interference patterns, deliberately non-physical",
    },
    "time_displacement": {
        "fn": time_displacement_flow,
        "category": "pattern",
        "params": {},
        "weight": DEFAULT_WEIGHT,
        "cadence": 15,
        "resolution": "full",
        "description": "Image blocks moving on their own clocks",
    },
    "feedback_echo": {
        "fn": feedback_echo_flow,
        "category": "pattern",
        "params": {"strength": 1.0, "echo_decay": 0.8, "grid_size": 8},
        "weight": DEFAULT_WEIGHT,
        "cadence": 10,
        "resolution": "reduced",
        "description": "Motion derived from previously rendered frames",
    },
    "ifs_fractal": {
        "fn": ifs_fractal_flow,
        "category": "pattern",
        "params": {"strength": 1.0},
        "weight": DEFAULT_WEIGHT,
        "cadence": DEFAULT_CADENCE,
        "resolution": "reduced",
        "description": "Self-similar triangular subdivision at three scales",
    },
}

CATEGORIES = {
    "noise": "NOISE",
    "radial": "RADIAL",
    "agents": "AGENTS",
    "pattern": "PATTERN",
}


def get_field(name: str):
    """Get a generator by name. Returns (fn, default_params).

    Raises ValueError if the generator doesn't exist.
    """
    if name not in FIELDS:
        available = ", ".join(sorted(FIELDS.keys()))
        raise ValueError(f"Unknown flow field: {name}. Available: {available}")
    entry = FIELDS[name]
    return entry["fn"], entry["params"].copy()


def field_weight(name: str) -> float:
    return FIELDS.get(name, {}).get("weight", DEFAULT_WEIGHT)


def field_cadence(name: str) -> int:
    return FIELDS.get(name, {}).get("cadence", DEFAULT_CADENCE)


def field_resolution(name: str, canvas_w: int, canvas_h: int) -> tuple[int, int]:
    """Grid (width, height) a generator runs at for a given canvas."""
    if FIELDS.get(name, {}).get("resolution") == "full":
        return max(1, canvas_w), max(1, canvas_h)
    return max(1, canvas_w // FIELD_DOWNSAMPLE), max(1, canvas_h // FIELD_DOWNSAMPLE)


def list_fields(category: str = None) -> list[dict]:
    """List all generators with descriptions.

    Args:
        category: Optional filter, only return generators in this category.
    """
    results = []
    for name, entry in FIELDS.items():
        if category and entry.get("category") != category:
            continue
        results.append({
            "name": name,
            "description": entry["description"],
            "params": entry["params"],
            "category": entry.get("category", "other"),
            "weight": entry["weight"],
            "cadence": entry["cadence"],
            "resolution": entry["resolution"],
        })
    return results


def generate_field(name: str, ctx: FieldContext, canvas_w: int, canvas_h: int,
                   time: float, regions=None, frames=None, **overrides) -> VectorField:
    """Run a named generator at its registered resolution.

    ``regions``, ``frames``, ``scale`` and ``strength`` are handed to the
    generator only when its signature accepts them, so callers can pass
    the engine's full state to any generator. Any other override must be
    a real parameter of the generator.
    """
    fn, defaults = get_field(name)
    width, height = field_resolution(name, canvas_w, canvas_h)

    sig = inspect.signature(fn)
    injected = {"regions": regions, "frames": frames}
    injected.update({k: overrides.pop(k) for k in ("scale", "strength") if k in overrides})

    unknown = [k for k in overrides if k not in sig.parameters]
    if unknown:
        raise ValueError(f"Unknown parameter(s) for {name}: {', '.join(sorted(unknown))}")

    merged = {**defaults, **overrides}
    for key in _INJECTED:
        if key in sig.parameters and injected.get(key) is not None:
            merged[key] = injected[key]

    return fn(ctx, width, height, time, **merged)


# ─── Composites ───

def normalize_layers(layers) -> list[dict]:
    """Validate composite layers into ``[{"type", "weight", "params"}]``.

    Each layer is either a ``(name, weight)`` pair or a dict with ``type``,
    an optional ``weight`` (default 1.0) and any generator parameters.
    All layers must run at the same grid resolution.

    Raises ValueError on unknown generators or parameters, non-finite
    weights, mixed resolutions or an empty list.
    """
    out = []
    for layer in layers or []:
        if isinstance(layer, dict):
            options = dict(layer)
            name = options.pop("type", None)
            weight = options.pop("weight", 1.0)
        else:
            name, weight = layer
            options = {}
        fn, _ = get_field(name)
        accepted = inspect.signature(fn).parameters
        unknown = [k for k in options if k not in accepted]
        if unknown:
            raise ValueError(f"Unknown parameter(s) for {name}: {', '.join(sorted(unknown))}")
        weight = float(weight)
        if not math.isfinite(weight):
            raise ValueError(f"Layer weight for {name} must be finite, got {weight}")
        out.append({"type": name, "weight": weight, "params": options})

    if not out:
        raise ValueError("A composite needs at least one layer")
    resolutions = {FIELDS[layer["type"]]["resolution"] for layer in out}
    if len(resolutions) > 1:
        raise ValueError("Composite layers must share one grid resolution "
                         f"(got {', '.join(sorted(resolutions))})")
    return out


def composite_cadence(layers) -> int:
    """A composite regenerates as often as its fastest layer."""
    return min(field_cadence(layer["type"]) for layer in layers)


def composite_weight(layers) -> float:
    return max(field_weight(layer["type"]) for layer in layers)


def generate_composite(layers, ctx: FieldContext, canvas_w: int, canvas_h: int,
                       time: float, regions=None, frames=None, **overrides) -> VectorField:
    """Weighted sum of several generators sampled on the same grid.

    Per-layer parameters win over ``overrides`` (the engine's scale and
    strength).
    """
    pairs = []
    for layer in normalize_layers(layers):
        merged = {**overrides, **layer["params"]}
        field = generate_field(layer["type"], ctx, canvas_w, canvas_h, time,
                               regions=regions, frames=frames, **merged)
        pairs.append((field, layer["weight"]))
    return composite_fields(pairs)
