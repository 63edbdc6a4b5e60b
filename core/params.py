"""
PixelDrift -- Simulation Parameters

Pydantic model for every user-facing knob, plus the table that says what
each change forces the engine to rebuild. Camel-case aliases
(movementSpeed, flowFieldType, ...) are accepted on input so settings
exported from a UI can be fed back in unchanged.
"""

from __future__ import annotations

from enum import Enum, Flag, auto
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from core.safety import ParameterError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FlowFieldType(str, Enum):
    """Registered flow-field generators."""
    PERLIN = "perlin"
    TURBULENT = "turbulent"
    DIRECTIONAL = "directional"
    WAVE = "wave"
    VORTEX = "vortex"
    CENTRIFUGAL = "centrifugal"
    RADIAL = "radial"
    LIDAR = "lidar"
    BLACK_HOLE = "black_hole"
    SWARM = "swarm"
    MAGNETIC = "magnetic"
    CELLULAR = "cellular"
    CHROMATIC = "chromatic"
    TIME_DISPLACEMENT = "time_displacement"
    FEEDBACK_ECHO = "feedback_echo"
    IFS_FRACTAL = "ifs_fractal"


class ScatterMode(str, Enum):
    PERIODIC = "periodic"   # fixed-interval bursts
    PULSE = "pulse"         # random bursts inside rolling windows


class Recompute(Flag):
    """What the engine must rebuild after a parameter change."""
    NONE = 0
    FIELD = auto()        # regenerate the vector field now
    FIELD_STATE = auto()  # drop persistent generator state (boids, cells, poles)
    REGIONS = auto()      # re-run segmentation
    WELLS = auto()        # rebuild gravity wells
    MIRRORS = auto()      # rebuild mirror chords
    TRAILS = auto()       # rebuild the trail selection


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

class SimulationParams(BaseModel):
    """Complete simulation configuration.

    Immutable: use ``apply_update`` to derive a changed copy together with
    the recomputation it requires.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    movement_speed: float = Field(
        default=0.5, ge=0.1, le=2.0,
        description="Scales force-to-velocity and the velocity clamp (3x this value).",
    )
    noise_scale: float = Field(
        default=0.01, ge=0.001, le=0.1,
        description="Spatial frequency passed to noise-based generators.",
    )
    brightness_sensitivity: float = Field(
        default=1.0, ge=0.1, le=3.0,
        description="How strongly brightness pushes pixels up (bright) or down (dark).",
    )
    region_threshold: int = Field(
        default=30, ge=5, le=100,
        description="Max RGB distance from a region's seed colour during segmentation.",
    )
    gravity_strength: float = Field(
        default=0.0, ge=0.0, le=10.0,
        description="Gravity well pull. Also sets the well count (ceil, max 10). 0 = off.",
    )
    scatter_strength: float = Field(
        default=0.0, ge=0.0, le=100.0,
        description="Percent of particles thrown per scatter burst. 0 = off.",
    )
    scatter_mode: ScatterMode = Field(
        default=ScatterMode.PERIODIC,
        description="'periodic' bursts every 90 ticks, 'pulse' bursts at random inside 2s windows.",
    )
    scatter_pulse_probability: float = Field(
        default=0.5, ge=0.0, le=1.0,
        description="Chance that a pulse window contains a burst.",
    )
    mirror_count: int = Field(
        default=0, ge=0, le=10,
        description="Number of reflecting chords across the canvas.",
    )
    scan_line_interference: float = Field(
        default=0.0, ge=0.0, le=10.0,
        description="Horizontal band jitter intensity.",
    )
    kaleidoscope_fractal: float = Field(
        default=0.0, ge=0.0, le=10.0,
        description="Angular folding intensity; more segments and nesting as it rises.",
    )
    trails: float = Field(
        default=0.0, ge=0.0, le=10.0,
        description="Share of particles leaving faint motion trails, and their length.",
    )
    color_harmony: float = Field(
        default=0.0, ge=0.0, le=5.0,
        description="Shared drift for regions of similar colour (0.05 per frame per unit). 0 = off.",
    )
    flow_field_type: FlowFieldType = Field(
        default=FlowFieldType.PERLIN,
        description="Which generator drives the flow.",
    )
    flow_strength: float = Field(
        default=1.0, ge=0.1, le=5.0,
        description="Strength passed to generators that take one.",
    )
    brightness_flow: float = Field(
        default=0.0, ge=0.0, le=1.0,
        description="Share of the brightness field blended into each generated field. 0 = off.",
    )
    time_step: float = Field(
        default=0.01, ge=0.001, le=0.1,
        description="Field clock advance per 30 ticks.",
    )
    render_mode: Literal["nearest", "splat"] = Field(
        default="nearest",
        description="'nearest' writes each particle to one cell; 'splat' spreads it bilinearly.",
    )
    field_sampling: Literal["nearest", "bilinear"] = Field(
        default="nearest",
        description="How particles read the field between grid cells.",
    )


# Each parameter -> exactly the recomputation a change to it triggers.
# NONE means the value is read fresh every tick.
PARAM_TRIGGERS: dict[str, Recompute] = {
    "movement_speed": Recompute.NONE,
    "noise_scale": Recompute.FIELD,
    "brightness_sensitivity": Recompute.NONE,
    "region_threshold": Recompute.REGIONS,
    "gravity_strength": Recompute.WELLS,
    "scatter_strength": Recompute.NONE,
    "scatter_mode": Recompute.NONE,
    "scatter_pulse_probability": Recompute.NONE,
    "mirror_count": Recompute.MIRRORS,
    "scan_line_interference": Recompute.NONE,
    "kaleidoscope_fractal": Recompute.NONE,
    "trails": Recompute.TRAILS,
    "color_harmony": Recompute.NONE,
    "flow_field_type": Recompute.FIELD | Recompute.FIELD_STATE,
    "flow_strength": Recompute.FIELD,
    "brightness_flow": Recompute.FIELD,
    "time_step": Recompute.NONE,
    "render_mode": Recompute.NONE,
    "field_sampling": Recompute.NONE,
}

_ALIASES = {to_camel(name): name for name in SimulationParams.model_fields}


def resolve_name(name: str) -> str:
    """Map a snake_case or camelCase parameter name to the model field name."""
    if name in SimulationParams.model_fields:
        return name
    if name in _ALIASES:
        return _ALIASES[name]
    available = ", ".join(sorted(SimulationParams.model_fields))
    raise ParameterError(f"Unknown parameter: {name}. Available: {available}")


def param_bounds(name: str) -> tuple[float | None, float | None]:
    """(min, max) declared on a numeric field, None where unbounded."""
    low = high = None
    for meta in SimulationParams.model_fields[resolve_name(name)].metadata:
        if hasattr(meta, "ge"):
            low = meta.ge
        if hasattr(meta, "le"):
            high = meta.le
    return low, high


def _clamp_value(name: str, value):
    low, high = param_bounds(name)
    if low is None and high is None:
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return value  # let validation report it
    if number != number:
        return value
    if low is not None:
        number = max(low, number)
    if high is not None:
        number = min(high, number)
    if SimulationParams.model_fields[name].annotation in (int, "int"):
        number = int(round(number))
    return number


def make_params(values: dict | None = None) -> SimulationParams:
    """Build params from a (possibly camel-cased) dict, raising ParameterError."""
    try:
        return SimulationParams.model_validate(values or {})
    except ValidationError as e:
        raise ParameterError(str(e)) from e


def apply_update(params: SimulationParams, name: str, value, clamp: bool = False):
    """Validate a single parameter change.

    Args:
        params: Current parameters (unchanged by this call).
        name: Field name or its camel-case alias.
        value: New value. Strings are coerced the way pydantic coerces them.
        clamp: Clamp out-of-range numbers to the declared bounds instead of
            rejecting them.

    Returns:
        (new_params, Recompute) -- flags are NONE when the value did not change.

    Raises:
        ParameterError: Unknown name or invalid value.
    """
    field = resolve_name(name)
    if clamp:
        value = _clamp_value(field, value)

    data = params.model_dump()
    data[field] = value
    new_params = make_params(data)

    if getattr(new_params, field) == getattr(params, field):
        return new_params, Recompute.NONE
    return new_params, PARAM_TRIGGERS[field]
