"""
PixelDrift -- Simulation Engine

Owns one loaded image and everything derived from it: regions, the
particle arena, generator state, the current vector field, the force
chain and the feedback ring. Single-threaded and cooperative: one
tick() is one rendered frame, and stop() takes effect between ticks.

Per tick:
  1. clamp dt to MAX_DELTA_MS
  2. regenerate the field when the generator's cadence is due
  3. step (field + brightness + region + jitter into velocity)
  4. force chain (harmony, gravity, scatter, mirror, scan lines, kaleidoscope)
  5. integrate and wrap, then record trail points
  6. rasterize, draw trails, push into the feedback ring, record

The flow is either the single generator named by flow_field_type or a
weighted composite of several (set_composite). Either can be blended
toward the image brightness field (brightness_flow).
"""

import logging
from collections import deque

import numpy as np

from core.feedback import FeedbackRing
from core.params import SimulationParams, Recompute, apply_update, make_params
from core.rasterizer import rasterize, rasterize_splat, draw_field_overlay, draw_displacement
from core.safety import LoadError, ParameterError, SafetyError, validate_image
from core.segmentation import segment_image, assign_regions, brightness_map
from core.simulation import ParticleSystem
from fields import (
    generate_field, field_cadence, field_weight,
    normalize_layers, generate_composite, composite_cadence, composite_weight,
)
from fields.base import FieldContext
from fields.sampling import blend_brightness
from forces import ForceChain

MAX_DELTA_MS = 50.0
DEFAULT_FRAME_MS = 1000.0 / 30
MAX_RECORDED_FRAMES = 900
DEBUG_OVERLAYS = ("field", "displacement")


class PixelDriftEngine:
    """Image -> particle animation driver.

    Args:
        params: SimulationParams, a dict of (snake or camel case) values, or None.
        seed: Seeds every random stream (segmentation jitter, particle
            jitter, generator state, force modules).
        modules: Force modules to enable (see forces.FORCE_ORDER); None = all.
    """

    def __init__(self, params=None, seed=None, modules=None):
        if params is None:
            params = SimulationParams()
        elif isinstance(params, dict):
            params = make_params(params)
        self.params = params

        seg_seq, sim_seq, field_seq, force_seq = np.random.SeedSequence(seed).spawn(4)
        self._seg_rng = np.random.default_rng(seg_seq)
        self._rng = np.random.default_rng(sim_seq)
        self.ctx = FieldContext.create(seed=field_seq)
        self.forces = ForceChain(seed=force_seq, modules=modules)
        self.feedback = FeedbackRing()

        self.system = None
        self._rgba = None
        self._brightness = None
        self._regions = []
        self._composite = None
        self._field = None
        self._frame = None
        self.field_time = 0.0
        self._since_regen = 0
        self._clock_ms = 0.0
        self._last_now = None

        self.frame_count = 0
        self._running = False
        self._recording = False
        self._recorded = deque(maxlen=MAX_RECORDED_FRAMES)

        self.status = "idle"
        self.last_error = None

    # ─── Loading ───

    def load_image(self, rgba, width: int, height: int):
        """Segment an image and build a fresh simulation for it.

        Everything is built off to the side and swapped in at the end, so
        a failed load leaves the previous simulation untouched.

        Raises:
            LoadError: The image is invalid or could not be processed.
        """
        try:
            image = validate_image(rgba, width, height)
            width, height = int(width), int(height)
            regions = segment_image(image, width, height, self.params.region_threshold, rng=self._seg_rng)
            system = ParticleSystem.from_image(image, width, height)
            system.assign_regions(regions, assign_regions(regions, width, height))
            brightness = brightness_map(image)
        except (LoadError, SafetyError, ValueError, MemoryError) as e:
            self.status = "load_failed"
            self.last_error = str(e)
            logging.exception("Image load failed")
            if isinstance(e, LoadError):
                raise
            raise LoadError(str(e)) from e

        image = image.copy()
        image.flags.writeable = False
        self._rgba = image
        self._brightness = brightness
        self.system = system
        self._regions = regions
        self.ctx.reset()
        self.forces.reset()
        self.forces.set_regions(regions)
        self.feedback.clear()
        self._field = None
        self.field_time = 0.0
        self._since_regen = 0
        self._clock_ms = 0.0
        self._last_now = None
        self.frame_count = 0
        self._frame = rasterize(system)
        self.status = "running" if self._running else "ready"
        self.last_error = None
        logging.info("Loaded %dx%d image: %d particles, %d regions",
                     width, height, len(system), len(regions))

    # ─── Parameters ───

    def set_parameter(self, name: str, value, clamp: bool = False) -> Recompute:
        """Change one parameter and rebuild only what it affects.

        Returns the Recompute flags that were acted on.

        Raises:
            ParameterError: Unknown name or invalid value.
        """
        params, flags = apply_update(self.params, name, value, clamp=clamp)
        self.params = params
        if flags == Recompute.NONE:
            return flags

        if Recompute.REGIONS in flags and self.system is not None:
            self._resegment()
        if Recompute.FIELD_STATE in flags:
            self.ctx.reset()
        if Recompute.FIELD in flags and self.system is not None:
            self._regenerate_field(advance=False)
        self.forces.recompute(flags)
        return flags

    def _resegment(self):
        w, h = self.system.width, self.system.height
        regions = segment_image(self._rgba, w, h, self.params.region_threshold, rng=self._seg_rng)
        self.system.assign_regions(regions, assign_regions(regions, w, h))
        self._regions = regions
        self.forces.set_regions(regions)

    # ─── Field ───

    def _flow_name(self) -> str:
        if self._composite is not None:
            return "composite(" + "+".join(layer["type"] for layer in self._composite) + ")"
        return self.params.flow_field_type.value

    def _cadence(self) -> int:
        if self._composite is not None:
            return composite_cadence(self._composite)
        return field_cadence(self.params.flow_field_type.value)

    def _field_weight(self) -> float:
        if self._composite is not None:
            return composite_weight(self._composite)
        return field_weight(self.params.flow_field_type.value)

    def _regenerate_field(self, advance: bool = True) -> bool:
        """Build a new field; on failure keep the previous one.

        Returns True when the field was replaced.
        """
        name = self._flow_name()
        if advance:
            self.field_time += self.params.time_step * self._cadence() / 30.0
        self._since_regen = 0
        state = dict(
            regions=self._regions, frames=self.feedback.frames(),
            scale=self.params.noise_scale, strength=self.params.flow_strength,
        )
        try:
            if self._composite is not None:
                field = generate_composite(self._composite, self.ctx, self.system.width,
                                           self.system.height, self.field_time, **state)
            else:
                field = generate_field(name, self.ctx, self.system.width, self.system.height,
                                       self.field_time, **state)
            if self.params.brightness_flow > 0:
                field = blend_brightness(field, self._brightness, self.params.brightness_sensitivity,
                                         self.params.brightness_flow)
            if not field.is_finite():
                raise FloatingPointError(f"Flow field '{name}' produced non-finite values")
        except Exception:
            logging.exception("Flow field '%s' failed, keeping the previous field", name)
            return False
        self._field = field
        return True

    def set_composite(self, layers):
        """Drive the flow with a weighted sum of generators instead of one.

        ``layers`` is a list of ``(name, weight)`` pairs or dicts with
        ``type``, ``weight`` and generator parameters, e.g.
        ``[{"type": "perlin", "scale": 0.01, "weight": 0.6},
        {"type": "vortex", "strength": 0.8, "weight": 0.4}]``.

        Raises:
            ParameterError: Unknown generator or parameter, bad weight, or
                layers with different grid resolutions.
        """
        try:
            composite = normalize_layers(layers)
        except (TypeError, ValueError) as e:
            raise ParameterError(str(e)) from e
        self._composite = composite
        self.ctx.reset()
        if self.system is not None:
            self._regenerate_field(advance=False)

    def clear_composite(self):
        """Back to the single generator named by flow_field_type."""
        if self._composite is None:
            return
        self._composite = None
        self.ctx.reset()
        if self.system is not None:
            self._regenerate_field(advance=False)

    @property
    def composite(self):
        return None if self._composite is None else [dict(layer) for layer in self._composite]

    # ─── Clock ───

    def start(self):
        self._running = True
        self._last_now = None
        if self.system is not None:
            self.status = "running"

    def stop(self):
        self._running = False
        if self.system is not None:
            self.status = "stopped"

    @property
    def running(self) -> bool:
        return self._running

    def tick(self, now_ms: float = None, dt_ms: float = None):
        """Advance one frame. Returns the new frame, or None when not running.

        Pass either a wall-clock ``now_ms`` (dt is derived from the previous
        call) or an explicit ``dt_ms``. With neither, one 30 fps frame is
        assumed. dt is clamped to [0, MAX_DELTA_MS].
        """
        if not self._running or self.system is None:
            return None

        if dt_ms is None:
            if now_ms is None or self._last_now is None:
                dt_ms = DEFAULT_FRAME_MS
            else:
                dt_ms = now_ms - self._last_now
            if now_ms is not None:
                self._last_now = now_ms
        dt_ms = max(0.0, min(MAX_DELTA_MS, float(dt_ms)))
        self._clock_ms += dt_ms

        if self.frame_count == 0 or self._since_regen >= self._cadence():
            self._regenerate_field()
        self._since_regen += 1

        system = self.system
        system.step(self._field, dt_ms, self.params, self._rng, field_weight=self._field_weight())
        self.forces.apply(system, self.params, self.frame_count, dt_ms, self._clock_ms)
        system.integrate()
        self.forces.record(system)

        if self.params.render_mode == "splat":
            frame = rasterize_splat(system)
        else:
            frame = rasterize(system)
        frame = self.forces.draw(frame)
        if frame.flags.writeable:
            frame.flags.writeable = False

        self.feedback.push(frame)
        if self._recording:
            self._recorded.append(frame)
        self._frame = frame
        self.frame_count += 1
        return frame

    def run(self, n_frames: int, fps: float = 30):
        """Drive ``n_frames`` ticks on a synthetic clock, yielding each frame."""
        if self.system is None:
            raise LoadError("No image loaded")
        was_running = self._running
        self.start()
        step = 1000.0 / fps
        try:
            for _ in range(int(n_frames)):
                yield self.tick(dt_ms=step)
        finally:
            if not was_running:
                self.stop()

    def reset(self):
        """Stop, put every particle back and drop all derived state."""
        self.stop()
        self.ctx.reset()
        self.forces.reset()
        self.feedback.clear()
        self._recorded.clear()
        self._recording = False
        self._field = None
        self.field_time = 0.0
        self._since_regen = 0
        self._clock_ms = 0.0
        self._last_now = None
        self.frame_count = 0
        if self.system is not None:
            self.system.reset()
            self._frame = rasterize(self.system)

    # ─── Recording ───

    def start_recording(self):
        self._recorded.clear()
        self._recording = True

    def stop_recording(self) -> list:
        """Stop and return the recorded frames (at most MAX_RECORDED_FRAMES)."""
        self._recording = False
        return list(self._recorded)

    @property
    def recording(self) -> bool:
        return self._recording

    # ─── Views ───

    @property
    def regions(self) -> list:
        return list(self._regions)

    @property
    def frame(self):
        return self._frame

    @property
    def field(self):
        return self._field

    def debug_frame(self, overlays=DEBUG_OVERLAYS):
        """Copy of the last frame with debug overlays drawn on top.

        ``overlays`` names any of DEBUG_OVERLAYS: "field" draws arrows for
        the current vector field, "displacement" draws origin -> position
        lines for every 10th particle. Returns None before an image is
        loaded. The engine's own frame and feedback ring are not touched.
        """
        unknown = [o for o in overlays if o not in DEBUG_OVERLAYS]
        if unknown:
            raise ValueError(f"Unknown overlay(s): {', '.join(unknown)}. "
                             f"Available: {', '.join(DEBUG_OVERLAYS)}")
        if self._frame is None:
            return None
        out = np.array(self._frame)
        for overlay in overlays:
            if overlay == "field" and self._field is not None:
                out = draw_field_overlay(out, self._field)
            elif overlay == "displacement":
                out = draw_displacement(out, self.system)
        return out

    def region_summaries(self) -> list[dict]:
        return [r.to_dict() for r in self._regions]

    def stats(self) -> dict:
        return {
            "frame_count": self.frame_count,
            "particle_count": 0 if self.system is None else len(self.system),
            "region_count": len(self._regions),
            "running": self._running,
            "recording": self._recording,
            "recorded_frames": len(self._recorded),
            "flow_field_type": self.params.flow_field_type.value,
            "composite": None if self._composite is None else [l["type"] for l in self._composite],
            "status": self.status,
        }
