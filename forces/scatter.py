"""
PixelDrift -- Scatter
Throws a share of the particles in random directions, either on a fixed
interval or in randomly timed pulses.
"""

import math

import numpy as np

SCATTER_INTERVAL = 90       # ticks between periodic bursts
MAX_SCATTER = 50_000        # particles per burst
SPEED_RANGE = (4.0, 12.0)   # times movement_speed
JUMP = 2.0                  # immediate position jump, in velocities

PULSE_WINDOW_MS = 2000.0
PULSE_ACTIVE_MS = 250.0


class PulseScheduler:
    """At most one burst per rolling window.

    Each new window rolls once against ``probability``; on success a burst
    is placed at a random offset in [0, window - active). The burst fires
    on the first tick that falls inside its active span.
    """

    def __init__(self, rng, window_ms: float = PULSE_WINDOW_MS, active_ms: float = PULSE_ACTIVE_MS):
        self.rng = rng
        self.window_ms = window_ms
        self.active_ms = active_ms
        self.bursts = 0
        self._window = None
        self._burst_at = None
        self._fired = False

    def reset(self):
        self._window = None
        self._burst_at = None
        self._fired = False

    def _roll(self, window: int, probability: float):
        self._window = window
        self._fired = False
        self._burst_at = None
        if probability <= 0:
            return
        if self.rng.random() < probability:
            start = window * self.window_ms
            self._burst_at = start + self.rng.random() * (self.window_ms - self.active_ms)

    def active(self, now_ms: float) -> bool:
        """True while ``now_ms`` is inside the current window's burst span."""
        if self._burst_at is None:
            return False
        return self._burst_at <= now_ms < self._burst_at + self.active_ms

    def triggered(self, now_ms: float, probability: float) -> bool:
        """Advance to ``now_ms``; True exactly once per scheduled burst."""
        window = int(now_ms // self.window_ms)
        if window != self._window:
            self._roll(window, probability)
        if self._fired or not self.active(now_ms):
            return False
        self._fired = True
        self.bursts += 1
        return True


class Scatter:
    def __init__(self, seed=None):
        self.rng = np.random.default_rng(seed)
        self.pulse = PulseScheduler(self.rng)
        self._age = 0

    def invalidate(self):
        self._age = 0
        self.pulse.reset()

    def burst(self, system, strength: float, movement_speed: float) -> int:
        """Scatter strength% of particles now. Returns how many moved."""
        n = len(system)
        count = min(MAX_SCATTER, int(n * strength / 100.0))
        if count <= 0:
            return 0
        idx = self.rng.choice(n, size=count, replace=False)
        angle = self.rng.random(count) * 2 * np.pi
        speed = self.rng.uniform(*SPEED_RANGE, size=count) * movement_speed
        vx = np.cos(angle) * speed
        vy = np.sin(angle) * speed
        system.vx[idx] = vx
        system.vy[idx] = vy
        system.x[idx] += vx * JUMP
        system.y[idx] += vy * JUMP
        return count

    def apply(self, system, params, tick: int, dt_ms: float, now_ms: float):
        strength = params.scatter_strength
        if strength <= 0:
            return
        if params.scatter_mode == "pulse":
            if self.pulse.triggered(now_ms, params.scatter_pulse_probability):
                self.burst(system, strength, params.movement_speed)
            return

        self._age += 1
        if self._age >= SCATTER_INTERVAL:
            self._age = 0
            self.burst(system, strength, params.movement_speed)


def bursts_in_windows(probability: float, windows: int, seed=None, tick_ms: float = 50.0) -> int:
    """Count bursts a scheduler produces over ``windows`` rolling windows."""
    scheduler = PulseScheduler(np.random.default_rng(seed))
    ticks = int(math.ceil(windows * scheduler.window_ms / tick_ms))
    for i in range(ticks):
        scheduler.triggered(i * tick_ms, probability)
    return scheduler.bursts
