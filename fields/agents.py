"""
PixelDrift -- Agent-Based Flow Fields
swarm (flocking boids), magnetic (poles) and cellular (dividing cells).

These generators carry state between regenerations on the FieldContext.
Each call advances the agents one step and then rasterises their
influence into a field.
"""

import numpy as np

from fields.base import VectorField, grid, SINGULAR_EPS, MAX_BOIDS, MAX_CELL_TARGET, MAX_POLES


# ─── Swarm ───

def _flock_step(swarm, rng):
    """One separation/alignment/cohesion update, then speed clamp and wrap."""
    w, h = swarm.width, swarm.height
    n = len(swarm)
    short = min(w, h)
    sep_r = short * 0.05
    align_r = short * 0.08
    coh_r = short * 0.10

    dx = swarm.x[:, None] - swarm.x[None, :]
    dy = swarm.y[:, None] - swarm.y[None, :]
    dist = np.sqrt(dx * dx + dy * dy)
    others = ~np.eye(n, dtype=bool)

    sep_mask = others & (dist < sep_r) & (dist > 0)
    safe = np.where(dist > 0, dist, 1.0)
    sep_count = sep_mask.sum(axis=1)
    sep_x = np.where(sep_mask, dx / safe, 0.0).sum(axis=1) / np.maximum(sep_count, 1)
    sep_y = np.where(sep_mask, dy / safe, 0.0).sum(axis=1) / np.maximum(sep_count, 1)

    align_mask = others & (dist < align_r)
    align_count = np.maximum(align_mask.sum(axis=1), 1)
    align_x = (align_mask * swarm.vx[None, :]).sum(axis=1) / align_count
    align_y = (align_mask * swarm.vy[None, :]).sum(axis=1) / align_count

    coh_mask = others & (dist < coh_r)
    coh_count = coh_mask.sum(axis=1)
    has_coh = coh_count > 0
    coh_x = np.where(has_coh, (coh_mask * swarm.x[None, :]).sum(axis=1) / np.maximum(coh_count, 1) - swarm.x, 0.0)
    coh_y = np.where(has_coh, (coh_mask * swarm.y[None, :]).sum(axis=1) / np.maximum(coh_count, 1) - swarm.y, 0.0)

    v = swarm.variance
    swarm.vx += sep_x * (0.15 + v * 0.1) + align_x * (0.01 + v * 0.02) + coh_x * (0.03 + v * 0.02)
    swarm.vy += sep_y * (0.15 + v * 0.1) + align_y * (0.01 + v * 0.02) + coh_y * (0.03 + v * 0.02)

    # individual wobble keeps the flock from locking into one heading
    swarm.vx += (rng.random(n) - 0.5) * 0.15 * (1 + v)
    swarm.vy += (rng.random(n) - 0.5) * 0.15 * (1 + v)

    max_speed = swarm.speed * 1.5
    speed = np.sqrt(swarm.vx ** 2 + swarm.vy ** 2)
    over = speed > max_speed
    scale = np.where(over, max_speed / np.where(speed > 0, speed, 1.0), 1.0)
    swarm.vx *= scale
    swarm.vy *= scale

    swarm.x = np.mod(swarm.x + swarm.vx, w)
    swarm.y = np.mod(swarm.y + swarm.vy, h)


def swarm_flow(ctx, width: int, height: int, time: float = 0.0,
               boids: int = 8, strength: float = 1.0) -> VectorField:
    """Field steered by persistent flocking agents.

    Each cell takes an influence-weighted average of nearby agents'
    velocities plus a small push away from each agent, and a light noise
    term on top.
    """
    swarm = ctx.swarm
    boids = int(max(1, min(MAX_BOIDS, boids)))
    if swarm is None or len(swarm) != boids or (swarm.width, swarm.height) != (width, height):
        swarm = ctx.reinit_swarm(boids, width, height)
    _flock_step(swarm, ctx.rng)

    xs, ys = grid(width, height)
    total_x = np.zeros_like(xs)
    total_y = np.zeros_like(xs)
    total_inf = np.zeros_like(xs)
    reach = min(width, height) * 0.15

    for i in range(len(swarm)):
        dx = xs - swarm.x[i]
        dy = ys - swarm.y[i]
        dist = np.sqrt(dx * dx + dy * dy)
        influence = np.exp(-dist * 0.02) * strength
        active = (dist <= reach) & (influence > 0.05)
        inf = np.where(active, influence, 0.0)
        total_x += swarm.vx[i] * inf * 2 + dx / (dist + 1) * inf * 0.5
        total_y += swarm.vy[i] * inf * 2 + dy / (dist + 1) * inf * 0.5
        total_inf += inf

    has = total_inf > 0
    denom = np.where(has, total_inf, 1.0)
    total_x = np.where(has, total_x / denom, 0.0)
    total_y = np.where(has, total_y / denom, 0.0)

    n = ctx.noise.noise2d(xs * 0.01, ys * 0.01 + time * 0.1)
    total_x += np.cos(n * np.pi * 0.5) * 0.1
    total_y += np.sin(n * np.pi * 0.5) * 0.1
    return VectorField.from_components(total_x, total_y, kind="swarm", aux=total_inf)


# ─── Magnetic ───

def magnetic_flow(ctx, width: int, height: int, time: float = 0.0,
                  poles: int = 4, strength: float = 1.0,
                  polarity: str = "mixed") -> VectorField:
    """Inverse-square pole field with curved dipole lines.

    Args:
        poles: Number of poles (1-16).
        polarity: "mixed" (alternating), "all_positive", "all_negative".
    """
    state = ctx.poles
    poles = int(max(1, min(MAX_POLES, poles)))
    if (state is None or len(state) != poles or state.polarity != polarity
            or state.base_strength != strength or (state.width, state.height) != (width, height)):
        state = ctx.reinit_poles(poles, width, height, strength=strength, polarity=polarity)

    xs, ys = grid(width, height)
    total_x = np.zeros_like(xs)
    total_y = np.zeros_like(xs)
    on_pole = np.zeros(xs.shape, dtype=bool)

    dists = []
    for i in range(len(state)):
        dx = xs - state.x[i]
        dy = ys - state.y[i]
        d2 = dx * dx + dy * dy
        dist = np.sqrt(d2)
        dists.append(dist)
        on_pole |= dist < SINGULAR_EPS
        near = dist < 2.0
        fs = state.charge[i] * state.strength[i] * 100.0 / np.maximum(d2, 4.0)
        safe = np.where(near, 1.0, dist)
        total_x += np.where(near, 0.0, dx / safe * fs)
        total_y += np.where(near, 0.0, dy / safe * fs)

    if len(state) >= 2 and polarity == "mixed":
        stack = np.stack(dists)
        pos = state.charge > 0
        neg = ~pos
        pos_d = np.where(pos[:, None, None], stack, np.inf)
        neg_d = np.where(neg[:, None, None], stack, np.inf)
        pi = pos_d.argmin(axis=0)
        ni = neg_d.argmin(axis=0)
        p_dist = pos_d.min(axis=0)
        n_dist = neg_d.min(axis=0)

        dip_x = state.x[ni] - state.x[pi]
        dip_y = state.y[ni] - state.y[pi]
        dip_d = np.sqrt(dip_x ** 2 + dip_y ** 2)
        ok = dip_d > 0
        safe_d = np.where(ok, dip_d, 1.0)
        perp_x = np.where(ok, -dip_y / safe_d, 0.0)
        perp_y = np.where(ok, dip_x / safe_d, 0.0)

        span = p_dist + n_dist
        blend = np.where(span > 0, p_dist / np.where(span > 0, span, 1.0), 0.0)
        curve = 2.0 * strength * np.sin(blend * np.pi)
        total_x += perp_x * curve
        total_y += perp_y * curve

    n = ctx.noise.noise2d(xs * 0.005, ys * 0.005)
    total_x += np.cos(n * np.pi * 0.2) * 0.2 * strength
    total_y += np.sin(n * np.pi * 0.2) * 0.2 * strength

    total_x = np.where(on_pole, 0.0, total_x)
    total_y = np.where(on_pole, 0.0, total_y)
    return VectorField.from_components(total_x, total_y, kind="magnetic")


# ─── Cellular ───

def _grow_cells(colony, time, rng):
    """Pulse and count down cells in order until one divides.

    Cells after the dividing one keep their radius and timer this call.
    """
    clock = time * 100.0
    pulsed = colony.radius * (1 + np.sin(clock * colony.growth + colony.phase) * 0.3)

    ready = np.flatnonzero(colony.timer - 1.0 <= 0)
    if len(colony) >= colony.cap or ready.size == 0:
        colony.current_radius = pulsed
        colony.timer -= 1.0
        return

    i = ready[0]
    colony.current_radius[:i + 1] = pulsed[:i + 1]
    colony.timer[:i + 1] -= 1.0
    angle = rng.random() * 2 * np.pi
    reach = colony.current_radius[i] * 1.5
    child_radius = colony.radius[i] * 0.8

    colony.x = np.append(colony.x, colony.x[i] + np.cos(angle) * reach)
    colony.y = np.append(colony.y, colony.y[i] + np.sin(angle) * reach)
    colony.radius = np.append(colony.radius, child_radius)
    colony.growth = np.append(colony.growth, colony.growth[i] + (rng.random() - 0.5) * 0.02)
    colony.phase = np.append(colony.phase, rng.random() * 2 * np.pi)
    colony.timer = np.append(colony.timer, 40.0 + rng.random() * 120.0)
    colony.current_radius = np.append(colony.current_radius, child_radius)

    colony.radius[i] *= 0.9
    colony.timer[i] = 60.0 + rng.random() * 100.0

    r = colony.current_radius
    colony.x = np.maximum(r, np.minimum(colony.width - r, colony.x))
    colony.y = np.maximum(r, np.minimum(colony.height - r, colony.y))


def cellular_flow(ctx, width: int, height: int, time: float = 0.0,
                  cells: int = 8, strength: float = 1.0) -> VectorField:
    """Pulsing, dividing cells.

    Zones per cell (r = current radius):
        core (< 0.3r): weak outward flow
        membrane (< r): strong tangential + outward flow, peaking at 0.7r
        exterior (< 2r): weak inward pull
    """
    colony = ctx.cells
    cells = int(max(1, min(MAX_CELL_TARGET, cells)))
    if colony is None or colony.target != cells or (colony.width, colony.height) != (width, height):
        colony = ctx.reinit_cells(cells, width, height)
    _grow_cells(colony, time, ctx.rng)

    xs, ys = grid(width, height)
    total_x = np.zeros_like(xs)
    total_y = np.zeros_like(xs)
    total_inf = np.zeros_like(xs)

    for i in range(len(colony)):
        r = colony.current_radius[i]
        dx = xs - colony.x[i]
        dy = ys - colony.y[i]
        dist = np.sqrt(dx * dx + dy * dy)
        rx = dx / (dist + 1)
        ry = dy / (dist + 1)

        core = dist < r * 0.3
        membrane = ~core & (dist < r)
        exterior = ~core & ~membrane & (dist < r * 2)

        inf_core = strength * 0.3
        inf_membrane = strength * np.exp(-np.abs(dist - r * 0.7) * 3)
        inf_exterior = strength * 0.2 * np.exp(-(dist - r) * 0.1)

        total_x += np.where(core, rx * inf_core, 0.0)
        total_y += np.where(core, ry * inf_core, 0.0)
        total_x += np.where(membrane, (-ry * 0.7 + rx * 0.3) * inf_membrane, 0.0)
        total_y += np.where(membrane, (rx * 0.7 + ry * 0.3) * inf_membrane, 0.0)
        total_x += np.where(exterior, -rx * inf_exterior, 0.0)
        total_y += np.where(exterior, -ry * inf_exterior, 0.0)

        total_inf += np.where(core, inf_core, 0.0)
        total_inf += np.where(membrane, inf_membrane, 0.0)
        total_inf += np.where(exterior, inf_exterior, 0.0)

    n = ctx.noise.noise2d(xs * 0.02, ys * 0.02 + time * 0.1)
    total_x += np.cos(n * np.pi) * 0.1 * strength
    total_y += np.sin(n * np.pi) * 0.1 * strength
    return VectorField.from_components(total_x, total_y, kind="cellular", aux=total_inf)
