"""N-body gravity and RK4 integration for the flyby simulation.

Units
- Positions in U (1e9 m), velocities in U per simulated second, time in
  simulated seconds.  Gravitational parameters therefore carry the compound
  factor ``DISTANCE_SCALE ** 3 * SIM_TIME_SCALE ** 2`` (see :mod:`.units`).

Numerical notes
- Force evaluation is direct O(N^2) summation over unordered pairs.  Pairs
  closer than ``min_separation_sq`` contribute nothing.
- The star is a source of gravity but never an integration target, so it
  stays at the origin with zero velocity.
- RK4 is not symplectic; total energy drifts slowly.  Drift falls with the
  fourth power of the sub-step size, which :func:`relative_energy_drift`
  exposes for auditing.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .config import INTEGRATOR_CFG, IntegratorCfg
from .model import Body, BodyRegistry, SimClock
from .timekeeping import plan_substeps
from .units import sim_gm
from .vector import sq_magnitude


def gravitational_parameter(body: Body, cfg: IntegratorCfg = INTEGRATOR_CFG) -> float:
    """GM of ``body`` in U^3 per simulated second squared, with gravity scale."""

    return cfg.gravity_scale * sim_gm(body.mass)


def compute_accelerations(bodies: Sequence[Body], cfg: IntegratorCfg = INTEGRATOR_CFG) -> None:
    """Reset and recompute every body's accumulated acceleration."""

    for body in bodies:
        body.state.reset_acceleration()

    gms = [gravitational_parameter(body, cfg) for body in bodies]
    n = len(bodies)
    for i in range(n):
        body_a = bodies[i]
        for j in range(i + 1, n):
            body_b = bodies[j]
            r = body_b.position - body_a.position
            dist_sq = sq_magnitude(r)
            if dist_sq < cfg.min_separation_sq:
                continue
            r_hat = r / math.sqrt(dist_sq)
            # each body is pulled toward the other
            body_a.state.add_acceleration(r_hat * (gms[j] / dist_sq))
            body_b.state.add_acceleration(r_hat * (-gms[i] / dist_sq))


def _set_trial_state(
    bodies: Sequence[Body],
    r0: Sequence[np.ndarray],
    v0: Sequence[np.ndarray],
    k_vel: Sequence[np.ndarray],
    k_acc: Sequence[np.ndarray],
    h: float,
) -> None:
    for i, body in enumerate(bodies):
        if body.is_fixed:
            continue
        body.state.position = r0[i] + k_vel[i] * h
        body.state.velocity = v0[i] + k_acc[i] * h


def _sample(bodies: Sequence[Body]) -> tuple[list[np.ndarray], list[np.ndarray]]:
    return (
        [body.velocity.copy() for body in bodies],
        [body.acceleration.copy() for body in bodies],
    )


def rk4_substep(bodies: Sequence[Body], dt: float, cfg: IntegratorCfg = INTEGRATOR_CFG) -> None:
    """Advance ``bodies`` in place by one classical RK4 step of ``dt``."""

    if not bodies:
        return

    r0 = [body.position.copy() for body in bodies]
    v0 = [body.velocity.copy() for body in bodies]

    # k1
    compute_accelerations(bodies, cfg)
    v1, a1 = _sample(bodies)

    # k2
    _set_trial_state(bodies, r0, v0, v1, a1, 0.5 * dt)
    compute_accelerations(bodies, cfg)
    v2, a2 = _sample(bodies)

    # k3
    _set_trial_state(bodies, r0, v0, v2, a2, 0.5 * dt)
    compute_accelerations(bodies, cfg)
    v3, a3 = _sample(bodies)

    # k4
    _set_trial_state(bodies, r0, v0, v3, a3, dt)
    compute_accelerations(bodies, cfg)
    v4, a4 = _sample(bodies)

    for i, body in enumerate(bodies):
        if body.is_fixed:
            continue
        body.state.position = r0[i] + (dt / 6.0) * (v1[i] + 2.0 * v2[i] + 2.0 * v3[i] + v4[i])
        body.state.velocity = v0[i] + (dt / 6.0) * (a1[i] + 2.0 * a2[i] + 2.0 * a3[i] + a4[i])


@dataclass(frozen=True)
class StepReport:
    substeps: int
    substep_dt: float
    sim_time: float


class GravityIntegrator:
    """Advances a :class:`BodyRegistry` by explicit simulated deltas."""

    def __init__(self, cfg: IntegratorCfg = INTEGRATOR_CFG) -> None:
        self.cfg = cfg

    def advance(self, registry: BodyRegistry, clock: SimClock, dt: float) -> StepReport:
        if not math.isfinite(dt):
            raise ValueError(f"dt must be finite, got {dt!r}")
        bodies = registry.bodies()
        if not bodies or dt <= 0.0:
            return StepReport(substeps=0, substep_dt=0.0, sim_time=clock.time)

        substeps, substep_dt = plan_substeps(dt, self.cfg.max_substep_dt, self.cfg.max_substeps)
        for _ in range(substeps):
            rk4_substep(bodies, substep_dt, self.cfg)
        clock.advance(dt)
        return StepReport(substeps=substeps, substep_dt=substep_dt, sim_time=clock.time)


def kinetic_energy(bodies: Sequence[Body]) -> float:
    return sum(0.5 * body.mass * sq_magnitude(body.velocity) for body in bodies)


def potential_energy(bodies: Sequence[Body], cfg: IntegratorCfg = INTEGRATOR_CFG) -> float:
    """Pairwise ``-G' m_i m_j / r`` in the same units as :func:`kinetic_energy`."""

    total = 0.0
    n = len(bodies)
    for i in range(n):
        gm_i = gravitational_parameter(bodies[i], cfg)
        for j in range(i + 1, n):
            dist_sq = sq_magnitude(bodies[j].position - bodies[i].position)
            if dist_sq < cfg.min_separation_sq:
                continue
            total -= gm_i * bodies[j].mass / math.sqrt(dist_sq)
    return total


def total_energy(bodies: Sequence[Body], cfg: IntegratorCfg = INTEGRATOR_CFG) -> float:
    """Mechanical energy in kg U^2 per simulated second squared."""

    return kinetic_energy(bodies) + potential_energy(bodies, cfg)


def relative_energy_drift(initial: float, current: float) -> float:
    if abs(initial) <= 1e-300:
        return 0.0
    return abs((current - initial) / initial)


__all__ = [
    "GravityIntegrator",
    "StepReport",
    "compute_accelerations",
    "gravitational_parameter",
    "kinetic_energy",
    "potential_energy",
    "relative_energy_drift",
    "rk4_substep",
    "total_energy",
]
