"""Flyby aiming by headless propagation.

A planet's start angle is chosen so that the probe, launched the way the
mission prescribes, passes it at a requested periapsis distance.  Planning
runs tick at the integrator's ``max_substep_dt``, so a real run whose ticks
are whole multiples of that sub-step repeats them step for step.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

import numpy as np

from .config import SimulationCfg
from .errors import ConfigurationError
from .orbits import circular_speed
from .simulation import BodyDescriptor, DescriptorLike, Simulation
from .units import meters_to_units, sim_gm
from .vector import dot, magnitude, normalized, vec3

GHOST_MASS = 1.0  # kg; the planet keeps its orbit but no longer pulls the probe
SEARCH_WINDOW = 150.0  # U; range-rate turns farther out than this are not flybys
MAX_PLAN_DURATION = 5000.0  # simulated seconds per planning run
NUDGE_DEG = 0.05
MAX_STEP_DEG = 2.0


@dataclass(frozen=True)
class OrbitCrossing:
    time: float
    angle_deg: float
    velocity: np.ndarray


@dataclass(frozen=True)
class FlybyPass:
    time: float
    distance: float
    miss: float  # U, signed by the sense of the pass (positive counter-clockwise)
    relative_speed: float


@dataclass(frozen=True)
class FlybyAim:
    body: str
    angle_deg: float
    periapsis: float
    miss: float
    time: float


def aiming_radius(periapsis: float, mu: float, v_inf: float) -> float:
    """Impact parameter that gravity bends down to ``periapsis``."""

    if v_inf <= 0.0:
        return periapsis
    return periapsis * math.sqrt(1.0 + 2.0 * mu / (periapsis * v_inf ** 2))


def find_orbit_crossing(
    simulation: Simulation, radius: float, *, max_duration: float = MAX_PLAN_DURATION
) -> Optional[OrbitCrossing]:
    """Tick until the probe first reaches ``radius`` U from the star."""

    probe = simulation.registry.probe
    if probe is None:
        return None
    dt = simulation.cfg.integrator.max_substep_dt
    while simulation.elapsed_time < max_duration:
        simulation.tick(dt)
        if magnitude(probe.position) >= radius:
            angle = math.degrees(math.atan2(probe.position[1], probe.position[0]))
            return OrbitCrossing(simulation.elapsed_time, angle, probe.velocity.copy())
    return None


def find_flyby(
    simulation: Simulation,
    body: str,
    *,
    window: float = SEARCH_WINDOW,
    max_duration: float = MAX_PLAN_DURATION,
) -> Optional[FlybyPass]:
    """Tick until the range rate to ``body`` turns non-negative within ``window`` U.

    This is the closest-approach test of the deflector, run without touching
    the probe.
    """

    probe = simulation.registry.probe
    planet = simulation.registry.find(body)
    if probe is None or planet is None:
        return None
    dt = simulation.cfg.integrator.max_substep_dt
    previous: Optional[float] = None
    while simulation.elapsed_time < max_duration:
        simulation.tick(dt)
        offset = probe.position - planet.position
        relative = probe.velocity - planet.velocity
        distance = magnitude(offset)
        range_rate = dot(relative, normalized(offset))
        if previous is not None and previous < 0.0 <= range_rate and distance < window:
            speed = magnitude(relative)
            miss = float(np.cross(offset, relative)[2]) / speed if speed > 0.0 else 0.0
            return FlybyPass(simulation.elapsed_time, distance, miss, speed)
        previous = range_rate
    return None


def aim_flyby(
    descriptors: Sequence[DescriptorLike],
    cfg: SimulationCfg,
    body: str,
    periapsis: float,
    *,
    tolerance: float = 0.05,
    max_iterations: int = 8,
    max_duration: float = MAX_PLAN_DURATION,
    trailing: bool = True,
) -> FlybyAim:
    """Start angle for ``body`` that makes the probe pass it ``periapsis`` U away.

    A first run with the planet reduced to a ghost finds where the probe
    crosses its orbit; the planet is then placed ahead of that point by the
    aiming radius.  Runs with the planet's real mass refine the angle by the
    secant method on the signed miss distance.  The deflector is disabled
    while planning.

    With ``trailing`` the probe passes behind the planet and gains energy
    from it; otherwise it passes in front.
    """

    if not periapsis > 0.0:
        raise ConfigurationError("flyby periapsis must be positive", body=body)
    cfg = replace(cfg, deflection=replace(cfg.deflection, enabled=False))
    bodies = [d if isinstance(d, BodyDescriptor) else BodyDescriptor.from_mapping(d) for d in descriptors]
    index = next((i for i, d in enumerate(bodies) if d.name == body), None)
    star = next((d for d in bodies if d.name == cfg.star_name), None)
    if index is None or star is None:
        raise ConfigurationError(f"cannot aim at '{body}' without it and the star", body=body)

    planet = bodies[index]
    gravity_scale = cfg.integrator.gravity_scale
    radius = meters_to_units(planet.semi_major_axis)
    orbit_speed = circular_speed(radius, star.mass, gravity_scale)
    rate = math.degrees(orbit_speed / radius)  # the integrated orbit, not the tabulated period
    mu = gravity_scale * sim_gm(planet.mass)

    def launched(descriptor: BodyDescriptor) -> Simulation:
        simulation = Simulation.from_descriptors(bodies[:index] + [descriptor] + bodies[index + 1:], cfg)
        simulation.launch_probe()
        return simulation

    def flyby_at(angle_deg: float) -> Optional[FlybyPass]:
        placed = replace(planet, initial_angle_deg=angle_deg % 360.0)
        return find_flyby(launched(placed), body, max_duration=max_duration)

    ghost = replace(planet, mass=GHOST_MASS, initial_angle_deg=0.0)
    crossing = find_orbit_crossing(launched(ghost), radius, max_duration=max_duration)
    if crossing is None:
        raise ConfigurationError(f"the probe never reaches the orbit of '{body}'", body=body)

    phi = math.radians(crossing.angle_deg)
    along = vec3(-math.sin(phi), math.cos(phi), 0.0)
    relative = crossing.velocity - along * orbit_speed
    heading = normalized(relative)
    sin_alpha = max(abs(float(np.cross(along, heading)[2])), 1e-3)
    lead = aiming_radius(periapsis, mu, magnitude(relative)) / (orbit_speed * sin_alpha)
    if not trailing:
        lead = -lead
    # passes on the z-cross-heading side are clockwise, with a negative miss
    behind = float(dot(vec3(-heading[1], heading[0], 0.0), along)) < 0.0
    goal = -periapsis if behind == trailing else periapsis
    angle = crossing.angle_deg + rate * (lead - crossing.time)

    first = flyby_at(angle)
    if first is None:
        raise ConfigurationError(f"no flyby of '{body}' near the aimed start angle", body=body)
    trials = [(angle, first)]

    previous_angle, previous_miss = angle, first.miss
    current = angle + NUDGE_DEG
    for _ in range(max_iterations):
        if abs(trials[-1][1].miss - goal) <= tolerance:
            break
        flyby = flyby_at(current)
        if flyby is None:
            break
        trials.append((current, flyby))
        if flyby.miss == previous_miss:
            break
        step = -(flyby.miss - goal) * (current - previous_angle) / (flyby.miss - previous_miss)
        step = max(-MAX_STEP_DEG, min(MAX_STEP_DEG, step))
        previous_angle, previous_miss = current, flyby.miss
        current += step

    best_angle, best = min(trials, key=lambda trial: abs(trial[1].miss - goal))
    return FlybyAim(body, best_angle % 360.0, periapsis, best.miss, best.time)


def plan_flybys(
    descriptors: Sequence[DescriptorLike],
    cfg: SimulationCfg,
    flybys: Iterable[tuple[str, float]],
) -> tuple[list[BodyDescriptor], list[FlybyAim]]:
    """Aim each ``(body, periapsis)`` in order; later aims keep earlier angles."""

    bodies = [d if isinstance(d, BodyDescriptor) else BodyDescriptor.from_mapping(d) for d in descriptors]
    aims: list[FlybyAim] = []
    for body, periapsis in flybys:
        aim = aim_flyby(bodies, cfg, body, periapsis)
        bodies = [replace(d, initial_angle_deg=aim.angle_deg) if d.name == body else d for d in bodies]
        aims.append(aim)
    return bodies, aims


__all__ = [
    "FlybyAim",
    "FlybyPass",
    "OrbitCrossing",
    "aim_flyby",
    "aiming_radius",
    "find_flyby",
    "find_orbit_crossing",
    "plan_flybys",
]
