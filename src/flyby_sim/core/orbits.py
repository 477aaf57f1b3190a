"""Orbit initialisation, transfer-orbit launch solving and phase planning.

All functions work in simulation units: distances in U, speeds in U per
simulated second and gravitational parameters in U^3 per simulated second
squared unless a parameter name says otherwise.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import MISSION_CFG, MissionCfg
from .errors import ConfigurationError, LaunchError
from .model import Body, BodyRegistry, BodyRole, BodySpec, KinematicState
from .units import (
    SIM_TIME_SCALE,
    km_per_sec_to_units_per_sim_sec,
    meters_to_units,
    scaled_gm,
    sim_gm,
)
from .vector import clamp, magnitude, normalized, rotate_in_plane, vec3

TWO_PI = 2.0 * math.pi


# ---------------------------------------------------------------------------
# Circular orbits
# ---------------------------------------------------------------------------


def circular_speed(radius: float, star_mass_kg: float, gravity_scale: float = 1.0) -> float:
    """Circular orbit speed at ``radius`` U around a star of ``star_mass_kg``."""

    if radius <= 0.0:
        return 0.0
    return math.sqrt(gravity_scale * scaled_gm(star_mass_kg) / radius) * SIM_TIME_SCALE


def circular_period(semi_major_axis_m: float, star_mass_kg: float, gravity_scale: float = 1.0) -> float:
    """Period in simulated seconds of a circular orbit of the given radius."""

    radius = meters_to_units(semi_major_axis_m)
    speed = circular_speed(radius, star_mass_kg, gravity_scale)
    if speed <= 0.0:
        return 0.0
    return TWO_PI * radius / speed


def circular_orbit_state(
    semi_major_axis_m: float,
    angle_deg: float,
    star_mass_kg: float,
    gravity_scale: float = 1.0,
) -> tuple[np.ndarray, np.ndarray]:
    """Position and prograde velocity on a circular orbit in the x-y plane."""

    radius = meters_to_units(semi_major_axis_m)
    angle = math.radians(angle_deg)
    speed = circular_speed(radius, star_mass_kg, gravity_scale)
    position = vec3(radius * math.cos(angle), radius * math.sin(angle), 0.0)
    velocity = vec3(-speed * math.sin(angle), speed * math.cos(angle), 0.0)
    return position, velocity


def initialize_circular_orbit(
    spec: BodySpec,
    star_mass_kg: float,
    gravity_scale: float = 1.0,
) -> KinematicState:
    position, velocity = circular_orbit_state(
        spec.semi_major_axis, spec.initial_angle_deg, star_mass_kg, gravity_scale
    )
    return KinematicState(position=position, velocity=velocity)


# ---------------------------------------------------------------------------
# Transfer orbits
# ---------------------------------------------------------------------------


def transfer_semi_major_axis(r1: float, r2: float) -> float:
    return 0.5 * (r1 + r2)


def vis_viva_speed(mu: float, r: float, a: float) -> float:
    """Orbital speed from ``v^2 = mu (2/r - 1/a)``."""

    v_sq = mu * (2.0 / r - 1.0 / a)
    if v_sq < 0.0:
        raise ConfigurationError(f"no bound orbit with a={a:.6g} passes through r={r:.6g}")
    return math.sqrt(v_sq)


def hohmann_perihelion_speed(mu: float, r1: float, r2: float) -> float:
    return vis_viva_speed(mu, r1, transfer_semi_major_axis(r1, r2))


def semi_major_axis_from_speed(mu: float, r: float, v: float) -> float:
    """Invert vis-viva.  Negative for hyperbolic speeds."""

    return 1.0 / (2.0 / r - v * v / mu)


def transfer_time_of_flight(r1: float, r2: float, mu: float, v_peri: float) -> tuple[float, float]:
    """True anomaly (rad) at ``r2`` and time of flight from perihelion ``r1``.

    The transfer ellipse is the one whose perihelion is ``r1`` with speed
    ``v_peri``.  If ``r2`` lies beyond aphelion the result is the aphelion
    passage.
    """

    a = semi_major_axis_from_speed(mu, r1, v_peri)
    if not (a > 0.0 and math.isfinite(a)):
        raise ConfigurationError("perihelion speed does not give a bound transfer orbit")
    e = 1.0 - r1 / a
    if e <= 1e-12:
        raise ConfigurationError("perihelion speed does not raise the orbit beyond the launch radius")

    cos_f = clamp((a * (1.0 - e * e) / r2 - 1.0) / e, -1.0, 1.0)
    f = math.acos(cos_f)

    denom = 1.0 + e * math.cos(f)
    cos_e = clamp((e + math.cos(f)) / denom, -1.0, 1.0)
    sin_e = math.sqrt(1.0 - e * e) * math.sin(f) / denom
    ecc_anomaly = math.atan2(sin_e, cos_e)

    mean_motion = math.sqrt(mu / (a * a * a))
    mean_anomaly = ecc_anomaly - e * math.sin(ecc_anomaly)
    return f, mean_anomaly / mean_motion


def required_phase_angle(r1: float, r2: float, mu: float, target_period: float, v_peri: float) -> float:
    """Lead angle (degrees, in [0, 360)) of the target at launch.

    The target must be this far ahead of the launch direction so that it
    reaches the interception point when the probe does.
    """

    if not target_period > 0.0:
        raise ConfigurationError("target orbital period must be positive")
    f, tof = transfer_time_of_flight(r1, r2, mu, v_peri)
    phi = (f - TWO_PI / target_period * tof) % TWO_PI
    degrees = math.degrees(phi)
    if degrees >= 360.0:
        degrees -= 360.0
    return degrees


# ---------------------------------------------------------------------------
# Probe launch
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LaunchSolution:
    position: np.ndarray
    velocity: np.ndarray
    mode: str  # "transfer" or "delta_v"
    launcher_speed: float
    target_speed: float
    perihelion_speed: Optional[float] = None
    transfer_semi_major_axis: Optional[float] = None

    @property
    def delta_v(self) -> float:
        return self.target_speed - self.launcher_speed


def solve_launch(
    registry: BodyRegistry,
    mission: MissionCfg = MISSION_CFG,
    *,
    speed_kms: Optional[float] = None,
    angle_deg: Optional[float] = None,
    launcher: Optional[str] = None,
    gravity_scale: float = 1.0,
) -> LaunchSolution:
    """Compute the probe's launch state without touching the registry.

    With the target present the probe gets an absolute heliocentric speed of
    ``overshoot`` times the Hohmann perihelion speed.  Without it the
    requested speed is added to the launcher's velocity as a delta-V.
    ``launcher`` names the launching body in place of ``mission.launcher``.
    """

    speed_kms = mission.launch_speed_kms if speed_kms is None else speed_kms
    angle_deg = mission.launch_angle_deg if angle_deg is None else angle_deg
    launcher_name = mission.launcher if launcher is None else launcher

    origin = registry.find(launcher_name)
    if origin is None:
        raise LaunchError(f"launching body '{launcher_name}' not found")
    star = registry.star
    if star is None:
        raise LaunchError("no star to launch around")

    launcher_velocity = origin.velocity
    heading = normalized(launcher_velocity)
    if magnitude(heading) == 0.0:
        raise LaunchError(f"launching body '{launcher_name}' has no velocity to launch along")
    direction = rotate_in_plane(heading, angle_deg)
    position = origin.position + heading * mission.launch_offset
    launcher_speed = magnitude(launcher_velocity)

    target = registry.find(mission.target)
    if target is None:
        boost = km_per_sec_to_units_per_sim_sec(speed_kms)
        velocity = launcher_velocity + direction * boost
        return LaunchSolution(
            position=position,
            velocity=velocity,
            mode="delta_v",
            launcher_speed=launcher_speed,
            target_speed=magnitude(velocity),
        )

    mu = gravity_scale * sim_gm(star.mass)
    r1 = magnitude(origin.position)
    r2 = meters_to_units(target.spec.semi_major_axis) or magnitude(target.position)
    a_transfer = transfer_semi_major_axis(r1, r2)
    v_peri = vis_viva_speed(mu, r1, a_transfer)
    target_speed = v_peri * mission.overshoot
    return LaunchSolution(
        position=position,
        velocity=direction * target_speed,
        mode="transfer",
        launcher_speed=launcher_speed,
        target_speed=target_speed,
        perihelion_speed=v_peri,
        transfer_semi_major_axis=a_transfer,
    )


def place_probe(registry: BodyRegistry, solution: LaunchSolution, mission: MissionCfg = MISSION_CFG) -> Body:
    """Register the probe with the solved state, replacing any previous probe."""

    registry.remove_probe()
    spec = BodySpec(name=mission.probe_name, role=BodyRole.PROBE, mass=mission.probe_mass)
    state = KinematicState(position=solution.position.copy(), velocity=solution.velocity.copy())
    return registry.add(spec, state)


__all__ = [
    "LaunchSolution",
    "circular_orbit_state",
    "circular_period",
    "circular_speed",
    "hohmann_perihelion_speed",
    "initialize_circular_orbit",
    "place_probe",
    "required_phase_angle",
    "semi_major_axis_from_speed",
    "solve_launch",
    "transfer_semi_major_axis",
    "transfer_time_of_flight",
    "vis_viva_speed",
]
