"""Encounter detection for the probe.

Two independent observers watch the same position/velocity stream after every
tick:

- :class:`SoiTracker` measures a flyby.  It records the velocity at SOI entry
  and reports the heliocentric deflection angle on exit.  It never changes
  state.
- :class:`ClosestApproachDeflector` is a one-shot trajectory adjustment.  At
  closest approach to its target it rotates the probe's velocity out of the
  ecliptic by a fixed angle, keeping the speed.

The deflector overrides whatever bending the integrator already produced, so
a flyby of its target is counted twice.  The two are kept apart so either can
be switched off.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import numpy as np

from .config import DEFLECTION_CFG, SOI_CFG, DeflectionCfg, SoiCfg
from .model import BodyRegistry, SimClock
from .units import units_per_sim_sec_to_km_per_sec
from .vector import angle_between_deg, dot, magnitude, normalized, vec3


@dataclass(frozen=True)
class EncounterEvent:
    time: float
    kind: str
    body: str
    distance: float  # U
    speed_kms: float
    details: dict[str, Any] = field(default_factory=dict)


class EncounterObserver(Protocol):
    def observe(self, registry: BodyRegistry, clock: SimClock) -> list[EncounterEvent]:
        ...

    def reset(self) -> None:
        ...


@dataclass
class SoiState:
    inside: bool = False
    entry_velocity: Optional[np.ndarray] = None
    entry_distance: float = math.inf
    min_separation: float = math.inf
    last_separation: float = math.inf
    approaching: bool = False


class SoiTracker:
    """Outside -> Inside -> Outside state machine for one target body."""

    def __init__(self, target: str, radius: float, cfg: SoiCfg = SOI_CFG) -> None:
        if not radius > 0.0:
            raise ValueError("SOI radius must be positive")
        self.target = target
        self.radius = radius
        self.cfg = cfg
        self.state = SoiState()
        self.closest_approach = math.inf
        self.last_deflection_deg: Optional[float] = None
        self.encounters = 0

    @property
    def exit_radius(self) -> float:
        return self.radius * self.cfg.exit_hysteresis

    def reset(self) -> None:
        self.state = SoiState()
        self.closest_approach = math.inf
        self.last_deflection_deg = None
        self.encounters = 0

    def observe(self, registry: BodyRegistry, clock: SimClock) -> list[EncounterEvent]:
        probe = registry.probe
        planet = registry.find(self.target)
        if probe is None or planet is None:
            return []
        if magnitude(probe.position) < self.cfg.min_star_distance:
            return []

        state = self.state
        distance = magnitude(probe.position - planet.position)
        speed = units_per_sim_sec_to_km_per_sec(magnitude(probe.velocity))
        events: list[EncounterEvent] = []

        def emit(kind: str, **details: Any) -> None:
            events.append(EncounterEvent(clock.time, kind, self.target, distance, speed, details))

        if state.last_separation < math.inf:
            tolerance = self.cfg.approach_tolerance
            if distance < state.last_separation - tolerance and not state.approaching:
                state.approaching = True
                emit("approaching", previous_distance=state.last_separation)
            elif distance > state.last_separation + tolerance and state.approaching:
                state.approaching = False
                emit("receding", closest_approach=self.closest_approach)
        state.last_separation = distance
        self.closest_approach = min(self.closest_approach, distance)

        if not state.inside:
            if distance <= self.radius:
                state.inside = True
                state.entry_velocity = probe.velocity.copy()
                state.entry_distance = distance
                state.min_separation = distance
                emit("soi_enter")
            return events

        state.min_separation = min(state.min_separation, distance)

        if distance > self.exit_radius:
            deflection = angle_between_deg(state.entry_velocity, probe.velocity)
            self.last_deflection_deg = deflection
            self.encounters += 1
            emit(
                "soi_exit",
                deflection_deg=deflection,
                min_separation=state.min_separation,
                entry_distance=state.entry_distance,
                speed_in_kms=units_per_sim_sec_to_km_per_sec(magnitude(state.entry_velocity)),
            )
            last_separation, approaching = state.last_separation, state.approaching
            self.state = SoiState(last_separation=last_separation, approaching=approaching)
        return events


class ClosestApproachDeflector:
    """Rotates the probe's velocity out of the ecliptic at closest approach.

    Closest approach is the tick where the range rate (relative velocity
    along the target-to-probe line) turns from negative to non-negative while
    inside ``trigger_distance``.  Fires at most once until :meth:`reset`.
    """

    def __init__(self, cfg: DeflectionCfg = DEFLECTION_CFG) -> None:
        self.cfg = cfg
        self.target = cfg.target
        self.applied = False
        self.last_range_rate: Optional[float] = None

    def reset(self) -> None:
        self.applied = False
        self.last_range_rate = None

    def observe(self, registry: BodyRegistry, clock: SimClock) -> list[EncounterEvent]:
        if self.applied or not self.cfg.enabled:
            return []
        probe = registry.probe
        planet = registry.find(self.target)
        if probe is None or planet is None:
            return []

        offset = probe.position - planet.position
        distance = magnitude(offset)
        range_rate = dot(probe.velocity - planet.velocity, normalized(offset))
        previous, self.last_range_rate = self.last_range_rate, range_rate

        if distance >= self.cfg.trigger_distance or previous is None:
            return []
        if not (previous < 0.0 <= range_rate):
            return []

        before = probe.velocity.copy()
        probe.velocity = deflect_out_of_plane(before, self.cfg.deflection_deg)
        self.applied = True
        return [
            EncounterEvent(
                clock.time,
                "closest_approach_deflection",
                self.target,
                distance,
                units_per_sim_sec_to_km_per_sec(magnitude(probe.velocity)),
                {
                    "speed_before_kms": units_per_sim_sec_to_km_per_sec(magnitude(before)),
                    "deflection_deg": self.cfg.deflection_deg,
                    "out_of_plane_kms": units_per_sim_sec_to_km_per_sec(float(probe.velocity[2])),
                },
            )
        ]


def deflect_out_of_plane(velocity: np.ndarray, angle_deg: float) -> np.ndarray:
    """Tilt ``velocity`` to ``angle_deg`` above the x-y plane, keeping its speed.

    The in-plane heading is kept.  A purely vertical velocity has no heading
    and keeps only the out-of-plane share.
    """

    speed = magnitude(velocity)
    heading = normalized(vec3(velocity[0], velocity[1], 0.0))
    angle = math.radians(angle_deg)
    new_velocity = heading * (speed * math.cos(angle))
    new_velocity[2] = speed * math.sin(angle)
    return new_velocity


__all__ = [
    "ClosestApproachDeflector",
    "EncounterEvent",
    "EncounterObserver",
    "SoiState",
    "SoiTracker",
    "deflect_out_of_plane",
]
