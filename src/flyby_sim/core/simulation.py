"""Headless flyby simulation: setup, ticking, launch and diagnostics.

A tick runs to completion in a fixed order: every integrator sub-step, then
every encounter observer, then (optionally) the run logger.  Readers such as
renderers should only call :meth:`Simulation.snapshot` or the diagnostic
queries between ticks.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

import numpy as np

from .config import SIMULATION_CFG, SimulationCfg
from .encounters import ClosestApproachDeflector, EncounterEvent, EncounterObserver, SoiTracker
from .errors import ConfigurationError
from .logging_utils import RunLogger
from .model import BodyRegistry, BodyRole, BodySpec, SimClock
from .orbits import (
    LaunchSolution,
    circular_period,
    hohmann_perihelion_speed,
    initialize_circular_orbit,
    place_probe,
    required_phase_angle,
    solve_launch,
)
from .physics import GravityIntegrator, StepReport, relative_energy_drift, total_energy
from .timekeeping import FixedStepAccumulator
from .units import meters_to_units, sim_gm, units_per_sim_sec_to_km_per_sec, units_to_mkm
from .vector import magnitude, narrow


@dataclass(frozen=True)
class BodyDescriptor:
    """Already-deserialized body parameters supplied at setup.

    ``semi_major_axis`` is in meters, ``orbital_period`` in simulated seconds
    (``None`` derives it from a circular orbit) and ``initial_angle_deg``
    overrides the start phase.
    """

    name: str
    mass: float
    semi_major_axis: float = 0.0
    orbital_period: Optional[float] = None
    initial_angle_deg: Optional[float] = None

    _ALIASES = {
        "semi_major_axis": ("semi_major_axis", "semiMajorAxis"),
        "orbital_period": ("orbital_period", "orbitalPeriod"),
        "initial_angle_deg": ("initial_angle_deg", "initialAngle", "initial_angle"),
    }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BodyDescriptor":
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ConfigurationError("body descriptor is missing a name")
        if "mass" not in data:
            raise ConfigurationError(f"body '{name}' is missing a mass", body=name)

        values: dict[str, Any] = {}
        for field_name, keys in cls._ALIASES.items():
            for key in keys:
                if key in data and data[key] is not None:
                    values[field_name] = data[key]
                    break
        try:
            return cls(
                name=name,
                mass=float(data["mass"]),
                semi_major_axis=float(values.get("semi_major_axis", 0.0)),
                orbital_period=_optional_float(values.get("orbital_period")),
                initial_angle_deg=_optional_float(values.get("initial_angle_deg")),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"body '{name}' has a malformed field: {exc}", body=name) from exc

    def validate(self, *, star: bool) -> None:
        if not (math.isfinite(self.mass) and self.mass > 0.0):
            raise ConfigurationError(f"body '{self.name}' needs a positive finite mass", body=self.name)
        if star:
            return
        if not (math.isfinite(self.semi_major_axis) and self.semi_major_axis > 0.0):
            raise ConfigurationError(
                f"planet '{self.name}' needs a positive semi-major axis", body=self.name
            )
        if self.orbital_period is not None and not (
            math.isfinite(self.orbital_period) and self.orbital_period > 0.0
        ):
            raise ConfigurationError(
                f"planet '{self.name}' has a non-positive orbital period", body=self.name
            )
        if self.initial_angle_deg is not None and not math.isfinite(self.initial_angle_deg):
            raise ConfigurationError(f"planet '{self.name}' has a non-finite start angle", body=self.name)


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


DescriptorLike = Union[BodyDescriptor, Mapping[str, Any]]


@dataclass(frozen=True)
class BodySnapshot:
    position: np.ndarray
    velocity: np.ndarray


class Simulation:
    """Owns the registry, the clock, the integrator and the observers."""

    def __init__(
        self,
        registry: BodyRegistry,
        cfg: SimulationCfg = SIMULATION_CFG,
        *,
        logger: Optional[RunLogger] = None,
        observers: Optional[list[EncounterObserver]] = None,
    ) -> None:
        self.registry = registry
        self.cfg = cfg
        self.clock = SimClock()
        self.integrator = GravityIntegrator(cfg.integrator)
        self.observers: list[EncounterObserver] = (
            observers if observers is not None else self._default_observers(cfg)
        )
        self.logger = logger
        self.events: list[EncounterEvent] = []
        self.setup_errors: list[ConfigurationError] = []
        self.launch: Optional[LaunchSolution] = None
        self.last_step = StepReport(substeps=0, substep_dt=0.0, sim_time=0.0)
        self.paused = False
        self.ticks = 0
        self._accumulator = FixedStepAccumulator(
            step=cfg.playback.frame_dt, max_frames=cfg.playback.max_frames_per_call
        )
        self.initial_energy = self.total_energy()

    @staticmethod
    def _default_observers(cfg: SimulationCfg) -> list[EncounterObserver]:
        observers: list[EncounterObserver] = [
            SoiTracker(name, radius, cfg.soi) for name, radius in cfg.soi.radii.items()
        ]
        if cfg.deflection.enabled:
            observers.append(ClosestApproachDeflector(cfg.deflection))
        return observers

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Iterable[DescriptorLike],
        cfg: SimulationCfg = SIMULATION_CFG,
        *,
        logger: Optional[RunLogger] = None,
    ) -> "Simulation":
        """Build the star and planets.

        Bad planet descriptors are collected in ``setup_errors`` and skipped.
        The mission target is placed at the phase angle that meets the probe
        at the end of its transfer.  A missing or invalid star raises
        :class:`ConfigurationError`.
        """

        errors: list[ConfigurationError] = []
        parsed: list[BodyDescriptor] = []
        seen: set[str] = set()
        for raw in descriptors:
            try:
                descriptor = raw if isinstance(raw, BodyDescriptor) else BodyDescriptor.from_mapping(raw)
                if descriptor.name in seen:
                    raise ConfigurationError(f"duplicate body '{descriptor.name}'", body=descriptor.name)
                descriptor.validate(star=descriptor.name == cfg.star_name)
            except ConfigurationError as exc:
                errors.append(exc)
                continue
            seen.add(descriptor.name)
            parsed.append(descriptor)

        star_descriptor = next((d for d in parsed if d.name == cfg.star_name), None)
        if star_descriptor is None:
            raise ConfigurationError(f"no valid star '{cfg.star_name}' among the descriptors")

        registry = BodyRegistry()
        registry.add(BodySpec(name=star_descriptor.name, role=BodyRole.STAR, mass=star_descriptor.mass))
        star_mass = star_descriptor.mass
        gravity_scale = cfg.integrator.gravity_scale
        rng = random.Random(cfg.random_seed)

        planets = [d for d in parsed if d is not star_descriptor]
        target = next((d for d in planets if d.name == cfg.mission.target), None)
        for descriptor in planets:
            if descriptor is target:
                continue
            angle = descriptor.initial_angle_deg
            if angle is None:
                angle = rng.uniform(0.0, 360.0)
            _add_planet(registry, descriptor, angle, star_mass, gravity_scale)

        if target is not None:
            angle = target.initial_angle_deg
            if angle is None:
                try:
                    angle = _target_phase(registry, target, cfg, star_mass)
                except ConfigurationError as exc:
                    errors.append(exc)
                    angle = None
            if angle is None:
                angle = rng.uniform(0.0, 360.0)
            _add_planet(registry, target, angle, star_mass, gravity_scale)

        simulation = cls(registry, cfg, logger=logger)
        simulation.setup_errors = errors
        return simulation

    # ------------------------------------------------------------------
    # Launch
    # ------------------------------------------------------------------

    def launch_probe(
        self,
        speed_kms: Optional[float] = None,
        angle_deg: Optional[float] = None,
        launcher: Optional[str] = None,
    ) -> LaunchSolution:
        """Solve and apply the launch; the probe becomes active.

        ``launcher`` overrides the mission's launching body.  Raises
        :class:`LaunchError` (leaving the registry untouched) when the
        launcher is missing or has no velocity.
        """

        mission = self.cfg.mission
        solution = solve_launch(
            self.registry,
            mission,
            speed_kms=speed_kms,
            angle_deg=angle_deg,
            launcher=launcher,
            gravity_scale=self.cfg.integrator.gravity_scale,
        )
        probe = place_probe(self.registry, solution, mission)
        self.launch = solution
        for observer in self.observers:
            observer.reset()
        self.initial_energy = self.total_energy()

        details = {
            "mode": solution.mode,
            "launcher": mission.launcher if launcher is None else launcher,
            "target_speed_kms": units_per_sim_sec_to_km_per_sec(solution.target_speed),
            "launcher_speed_kms": units_per_sim_sec_to_km_per_sec(solution.launcher_speed),
            "delta_v_kms": units_per_sim_sec_to_km_per_sec(solution.delta_v),
        }
        if solution.transfer_semi_major_axis is not None:
            details["transfer_semi_major_axis"] = solution.transfer_semi_major_axis
        kind = "launch" if solution.mode == "transfer" else "launch_fallback"
        self._record(
            [
                EncounterEvent(
                    self.clock.time,
                    kind,
                    probe.name,
                    magnitude(probe.position),
                    units_per_sim_sec_to_km_per_sec(magnitude(probe.velocity)),
                    details,
                )
            ]
        )
        return solution

    def relaunch(
        self,
        speed_kms: Optional[float] = None,
        angle_deg: Optional[float] = None,
        launcher: Optional[str] = None,
    ) -> LaunchSolution:
        """Discard the probe and launch a fresh one from the current state."""

        self.registry.remove_probe()
        self.launch = None
        return self.launch_probe(speed_kms, angle_deg, launcher)

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def tick(self, dt: float) -> StepReport:
        report = self.integrator.advance(self.registry, self.clock, dt)
        self.last_step = report
        if report.substeps == 0:
            return report
        events: list[EncounterEvent] = []
        for observer in self.observers:
            events.extend(observer.observe(self.registry, self.clock))
        self._record(events)
        self.ticks += 1
        if self.logger is not None and self.ticks % max(1, self.cfg.logging.log_every_ticks) == 0:
            self._log_state()
        return report

    def run_for(self, duration: float, tick_dt: float) -> int:
        """Tick in ``tick_dt`` chunks until ``duration`` has elapsed."""

        if not tick_dt > 0.0:
            raise ValueError("tick_dt must be positive")
        if math.isinf(duration):
            raise ValueError("duration must be finite")
        if not duration > 0.0:
            return 0
        full_ticks = int(duration // tick_dt)
        for _ in range(full_ticks):
            self.tick(tick_dt)
        remainder = duration - full_ticks * tick_dt
        ticks = full_ticks
        if remainder > 1e-12 * max(1.0, duration):
            self.tick(remainder)
            ticks += 1
        return ticks

    def advance_frame(self, real_dt: float) -> list[StepReport]:
        """Feed wall-clock time and run whatever whole frames are due."""

        if self.paused:
            return []
        self._accumulator.accrue(real_dt)
        frames, _ = self._accumulator.consume()
        sim_dt = self.cfg.playback.sim_dt_per_frame
        return [self.tick(sim_dt) for _ in range(frames)]

    def toggle_pause(self) -> bool:
        self.paused = not self.paused
        if self.paused:
            self._accumulator.clear()
        return self.paused

    # ------------------------------------------------------------------
    # Output and diagnostics
    # ------------------------------------------------------------------

    @property
    def elapsed_time(self) -> float:
        return self.clock.time

    def snapshot(self, *, single_precision: bool = True) -> dict[str, BodySnapshot]:
        """Positions and velocities of every body, in simulation units."""

        convert = narrow if single_precision else np.copy
        return {
            body.name: BodySnapshot(position=convert(body.position), velocity=convert(body.velocity))
            for body in self.registry.bodies()
        }

    def probe_speed_kms(self) -> Optional[float]:
        probe = self.registry.probe
        if probe is None:
            return None
        return units_per_sim_sec_to_km_per_sec(magnitude(probe.velocity))

    def probe_distance_from_star_mkm(self) -> Optional[float]:
        probe, star = self.registry.probe, self.registry.star
        if probe is None or star is None:
            return None
        return units_to_mkm(magnitude(probe.position - star.position))

    def distance_mkm(self, other: str, origin: Optional[str] = None) -> Optional[float]:
        """Distance from ``origin`` (the probe by default) to ``other``."""

        first = self.registry.probe if origin is None else self.registry.find(origin)
        second = self.registry.find(other)
        if first is None or second is None:
            return None
        return units_to_mkm(magnitude(first.position - second.position))

    def _soi_tracker(self, body: str) -> Optional[SoiTracker]:
        for observer in self.observers:
            if isinstance(observer, SoiTracker) and observer.target == body:
                return observer
        return None

    def min_approach_mkm(self, body: str) -> Optional[float]:
        tracker = self._soi_tracker(body)
        if tracker is None or math.isinf(tracker.closest_approach):
            return None
        return units_to_mkm(tracker.closest_approach)

    def last_deflection_deg(self, body: Optional[str] = None) -> Optional[float]:
        """Deflection angle of the most recent SOI exit (optionally per body)."""

        for event in reversed(self.events):
            if event.kind == "soi_exit" and (body is None or event.body == body):
                return event.details.get("deflection_deg")
        return None

    def total_energy(self) -> float:
        return total_energy(self.registry.bodies(), self.cfg.integrator)

    def energy_drift(self) -> float:
        return relative_energy_drift(self.initial_energy, self.total_energy())

    def planet_radius_errors(self) -> dict[str, float]:
        """Percent deviation of each planet's star distance from its semi-major axis."""

        star = self.registry.star
        origin = star.position if star is not None else np.zeros(3)
        errors: dict[str, float] = {}
        for planet in self.registry.planets:
            expected = meters_to_units(planet.spec.semi_major_axis)
            if expected <= 0.0:
                continue
            actual = magnitude(planet.position - origin)
            errors[planet.name] = abs(actual - expected) / expected * 100.0
        return errors

    def meta(self) -> dict[str, Any]:
        cfg = self.cfg
        return {
            "bodies": [
                {
                    "name": body.name,
                    "role": body.spec.role.value,
                    "mass": body.mass,
                    "semi_major_axis": body.spec.semi_major_axis,
                    "orbital_period": body.spec.orbital_period,
                    "initial_angle_deg": body.spec.initial_angle_deg,
                }
                for body in self.registry.bodies()
            ],
            "integrator": {
                "scheme": "RK4",
                "max_substep_dt": cfg.integrator.max_substep_dt,
                "max_substeps": cfg.integrator.max_substeps,
                "gravity_scale": cfg.integrator.gravity_scale,
            },
            "mission": {
                "launcher": cfg.mission.launcher,
                "target": cfg.mission.target,
                "overshoot": cfg.mission.overshoot,
                "phase_overshoot": cfg.mission.phase_overshoot,
                "launch_offset": cfg.mission.launch_offset,
            },
            "soi_radii": dict(cfg.soi.radii),
            "exit_hysteresis": cfg.soi.exit_hysteresis,
            "deflection": {
                "target": cfg.deflection.target,
                "trigger_distance": cfg.deflection.trigger_distance,
                "deflection_deg": cfg.deflection.deflection_deg,
                "enabled": cfg.deflection.enabled,
            },
            "setup_errors": [str(exc) for exc in self.setup_errors],
        }

    # ------------------------------------------------------------------

    def _record(self, events: list[EncounterEvent]) -> None:
        self.events.extend(events)
        if self.logger is None:
            return
        for event in events:
            self.logger.log_event(
                event.time, event.kind, event.body, event.distance, event.speed_kms, event.details
            )

    def _log_state(self) -> None:
        probe = self.registry.probe
        if probe is None or self.logger is None:
            return
        self.logger.log_ts(
            [
                self.clock.time,
                *probe.position,
                *probe.velocity,
                units_per_sim_sec_to_km_per_sec(magnitude(probe.velocity)),
                self.probe_distance_from_star_mkm() or 0.0,
                self.total_energy(),
                self.energy_drift(),
                self.last_step.substeps,
                self.last_step.substep_dt,
            ]
        )


def _add_planet(
    registry: BodyRegistry,
    descriptor: BodyDescriptor,
    angle_deg: float,
    star_mass: float,
    gravity_scale: float,
) -> None:
    period = descriptor.orbital_period
    if period is None:
        period = circular_period(descriptor.semi_major_axis, star_mass, gravity_scale)
    spec = BodySpec(
        name=descriptor.name,
        role=BodyRole.PLANET,
        mass=descriptor.mass,
        semi_major_axis=descriptor.semi_major_axis,
        orbital_period=period,
        initial_angle_deg=angle_deg % 360.0,
    )
    registry.add(spec, initialize_circular_orbit(spec, star_mass, gravity_scale))


def _target_phase(
    registry: BodyRegistry,
    target: BodyDescriptor,
    cfg: SimulationCfg,
    star_mass: float,
) -> Optional[float]:
    """Start angle that puts ``target`` at the transfer's arrival point."""

    launcher = registry.find(cfg.mission.launcher)
    if launcher is None:
        return None
    mu = cfg.integrator.gravity_scale * sim_gm(star_mass)
    r1 = magnitude(launcher.position)
    r2 = meters_to_units(target.semi_major_axis)
    v_peri = hohmann_perihelion_speed(mu, r1, r2) * cfg.mission.phase_overshoot
    period = target.orbital_period
    if period is None:
        period = circular_period(target.semi_major_axis, star_mass, cfg.integrator.gravity_scale)
    phase = required_phase_angle(r1, r2, mu, period, v_peri)
    return launcher.spec.initial_angle_deg + phase


__all__ = ["BodyDescriptor", "BodySnapshot", "DescriptorLike", "Simulation"]
