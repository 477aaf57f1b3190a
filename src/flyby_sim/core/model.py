"""Data models for the flyby simulation state.

Each body is split into an immutable :class:`BodySpec` (what setup writes once)
and a mutable :class:`KinematicState` (what the integrator rewrites every
sub-step).  :class:`BodyRegistry` owns every body and indexes them by name.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

import numpy as np

from .vector import zero


class BodyRole(Enum):
    STAR = "star"
    PLANET = "planet"
    PROBE = "probe"


@dataclass(frozen=True)
class BodySpec:
    """Configuration of one body.

    ``semi_major_axis`` is in meters and ``orbital_period`` in simulated
    seconds; both are zero for the star and the probe.
    """

    name: str
    role: BodyRole
    mass: float
    semi_major_axis: float = 0.0
    orbital_period: float = 0.0
    initial_angle_deg: float = 0.0


@dataclass
class KinematicState:
    """Mutable state in simulation units."""

    position: np.ndarray = field(default_factory=zero)
    velocity: np.ndarray = field(default_factory=zero)
    acceleration: np.ndarray = field(default_factory=zero)

    def reset_acceleration(self) -> None:
        self.acceleration = zero()

    def add_acceleration(self, accel: np.ndarray) -> None:
        self.acceleration = self.acceleration + accel

    def copy(self) -> "KinematicState":
        return KinematicState(
            position=self.position.copy(),
            velocity=self.velocity.copy(),
            acceleration=self.acceleration.copy(),
        )


@dataclass
class Body:
    spec: BodySpec
    state: KinematicState = field(default_factory=KinematicState)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def mass(self) -> float:
        return self.spec.mass

    @property
    def is_fixed(self) -> bool:
        """The star anchors the inertial frame and is never integrated."""

        return self.spec.role is BodyRole.STAR

    @property
    def position(self) -> np.ndarray:
        return self.state.position

    @position.setter
    def position(self, value: np.ndarray) -> None:
        self.state.position = np.asarray(value, dtype=np.float64)

    @property
    def velocity(self) -> np.ndarray:
        return self.state.velocity

    @velocity.setter
    def velocity(self, value: np.ndarray) -> None:
        self.state.velocity = np.asarray(value, dtype=np.float64)

    @property
    def acceleration(self) -> np.ndarray:
        return self.state.acceleration


@dataclass
class SimClock:
    """Elapsed simulated time in simulated seconds."""

    time: float = 0.0

    def advance(self, dt: float) -> None:
        if dt > 0.0:
            self.time += dt


class BodyRegistry:
    """Owns the star, the planets and the (optional) probe."""

    def __init__(self) -> None:
        self._star: Optional[Body] = None
        self._planets: dict[str, Body] = {}
        self._probe: Optional[Body] = None

    def __len__(self) -> int:
        return len(self.bodies())

    def __iter__(self) -> Iterator[Body]:
        return iter(self.bodies())

    def __contains__(self, name: object) -> bool:
        return self.find(name) is not None  # type: ignore[arg-type]

    @property
    def star(self) -> Optional[Body]:
        return self._star

    @property
    def planets(self) -> list[Body]:
        return list(self._planets.values())

    @property
    def probe(self) -> Optional[Body]:
        return self._probe

    def bodies(self) -> list[Body]:
        """Star first, planets in insertion order, probe last."""

        bodies: list[Body] = []
        if self._star is not None:
            bodies.append(self._star)
        bodies.extend(self._planets.values())
        if self._probe is not None:
            bodies.append(self._probe)
        return bodies

    def find(self, name: str) -> Optional[Body]:
        for body in self.bodies():
            if body.name == name:
                return body
        return None

    def get(self, name: str) -> Body:
        body = self.find(name)
        if body is None:
            raise KeyError(f"Unknown body '{name}'")
        return body

    def add(self, spec: BodySpec, state: Optional[KinematicState] = None) -> Body:
        if self.find(spec.name) is not None:
            raise ValueError(f"Body '{spec.name}' is already registered")
        body = Body(spec=spec, state=state if state is not None else KinematicState())
        if spec.role is BodyRole.STAR:
            if self._star is not None:
                raise ValueError("Only one star is supported")
            body.state = KinematicState()
            self._star = body
        elif spec.role is BodyRole.PROBE:
            if self._probe is not None:
                raise ValueError("A probe is already active")
            self._probe = body
        else:
            self._planets[spec.name] = body
        return body

    def remove_probe(self) -> Optional[Body]:
        probe, self._probe = self._probe, None
        return probe

    def reset_accelerations(self) -> None:
        for body in self.bodies():
            body.state.reset_acceleration()


__all__ = ["Body", "BodyRegistry", "BodyRole", "BodySpec", "KinematicState", "SimClock"]
