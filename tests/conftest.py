"""Shared fixtures for the flyby simulator tests."""
from dataclasses import replace

import pytest

from flyby_sim.core.config import SIMULATION_CFG, SimulationCfg
from flyby_sim.core.model import BodyRegistry, BodyRole, BodySpec
from flyby_sim.core.simulation import BodyDescriptor

from helpers import EARTH_SMA, JUPITER_SMA, SUN_MASS, add_circular_planet


@pytest.fixture
def sun_registry() -> BodyRegistry:
    registry = BodyRegistry()
    registry.add(BodySpec(name="Sun", role=BodyRole.STAR, mass=SUN_MASS))
    return registry


@pytest.fixture
def sun_earth(sun_registry: BodyRegistry) -> BodyRegistry:
    add_circular_planet(sun_registry, "Earth", EARTH_SMA, 0.0, mass=5.972e24)
    return sun_registry


@pytest.fixture
def sun_earth_jupiter(sun_registry: BodyRegistry) -> BodyRegistry:
    add_circular_planet(sun_registry, "Earth", EARTH_SMA, 0.0)
    add_circular_planet(sun_registry, "Jupiter", JUPITER_SMA, 97.0)
    return sun_registry


@pytest.fixture
def light_descriptors() -> list[BodyDescriptor]:
    """Sun with massless-ish planets so the transfer is a pure two-body problem."""

    return [
        BodyDescriptor(name="Sun", mass=SUN_MASS),
        BodyDescriptor(name="Earth", mass=1.0, semi_major_axis=EARTH_SMA, initial_angle_deg=0.0),
        BodyDescriptor(name="Jupiter", mass=1.0, semi_major_axis=JUPITER_SMA),
    ]


@pytest.fixture
def hohmann_cfg() -> SimulationCfg:
    mission = replace(SIMULATION_CFG.mission, overshoot=1.0, phase_overshoot=1.0, launch_offset=1e-4)
    deflection = replace(SIMULATION_CFG.deflection, enabled=False)
    return replace(SIMULATION_CFG, mission=mission, deflection=deflection)
