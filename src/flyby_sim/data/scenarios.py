"""Body descriptors and mission presets for the flyby simulator."""
from __future__ import annotations

from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from flyby_sim.core.config import SIMULATION_CFG, IntegratorCfg, MissionCfg, SimulationCfg
from flyby_sim.core.orbits import circular_period, hohmann_perihelion_speed, required_phase_angle
from flyby_sim.core.simulation import BodyDescriptor
from flyby_sim.core.targeting import FlybyAim, plan_flybys
from flyby_sim.core.units import meters_to_units, sim_gm

SUN_MASS = 1.989e30  # kg
DAY = 1.0  # simulated seconds per day at the default time scale

# name, mass [kg], semi-major axis [m], period [days]
PLANET_DATA: tuple[tuple[str, float, float, float], ...] = (
    ("Mercury", 3.301e23, 57.91e9, 87.97),
    ("Venus", 4.867e24, 108.21e9, 224.70),
    ("Earth", 5.972e24, 149.6e9, 365.25),
    ("Mars", 6.417e23, 227.92e9, 686.98),
    ("Jupiter", 1.898e27, 778.57e9, 4332.59),
    ("Saturn", 5.683e26, 1433.53e9, 10759.22),
)

START_ANGLES: dict[str, float] = {
    "Mercury": 45.0,
    "Venus": 290.0,
    "Earth": 0.0,
}

SATURN_PHASE_OVERSHOOT = 1.05
SATURN_LEAD_DEG = 29.65

# bound from Earth (1.097x is hyperbolic), with aphelion beyond Saturn
GRAND_TOUR_OVERSHOOT = 1.05
JUPITER_PERIAPSIS = 5.0  # U, inside the SOI
SATURN_PERIAPSIS = 2.0  # U, inside the deflection trigger


def saturn_start_angle(star_mass: float = SUN_MASS) -> float:
    """Saturn's unaimed start angle.

    Jupiter's phase for a transfer 5% faster than Hohmann, plus a fixed lead so
    Saturn is roughly where the probe heads after the Jupiter flyby.  The
    grand tour aims Saturn from here.
    """

    mu = sim_gm(star_mass)
    r1 = meters_to_units(149.6e9)
    r2 = meters_to_units(778.57e9)
    v_peri = hohmann_perihelion_speed(mu, r1, r2) * SATURN_PHASE_OVERSHOOT
    jupiter_period = circular_period(778.57e9, star_mass)
    return required_phase_angle(r1, r2, mu, jupiter_period, v_peri) + SATURN_LEAD_DEG


def solar_system_descriptors(star_mass: float = SUN_MASS) -> list[BodyDescriptor]:
    """Sun plus six planets; Jupiter is left for the mission phase solver."""

    descriptors = [BodyDescriptor(name="Sun", mass=star_mass)]
    for name, mass, sma, period_days in PLANET_DATA:
        angle = START_ANGLES.get(name)
        if name == "Saturn":
            angle = saturn_start_angle(star_mass)
        descriptors.append(
            BodyDescriptor(
                name=name,
                mass=mass,
                semi_major_axis=sma,
                orbital_period=period_days * DAY,
                initial_angle_deg=angle,
            )
        )
    return descriptors


@dataclass(frozen=True)
class Scenario:
    key: str
    name: str
    overshoot: float
    launch_angle_deg: float
    deflection: bool
    description: str
    phase_overshoot: float = 1.0
    flybys: tuple[tuple[str, float], ...] = ()  # (body, periapsis in U), aimed in order

    def configure(self, cfg: SimulationCfg = SIMULATION_CFG) -> SimulationCfg:
        mission = replace(
            cfg.mission,
            overshoot=self.overshoot,
            phase_overshoot=self.phase_overshoot,
            launch_angle_deg=self.launch_angle_deg,
        )
        deflection = replace(cfg.deflection, enabled=self.deflection)
        return replace(cfg, mission=mission, deflection=deflection)

    def plan(self, cfg: Optional[SimulationCfg] = None) -> tuple[list[BodyDescriptor], list[FlybyAim]]:
        """Solar-system descriptors with this scenario's flybys aimed for ``cfg``."""

        cfg = self.configure() if cfg is None else cfg
        if not self.flybys:
            return solar_system_descriptors(), []
        descriptors, aims = _aimed_system(self.flybys, cfg.integrator, cfg.mission, cfg.star_name, cfg.random_seed)
        return list(descriptors), list(aims)

    def descriptors(self, cfg: Optional[SimulationCfg] = None) -> list[BodyDescriptor]:
        return self.plan(cfg)[0]


@lru_cache(maxsize=8)
def _aimed_system(
    flybys: tuple[tuple[str, float], ...],
    integrator: IntegratorCfg,
    mission: MissionCfg,
    star_name: str,
    seed: int,
) -> tuple[tuple[BodyDescriptor, ...], tuple[FlybyAim, ...]]:
    # observers never move bodies while planning, so the SOI settings do not matter
    cfg = replace(SIMULATION_CFG, integrator=integrator, mission=mission, star_name=star_name, random_seed=seed)
    descriptors, aims = plan_flybys(solar_system_descriptors(), cfg, flybys)
    return tuple(descriptors), tuple(aims)


SCENARIO_DEFINITIONS: tuple[Scenario, ...] = (
    Scenario(
        key="grand_tour",
        name="Grand Tour",
        overshoot=GRAND_TOUR_OVERSHOOT,
        phase_overshoot=GRAND_TOUR_OVERSHOOT,
        launch_angle_deg=0.0,
        deflection=True,
        flybys=(("Jupiter", JUPITER_PERIAPSIS), ("Saturn", SATURN_PERIAPSIS)),
        description="Fast Jupiter flyby aimed on to Saturn, with the out-of-ecliptic Saturn deflection.",
    ),
    Scenario(
        key="hohmann",
        name="Hohmann",
        overshoot=1.0,
        launch_angle_deg=0.0,
        deflection=False,
        description="Minimum-energy transfer to Jupiter's orbit, no forced deflection.",
    ),
    Scenario(
        key="slow",
        name="Undershoot",
        overshoot=0.95,
        launch_angle_deg=0.0,
        deflection=False,
        description="Too slow to reach Jupiter's orbit; the probe falls back inward.",
    ),
    Scenario(
        key="off_axis",
        name="Off-axis",
        overshoot=GRAND_TOUR_OVERSHOOT,
        phase_overshoot=GRAND_TOUR_OVERSHOOT,
        launch_angle_deg=10.0,
        deflection=True,
        description="Grand tour speed launched 10 degrees outward of Earth's heading.",
    ),
)

SCENARIOS: dict[str, Scenario] = {scenario.key: scenario for scenario in SCENARIO_DEFINITIONS}
SCENARIO_DISPLAY_ORDER: list[str] = [scenario.key for scenario in SCENARIO_DEFINITIONS]
DEFAULT_SCENARIO_KEY = SCENARIO_DISPLAY_ORDER[0]


__all__ = [
    "DEFAULT_SCENARIO_KEY",
    "PLANET_DATA",
    "SCENARIO_DEFINITIONS",
    "SCENARIO_DISPLAY_ORDER",
    "SCENARIOS",
    "SUN_MASS",
    "Scenario",
    "saturn_start_angle",
    "solar_system_descriptors",
]
