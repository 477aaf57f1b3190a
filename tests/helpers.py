"""Constants and body builders shared by the test modules."""
from flyby_sim.core.model import BodyRegistry, BodyRole, BodySpec, KinematicState
from flyby_sim.core.orbits import initialize_circular_orbit
from flyby_sim.core.vector import vec3

SUN_MASS = 1.989e30
EARTH_SMA = 149.6e9
MARS_SMA = 227.92e9
JUPITER_SMA = 778.57e9


def planet_spec(name: str, sma: float, angle: float = 0.0, mass: float = 1.0) -> BodySpec:
    return BodySpec(
        name=name,
        role=BodyRole.PLANET,
        mass=mass,
        semi_major_axis=sma,
        initial_angle_deg=angle,
    )


def add_circular_planet(registry: BodyRegistry, name: str, sma: float, angle: float = 0.0, mass: float = 1.0):
    spec = planet_spec(name, sma, angle, mass)
    return registry.add(spec, initialize_circular_orbit(spec, SUN_MASS))


def add_static_body(registry: BodyRegistry, name: str, position, role: BodyRole = BodyRole.PLANET, mass: float = 1.0):
    spec = BodySpec(name=name, role=role, mass=mass)
    return registry.add(spec, KinematicState(position=vec3(*position), velocity=vec3()))
