"""Unit conversions between SI quantities and simulation space.

Simulation space keeps heliocentric distances near unity:

- 1 distance unit (U) = 1e9 m (one gigametre, one million km).
- 1 simulated second = ``SIM_TIME_SCALE`` real seconds (one day).

Velocities are expressed in U per simulated second and accelerations in U per
simulated second squared.  ``scaled_gm`` only applies the distance scale; code
that works in simulated seconds multiplies by ``SIM_TIME_SCALE ** 2`` itself.
"""
from __future__ import annotations

import math

DISTANCE_SCALE = 1e-9  # units per meter
SIM_TIME_SCALE = 86_400.0  # real seconds per simulated second
G = 6.67430e-11  # m^3 kg^-1 s^-2

METERS_PER_MKM = 1e9


def _finite(value: float, what: str) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{what} must be finite, got {value!r}")
    return value


def meters_to_units(meters: float) -> float:
    return _finite(meters, "distance") * DISTANCE_SCALE


def units_to_meters(units: float) -> float:
    return _finite(units, "distance") / DISTANCE_SCALE


def units_to_mkm(units: float) -> float:
    """Distance in millions of kilometres."""

    return units_to_meters(units) / METERS_PER_MKM


def km_per_sec_to_units_per_sim_sec(km_per_sec: float) -> float:
    return _finite(km_per_sec, "speed") * 1000.0 * DISTANCE_SCALE * SIM_TIME_SCALE


def units_per_sim_sec_to_km_per_sec(units_per_sim_sec: float) -> float:
    return _finite(units_per_sim_sec, "speed") / (1000.0 * DISTANCE_SCALE * SIM_TIME_SCALE)


def scaled_gm(mass_kg: float) -> float:
    """Return ``G * M`` in U^3 per real second squared.

    Multiply by ``SIM_TIME_SCALE ** 2`` to express it per simulated second
    squared, which is what the integrator and orbit solver use.
    """

    mass_kg = _finite(mass_kg, "mass")
    return G * mass_kg * DISTANCE_SCALE * DISTANCE_SCALE * DISTANCE_SCALE


def sim_gm(mass_kg: float) -> float:
    """Gravitational parameter in U^3 per simulated second squared."""

    return scaled_gm(mass_kg) * SIM_TIME_SCALE * SIM_TIME_SCALE


__all__ = [
    "DISTANCE_SCALE",
    "G",
    "METERS_PER_MKM",
    "SIM_TIME_SCALE",
    "km_per_sec_to_units_per_sim_sec",
    "meters_to_units",
    "scaled_gm",
    "sim_gm",
    "units_per_sim_sec_to_km_per_sec",
    "units_to_meters",
    "units_to_mkm",
]
