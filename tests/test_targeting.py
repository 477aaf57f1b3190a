"""Flyby aiming: orbit crossings, closest-approach passes and the angle search."""
import math
from dataclasses import replace

import pytest

from flyby_sim.core.errors import ConfigurationError
from flyby_sim.core.simulation import Simulation
from flyby_sim.core.targeting import aim_flyby, aiming_radius, find_flyby, find_orbit_crossing, plan_flybys


def launched(descriptors, cfg):
    simulation = Simulation.from_descriptors(descriptors, cfg)
    simulation.launch_probe()
    return simulation


# =============================================================================
# GEOMETRY
# =============================================================================

class TestAimingRadius:
    def test_no_gravity_means_straight_line(self):
        assert aiming_radius(5.0, 0.0, 1.0) == pytest.approx(5.0)

    def test_gravity_widens_the_aim(self):
        # Jupiter-like pull at 13 km/s
        b = aiming_radius(5.0, 0.946, 1.142)
        assert b == pytest.approx(5.0 * math.sqrt(1.0 + 2.0 * 0.946 / (5.0 * 1.142 ** 2)))
        assert b > 5.0

    def test_zero_speed(self):
        assert aiming_radius(3.0, 1.0, 0.0) == 3.0


# =============================================================================
# PROPAGATION
# =============================================================================

class TestPropagation:
    def test_orbit_crossing(self, light_descriptors, hohmann_cfg):
        simulation = launched(light_descriptors, hohmann_cfg)
        crossing = find_orbit_crossing(simulation, 400.0)
        assert crossing is not None
        assert math.hypot(*simulation.registry.probe.position[:2]) >= 400.0
        assert 0.0 < crossing.angle_deg < 180.0
        assert crossing.time == pytest.approx(simulation.elapsed_time)

    def test_orbit_never_reached(self, light_descriptors, hohmann_cfg):
        simulation = launched(light_descriptors, hohmann_cfg)
        assert find_orbit_crossing(simulation, 5000.0, max_duration=20.0) is None
        assert simulation.elapsed_time == pytest.approx(20.0)

    def test_hohmann_arrival_is_a_flyby(self, light_descriptors, hohmann_cfg):
        simulation = launched(light_descriptors, hohmann_cfg)
        flyby = find_flyby(simulation, "Jupiter")
        assert flyby is not None
        assert flyby.distance < 1.0
        assert abs(flyby.miss) <= flyby.distance + 1e-9

    def test_unknown_body(self, light_descriptors, hohmann_cfg):
        simulation = launched(light_descriptors, hohmann_cfg)
        assert find_flyby(simulation, "Neptune") is None
        assert simulation.elapsed_time == 0.0


# =============================================================================
# AIMING
# =============================================================================

@pytest.fixture
def fast_cfg(hohmann_cfg):
    """A transfer that cuts across Jupiter's orbit instead of touching it."""

    mission = replace(hohmann_cfg.mission, overshoot=1.05, phase_overshoot=1.05)
    return replace(hohmann_cfg, mission=mission)


class TestAimFlyby:
    def test_light_target_is_passed_at_the_requested_distance(self, light_descriptors, fast_cfg):
        aim = aim_flyby(light_descriptors, fast_cfg, "Jupiter", 3.0)
        assert abs(aim.miss) == pytest.approx(3.0, abs=0.05)
        assert 0.0 <= aim.angle_deg < 360.0

        descriptors = [
            replace(d, initial_angle_deg=aim.angle_deg) if d.name == "Jupiter" else d for d in light_descriptors
        ]
        simulation = launched(descriptors, fast_cfg)
        simulation.run_for(aim.time + 30.0, 1.0)
        assert simulation.min_approach_mkm("Jupiter") == pytest.approx(3.0, abs=0.5)

    def test_leading_pass_is_on_the_other_side(self, light_descriptors, fast_cfg):
        behind = aim_flyby(light_descriptors, fast_cfg, "Jupiter", 3.0)
        ahead = aim_flyby(light_descriptors, fast_cfg, "Jupiter", 3.0, trailing=False)
        assert abs(ahead.miss) == pytest.approx(3.0, abs=0.05)
        assert behind.miss * ahead.miss < 0.0

    def test_plan_flybys_fixes_the_angle(self, light_descriptors, fast_cfg):
        descriptors, aims = plan_flybys(light_descriptors, fast_cfg, [("Jupiter", 3.0)])
        jupiter = next(d for d in descriptors if d.name == "Jupiter")
        assert jupiter.initial_angle_deg == aims[0].angle_deg
        assert light_descriptors[2].initial_angle_deg is None

    def test_missing_body(self, light_descriptors, fast_cfg):
        with pytest.raises(ConfigurationError):
            aim_flyby(light_descriptors, fast_cfg, "Saturn", 3.0)

    def test_periapsis_must_be_positive(self, light_descriptors, fast_cfg):
        with pytest.raises(ConfigurationError):
            aim_flyby(light_descriptors, fast_cfg, "Jupiter", 0.0)
