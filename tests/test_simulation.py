"""End-to-end behaviour of the headless simulation."""
import csv
import math
from dataclasses import replace

import numpy as np
import pytest

from flyby_sim.core.config import PlaybackCfg, SIMULATION_CFG
from flyby_sim.core.errors import ConfigurationError, LaunchError
from flyby_sim.core.logging_utils import RunLogger
from flyby_sim.core.orbits import hohmann_perihelion_speed, transfer_time_of_flight
from flyby_sim.core.simulation import BodyDescriptor, Simulation
from flyby_sim.core.units import sim_gm

from helpers import EARTH_SMA, JUPITER_SMA, MARS_SMA, SUN_MASS


def hohmann_tof() -> float:
    mu = sim_gm(SUN_MASS)
    v = hohmann_perihelion_speed(mu, 149.6, 778.57)
    return transfer_time_of_flight(149.6, 778.57, mu, v)[1]


# =============================================================================
# SETUP
# =============================================================================

class TestSetup:
    def test_bad_descriptors_are_collected(self):
        descriptors = [
            {"name": "Sun", "mass": SUN_MASS},
            {"name": "Earth", "mass": 5.972e24, "semiMajorAxis": EARTH_SMA, "orbitalPeriod": 365.25, "initialAngle": 0.0},
            {"name": "Mars", "mass": -1.0, "semiMajorAxis": 227.92e9},
            {"name": "Earth", "mass": 1.0, "semiMajorAxis": 1e11},
            {"name": "Venus", "mass": 4.867e24},
            {"mass": 1.0},
        ]
        simulation = Simulation.from_descriptors(descriptors)
        names = [body.name for body in simulation.registry.bodies()]
        assert names == ["Sun", "Earth"]
        assert len(simulation.setup_errors) == 4
        assert all(isinstance(exc, ConfigurationError) for exc in simulation.setup_errors)
        assert {"Mars", "Earth", "Venus"} <= {exc.body for exc in simulation.setup_errors}

    def test_missing_star_is_fatal(self):
        descriptors = [BodyDescriptor(name="Earth", mass=1.0, semi_major_axis=EARTH_SMA)]
        with pytest.raises(ConfigurationError):
            Simulation.from_descriptors(descriptors)

    def test_invalid_star_is_fatal(self):
        with pytest.raises(ConfigurationError):
            Simulation.from_descriptors([BodyDescriptor(name="Sun", mass=0.0)])

    def test_planets_start_on_their_circular_orbits(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        earth = simulation.registry.get("Earth")
        np.testing.assert_allclose(earth.position, [149.6, 0.0, 0.0])
        assert simulation.planet_radius_errors()["Earth"] == pytest.approx(0.0, abs=1e-9)
        assert earth.spec.orbital_period == pytest.approx(365.25, rel=1e-3)

    def test_target_is_phased_for_the_transfer(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        jupiter = simulation.registry.get("Jupiter")
        assert jupiter.spec.initial_angle_deg == pytest.approx(97.1, abs=0.5)
        assert simulation.setup_errors == []

    def test_explicit_target_angle_wins(self, light_descriptors):
        descriptors = light_descriptors[:2] + [replace(light_descriptors[2], initial_angle_deg=10.0)]
        simulation = Simulation.from_descriptors(descriptors)
        assert simulation.registry.get("Jupiter").spec.initial_angle_deg == pytest.approx(10.0)

    def test_unsolvable_phase_falls_back_to_random_angle(self, light_descriptors):
        cfg = replace(SIMULATION_CFG, mission=replace(SIMULATION_CFG.mission, phase_overshoot=2.0))
        simulation = Simulation.from_descriptors(light_descriptors, cfg)
        assert "Jupiter" in simulation.registry
        assert len(simulation.setup_errors) == 1

    def test_random_angles_follow_seed(self):
        descriptors = [
            BodyDescriptor(name="Sun", mass=SUN_MASS),
            BodyDescriptor(name="Mars", mass=1.0, semi_major_axis=227.92e9),
        ]
        first = Simulation.from_descriptors(descriptors, replace(SIMULATION_CFG, random_seed=7))
        second = Simulation.from_descriptors(descriptors, replace(SIMULATION_CFG, random_seed=7))
        np.testing.assert_array_equal(
            first.registry.get("Mars").position, second.registry.get("Mars").position
        )


# =============================================================================
# LAUNCH
# =============================================================================

class TestLaunch:
    def test_launch_records_event_and_rebaselines_energy(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        solution = simulation.launch_probe()
        assert solution.mode == "transfer"
        assert simulation.registry.probe is not None
        assert simulation.events[-1].kind == "launch"
        assert simulation.energy_drift() == pytest.approx(0.0, abs=1e-12)

    def test_fallback_without_target(self):
        descriptors = [
            BodyDescriptor(name="Sun", mass=SUN_MASS),
            BodyDescriptor(name="Earth", mass=1.0, semi_major_axis=EARTH_SMA, initial_angle_deg=0.0),
        ]
        simulation = Simulation.from_descriptors(descriptors)
        solution = simulation.launch_probe(speed_kms=10.0)
        assert solution.mode == "delta_v"
        assert simulation.events[-1].kind == "launch_fallback"

    def test_missing_launcher_leaves_probe_uninitialized(self):
        descriptors = [
            BodyDescriptor(name="Sun", mass=SUN_MASS),
            BodyDescriptor(name="Jupiter", mass=1.0, semi_major_axis=JUPITER_SMA),
        ]
        simulation = Simulation.from_descriptors(descriptors)
        with pytest.raises(LaunchError):
            simulation.launch_probe()
        assert simulation.registry.probe is None
        assert simulation.events == []

    def test_relaunch_replaces_probe_and_resets_observers(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        simulation.launch_probe()
        simulation.run_for(20.0, 5.0)
        first_probe = simulation.registry.probe
        simulation.relaunch(angle_deg=5.0)
        assert simulation.registry.probe is not first_probe
        assert len(simulation.registry) == 4
        assert [e.kind for e in simulation.events].count("launch") == 2
        assert simulation.min_approach_mkm("Jupiter") is None

    def test_launch_from_named_body(self, hohmann_cfg):
        descriptors = [
            BodyDescriptor(name="Sun", mass=SUN_MASS),
            BodyDescriptor(name="Earth", mass=1.0, semi_major_axis=EARTH_SMA, initial_angle_deg=0.0),
            BodyDescriptor(name="Mars", mass=1.0, semi_major_axis=MARS_SMA, initial_angle_deg=90.0),
            BodyDescriptor(name="Jupiter", mass=1.0, semi_major_axis=JUPITER_SMA),
        ]
        simulation = Simulation.from_descriptors(descriptors, hohmann_cfg)
        solution = simulation.launch_probe(launcher="Mars")

        mars = simulation.registry.get("Mars")
        probe = simulation.registry.probe
        np.testing.assert_allclose(probe.position, mars.position, atol=1e-3)
        assert solution.transfer_semi_major_axis == pytest.approx((227.92 + 778.57) / 2.0)
        # Mars sits on +y, so the launch heads along -x
        assert probe.velocity[0] < 0.0
        assert simulation.events[-1].details["launcher"] == "Mars"
        assert simulation.cfg.mission.launcher == "Earth"

    def test_unknown_launcher_raises(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        with pytest.raises(LaunchError):
            simulation.launch_probe(launcher="Pluto")
        assert simulation.registry.probe is None

    def test_relaunch_from_another_body(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        simulation.launch_probe()
        simulation.relaunch(launcher="Jupiter")
        jupiter = simulation.registry.get("Jupiter")
        np.testing.assert_allclose(simulation.registry.probe.position, jupiter.position, atol=1e-3)
        assert simulation.events[-1].details["launcher"] == "Jupiter"


# =============================================================================
# STEPPING
# =============================================================================

class TestStepping:
    def test_hohmann_transfer_meets_target(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        simulation.launch_probe()
        simulation.run_for(hohmann_tof(), 10.0)

        assert simulation.distance_mkm("Jupiter") < 1.0
        assert simulation.probe_distance_from_star_mkm() == pytest.approx(778.57, rel=1e-3)
        probe = simulation.registry.probe
        # arrival is on the far side of the star
        heading = math.degrees(math.atan2(probe.position[1], probe.position[0]))
        assert abs(heading) == pytest.approx(180.0, abs=0.5)
        kinds = [(e.kind, e.body) for e in simulation.events]
        assert ("soi_enter", "Jupiter") in kinds
        assert simulation.min_approach_mkm("Jupiter") < 1.0
        assert simulation.energy_drift() < 1e-5

    def test_run_for_handles_partial_tick(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        ticks = simulation.run_for(10.5, 2.0)
        assert ticks == 6
        assert simulation.elapsed_time == pytest.approx(10.5)

    def test_run_for_needs_positive_tick(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        with pytest.raises(ValueError):
            simulation.run_for(10.0, 0.0)

    @pytest.mark.parametrize("duration", [0.0, -1.0, -7.5, math.nan])
    def test_run_for_non_positive_duration_is_noop(self, light_descriptors, duration):
        simulation = Simulation.from_descriptors(light_descriptors)
        earth = simulation.registry.get("Earth")
        before = earth.position.copy()
        assert simulation.run_for(duration, 2.0) == 0
        assert simulation.elapsed_time == 0.0
        assert simulation.ticks == 0
        np.testing.assert_array_equal(earth.position, before)

    def test_run_for_rejects_infinite_duration(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        with pytest.raises(ValueError):
            simulation.run_for(math.inf, 1.0)

    def test_zero_tick_does_nothing(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        report = simulation.tick(0.0)
        assert report.substeps == 0
        assert simulation.ticks == 0
        assert simulation.elapsed_time == 0.0

    def test_advance_frame_and_pause(self, light_descriptors):
        cfg = replace(SIMULATION_CFG, playback=PlaybackCfg(frame_dt=0.02, time_warp=50.0, max_frames_per_call=10))
        simulation = Simulation.from_descriptors(light_descriptors, cfg)
        reports = simulation.advance_frame(0.05)
        assert len(reports) == 2
        assert simulation.elapsed_time == pytest.approx(2.0)

        assert simulation.toggle_pause()
        assert simulation.advance_frame(1.0) == []
        assert simulation.elapsed_time == pytest.approx(2.0)
        assert not simulation.toggle_pause()

    def test_advance_frame_caps_catch_up(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        reports = simulation.advance_frame(5.0)
        assert len(reports) == SIMULATION_CFG.playback.max_frames_per_call


# =============================================================================
# OUTPUT
# =============================================================================

class TestOutput:
    def test_snapshot_precision(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        simulation.launch_probe()
        narrow = simulation.snapshot()
        wide = simulation.snapshot(single_precision=False)
        assert set(narrow) == {"Sun", "Earth", "Jupiter", "Voyager"}
        assert narrow["Earth"].position.dtype == np.float32
        assert wide["Earth"].position.dtype == np.float64

    def test_queries_without_probe(self, light_descriptors):
        simulation = Simulation.from_descriptors(light_descriptors)
        assert simulation.probe_speed_kms() is None
        assert simulation.probe_distance_from_star_mkm() is None
        assert simulation.distance_mkm("Jupiter") is None
        assert simulation.distance_mkm("Jupiter", origin="Sun") == pytest.approx(778.57)
        assert simulation.last_deflection_deg() is None

    def test_probe_speed_in_kms(self, light_descriptors, hohmann_cfg):
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg)
        simulation.launch_probe()
        assert simulation.probe_speed_kms() == pytest.approx(38.58, rel=2e-3)

    def test_logger_receives_rows_and_events(self, tmp_path, light_descriptors, hohmann_cfg):
        logger = RunLogger(tmp_path, run_id="test")
        simulation = Simulation.from_descriptors(light_descriptors, hohmann_cfg, logger=logger)
        simulation.launch_probe()
        simulation.run_for(10.0, 1.0)
        logger.write_meta(simulation.meta())
        logger.close()

        with logger.timeseries_path.open(newline="") as fh:
            rows = list(csv.DictReader(fh))
        assert len(rows) == 10
        assert float(rows[-1]["t"]) == pytest.approx(10.0)
        assert float(rows[-1]["substeps"]) == 2

        with logger.events_path.open(newline="") as fh:
            events = list(csv.DictReader(fh))
        assert events[0]["type"] == "launch"
        assert logger.meta_path.exists()

    def test_meta_lists_bodies_and_tunables(self, light_descriptors):
        meta = Simulation.from_descriptors(light_descriptors).meta()
        assert [b["name"] for b in meta["bodies"]] == ["Sun", "Earth", "Jupiter"]
        assert meta["integrator"]["scheme"] == "RK4"
        assert meta["soi_radii"] == {"Jupiter": 10.0, "Saturn": 10.0}
