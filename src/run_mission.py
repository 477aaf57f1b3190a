"""Run a flyby mission headlessly and log it to data/runs."""
from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

from flyby_sim.core.config import SimulationCfg
from flyby_sim.core.errors import FlybySimError
from flyby_sim.core.logging_utils import RunLogger
from flyby_sim.core.simulation import Simulation
from flyby_sim.data.scenarios import (
    DEFAULT_SCENARIO_KEY,
    SCENARIO_DISPLAY_ORDER,
    SCENARIOS,
)

DEFAULT_DURATION = 4000.0  # simulated seconds (days)
DEFAULT_TICK = 0.5


def build_simulation(scenario_key: str, *, logger: RunLogger | None = None, seed: int = 0) -> Simulation:
    scenario = SCENARIOS[scenario_key]
    cfg: SimulationCfg = replace(scenario.configure(), random_seed=seed)
    simulation = Simulation.from_descriptors(scenario.descriptors(cfg), cfg, logger=logger)
    simulation.launch_probe()
    return simulation


def print_summary(simulation: Simulation, run_dir: Path | None) -> None:
    if run_dir is not None:
        print(f"Run: {run_dir.name}")
    print(f" Simulated time: {simulation.elapsed_time:.1f} days")
    for exc in simulation.setup_errors:
        print(f" Setup error: {exc}")
    speed = simulation.probe_speed_kms()
    if speed is not None:
        print(f" Probe speed: {speed:.2f} km/s")
    distance = simulation.probe_distance_from_star_mkm()
    if distance is not None:
        print(f" Distance from star: {distance:.1f} Mkm")
    for body in simulation.cfg.soi.radii:
        closest = simulation.min_approach_mkm(body)
        if closest is not None:
            print(f" Closest approach to {body}: {closest:.2f} Mkm")
        deflection = simulation.last_deflection_deg(body)
        if deflection is not None:
            print(f" Deflection at {body}: {deflection:.2f} deg")
    print(f" Relative energy drift: {simulation.energy_drift():.3e}")
    counts: dict[str, int] = {}
    for event in simulation.events:
        counts[event.kind] = counts.get(event.kind, 0) + 1
    if counts:
        print(" Events: " + ", ".join(f"{kind}: {count}" for kind, count in sorted(counts.items())))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run a headless flyby mission.")
    parser.add_argument("--scenario", choices=SCENARIO_DISPLAY_ORDER, default=DEFAULT_SCENARIO_KEY)
    parser.add_argument("--duration", type=float, default=DEFAULT_DURATION, help="simulated days")
    parser.add_argument("--tick", type=float, default=DEFAULT_TICK, help="simulated days per tick")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--runs-dir", default="data/runs")
    parser.add_argument("--no-log", action="store_true", help="do not write a run directory")
    args = parser.parse_args(argv)

    logger = None if args.no_log else RunLogger(args.runs_dir, run_id=None)
    try:
        simulation = build_simulation(args.scenario, logger=logger, seed=args.seed)
        if logger is not None:
            meta = simulation.meta()
            meta["scenario_key"] = args.scenario
            meta["scenario_name"] = SCENARIOS[args.scenario].name
            meta["duration"] = args.duration
            meta["tick_dt"] = args.tick
            logger.write_meta(meta)
        simulation.run_for(args.duration, args.tick)
    except FlybySimError as exc:
        parser.error(str(exc))
    finally:
        if logger is not None:
            logger.close()

    print_summary(simulation, logger.run_dir if logger is not None else None)


if __name__ == "__main__":
    main()
