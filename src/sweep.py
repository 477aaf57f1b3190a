"""Parameter sweep of the launch overshoot against the closest target approach."""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from flyby_sim.core.config import SIMULATION_CFG, SimulationCfg
from flyby_sim.core.errors import FlybySimError
from flyby_sim.core.simulation import Simulation
from flyby_sim.data.scenarios import solar_system_descriptors

# ===========================
# SWEEP SETTINGS
# ===========================
OVERSHOOT_RANGE = (0.98, 1.15)
OVERSHOOT_POINTS = 18
BODIES = ("Sun", "Earth", "Jupiter")
DURATION = 1500.0   # simulated days
TICK_DT = 5.0
MAX_SUBSTEP_DT = 1.0

FIGURES_DIR = Path("figures")


# ===========================
# SIMULATION
# ===========================
def sweep_cfg(overshoot: float, base: SimulationCfg = SIMULATION_CFG) -> SimulationCfg:
    """Mission settings for one sweep point.

    Jupiter stays phased for a Hohmann transfer so the sweep shows how far
    off a faster or slower launch arrives.
    """

    mission = replace(base.mission, overshoot=overshoot, phase_overshoot=1.0)
    integrator = replace(base.integrator, max_substep_dt=MAX_SUBSTEP_DT)
    deflection = replace(base.deflection, enabled=False)
    return replace(base, mission=mission, integrator=integrator, deflection=deflection)


def closest_approach(overshoot: float, target: str = "Jupiter", duration: Optional[float] = None) -> float:
    """Closest probe-target distance in Mkm over ``duration`` days, or NaN if the run failed."""

    descriptors = [d for d in solar_system_descriptors() if d.name in BODIES]
    try:
        simulation = Simulation.from_descriptors(descriptors, sweep_cfg(overshoot))
        simulation.launch_probe()
    except FlybySimError as exc:
        print(f"  overshoot {overshoot:.3f}: {exc}")
        return float("nan")

    best = float("inf")
    steps = int((DURATION if duration is None else duration) // TICK_DT)
    for _ in range(steps):
        simulation.tick(TICK_DT)
        distance = simulation.distance_mkm(target)
        if distance is not None and distance < best:
            best = distance
    return best


def run_sweep() -> tuple[np.ndarray, np.ndarray]:
    overshoots = np.linspace(*OVERSHOOT_RANGE, OVERSHOOT_POINTS)
    results = np.zeros(overshoots.size)

    print(f"\n--- Overshoot sweep ({OVERSHOOT_POINTS} points) ---")
    for i, overshoot in enumerate(overshoots):
        results[i] = closest_approach(float(overshoot))
        pct = 100 * (i + 1) / overshoots.size
        print(f"  {overshoot:.3f}: {results[i]:.2f} Mkm ({pct:.0f}%)")
    return overshoots, results


# ===========================
# PLOTTING
# ===========================
def plot_sweep(overshoots: np.ndarray, results: np.ndarray) -> Path:
    FIGURES_DIR.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(overshoots, results, marker="o", color="#4dabf7")
    ax.axvline(1.0, color="#adb5bd", linestyle=":", label="Hohmann")
    ax.set_yscale("log")
    ax.set_xlabel("Overshoot factor [-]")
    ax.set_ylabel("Closest approach to Jupiter [Mkm]")
    ax.set_title("Closest approach per launch overshoot")
    ax.grid(True, alpha=0.3)
    ax.legend()
    fig.tight_layout()
    out = FIGURES_DIR / "sweep_overshoot.png"
    fig.savefig(out, dpi=180)
    plt.close(fig)
    print(f"\nFigure saved to {out}")
    return out


def main() -> None:
    overshoots, results = run_sweep()
    finite = np.isfinite(results)
    if finite.any():
        best = int(np.nanargmin(results))
        print(f"Best overshoot {overshoots[best]:.3f}: {results[best]:.2f} Mkm")
    plot_sweep(overshoots, results)


if __name__ == "__main__":
    main()
