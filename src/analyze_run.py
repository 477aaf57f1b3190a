"""Analyze a recorded flyby run and generate diagnostic figures."""
from __future__ import annotations

import argparse
import csv
import json
from pathlib import Path
from typing import Dict, List

import numpy as np

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


TIMESERIES_FILENAME = "timeseries.csv"
EVENTS_FILENAME = "events.csv"
META_FILENAME = "meta.json"
FIGS_SUBDIR = "figs"
EVENT_KINDS = ("launch", "launch_fallback", "soi_enter", "soi_exit", "closest_approach_deflection")


def load_timeseries(path: Path) -> Dict[str, np.ndarray]:
    with path.open("r", newline="") as fh:
        reader = csv.DictReader(fh)
        columns: Dict[str, List[float]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                if key is None:
                    continue
                columns.setdefault(key, []).append(float(value))
    return {key: np.asarray(values) for key, values in columns.items()}


def load_events(path: Path) -> List[dict]:
    with path.open("r", newline="") as fh:
        reader = csv.DictReader(fh)
        events: List[dict] = []
        for row in reader:
            if not row:
                continue
            event = {
                "t": float(row["t"]),
                "type": row["type"],
                "body": row["body"],
                "distance": float(row["distance"]),
                "speed_kms": float(row["speed_kms"]),
                "details": {},
            }
            details_raw = row.get("details", "")
            if details_raw:
                try:
                    event["details"] = json.loads(details_raw)
                except json.JSONDecodeError:
                    event["details"] = {"raw": details_raw}
            events.append(event)
    return events


def ensure_fig_dir(run_dir: Path) -> Path:
    fig_dir = run_dir / FIGS_SUBDIR
    fig_dir.mkdir(parents=True, exist_ok=True)
    return fig_dir


def summarize_events(events: List[dict]) -> Dict[str, int]:
    summary: Dict[str, int] = {kind: 0 for kind in EVENT_KINDS}
    for event in events:
        if event["type"] in summary:
            summary[event["type"]] += 1
    return summary


def energy_drift_series(ts: Dict[str, np.ndarray]) -> np.ndarray:
    if "energy_drift" in ts:
        return ts["energy_drift"]
    energy = ts.get("energy", np.array([]))
    if not energy.size:
        return energy
    denom = abs(energy[0]) if abs(energy[0]) > 1e-12 else 1.0
    return np.abs(energy - energy[0]) / denom


def soi_passes(events: List[dict]) -> List[dict]:
    """Pair each ``soi_exit`` with its details for the summary."""

    passes = []
    for event in events:
        if event["type"] != "soi_exit":
            continue
        details = event["details"]
        passes.append(
            {
                "body": event["body"],
                "t": event["t"],
                "min_separation": details.get("min_separation"),
                "deflection_deg": details.get("deflection_deg"),
            }
        )
    return passes


def plot_trajectory(fig_dir: Path, ts: Dict[str, np.ndarray], events: List[dict]) -> None:
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.plot(ts["x"], ts["y"], color="#6bc5c0", lw=1.2, label="Probe")
    ax.scatter([0.0], [0.0], color="#ffd43b", s=60, label="Star")
    for event in events:
        if event["type"] == "soi_enter":
            idx = int(np.searchsorted(ts["t"], event["t"]))
            idx = min(idx, ts["t"].size - 1)
            ax.scatter([ts["x"][idx]], [ts["y"][idx]], color="#f03e3e", s=25)
            ax.annotate(event["body"], (ts["x"][idx], ts["y"][idx]), fontsize=8)
    ax.set_aspect("equal", "box")
    ax.set_xlabel("x [Mkm]")
    ax.set_ylabel("y [Mkm]")
    ax.set_title("Trajectory (x-y)")
    ax.legend()
    fig.tight_layout()
    fig.savefig(fig_dir / "trajectory_xy.png", dpi=150)
    plt.close(fig)


def plot_energy_drift(fig_dir: Path, ts: Dict[str, np.ndarray], drift: np.ndarray) -> None:
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.semilogy(ts["t"], np.maximum(drift, 1e-16), color="#ffa94d")
    ax.set_xlabel("t [days]")
    ax.set_ylabel("|E - E0| / |E0|")
    final = float(drift[-1]) if drift.size else 0.0
    ax.set_title(f"Relative energy drift (final {final:.2e})")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(fig_dir / "energy_drift.png", dpi=150)
    plt.close(fig)


def plot_speed(fig_dir: Path, ts: Dict[str, np.ndarray], events: List[dict]) -> None:
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.plot(ts["t"], ts["speed_kms"], color="#94d82d")
    for event in events:
        if event["type"] == "closest_approach_deflection":
            ax.axvline(event["t"], color="#9775fa", linestyle="--", alpha=0.6, label="Deflection")
    handles, labels = ax.get_legend_handles_labels()
    if handles:
        ax.legend(handles[:1], labels[:1])
    ax.set_xlabel("t [days]")
    ax.set_ylabel("speed [km/s]")
    ax.set_title("Heliocentric speed")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(fig_dir / "speed.png", dpi=150)
    plt.close(fig)


def plot_distance(fig_dir: Path, ts: Dict[str, np.ndarray], events: List[dict]) -> None:
    fig, ax = plt.subplots(figsize=(7, 4))
    ax.plot(ts["t"], ts["sun_dist_mkm"], color="#4dabf7")
    for event in events:
        if event["type"] == "soi_enter":
            ax.axvline(event["t"], color="#d9480f", linestyle="--", alpha=0.5, label="SOI enter")
        elif event["type"] == "soi_exit":
            ax.axvline(event["t"], color="#1864ab", linestyle=":", alpha=0.5, label="SOI exit")
    handles, labels = ax.get_legend_handles_labels()
    if handles:
        # deduplicate labels
        unique = dict(zip(labels, handles))
        ax.legend(list(unique.values()), list(unique.keys()))
    ax.set_xlabel("t [days]")
    ax.set_ylabel("distance from star [Mkm]")
    ax.set_title("Distance from star")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    fig.savefig(fig_dir / "distance.png", dpi=150)
    plt.close(fig)


def print_summary(run_dir: Path, meta: dict, drift: np.ndarray, events: List[dict]) -> None:
    print(f"Run: {run_dir.name}")
    if "scenario_name" in meta:
        print(f" Scenario: {meta['scenario_name']}")
    mission = meta.get("mission", {})
    if mission:
        print(f" Overshoot: {mission.get('overshoot')}")
    final = float(drift[-1]) if drift.size else 0.0
    print(f" Relative energy drift = {final:.3e}")
    for soi_pass in soi_passes(events):
        print(
            f" {soi_pass['body']}: closest {soi_pass['min_separation']:.3f} Mkm, "
            f"deflection {soi_pass['deflection_deg']}"
        )
    summary = summarize_events(events)
    print(" Events:" + ",".join(f" {kind}: {count}" for kind, count in summary.items()))


def resolve_run_dir(run_dir: str | None, base_runs_dir: Path) -> Path | None:
    if run_dir:
        run_path = Path(run_dir)
        if not run_path.is_dir():
            run_path = base_runs_dir / run_dir
        return run_path
    last_run_file = base_runs_dir / "last_run.txt"
    if not last_run_file.exists():
        return None
    return base_runs_dir / last_run_file.read_text(encoding="utf-8").strip()


def analyze(run_path: Path) -> Dict[str, int]:
    with (run_path / META_FILENAME).open("r", encoding="utf-8") as fh:
        meta = json.load(fh)
    ts = load_timeseries(run_path / TIMESERIES_FILENAME)
    events = load_events(run_path / EVENTS_FILENAME)
    if not ts or not ts.get("t", np.array([])).size:
        raise ValueError("timeseries.csv is empty")

    fig_dir = ensure_fig_dir(run_path)
    drift = energy_drift_series(ts)
    plot_trajectory(fig_dir, ts, events)
    plot_energy_drift(fig_dir, ts, drift)
    plot_speed(fig_dir, ts, events)
    plot_distance(fig_dir, ts, events)
    print_summary(run_path, meta, drift, events)
    return summarize_events(events)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Analyze a logged flyby run and draw figures.")
    parser.add_argument("run_dir", nargs="?", help="path to (or id of) a run directory")
    parser.add_argument("--runs-dir", default="data/runs")
    args = parser.parse_args(argv)

    run_path = resolve_run_dir(args.run_dir, Path(args.runs_dir))
    if run_path is None:
        parser.error("no run given and last_run.txt is missing")
    if not run_path.is_dir():
        parser.error(f"run directory not found: {run_path}")
    for name in (META_FILENAME, TIMESERIES_FILENAME, EVENTS_FILENAME):
        if not (run_path / name).exists():
            parser.error(f"run directory is missing {name}")

    try:
        analyze(run_path)
    except ValueError as exc:
        parser.error(str(exc))


if __name__ == "__main__":
    main()
