"""Run logging for the flyby simulator."""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence


class RunLogger:
    """Buffered logger that stores a simulation run as CSV files.

    A run directory ``<root_dir>/<run_id>`` holds ``timeseries.csv`` (one row
    per logged tick), ``events.csv`` (one row per encounter or launch event)
    and ``meta.json``.  ``<root_dir>/last_run.txt`` names the newest run.
    """

    TIMESERIES_HEADER = [
        "t",
        "x",
        "y",
        "z",
        "vx",
        "vy",
        "vz",
        "speed_kms",
        "sun_dist_mkm",
        "energy",
        "energy_drift",
        "substeps",
        "substep_dt",
    ]
    EVENTS_HEADER = ["t", "type", "body", "distance", "speed_kms", "details"]

    def __init__(
        self,
        root_dir: str | Path = "data/runs",
        run_id: Optional[str] = None,
        *,
        timeseries_flush_threshold: int = 200,
        events_flush_threshold: int = 20,
    ) -> None:
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = run_id or f"{timestamp}_run"
        candidate_id = base
        suffix = 1
        while (self.root_dir / candidate_id).exists():
            candidate_id = f"{base}_{suffix:02d}"
            suffix += 1

        self.run_id = candidate_id
        self.run_dir = self.root_dir / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=False)

        self.timeseries_path = self.run_dir / "timeseries.csv"
        self.events_path = self.run_dir / "events.csv"
        self.meta_path = self.run_dir / "meta.json"

        self._ts_file = self.timeseries_path.open("w", newline="")
        self._ts_file.write(",".join(self.TIMESERIES_HEADER) + "\n")
        self._ev_file = self.events_path.open("w", newline="")
        self._ev_file.write(",".join(self.EVENTS_HEADER) + "\n")

        self._ts_buffer: list[str] = []
        self._ev_buffer: list[str] = []
        self._ts_threshold = max(1, timeseries_flush_threshold)
        self._ev_threshold = max(1, events_flush_threshold)
        self.closed = False

        (self.root_dir / "last_run.txt").write_text(self.run_id, encoding="utf-8")

    def write_meta(self, meta: dict) -> None:
        with self.meta_path.open("w", encoding="utf-8") as fh:
            json.dump(meta, fh, indent=2, sort_keys=True)

    def log_ts(self, values: Sequence[float]) -> None:
        if len(values) != len(self.TIMESERIES_HEADER):
            raise ValueError(
                f"expected {len(self.TIMESERIES_HEADER)} timeseries values, got {len(values)}"
            )
        self._ts_buffer.append(",".join(self._format_value(v) for v in values))
        if len(self._ts_buffer) >= self._ts_threshold:
            self._flush_timeseries()

    def log_event(self, t: float, kind: str, body: str, distance: float, speed_kms: float, details: dict[str, Any]) -> None:
        row = [
            self._format_value(t),
            kind,
            body,
            self._format_value(distance),
            self._format_value(speed_kms),
            self._format_details(details),
        ]
        self._ev_buffer.append(",".join(row))
        if len(self._ev_buffer) >= self._ev_threshold:
            self._flush_events()

    def close(self) -> None:
        if self.closed:
            return
        self._flush_timeseries()
        self._flush_events()
        self._ts_file.close()
        self._ev_file.close()
        self.closed = True

    def _flush_timeseries(self) -> None:
        if self._ts_buffer:
            self._ts_file.write("\n".join(self._ts_buffer) + "\n")
            self._ts_file.flush()
            self._ts_buffer.clear()

    def _flush_events(self) -> None:
        if self._ev_buffer:
            self._ev_file.write("\n".join(self._ev_buffer) + "\n")
            self._ev_file.flush()
            self._ev_buffer.clear()

    @staticmethod
    def _format_value(value: float) -> str:
        return f"{float(value):.10g}"

    @staticmethod
    def _format_details(details: dict[str, Any]) -> str:
        if not details:
            return ""
        # quoted for CSV; inner quotes doubled
        text = json.dumps(details, sort_keys=True, default=float)
        return '"' + text.replace('"', '""') + '"'

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        self.close()
        return None


__all__ = ["RunLogger"]
