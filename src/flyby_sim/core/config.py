"""Configuration dataclasses for the flyby simulation."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .errors import ConfigurationError


@dataclass(frozen=True)
class IntegratorCfg:
    max_substep_dt: float = 0.5  # simulated seconds (12 h)
    max_substeps: int = 200
    gravity_scale: float = 1.0
    min_separation_sq: float = 1e-10  # U^2

    def __post_init__(self) -> None:
        if not (math.isfinite(self.max_substep_dt) and self.max_substep_dt > 0.0):
            raise ConfigurationError("max_substep_dt must be a positive number")
        if self.max_substeps < 1:
            raise ConfigurationError("max_substeps must be at least 1")
        if not (math.isfinite(self.gravity_scale) and self.gravity_scale >= 0.0):
            raise ConfigurationError("gravity_scale must be a non-negative number")
        if self.min_separation_sq < 0.0:
            raise ConfigurationError("min_separation_sq must not be negative")


@dataclass(frozen=True)
class MissionCfg:
    launcher: str = "Earth"
    target: str = "Jupiter"
    probe_name: str = "Voyager"
    probe_mass: float = 825.0
    launch_speed_kms: float = 17.0  # delta-V used when the target is missing
    launch_angle_deg: float = 0.0
    overshoot: float = 1.097
    phase_overshoot: float = 1.0  # perihelion-speed factor assumed when phasing the target
    launch_offset: float = 5.0  # U ahead of the launcher

    def __post_init__(self) -> None:
        if not (math.isfinite(self.overshoot) and self.overshoot > 0.0):
            raise ConfigurationError("overshoot must be a positive number")
        if not (math.isfinite(self.phase_overshoot) and self.phase_overshoot > 0.0):
            raise ConfigurationError("phase_overshoot must be a positive number")
        if not (math.isfinite(self.probe_mass) and self.probe_mass > 0.0):
            raise ConfigurationError("probe_mass must be a positive number")
        if not math.isfinite(self.launch_offset) or self.launch_offset < 0.0:
            raise ConfigurationError("launch_offset must be a non-negative number")


def _default_soi_radii() -> Mapping[str, float]:
    return MappingProxyType({"Jupiter": 10.0, "Saturn": 10.0})


@dataclass(frozen=True)
class SoiCfg:
    radii: Mapping[str, float] = field(default_factory=_default_soi_radii)  # U
    exit_hysteresis: float = 2.0
    approach_tolerance: float = 0.5  # U per tick before approach/recede flips
    min_star_distance: float = 250.0  # U; skip checks while the probe is closer to the star

    def __post_init__(self) -> None:
        if not self.exit_hysteresis > 1.0:
            raise ConfigurationError("exit_hysteresis must be strictly greater than 1")
        if not (math.isfinite(self.approach_tolerance) and self.approach_tolerance >= 0.0):
            raise ConfigurationError("approach_tolerance must be a non-negative number")
        if not self.min_star_distance >= 0.0:
            raise ConfigurationError("min_star_distance must not be negative")
        for name, radius in self.radii.items():
            if not (math.isfinite(radius) and radius > 0.0):
                raise ConfigurationError(f"SOI radius for {name} must be positive", body=name)
        object.__setattr__(self, "radii", MappingProxyType(dict(self.radii)))


@dataclass(frozen=True)
class DeflectionCfg:
    target: str = "Saturn"
    trigger_distance: float = 5.0  # U
    deflection_deg: float = 35.0  # above the ecliptic
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.trigger_distance > 0.0:
            raise ConfigurationError("trigger_distance must be positive")


@dataclass(frozen=True)
class PlaybackCfg:
    frame_dt: float = 0.02  # real seconds per fixed frame
    sim_seconds_per_real_second: float = 1.0
    time_warp: float = 1.0
    max_frames_per_call: int = 10

    def __post_init__(self) -> None:
        if not (math.isfinite(self.frame_dt) and self.frame_dt > 0.0):
            raise ConfigurationError("frame_dt must be a positive number")
        if not (math.isfinite(self.time_warp) and self.time_warp >= 0.0):
            raise ConfigurationError("time_warp must be a non-negative number")
        if not (math.isfinite(self.sim_seconds_per_real_second) and self.sim_seconds_per_real_second > 0.0):
            raise ConfigurationError("sim_seconds_per_real_second must be a positive number")
        if self.max_frames_per_call < 1:
            raise ConfigurationError("max_frames_per_call must be at least 1")

    @property
    def sim_dt_per_frame(self) -> float:
        return self.frame_dt * self.time_warp * self.sim_seconds_per_real_second


@dataclass(frozen=True)
class LoggingCfg:
    root_dir: str = "data/runs"
    log_every_ticks: int = 1


@dataclass(frozen=True)
class SimulationCfg:
    integrator: IntegratorCfg = field(default_factory=IntegratorCfg)
    mission: MissionCfg = field(default_factory=MissionCfg)
    soi: SoiCfg = field(default_factory=SoiCfg)
    deflection: DeflectionCfg = field(default_factory=DeflectionCfg)
    playback: PlaybackCfg = field(default_factory=PlaybackCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)
    star_name: str = "Sun"
    random_seed: int = 0


INTEGRATOR_CFG = IntegratorCfg()
MISSION_CFG = MissionCfg()
SOI_CFG = SoiCfg()
DEFLECTION_CFG = DeflectionCfg()
PLAYBACK_CFG = PlaybackCfg()
LOGGING_CFG = LoggingCfg()
SIMULATION_CFG = SimulationCfg()


__all__ = [
    "DEFLECTION_CFG",
    "DeflectionCfg",
    "INTEGRATOR_CFG",
    "IntegratorCfg",
    "LOGGING_CFG",
    "LoggingCfg",
    "MISSION_CFG",
    "MissionCfg",
    "PLAYBACK_CFG",
    "PlaybackCfg",
    "SIMULATION_CFG",
    "SOI_CFG",
    "SimulationCfg",
    "SoiCfg",
]
