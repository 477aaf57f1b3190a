"""Sub-step planning and paced accumulation of simulated time."""
from __future__ import annotations

import math
from dataclasses import dataclass


def plan_substeps(delta: float, max_step: float, max_substeps: int) -> tuple[int, float]:
    """Split ``delta`` into equal sub-steps no larger than ``max_step``.

    The count is capped at ``max_substeps``; past the cap each sub-step grows
    beyond ``max_step`` rather than the delta being truncated.
    """

    if delta <= 0.0:
        return 0, 0.0
    steps_needed = max(1, math.ceil(delta / max_step))
    steps_to_run = min(steps_needed, max_substeps)
    return steps_to_run, delta / steps_to_run


@dataclass
class FixedStepAccumulator:
    """Accumulates simulated time and releases it in fixed frames."""

    step: float
    max_frames: int
    value: float = 0.0

    def accrue(self, delta: float) -> None:
        if delta > 0.0:
            self.value += delta

    def clear(self) -> None:
        self.value = 0.0

    def consume(self) -> tuple[int, float]:
        """Return ``(frames, simulated time)`` ready to run.

        Whole frames are released; the remainder stays for the next call.  When
        more than ``max_frames`` are pending the surplus is dropped so a stalled
        caller does not spiral.
        """

        if self.value < self.step:
            return 0, 0.0
        frames = int(self.value // self.step)
        if frames > self.max_frames:
            frames = self.max_frames
            self.value = 0.0
        else:
            self.value -= frames * self.step
        return frames, frames * self.step


__all__ = ["FixedStepAccumulator", "plan_substeps"]
