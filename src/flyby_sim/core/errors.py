"""Named failures raised by the flyby simulator core."""
from __future__ import annotations


class FlybySimError(Exception):
    """Base class for simulator errors."""


class ConfigurationError(FlybySimError, ValueError):
    """A body descriptor, tunable or transfer geometry is unusable."""

    def __init__(self, message: str, *, body: str | None = None) -> None:
        super().__init__(message)
        self.body = body


class LaunchError(FlybySimError):
    """The probe could not be launched and stays uninitialized."""


__all__ = ["ConfigurationError", "FlybySimError", "LaunchError"]
