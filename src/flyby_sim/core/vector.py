"""Double precision 3D vector helpers built on :mod:`numpy`."""
from __future__ import annotations

import math

import numpy as np

NORMALIZE_FLOOR = 1e-10


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    return np.array([x, y, z], dtype=np.float64)


def zero() -> np.ndarray:
    return np.zeros(3, dtype=np.float64)


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp *value* between *lo* and *hi*."""

    return max(lo, min(hi, value))


def dot(a: np.ndarray, b: np.ndarray) -> float:
    return float(a[0] * b[0] + a[1] * b[1] + a[2] * b[2])


def sq_magnitude(v: np.ndarray) -> float:
    return dot(v, v)


def magnitude(v: np.ndarray) -> float:
    return math.sqrt(sq_magnitude(v))


def normalized(v: np.ndarray) -> np.ndarray:
    """Unit vector along ``v``, or the zero vector when ``v`` is (nearly) zero."""

    mag = magnitude(v)
    if mag > NORMALIZE_FLOOR:
        return v / mag
    return zero()


def angle_between_deg(a: np.ndarray, b: np.ndarray) -> float | None:
    """Angle between two vectors in degrees, ``None`` if either has no length."""

    mag_a = magnitude(a)
    mag_b = magnitude(b)
    if mag_a <= 1e-12 or mag_b <= 1e-12:
        return None
    cos_angle = clamp(dot(a, b) / (mag_a * mag_b), -1.0, 1.0)
    return math.degrees(math.acos(cos_angle))


def rotate_in_plane(v: np.ndarray, angle_deg: float) -> np.ndarray:
    """Rotate ``v`` about +z (the reference-plane normal) by ``angle_deg``."""

    angle = math.radians(angle_deg)
    c, s = math.cos(angle), math.sin(angle)
    return vec3(c * v[0] - s * v[1], s * v[0] + c * v[1], v[2])


def narrow(v: np.ndarray) -> np.ndarray:
    """Single precision copy for rendering collaborators."""

    return np.asarray(v, dtype=np.float32).copy()


__all__ = [
    "NORMALIZE_FLOOR",
    "angle_between_deg",
    "clamp",
    "dot",
    "magnitude",
    "narrow",
    "normalized",
    "rotate_in_plane",
    "sq_magnitude",
    "vec3",
    "zero",
]
