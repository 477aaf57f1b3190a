import numpy as np
import pytest

from flyby_sim.core.vector import (
    angle_between_deg,
    clamp,
    magnitude,
    narrow,
    normalized,
    rotate_in_plane,
    vec3,
)


def test_vec3_is_double_precision():
    assert vec3(1, 2, 3).dtype == np.float64


def test_magnitude():
    assert magnitude(vec3(3.0, 4.0, 0.0)) == pytest.approx(5.0)


def test_normalized_unit_length():
    assert magnitude(normalized(vec3(0.0, 7.0, 7.0))) == pytest.approx(1.0)


def test_normalized_zero_stays_zero():
    result = normalized(vec3(1e-12, 0.0, 0.0))
    assert np.all(result == 0.0)


def test_clamp():
    assert clamp(1.5, -1.0, 1.0) == 1.0
    assert clamp(-1.5, -1.0, 1.0) == -1.0
    assert clamp(0.25, -1.0, 1.0) == 0.25


class TestAngleBetween:
    def test_right_angle(self):
        assert angle_between_deg(vec3(1.0, 0.0, 0.0), vec3(0.0, 2.0, 0.0)) == pytest.approx(90.0)

    def test_parallel_vectors_do_not_produce_nan(self):
        v = vec3(0.1, 0.2, 0.3)
        assert angle_between_deg(v, v * 3.0) == pytest.approx(0.0, abs=1e-5)

    def test_opposite(self):
        assert angle_between_deg(vec3(1.0, 0.0, 0.0), vec3(-1.0, 0.0, 0.0)) == pytest.approx(180.0)

    def test_zero_vector_gives_none(self):
        assert angle_between_deg(vec3(), vec3(1.0, 0.0, 0.0)) is None


def test_rotate_in_plane_quarter_turn():
    rotated = rotate_in_plane(vec3(0.0, 1.0, 0.5), 90.0)
    np.testing.assert_allclose(rotated, [-1.0, 0.0, 0.5], atol=1e-12)


def test_narrow_copies_to_single_precision():
    source = vec3(1.0, 2.0, 3.0)
    result = narrow(source)
    assert result.dtype == np.float32
    result[0] = 9.0
    assert source[0] == 1.0
