import pytest

from flyby_sim.core.timekeeping import FixedStepAccumulator, plan_substeps


class TestPlanSubsteps:
    def test_splits_into_steps_no_larger_than_max(self):
        assert plan_substeps(1.0, 0.5, 200) == (2, pytest.approx(0.5))

    def test_small_delta_is_one_step(self):
        assert plan_substeps(0.3, 0.5, 200) == (1, pytest.approx(0.3))

    def test_uneven_split(self):
        count, size = plan_substeps(1.1, 0.5, 200)
        assert count == 3
        assert size == pytest.approx(1.1 / 3)

    def test_cap_grows_step_instead_of_truncating(self):
        count, size = plan_substeps(1000.0, 0.5, 200)
        assert count == 200
        assert count * size == pytest.approx(1000.0)

    @pytest.mark.parametrize("delta", [0.0, -1.0])
    def test_non_positive_delta(self, delta):
        assert plan_substeps(delta, 0.5, 200) == (0, 0.0)


class TestFixedStepAccumulator:
    def test_keeps_remainder(self):
        acc = FixedStepAccumulator(step=0.02, max_frames=10)
        acc.accrue(0.05)
        frames, sim_time = acc.consume()
        assert frames == 2
        assert sim_time == pytest.approx(0.04)
        assert acc.value == pytest.approx(0.01)

    def test_nothing_due(self):
        acc = FixedStepAccumulator(step=0.02, max_frames=10)
        acc.accrue(0.01)
        assert acc.consume() == (0, 0.0)

    def test_drops_surplus_past_cap(self):
        acc = FixedStepAccumulator(step=0.02, max_frames=3)
        acc.accrue(1.0)
        frames, _ = acc.consume()
        assert frames == 3
        assert acc.value == 0.0

    def test_ignores_negative_and_clears(self):
        acc = FixedStepAccumulator(step=0.02, max_frames=3)
        acc.accrue(-1.0)
        assert acc.value == 0.0
        acc.accrue(0.5)
        acc.clear()
        assert acc.value == 0.0
