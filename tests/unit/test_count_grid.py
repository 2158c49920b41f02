"""Unit tests for SampleCountGrid, WeightGrid and ScalarGrid."""

import numpy as np
import pytest

from pmfint.core import GridConfig, SampleCountGrid, WeightGrid, ScalarGrid


class TestSampleCountGrid:
    """Tests for sample counts."""

    def test_integer_storage(self):
        counts = SampleCountGrid(GridConfig(nx=[3, 3]))
        assert counts.data.dtype == np.int64
        assert counts.total_samples() == 0

    def test_incr_count(self):
        counts = SampleCountGrid(GridConfig(nx=[3, 3]))
        counts.incr_count((1, 2))
        counts.incr_count((1, 2), 4)
        assert counts.value((1, 2)) == 5
        assert counts.total_samples() == 5


class TestGradientFiniteDiff:
    """Tests for finite-difference gradients of counts."""

    def _linear_counts(self, periodic=False, width=1.0):
        cfg = GridConfig(nx=[6, 4], widths=[width, 1.0], periodic=[periodic, False])
        counts = SampleCountGrid(cfg)
        for ix in counts.iter_indices():
            counts.set_value(ix, 3 * ix[0] + ix[1])
        return counts

    def test_interior_centered(self):
        counts = self._linear_counts(width=0.5)
        assert counts.gradient_finite_diff((2, 1), 0) == pytest.approx(6.0)
        assert counts.gradient_finite_diff((2, 1), 1) == pytest.approx(1.0)

    def test_non_periodic_edges_exact_for_linear(self):
        counts = self._linear_counts()
        assert counts.gradient_finite_diff((0, 1), 0) == pytest.approx(3.0)
        assert counts.gradient_finite_diff((5, 1), 0) == pytest.approx(3.0)
        assert counts.gradient_finite_diff((2, 0), 1) == pytest.approx(1.0)
        assert counts.gradient_finite_diff((2, 3), 1) == pytest.approx(1.0)

    def test_non_periodic_edge_second_order(self):
        cfg = GridConfig(nx=[5])
        counts = SampleCountGrid(cfg)
        for ix in counts.iter_indices():
            counts.set_value(ix, ix[0] ** 2)
        # d(i²)/di at i = 0 and i = 4
        assert counts.gradient_finite_diff((0,), 0) == pytest.approx(0.0)
        assert counts.gradient_finite_diff((4,), 0) == pytest.approx(8.0)

    def test_periodic_wraps(self):
        counts = self._linear_counts(periodic=True)
        # Neighbors of i=0 are i=5 (15 + j) and i=1 (3 + j)
        assert counts.gradient_finite_diff((0, 1), 0) == pytest.approx((3 - 15) / 2.0)


class TestWeightGrid:
    """Tests for weights with cached gradients."""

    def test_gradients_start_at_zero(self):
        weights = WeightGrid(GridConfig(nx=[4, 4]), margin=True)
        assert weights.grad.shape == (2, 25)
        assert np.all(weights.grad == 0.0)

    def test_update_gradients_matches_finite_diff(self, rng):
        weights = WeightGrid(GridConfig(nx=[4, 5], periodic=[True, False]))
        weights.data[:] = rng.integers(0, 10, size=weights.nt)
        weights.update_gradients()
        for ix in weights.iter_indices():
            a = weights.address(ix)
            assert weights.grad[0, a] == weights.gradient_finite_diff(ix, 0)
            assert weights.grad[1, a] == weights.gradient_finite_diff(ix, 1)

    def test_uniform_weights_have_zero_gradient(self):
        weights = WeightGrid(GridConfig(nx=[4, 5]), fill=3)
        weights.update_gradients()
        assert np.allclose(weights.grad, 0.0)


class TestScalarGrid:
    """Tests for scalar reductions."""

    def test_min_max(self):
        grid = ScalarGrid(GridConfig(nx=[2, 2]))
        grid.data[:] = [3.0, -1.0, 0.0, 2.0]
        assert grid.maximum_value() == 3.0
        assert grid.minimum_value() == -1.0
        assert grid.minimum_pos_value() == 2.0

    def test_minimum_pos_value_without_positive(self):
        grid = ScalarGrid(GridConfig(nx=[3]))
        grid.data[:] = [-1.0, -2.0, 0.0]
        assert grid.minimum_pos_value() == -1.0

    def test_integral_uses_bin_volume(self):
        grid = ScalarGrid(GridConfig(nx=[2, 2], widths=[0.5, 2.0]), fill=1.0)
        assert grid.integral() == pytest.approx(4.0)

    def test_entropy_of_uniform_distribution(self):
        grid = ScalarGrid(GridConfig(nx=[4]), fill=0.25)
        assert grid.entropy() == pytest.approx(np.log(4.0))

    def test_entropy_ignores_empty_bins(self):
        grid = ScalarGrid(GridConfig(nx=[4]))
        grid.data[:] = [0.5, 0.5, 0.0, 0.0]
        assert grid.entropy() == pytest.approx(np.log(2.0))

    def test_add_and_multiply_constant(self):
        grid = ScalarGrid(GridConfig(nx=[3]), fill=1.0)
        grid.add_constant(2.0)
        grid.multiply_constant(0.5)
        assert np.allclose(grid.data, 1.5)
        assert grid.average() == pytest.approx(1.5)
