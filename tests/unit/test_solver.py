"""Unit tests for the conjugate-gradient solvers."""

import logging

import numpy as np
import pytest

from pmfint.core import Grid, GridConfig, WeightGrid
from pmfint.integrate.laplacian import WeightedLaplacian2D
from pmfint.integrate.solver import (
    ConjugateGradientSolver,
    SolveResult,
    solve_linbcg_sym,
)


def random_spd(rng, n=12):
    a = rng.normal(size=(n, n))
    return a @ a.T + n * np.eye(n)


class TestTrivialCases:
    """Tests for zero right-hand sides and warm starts."""

    def test_zero_rhs_returns_immediately(self):
        x = np.full(4, 3.0)
        result = ConjugateGradientSolver().solve(lambda v: v, np.zeros(4), x)
        assert result == SolveResult(iterations=0, residual=0.0, converged=True)
        # Initial guess untouched
        assert np.all(x == 3.0)

    def test_tiny_rhs_counts_as_zero(self):
        x = np.zeros(4)
        result = ConjugateGradientSolver().solve(lambda v: v, np.full(4, 1e-16), x)
        assert result.iterations == 0
        assert result.residual == 0.0

    def test_exact_initial_guess_needs_no_iterations(self, rng):
        a = random_spd(rng)
        b = rng.normal(size=a.shape[0])
        x = np.linalg.solve(a, b)
        result = ConjugateGradientSolver(tolerance=1e-8).solve(lambda v: a @ v, b, x)
        assert result.iterations == 0
        assert result.converged
        assert np.isfinite(result.residual)


class TestConvergence:
    """Tests on small dense systems."""

    def test_diagonal_system(self):
        d = np.array([1.0, 2.0, 4.0, 8.0])
        b = np.array([1.0, 1.0, 1.0, 1.0])
        x = np.zeros(4)
        result = ConjugateGradientSolver(tolerance=1e-12).solve(lambda v: d * v, b, x)
        assert result.converged
        assert result.iterations <= 4
        assert np.allclose(x, b / d)

    def test_random_spd_matches_direct_solve(self, rng):
        a = random_spd(rng)
        b = rng.normal(size=a.shape[0])
        x = np.zeros(a.shape[0])
        result = ConjugateGradientSolver(tolerance=1e-10).solve(lambda v: a @ v, b, x)
        assert result.converged
        assert result.residual <= 1e-10
        assert np.allclose(x, np.linalg.solve(a, b), atol=1e-8)

    def test_negative_definite_operator(self, rng):
        a = -random_spd(rng)
        b = rng.normal(size=a.shape[0])
        x = np.zeros(a.shape[0])
        result = ConjugateGradientSolver(tolerance=1e-10).solve(lambda v: a @ v, b, x)
        assert result.converged
        assert np.allclose(x, np.linalg.solve(a, b), atol=1e-8)

    def test_iteration_budget_is_not_an_error(self, rng):
        a = random_spd(rng)
        b = rng.normal(size=a.shape[0])
        x = np.zeros(a.shape[0])
        result = ConjugateGradientSolver(tolerance=1e-14, max_iterations=1).solve(
            lambda v: a @ v, b, x
        )
        assert result.iterations == 1
        assert not result.converged
        assert result.residual > 1e-14

    def test_residual_is_relative(self, rng):
        a = random_spd(rng)
        b = rng.normal(size=a.shape[0])
        x = np.zeros(a.shape[0])
        result = ConjugateGradientSolver(max_iterations=2).solve(lambda v: a @ v, b, x)
        expected = np.linalg.norm(b - a @ x) / np.linalg.norm(b)
        assert result.residual == pytest.approx(expected, rel=1e-8)

    def test_breakdown_stops_with_warning(self, caplog):
        caplog.set_level(logging.WARNING, logger="pmfint")
        x = np.zeros(3)
        result = ConjugateGradientSolver().solve(
            lambda v: np.zeros_like(v), np.ones(3), x
        )
        assert result.iterations == 1
        assert result.residual == pytest.approx(1.0)
        assert not result.converged
        assert np.all(x == 0.0)
        assert "breakdown" in caplog.text


class TestPreconditioner:
    """Tests for the Jacobi preconditioner."""

    def test_unknown_preconditioner_raises(self):
        with pytest.raises(ValueError):
            ConjugateGradientSolver(preconditioner="ilu")

    def test_jacobi_solves_diagonal_in_one_step(self):
        d = np.array([1.0, 3.0, 9.0, 27.0])
        b = np.array([2.0, -1.0, 0.5, 4.0])
        x = np.zeros(4)

        class Diagonal:
            def __call__(self, v):
                return d * v

            def diagonal(self):
                return d

        result = ConjugateGradientSolver(tolerance=1e-12, preconditioner="jacobi").solve(
            Diagonal(), b, x
        )
        assert result.iterations == 1
        assert np.allclose(x, b / d)

    def test_jacobi_on_plain_callable(self, rng):
        a = random_spd(rng)
        b = rng.normal(size=a.shape[0])
        x = np.zeros(a.shape[0])
        result = ConjugateGradientSolver(tolerance=1e-10, preconditioner="jacobi").solve(
            lambda v: a @ v, b, x
        )
        assert result.converged
        assert np.allclose(x, np.linalg.solve(a, b), atol=1e-8)

    def test_jacobi_tolerates_zero_diagonal(self):
        a = np.array([[0.0, 1.0], [1.0, 0.0]])
        x = np.zeros(2)
        result = ConjugateGradientSolver(preconditioner="jacobi", max_iterations=5).solve(
            lambda v: a @ v, np.array([1.0, 2.0]), x
        )
        assert np.all(np.isfinite(x))
        assert np.isfinite(result.residual)


class TestLaplacianSystems:
    """Solving L x = L φ on small grids recovers φ up to a constant."""

    @pytest.mark.parametrize("preconditioner", ["identity", "jacobi"])
    def test_non_periodic_recovers_potential(self, preconditioner, unit_weight_operator, rng):
        op = unit_weight_operator(nx=(5, 5))
        phi = rng.normal(size=op.n)
        b = op.apply(phi)
        x = np.zeros(op.n)
        result = solve_linbcg_sym(
            op, b, x,
            tolerance=1e-10,
            max_iterations=500,
            preconditioner=preconditioner,
        )
        assert result.converged
        assert np.allclose(x - x.mean(), phi - phi.mean(), atol=1e-6)

    def test_periodic_recovers_potential(self, unit_weight_operator, rng):
        op = unit_weight_operator(nx=(6, 6), periodic=(True, True))
        phi = rng.normal(size=op.n)
        b = op.apply(phi)
        x = np.zeros(op.n)
        result = solve_linbcg_sym(op, b, x, tolerance=1e-10, max_iterations=500)
        assert result.converged
        assert np.allclose(x - x.mean(), phi - phi.mean(), atol=1e-6)

    def test_warm_start_from_solution(self, unit_weight_operator, rng):
        op = unit_weight_operator(nx=(5, 5))
        b = op.apply(rng.normal(size=op.n))
        x = np.zeros(op.n)
        solve_linbcg_sym(op, b, x, tolerance=1e-10, max_iterations=500)
        again = solve_linbcg_sym(op, b, x, tolerance=1e-6, max_iterations=500)
        assert again.iterations == 0


class DenseOperator:
    """Matrix with the apply / apply_transpose interface of the Laplacian."""

    def __init__(self, matrix):
        self.matrix = matrix

    def __call__(self, v):
        return self.matrix @ v

    def apply_transpose(self, v):
        return self.matrix.T @ v


class TestLeastSquares:
    """Tests for method='cgls' on operators that are not symmetric."""

    def test_unknown_method_raises(self):
        with pytest.raises(ValueError):
            ConjugateGradientSolver(method="gmres")

    def test_jacobi_needs_cg(self):
        with pytest.raises(ValueError):
            ConjugateGradientSolver(method="cgls", preconditioner="jacobi")

    def test_needs_transpose(self, rng):
        a = random_spd(rng)
        solver = ConjugateGradientSolver(method="cgls")
        with pytest.raises(ValueError):
            solver.solve(lambda v: a @ v, np.ones(a.shape[0]), np.zeros(a.shape[0]))

    def test_non_symmetric_system(self, rng):
        a = rng.normal(size=(10, 10)) + 10.0 * np.eye(10)
        b = rng.normal(size=10)
        x = np.zeros(10)
        result = ConjugateGradientSolver(tolerance=1e-10, method="cgls").solve(
            DenseOperator(a), b, x
        )
        assert result.converged
        assert np.allclose(x, np.linalg.solve(a, b), atol=1e-8)

    def test_inconsistent_system_stays_bounded(self):
        # Singular matrix; b has a component outside its range
        a = np.array([[1.0, 1.0], [1.0, 1.0]])
        b = np.array([1.0, 0.0])
        x = np.zeros(2)
        result = ConjugateGradientSolver(tolerance=1e-12, method="cgls").solve(
            DenseOperator(a), b, x
        )
        assert not result.converged
        assert np.all(np.isfinite(x))
        # Least-squares optimum: a @ x = [0.5, 0.5]
        assert np.allclose(a @ x, [0.5, 0.5])
        assert result.residual == pytest.approx(np.sqrt(0.5))

    def test_weighted_laplacian_with_consistent_rhs(self, rng):
        cfg = GridConfig(nx=[6, 5], widths=[0.5, 1.5])
        weights = WeightGrid(cfg)
        weights.data[:] = rng.integers(1, 8, size=weights.nt)
        weights.update_gradients()
        op = WeightedLaplacian2D(Grid(cfg), weights)
        b = op.apply(rng.normal(size=op.n))
        x = np.zeros(op.n)
        result = ConjugateGradientSolver(
            tolerance=1e-10, max_iterations=2000, method="cgls"
        ).solve(op, b, x)
        assert result.converged
        assert np.allclose(op.apply(x), b, atol=1e-8 * np.linalg.norm(b))
