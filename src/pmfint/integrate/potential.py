"""
PotentialIntegrator: reconstruct a PMF from a gradient grid.

Solves the weighted Poisson equation

    div(w grad A) = div(F)

where F is the accumulated gradient field and w the local sample count.
The PMF A lives on the corners of the gradient bins, so the integrator
is a ScalarGrid built with margin over the gradient grid's axes. Its own
storage is both the initial guess and the result of each solve, which
makes consecutive solves warm-started.

Weighting modes (IntegratorConfig.weighting):
- "uniform": unit operator weights, divergence of the per-bin mean
  gradients. Symmetric operator, solved with CG.
- "sum": operator weights are the four-corner sample sums and the
  divergence is taken of the per-bin gradient sums. Away from edges the
  operator is about 4x the divergence, so the PMF comes out scaled by
  roughly 1/4 of the sampled count density.
- "mean": as "sum", with the operator weights scaled by 1/4 (the mean
  corner count), which restores the PMF scale for uniform sampling.

Only a right-hand side in the range of the operator can be matched. Before
each solve the part of the divergence outside that range (along the left
null vectors of L) is removed from a copy; the stored divergence is kept
as assembled so incremental updates stay exact.

The solution is defined up to an additive constant; pmf() removes it by
shifting the minimum to zero.
"""

from __future__ import annotations
import datetime
from dataclasses import dataclass
from typing import Literal, Sequence, TYPE_CHECKING

import numpy as np
from scipy import linalg

from pmfint.core.count_grid import WeightGrid
from pmfint.core.grid import GridConfig
from pmfint.core.scalar_grid import ScalarGrid
from pmfint.integrate.divergence import DivergenceAssembler
from pmfint.integrate.laplacian import EDGE_WEIGHT_MODES, EdgeWeight, make_laplacian
from pmfint.integrate.solver import (
    PRECONDITIONERS,
    SOLVER_METHODS,
    ConjugateGradientSolver,
    SolveResult,
)
from pmfint.logger import Logger, format_timedelta

if TYPE_CHECKING:
    from pmfint.core.gradient_grid import VectorFieldGrid


Weighting = Literal["uniform", "mean", "sum"]
WEIGHTING_MODES = ("uniform", "mean", "sum")

RhsProjection = Literal["auto", "left_null_space", "mean", "none"]
RHS_PROJECTIONS = ("auto", "left_null_space", "mean", "none")

SOLVER_CHOICES = ("auto",) + SOLVER_METHODS

# Operator weight scale for the sample-weighted modes
WEIGHT_SCALES = {"sum": 1.0, "mean": 0.25}

# Singular values below this fraction of the largest span the left null space
NULL_SPACE_RCOND = 1.0e-10


def check_solver_budget(max_iterations: int, tolerance: float) -> None:
    """Raise ValueError for a negative iteration budget or tolerance."""
    if max_iterations < 0:
        raise ValueError(f"max_iterations must be non-negative, got {max_iterations}")
    if tolerance < 0.0:
        raise ValueError(f"tolerance must be non-negative, got {tolerance}")


@dataclass
class IntegratorConfig:
    """Configuration for the Poisson integration."""

    max_iterations: int = 10000  # Solver iteration budget per integrate() call
    tolerance: float = 1.0e-6  # Target relative residual |r| / |b|
    preconditioner: Literal["identity", "jacobi"] = "identity"
    edge_weight: EdgeWeight = "mirrored"  # See WeightedLaplacian2D
    weighting: Weighting = "uniform"
    rhs_projection: RhsProjection = "auto"  # mean for "uniform", left null space otherwise
    solver: Literal["auto", "cg", "cgls"] = "auto"  # cg for "uniform", cgls otherwise

    def __post_init__(self):
        check_solver_budget(self.max_iterations, self.tolerance)
        if self.preconditioner not in PRECONDITIONERS:
            raise ValueError(f"Unknown preconditioner: {self.preconditioner}")
        if self.edge_weight not in EDGE_WEIGHT_MODES:
            raise ValueError(f"Unknown edge_weight: {self.edge_weight}")
        if self.weighting not in WEIGHTING_MODES:
            raise ValueError(f"Unknown weighting: {self.weighting}")
        if self.rhs_projection not in RHS_PROJECTIONS:
            raise ValueError(f"Unknown rhs_projection: {self.rhs_projection}")
        if self.solver not in SOLVER_CHOICES:
            raise ValueError(f"Unknown solver: {self.solver}")
        if self.solver_method == "cgls" and self.preconditioner != "identity":
            raise ValueError(
                f"The {self.preconditioner} preconditioner needs the cg solver "
                f"(weighting={self.weighting!r} solves with cgls)"
            )

    @property
    def solver_method(self) -> str:
        """Solver actually used: the weighted operators are not symmetric."""
        if self.solver != "auto":
            return self.solver
        return "cg" if self.weighting == "uniform" else "cgls"

    @property
    def projection(self) -> str:
        """Projection actually used: constants span the uniform left null space."""
        if self.rhs_projection != "auto":
            return self.rhs_projection
        return "mean" if self.weighting == "uniform" else "left_null_space"


class PotentialIntegrator(ScalarGrid):
    """
    PMF grid that integrates a 2D gradient grid in place.

    Usage:
        integrator = PotentialIntegrator(config)
        integrator.set_div(gradient)          # full rebuild
        integrator.update_div(gradient, ix)   # after one bin changed
        iterations, residual = integrator.integrate()
    """

    def __init__(
        self,
        config: GridConfig,
        integrator_config: IntegratorConfig | None = None,
    ):
        super().__init__(config, fill=0.0, margin=True)
        if integrator_config is None:
            integrator_config = IntegratorConfig()
        self.integrator_config = integrator_config
        weighting = integrator_config.weighting

        self.assembler = DivergenceAssembler(config, mean_gradients=weighting == "uniform")
        self.div_weights = self.assembler.weights
        self.divergence = self.assembler.divergence

        if weighting == "uniform":
            # Unit weights, zero weight gradients
            self.operator_weights = WeightGrid(config, fill=1, margin=True)
            weight_scale = 1.0
        else:
            self.operator_weights = self.div_weights
            weight_scale = WEIGHT_SCALES[weighting]
        self.laplacian = make_laplacian(
            self,
            self.operator_weights,
            edge_weight=integrator_config.edge_weight,
            weight_scale=weight_scale,
        )
        self.last_result: SolveResult | None = None

    def _check_gradient(self, gradient: "VectorFieldGrid") -> None:
        cfg = self.config
        if (
            gradient.nd != cfg.ndim
            or list(gradient.nx) != list(cfg.nx)
            or list(gradient.periodic) != list(cfg.periodic)
            or not np.allclose(gradient.widths, cfg.widths)
            or gradient.mult != cfg.ndim
        ):
            raise ValueError(
                f"Gradient grid (nx={gradient.nx}, periodic={gradient.periodic}, "
                f"widths={gradient.widths}) does not match integrator axes "
                f"(nx={cfg.nx}, periodic={cfg.periodic}, widths={cfg.widths})"
            )

    def set_div(self, gradient: "VectorFieldGrid") -> None:
        """Rebuild divergence, weights and weight gradients from scratch."""
        self._check_gradient(gradient)
        self.assembler.set_div(gradient)

    def update_div(self, gradient: "VectorFieldGrid", ix: Sequence[int]) -> None:
        """Patch divergence and weights around gradient bin ix."""
        self._check_gradient(gradient)
        if not gradient.index_ok(ix):
            raise ValueError(f"Gradient bin {tuple(ix)} is outside grid {gradient.nx}")
        self.assembler.update_div(gradient, ix)

    def left_null_space(self) -> np.ndarray:
        """
        Orthonormal basis of the left null space of the current operator,
        shape [nt, k]. Dense SVD: cost grows as nt³.
        """
        return linalg.null_space(self.laplacian.to_dense().T, rcond=NULL_SPACE_RCOND)

    def projected_divergence(self) -> np.ndarray:
        """Copy of the divergence with its part outside the operator range removed."""
        b = self.divergence.copy()
        projection = self.integrator_config.projection
        if projection == "mean":
            b -= b.mean()
        elif projection == "left_null_space":
            null = self.left_null_space()
            b -= null @ (null.T @ b)
        return b

    def integrate(
        self,
        max_iterations: int | None = None,
        tolerance: float | None = None,
    ) -> tuple[int, float]:
        """
        Solve for the PMF, starting from the current values.

        Args:
            max_iterations: Iteration budget (config default if None)
            tolerance: Target relative residual (config default if None)

        Returns:
            (iterations, residual) - non-convergence is only logged
        """
        cfg = self.integrator_config
        if max_iterations is None:
            max_iterations = cfg.max_iterations
        if tolerance is None:
            tolerance = cfg.tolerance
        check_solver_budget(max_iterations, tolerance)

        solver = ConjugateGradientSolver(
            tolerance=tolerance,
            max_iterations=max_iterations,
            preconditioner=cfg.preconditioner,
            method=cfg.solver_method,
        )

        start = datetime.datetime.now()
        rhs = self.projected_divergence()
        removed = float(np.linalg.norm(self.divergence - rhs))
        if removed > 0.0:
            Logger.main.debug(
                "Removed %g from the divergence (%s projection)", removed, cfg.projection
            )
        result = solver.solve(self.laplacian, rhs, self.data)
        elapsed = datetime.datetime.now() - start

        Logger.main.info(
            "Completed integration in %d steps with error %g (%s)",
            result.iterations, result.residual, format_timedelta(elapsed),
        )
        if not result.converged:
            Logger.main.warning(
                "Integration stopped after %d steps with error %g above tolerance %g",
                result.iterations, result.residual, tolerance,
            )

        self.last_result = result
        return result.iterations, result.residual

    def apply_laplacian(self, x: np.ndarray | None = None) -> np.ndarray:
        """Weighted Laplacian of x (of the current PMF if None)."""
        if x is None:
            x = self.data
        return self.laplacian.apply(x)

    def laplacian_matrix(self) -> np.ndarray:
        """Dense matrix of the current operator (small grids only)."""
        return self.laplacian.to_dense()

    def pmf(self) -> np.ndarray:
        """Copy of the solution, shaped to the grid, with its minimum at zero."""
        values = self.as_array().copy()
        return values - values.min()
