"""
Weighted discrete Laplacian, applied matrix-free.

Computes y = L x, a discretization of div(w grad x) on a 2D grid:

    y = w (lap_x / dx² + lap_y / dy²) + (d_x / dx) gw_x + (d_y / dy) gw_y

- lap_k: 5-point second difference along k
- d_k: first difference along k (centered, or one-sided at an edge)
- w, gw_k: per-bin weights and their gradients (from the WeightGrid)

Per dimension:
- periodic: neighbors wrap across the domain
- non-periodic interior: centered stencil
- non-periodic edge: one-sided difference towards the inside

The four domain corners keep only the two-neighbor Laplacian, with
neither weight nor gradient term.

weight_scale multiplies every weight and weight gradient; 0.25 turns the
four-corner count sums into their mean.

For uniform unit weights the operator is symmetric (negative
semi-definite, constants in its null space). Non-uniform weights near
non-periodic edges break exact symmetry; this is accepted, and
apply_transpose() provides Lᵀ y for the least-squares solver.
"""

from __future__ import annotations
from typing import Literal, TYPE_CHECKING

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import LinearOperator

if TYPE_CHECKING:
    from pmfint.core.grid import Grid
    from pmfint.core.count_grid import WeightGrid


# Which weight scales the Laplacian on the lower non-periodic edge of dim 0:
# "mirrored" uses the bin on the opposite (upper) edge, "local" its own.
EdgeWeight = Literal["mirrored", "local"]
EDGE_WEIGHT_MODES = ("mirrored", "local")


class WeightedLaplacian2D:
    """
    Matrix-free weighted Laplacian on a two-dimensional grid.

    The operator keeps a reference to the WeightGrid, so it always sees
    the current weights and weight gradients.
    """

    ndim = 2

    def __init__(
        self,
        grid: "Grid",
        weights: "WeightGrid",
        edge_weight: EdgeWeight = "mirrored",
        weight_scale: float = 1.0,
    ):
        if grid.nd != self.ndim:
            raise ValueError(f"WeightedLaplacian2D needs a 2D grid, got {grid.nd}D")
        if any(n < 3 for n in grid.nx):
            raise ValueError(f"Laplacian stencils need at least 3 bins per dimension, got {grid.nx}")
        if weights.shape != grid.shape:
            raise ValueError(
                f"Weight grid shape {weights.shape} does not match grid shape {grid.shape}"
            )
        if edge_weight not in EDGE_WEIGHT_MODES:
            raise ValueError(f"Unknown edge_weight: {edge_weight}")
        if weight_scale <= 0.0:
            raise ValueError(f"weight_scale must be positive, got {weight_scale}")

        self.nx = list(grid.nx)
        self.widths = list(grid.widths)
        self.periodic = list(grid.periodic)
        self.weights = weights
        self.edge_weight = edge_weight
        self.weight_scale = weight_scale
        self.n = grid.nt

    @property
    def shape(self) -> tuple[int, int]:
        return self.n, self.n

    def _differences(self, a: np.ndarray, axis: int) -> tuple[np.ndarray, np.ndarray]:
        """Second difference and first difference of a along axis."""
        if self.periodic[axis]:
            ahead = np.roll(a, -1, axis=axis)
            behind = np.roll(a, 1, axis=axis)
            return ahead + behind - 2.0 * a, 0.5 * (ahead - behind)

        lap = np.empty_like(a)
        grad = np.empty_like(a)
        # Views with the stencil axis first
        b = np.moveaxis(a, axis, 0)
        lap_b = np.moveaxis(lap, axis, 0)
        grad_b = np.moveaxis(grad, axis, 0)

        lap_b[1:-1] = b[2:] + b[:-2] - 2.0 * b[1:-1]
        grad_b[1:-1] = 0.5 * (b[2:] - b[:-2])

        # Edges: one-sided towards the inside
        lap_b[0] = b[1] - b[0]
        grad_b[0] = b[1] - b[0]
        lap_b[-1] = b[-2] - b[-1]
        grad_b[-1] = b[-1] - b[-2]
        return lap, grad

    def _transposed_gradient(self, v: np.ndarray, axis: int) -> np.ndarray:
        """Adjoint of the first difference of _differences() along axis."""
        if self.periodic[axis]:
            return -0.5 * (np.roll(v, -1, axis=axis) - np.roll(v, 1, axis=axis))

        out = np.zeros_like(v)
        b = np.moveaxis(v, axis, 0)
        out_b = np.moveaxis(out, axis, 0)

        out_b[2:] += 0.5 * b[1:-1]
        out_b[:-2] -= 0.5 * b[1:-1]
        out_b[0] -= b[0]
        out_b[1] += b[0]
        out_b[-1] += b[-1]
        out_b[-2] -= b[-1]
        return out

    def _effective_weights(self) -> np.ndarray:
        w = self.weights.data.reshape(self.nx).astype(np.float64)
        if not self.periodic[0] and self.edge_weight == "mirrored":
            w[0, :] = w[-1, :]
        return w

    def _corners(self):
        return ((0, 0), (0, -1), (-1, 0), (-1, -1))

    def _stencil_weights(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Scaled weight and weight gradients per point; corners are unweighted."""
        w = self.weight_scale * self._effective_weights()
        gw_x = self.weight_scale * self.weights.grad[0].reshape(self.nx)
        gw_y = self.weight_scale * self.weights.grad[1].reshape(self.nx)
        for corner in self._corners():
            w[corner] = 1.0
            gw_x[corner] = 0.0
            gw_y[corner] = 0.0
        return w, gw_x, gw_y

    def apply(self, x: np.ndarray) -> np.ndarray:
        """Return L x for a flat vector x of length nt."""
        a = np.asarray(x, dtype=np.float64).reshape(self.nx)
        fx, fy = 1.0 / self.widths[0], 1.0 / self.widths[1]
        ffx, ffy = fx * fx, fy * fy

        lap_x, d_x = self._differences(a, 0)
        lap_y, d_y = self._differences(a, 1)
        w, gw_x, gw_y = self._stencil_weights()

        result = w * (ffx * lap_x + ffy * lap_y) + fx * d_x * gw_x + fy * d_y * gw_y
        return result.ravel()

    __call__ = apply

    def apply_transpose(self, y: np.ndarray) -> np.ndarray:
        """
        Return Lᵀ y without building the matrix.

        The second differences are symmetric, so only the weights move to
        the other side; the first differences are replaced by their adjoints.
        """
        v = np.asarray(y, dtype=np.float64).reshape(self.nx)
        fx, fy = 1.0 / self.widths[0], 1.0 / self.widths[1]
        ffx, ffy = fx * fx, fy * fy
        w, gw_x, gw_y = self._stencil_weights()

        wv = w * v
        lap_x, _ = self._differences(wv, 0)
        lap_y, _ = self._differences(wv, 1)

        result = (
            ffx * lap_x
            + ffy * lap_y
            + fx * self._transposed_gradient(gw_x * v, 0)
            + fy * self._transposed_gradient(gw_y * v, 1)
        )
        return result.ravel()

    def _self_coefficients(self, axis: int) -> tuple[np.ndarray, np.ndarray]:
        """Coefficients of x[i] in its own lap and first difference along axis."""
        lap = np.full(self.nx, -2.0)
        grad = np.zeros(self.nx)
        if not self.periodic[axis]:
            lap_b = np.moveaxis(lap, axis, 0)
            grad_b = np.moveaxis(grad, axis, 0)
            lap_b[0] = lap_b[-1] = -1.0
            grad_b[0] = -1.0
            grad_b[-1] = 1.0
        return lap, grad

    def diagonal(self) -> np.ndarray:
        """Diagonal of the operator, without applying it to unit vectors."""
        fx, fy = 1.0 / self.widths[0], 1.0 / self.widths[1]
        ffx, ffy = fx * fx, fy * fy

        lap_x, d_x = self._self_coefficients(0)
        lap_y, d_y = self._self_coefficients(1)
        w, gw_x, gw_y = self._stencil_weights()

        diag = w * (ffx * lap_x + ffy * lap_y) + fx * d_x * gw_x + fy * d_y * gw_y
        return diag.ravel()

    def to_dense(self) -> np.ndarray:
        """
        Explicit matrix M with M @ x == apply(x), built by applying it to
        unit vectors. O(nt²): meant for small grids and diagnostics.
        """
        matrix = np.zeros(self.shape)
        unit = np.zeros(self.n)
        for k in range(self.n):
            unit[k] = 1.0
            matrix[:, k] = self.apply(unit)
            unit[k] = 0.0
        return matrix

    def to_sparse(self) -> sparse.csr_matrix:
        """Sparse version of to_dense()."""
        return sparse.csr_matrix(self.to_dense())

    def as_linear_operator(self) -> LinearOperator:
        """Wrap the operator for scipy.sparse.linalg routines."""
        return LinearOperator(
            self.shape,
            matvec=self.apply,
            rmatvec=self.apply_transpose,
            dtype=np.float64,
        )


# Operator strategy per grid dimensionality
LAPLACIAN_OPERATORS = {
    2: WeightedLaplacian2D,
}


def make_laplacian(
    grid: "Grid",
    weights: "WeightGrid",
    edge_weight: EdgeWeight = "mirrored",
    weight_scale: float = 1.0,
) -> WeightedLaplacian2D:
    """Pick the weighted Laplacian matching the grid's dimensionality."""
    try:
        operator_cls = LAPLACIAN_OPERATORS[grid.nd]
    except KeyError:
        supported = ", ".join(str(d) for d in sorted(LAPLACIAN_OPERATORS))
        raise ValueError(
            f"No weighted Laplacian for {grid.nd}-dimensional grids (supported: {supported})"
        ) from None
    return operator_cls(grid, weights, edge_weight=edge_weight, weight_scale=weight_scale)
