"""
Iterative solvers for L x = b.

method="cg": biconjugate-gradient iteration specialized to symmetric
operators and preconditioners, where it reduces to plain conjugate
gradient:

    z = M⁻¹ r
    p = z                        (first iteration)
    p = z + (z·r / z'·r') p      (afterwards, primes = previous iteration)
    a = z·r / p·(L p)
    x += a p,  r -= a L p

method="cgls": conjugate gradient on the normal equations Lᵀ L x = Lᵀ b,
for operators that are not symmetric. It needs operator.apply_transpose:

    s = Lᵀ r,  q = L p
    a = s·s / q·q
    x += a p,  r -= a q
    p = s' + (s'·s' / s·s) p

Convergence is measured by the relative L2 residual |r| / |b| in both
cases. Running out of iterations is NOT an error: the caller inspects
the residual.

The operator is only ever applied, never stored, so any callable
x -> L x works (e.g. WeightedLaplacian2D).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Literal

import numpy as np

from pmfint.logger import Logger


# Below this |b|, the right-hand side counts as zero and x is left alone
ZERO_RHS_NORM = 1.0e-14

PRECONDITIONERS = ("identity", "jacobi")
SOLVER_METHODS = ("cg", "cgls")


@dataclass
class SolveResult:
    """Outcome of one solve."""

    iterations: int
    residual: float  # |r| / |b| at exit
    converged: bool


def _unit_vector_diagonal(operator: Callable[[np.ndarray], np.ndarray], n: int) -> np.ndarray:
    diag = np.zeros(n)
    unit = np.zeros(n)
    for k in range(n):
        unit[k] = 1.0
        diag[k] = operator(unit)[k]
        unit[k] = 0.0
    return diag


@dataclass
class ConjugateGradientSolver:
    """
    Conjugate-gradient solver, symmetric ("cg") or least-squares ("cgls").

    The Jacobi preconditioner divides the residual by the operator
    diagonal; bins with a zero diagonal pass through unchanged. It only
    applies to "cg".
    """

    tolerance: float = 1.0e-6
    max_iterations: int = 10000
    preconditioner: Literal["identity", "jacobi"] = "identity"
    method: Literal["cg", "cgls"] = "cg"

    def __post_init__(self):
        if self.preconditioner not in PRECONDITIONERS:
            raise ValueError(f"Unknown preconditioner: {self.preconditioner}")
        if self.method not in SOLVER_METHODS:
            raise ValueError(f"Unknown solver method: {self.method}")
        if self.method == "cgls" and self.preconditioner != "identity":
            raise ValueError("The jacobi preconditioner only applies to method='cg'")

    def _make_asolve(self, operator, n: int) -> Callable[[np.ndarray], np.ndarray]:
        if self.preconditioner == "identity":
            return lambda r: r.copy()

        if hasattr(operator, "diagonal"):
            diag = operator.diagonal()
        else:
            diag = _unit_vector_diagonal(operator, n)
        inv_diag = np.ones(n)
        nonzero = diag != 0.0
        inv_diag[nonzero] = 1.0 / diag[nonzero]
        return lambda r: r * inv_diag

    def solve(
        self,
        operator: Callable[[np.ndarray], np.ndarray],
        b: np.ndarray,
        x: np.ndarray,
    ) -> SolveResult:
        """
        Solve operator(x) = b, updating x in place.

        Args:
            operator: Callable returning L x for a flat vector x
                (with an apply_transpose method for method="cgls")
            b: Right-hand side, shape [n]
            x: Initial guess, shape [n], float64; holds the solution on return

        Returns:
            SolveResult with iterations used and final relative residual
        """
        if self.method == "cgls" and not hasattr(operator, "apply_transpose"):
            raise ValueError("method='cgls' needs an operator with apply_transpose()")

        b = np.asarray(b, dtype=np.float64)

        bnrm = float(np.linalg.norm(b))
        if bnrm < ZERO_RHS_NORM:
            # Zero target: the trivial solution needs no work
            return SolveResult(iterations=0, residual=0.0, converged=True)

        r = b - operator(x)
        err = float(np.linalg.norm(r)) / bnrm
        if err <= self.tolerance:
            return SolveResult(iterations=0, residual=err, converged=True)

        if self.method == "cgls":
            iteration, err = self._iterate_cgls(operator, r, x, bnrm, err)
        else:
            iteration, err = self._iterate_cg(operator, r, x, bnrm, err)

        return SolveResult(
            iterations=iteration,
            residual=err,
            converged=err <= self.tolerance,
        )

    def _iterate_cg(self, operator, r, x, bnrm: float, err: float) -> tuple[int, float]:
        n = r.size
        asolve = self._make_asolve(operator, n)
        z = asolve(r)
        p = np.zeros(n)
        bkden = 1.0

        iteration = 0
        while iteration < self.max_iterations:
            iteration += 1

            bknum = float(np.dot(z, r))
            if iteration == 1:
                p[:] = z
            else:
                p *= bknum / bkden
                p += z
            bkden = bknum

            lp = operator(p)
            akden = float(np.dot(lp, p))
            if akden == 0.0:
                Logger.main.warning(
                    "Conjugate gradient breakdown at iteration %d (p.Lp = 0), residual %g",
                    iteration, err,
                )
                break

            ak = bknum / akden
            x += ak * p
            r -= ak * lp
            z = asolve(r)

            err = float(np.linalg.norm(r)) / bnrm
            if err <= self.tolerance:
                break

        return iteration, err

    def _iterate_cgls(self, operator, r, x, bnrm: float, err: float) -> tuple[int, float]:
        s = operator.apply_transpose(r)
        p = s.copy()
        gamma = float(np.dot(s, s))

        iteration = 0
        while iteration < self.max_iterations:
            iteration += 1

            q = operator(p)
            delta = float(np.dot(q, q))
            if delta == 0.0 or gamma == 0.0:
                Logger.main.warning(
                    "Least-squares conjugate gradient breakdown at iteration %d, residual %g",
                    iteration, err,
                )
                break

            alpha = gamma / delta
            x += alpha * p
            r -= alpha * q

            err = float(np.linalg.norm(r)) / bnrm
            if err <= self.tolerance:
                break

            s = operator.apply_transpose(r)
            gamma_new = float(np.dot(s, s))
            if gamma_new == 0.0:
                # r is orthogonal to the range of L: least-squares optimum
                break
            p *= gamma_new / gamma
            p += s
            gamma = gamma_new

        return iteration, err


def solve_linbcg_sym(
    operator: Callable[[np.ndarray], np.ndarray],
    b: np.ndarray,
    x: np.ndarray,
    tolerance: float = 1.0e-6,
    max_iterations: int = 10000,
    preconditioner: str = "identity",
) -> SolveResult:
    """Convenience function for a single symmetric solve."""
    solver = ConjugateGradientSolver(
        tolerance=tolerance,
        max_iterations=max_iterations,
        preconditioner=preconditioner,
    )
    return solver.solve(operator, b, x)
