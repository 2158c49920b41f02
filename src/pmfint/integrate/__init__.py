"""
Integration layer: from a gradient grid to a potential of mean force.

- DivergenceAssembler: divergence of the gradient field + sample weights
- WeightedLaplacian2D: matrix-free div(w grad ·) on a 2D grid
- ConjugateGradientSolver: CG (symmetric) or CGLS iterative solver for L x = b
- PotentialIntegrator: the three above behind one integrate() call
"""

from pmfint.integrate.divergence import (
    CornerSample,
    StencilResult,
    DivergenceAssembler,
    get_local_grads,
)
from pmfint.integrate.laplacian import (
    WeightedLaplacian2D,
    LAPLACIAN_OPERATORS,
    make_laplacian,
)
from pmfint.integrate.solver import (
    SolveResult,
    ConjugateGradientSolver,
    solve_linbcg_sym,
)
from pmfint.integrate.potential import IntegratorConfig, PotentialIntegrator

__all__ = [
    "CornerSample",
    "StencilResult",
    "DivergenceAssembler",
    "get_local_grads",
    "WeightedLaplacian2D",
    "LAPLACIAN_OPERATORS",
    "make_laplacian",
    "SolveResult",
    "ConjugateGradientSolver",
    "solve_linbcg_sym",
    "IntegratorConfig",
    "PotentialIntegrator",
]
