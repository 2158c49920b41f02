"""
Core grid containers.

This layer knows NOTHING about divergences, Laplacians or solvers.
It only knows:
- Rectangular lattices of bins with widths, boundaries and periodicity
- Flat storage with mixed-radix addressing and row-major traversal
- Wrapping of indices across periodic boundaries
- Sample counts and their finite-difference gradients
- Gradient vectors accumulated per bin
"""

from pmfint.core.grid import Grid, GridConfig
from pmfint.core.count_grid import SampleCountGrid, WeightGrid
from pmfint.core.scalar_grid import ScalarGrid
from pmfint.core.gradient_grid import VectorFieldGrid

__all__ = [
    "Grid",
    "GridConfig",
    "SampleCountGrid",
    "WeightGrid",
    "ScalarGrid",
    "VectorFieldGrid",
]
