"""
pmfint: potentials of mean force from mean-force grids

Reconstructs a free-energy surface from the local mean forces that an
enhanced-sampling run accumulates per bin, by solving a weighted Poisson
equation on the grid.

Core concepts:
- Gradients are accumulated per bin, with a sample count per bin
- Their divergence is the right-hand side of the Poisson equation
- Sample counts become weights: unsampled regions do not constrain the PMF
- A conjugate-gradient solve yields the PMF up to an additive constant
"""

__version__ = "0.1.0"
