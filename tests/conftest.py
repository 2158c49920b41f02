"""
Pytest configuration and shared fixtures.
"""

import matplotlib
matplotlib.use("Agg")

import pytest
import numpy as np


@pytest.fixture
def small_config():
    """Non-periodic 4x5 gradient grid with unit bins."""
    from pmfint.core import GridConfig
    return GridConfig(nx=[4, 5])


@pytest.fixture
def periodic_config():
    """Fully periodic 6x6 grid over [-π, π)²."""
    from pmfint.core import GridConfig
    return GridConfig(
        nx=[6, 6],
        widths=[np.pi / 3, np.pi / 3],
        lower_boundaries=[-np.pi, -np.pi],
        periodic=[True, True],
    )


@pytest.fixture
def unit_weight_operator():
    """Factory: weighted Laplacian on an unmargined grid with all weights 1."""
    from pmfint.core import Grid, GridConfig, WeightGrid
    from pmfint.integrate import WeightedLaplacian2D

    def factory(nx=(5, 5), periodic=(False, False), widths=(1.0, 1.0), **kwargs):
        config = GridConfig(nx=list(nx), widths=list(widths), periodic=list(periodic))
        grid = Grid(config)
        weights = WeightGrid(config, fill=1)
        weights.update_gradients()
        return WeightedLaplacian2D(grid, weights, **kwargs)

    return factory


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)
