"""
2D visualization of integration fields.

Provides heatmaps and profiles for:
- the reconstructed PMF
- the divergence (right-hand side of the Poisson equation)
- the sample weights of the operator
- 1D free-energy profiles

Grids are shown with dimension 0 on the horizontal axis, in physical
coordinates. All plots use matplotlib.
"""

from __future__ import annotations
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap
from matplotlib.figure import Figure
from matplotlib.axes import Axes

if TYPE_CHECKING:
    from pmfint.core.grid import Grid
    from pmfint.integrate.potential import PotentialIntegrator


def _create_pmf_cmap():
    """Create a colormap for free-energy wells: deep (dark) → high (warm white)."""
    colors = [
        (0.05, 0.02, 0.10),     # Near black (global minimum)
        (0.188, 0.071, 0.235),  # Dark violet
        (0.259, 0.204, 0.506),  # Indigo
        (0.165, 0.431, 0.604),  # Blue
        (0.149, 0.635, 0.569),  # Teal
        (0.569, 0.808, 0.459),  # Light green
        (0.993, 0.978, 0.925),  # Warm white (barriers)
    ]
    return LinearSegmentedColormap.from_list("pmf", colors)


CMAP_PMF = _create_pmf_cmap()
CMAP_DIVERGENCE = "RdBu_r"   # signed, centered on zero
CMAP_WEIGHTS = "YlOrRd"      # sample counts


def _extent(grid: "Grid") -> list[float]:
    """imshow extent of a 2D grid (dimension 0 horizontal)."""
    x0, y0 = grid.lower_boundaries[0], grid.lower_boundaries[1]
    return [
        x0,
        x0 + grid.nx[0] * grid.widths[0],
        y0,
        y0 + grid.nx[1] * grid.widths[1],
    ]


def plot_field(
    field: np.ndarray,
    grid: "Grid | None" = None,
    title: str = "",
    cmap=None,
    vmin: float | None = None,
    vmax: float | None = None,
    ax: Axes | None = None,
    colorbar: bool = True,
    figsize: tuple[float, float] = (8, 6),
) -> tuple[Figure, Axes]:
    """
    Plot a 2D field as a heatmap.

    Args:
        field: Values indexed [i0, i1], or flat in grid order if grid is given
        grid: Grid the field lives on (sets shape and axis extents)
        title: Plot title
        cmap: Colormap name
        vmin, vmax: Color scale limits (auto if None)
        ax: Existing axes to plot on (creates new figure if None)
        colorbar: Whether to add a colorbar
        figsize: Figure size if creating new figure

    Returns:
        (fig, ax) tuple
    """
    if cmap is None:
        cmap = CMAP_PMF

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    extent = None
    if grid is not None:
        field = np.asarray(field).reshape(grid.nx)
        extent = _extent(grid)

    im = ax.imshow(
        np.asarray(field).T,
        origin="lower",
        cmap=cmap,
        vmin=vmin,
        vmax=vmax,
        extent=extent,
        aspect="auto",
    )

    if colorbar:
        plt.colorbar(im, ax=ax, fraction=0.046, pad=0.04)

    ax.set_title(title)
    ax.set_xlabel("ξ₁")
    ax.set_ylabel("ξ₂")

    return fig, ax


def plot_pmf(
    integrator: "PotentialIntegrator",
    title: str = "PMF A(ξ)",
    ax: Axes | None = None,
    **kwargs,
) -> tuple[Figure, Axes]:
    """Plot the reconstructed PMF, minimum shifted to zero."""
    return plot_field(
        integrator.pmf(),
        grid=integrator,
        title=title,
        cmap=CMAP_PMF,
        ax=ax,
        **kwargs,
    )


def plot_divergence(
    integrator: "PotentialIntegrator",
    title: str = "Divergence ∇·F",
    ax: Axes | None = None,
    **kwargs,
) -> tuple[Figure, Axes]:
    """Plot the divergence with a symmetric color scale."""
    div = integrator.divergence
    vmax = float(np.abs(div).max()) or 1.0
    return plot_field(
        div,
        grid=integrator,
        title=title,
        cmap=CMAP_DIVERGENCE,
        vmin=-vmax,
        vmax=vmax,
        ax=ax,
        **kwargs,
    )


def plot_weights(
    integrator: "PotentialIntegrator",
    title: str = "Sample Weights w(ξ)",
    ax: Axes | None = None,
    **kwargs,
) -> tuple[Figure, Axes]:
    """Plot the per-point sample weights of the operator."""
    return plot_field(
        integrator.div_weights.data.astype(float),
        grid=integrator,
        title=title,
        cmap=CMAP_WEIGHTS,
        vmin=0,
        ax=ax,
        **kwargs,
    )


def plot_integration_summary(
    integrator: "PotentialIntegrator",
    figsize: tuple[float, float] = (16, 4.5),
) -> Figure:
    """
    Plot weights, divergence and PMF side by side.

    Args:
        integrator: PotentialIntegrator after set_div() and integrate()

    Returns:
        Figure with three subplots
    """
    fig, axes = plt.subplots(1, 3, figsize=figsize)

    plot_weights(integrator, ax=axes[0])
    plot_divergence(integrator, ax=axes[1])

    title = "PMF A(ξ)"
    if integrator.last_result is not None:
        result = integrator.last_result
        title += f" ({result.iterations} steps, residual {result.residual:.1e})"
    plot_pmf(integrator, title=title, ax=axes[2])

    fig.tight_layout()
    return fig


def plot_profile_1d(
    positions: np.ndarray,
    values: np.ndarray,
    label: str = "",
    ax: Axes | None = None,
    figsize: tuple[float, float] = (8, 5),
    **plot_kwargs,
) -> tuple[Figure, Axes]:
    """
    Plot a 1D free-energy profile (e.g. from VectorFieldGrid.integral_1d).

    Args:
        positions: Coordinates
        values: Free energy at each coordinate
        label: Line label
        ax: Existing axes (creates new if None)
        figsize: Figure size

    Returns:
        (fig, ax) tuple
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    ax.plot(positions, values, label=label, **plot_kwargs)
    ax.set_xlabel("ξ")
    ax.set_ylabel("A(ξ)")
    ax.grid(True, alpha=0.3)

    if label:
        ax.legend()

    return fig, ax


def save_figure(fig: Figure, path: str | Path, dpi: int = 150, **kwargs) -> None:
    """Save figure to file."""
    fig.savefig(path, dpi=dpi, bbox_inches="tight", **kwargs)
