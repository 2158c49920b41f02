"""
Divergence assembly: the right-hand side of the weighted Poisson equation.

The potential lives on the corners of the gradient bins (a grid with
margin). Each potential point sees the 2x2 block of gradient bins that
surround it:

    g01 | g11        g11 = bin ix,          g01 = bin ix - e0
    ----+----        g10 = bin ix - e1,     g00 = bin ix - e0 - e1
    g00 | g10

and gets a centered finite-difference divergence of that block, plus a
weight equal to the total number of samples in the four bins.

The divergence is taken either of the stored per-bin sums (mean=False,
so a bin counts in proportion to its samples) or of the per-bin means
(mean=True, every sampled bin counts once).

IMPORTANT: the gradient grid is read-only here.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import NamedTuple, Sequence, TYPE_CHECKING

import numpy as np

from pmfint.core.count_grid import WeightGrid

if TYPE_CHECKING:
    from pmfint.core.grid import GridConfig
    from pmfint.core.gradient_grid import VectorFieldGrid


class CornerSample(NamedTuple):
    """One gradient bin of a divergence stencil."""

    count: int
    grad: tuple[float, float]


EMPTY_CORNER = CornerSample(count=0, grad=(0.0, 0.0))


@dataclass
class StencilResult:
    """Divergence and weight of one potential point."""

    divergence: float
    weight: int


def get_local_grads(
    gradient: "VectorFieldGrid",
    ix0: Sequence[int],
    mean: bool = False,
) -> tuple[CornerSample, CornerSample, CornerSample, CornerSample]:
    """
    Gather the four gradient bins around potential point ix0.

    A bin outside a non-periodic domain, or with no samples, is empty.
    With mean=True the stored sums are divided by the sample count.

    Returns:
        (g00, g01, g10, g11) corner samples
    """
    i, j = ix0[0], ix0[1]

    def corner(ix: tuple[int, int]) -> CornerSample:
        ix, edge = gradient.wrap(ix)
        if edge:
            return EMPTY_CORNER
        count = int(gradient.samples.value(ix))
        if count == 0:
            return EMPTY_CORNER
        g = gradient.value(ix)
        if mean:
            g = g / count
        return CornerSample(count=count, grad=(float(g[0]), float(g[1])))

    g11 = corner((i, j))
    g01 = corner((i - 1, j))
    g00 = corner((i - 1, j - 1))
    g10 = corner((i, j - 1))
    return g00, g01, g10, g11


class DivergenceAssembler:
    """
    Owns the divergence vector and the weight grid of a potential grid.

    Both live on the margined grid built from `config`. set_div() rebuilds
    everything; update_div() patches the four potential points touched by
    one updated gradient bin, giving the same values on those points as a
    full rebuild would.
    """

    def __init__(self, config: "GridConfig", mean_gradients: bool = False):
        if config.ndim != 2:
            raise ValueError(
                f"Divergence assembly needs exactly 2 dimensions, got {config.ndim}"
            )
        for n, periodic in zip(config.nx, config.periodic):
            # Weight gradients use three points along a non-periodic edge
            if not periodic and n < 2:
                raise ValueError(
                    f"Non-periodic dimensions need at least 2 bins, got nx={list(config.nx)}"
                )
        self.config = config
        self.mean_gradients = mean_gradients
        self.weights = WeightGrid(config, margin=True)
        self.nx = self.weights.nx
        self.widths = self.weights.widths
        self.periodic = self.weights.periodic
        self.divergence = np.zeros(self.weights.nt, dtype=np.float64)

    def corner_factor(self, ix0: Sequence[int]) -> float:
        """
        Averaging factor of the stencil at ix0.

        Two pairs of differences are averaged (0.5), except at a physical
        corner of a fully non-periodic domain where only one pair exists.
        """
        if not self.periodic[0] and not self.periodic[1]:
            if ix0[0] in (0, self.nx[0] - 1) and ix0[1] in (0, self.nx[1] - 1):
                return 1.0
        return 0.5

    def compute_local(
        self,
        gradient: "VectorFieldGrid",
        ix0: Sequence[int],
    ) -> StencilResult:
        """Divergence and weight at potential point ix0 (no side effects)."""
        g00, g01, g10, g11 = get_local_grads(gradient, ix0, mean=self.mean_gradients)
        fact = self.corner_factor(ix0)

        div = (
            (g10.grad[0] - g00.grad[0] + g11.grad[0] - g01.grad[0]) * fact / self.widths[0]
            + (g01.grad[1] - g00.grad[1] + g11.grad[1] - g10.grad[1]) * fact / self.widths[1]
        )
        weight = g00.count + g01.count + g10.count + g11.count
        return StencilResult(divergence=div, weight=weight)

    def update_div_local(self, gradient: "VectorFieldGrid", ix0: Sequence[int]) -> None:
        """Store divergence and weight of one potential point."""
        result = self.compute_local(gradient, ix0)
        a = self.weights.address(ix0)
        self.divergence[a] = result.divergence
        self.weights.data[a] = result.weight

    def set_div(self, gradient: "VectorFieldGrid") -> None:
        """Full rebuild over every potential point."""
        for ix in self.weights.iter_indices():
            self.update_div_local(gradient, ix)
        self.weights.update_gradients()

    def touched_points(self, ix0: Sequence[int]) -> list[tuple[int, ...]]:
        """
        Potential points whose stencil contains gradient bin ix0.

        These are the four corners of the bin. Without periodicity the
        margin guarantees they are valid.
        """
        i, j = ix0[0], ix0[1]
        points = []
        for ix in ((i, j), (i + 1, j), (i + 1, j + 1), (i, j + 1)):
            ix, _ = self.weights.wrap(ix)
            if ix not in points:
                points.append(ix)
        return points

    def update_div(self, gradient: "VectorFieldGrid", ix0: Sequence[int]) -> None:
        """Incremental update after gradient bin ix0 has changed."""
        points = self.touched_points(ix0)
        for ix in points:
            self.update_div_local(gradient, ix)
        # Weight gradients only after all four weights are current
        for ix in points:
            self.weights.update_gradient(ix)
