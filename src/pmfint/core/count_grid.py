"""
Sample-count grids: how many measurements landed in each bin.

Counts are the confidence of the estimator. The integrator turns them
into spatially varying weights of the Poisson operator, which need
finite-difference gradients of their own.
"""

from __future__ import annotations
from typing import Sequence

import numpy as np

from pmfint.core.grid import Grid, GridConfig


class SampleCountGrid(Grid):
    """Grid of non-negative integer counts (multiplicity 1)."""

    def __init__(self, config: GridConfig, fill: int = 0, margin: bool = False):
        super().__init__(config, fill=fill, mult=1, margin=margin, dtype=np.int64)

    def incr_count(self, ix: Sequence[int], n: int = 1) -> None:
        """Add n samples to a bin."""
        self.data[self.address(ix)] += n

    def total_samples(self) -> int:
        return int(self.data.sum())

    def gradient_finite_diff(self, ix0: Sequence[int], n: int = 0) -> float:
        """
        Gradient of the count field along dimension n at bin ix0.

        Centered difference for periodic dimensions and interior bins.
        At a non-periodic edge, a second-order one-sided difference looking
        into the grid (needs at least 3 bins along n).
        """
        ix = list(ix0)
        width = self.widths[n]

        if self.periodic[n] or 0 < ix0[n] < self.nx[n] - 1:
            ix[n] = ix0[n] - 1
            a0 = self.value(self.wrap(ix)[0])
            ix[n] = ix0[n] + 1
            a1 = self.value(self.wrap(ix)[0])
            return float(a1 - a0) / (2.0 * width)

        # Move right from the lower edge, left from the upper edge
        increment = 1 if ix0[n] == 0 else -1
        a0 = self.value(ix)
        ix[n] += increment
        a1 = self.value(ix)
        ix[n] += increment
        a2 = self.value(ix)
        return (-1.5 * float(a0) + 2.0 * float(a1) - 0.5 * float(a2)) * increment / width


class WeightGrid(SampleCountGrid):
    """
    Per-bin weights of the Poisson operator and their gradients.

    `grad[n]` holds the finite-difference gradient of the weights along
    dimension n, one entry per bin. It is NOT refreshed automatically:
    call update_gradient() for touched bins or update_gradients() after
    a full rebuild.
    """

    def __init__(self, config: GridConfig, fill: int = 0, margin: bool = False):
        super().__init__(config, fill=fill, margin=margin)
        self.grad = np.zeros((self.nd, self.nt), dtype=np.float64)

    def update_gradient(self, ix: Sequence[int]) -> None:
        a = self.address(ix)
        for n in range(self.nd):
            self.grad[n, a] = self.gradient_finite_diff(ix, n)

    def update_gradients(self) -> None:
        for ix in self.iter_indices():
            self.update_gradient(ix)
