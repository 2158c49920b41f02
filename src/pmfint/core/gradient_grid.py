"""
VectorFieldGrid: accumulated free-energy gradients, one vector per bin.

This is the INPUT of the integrator. The statistics collaborator owns and
fills it (acc_force); the integrator only reads it, together with the
paired sample counts.

Stored vectors are sums over samples. A bin's mean gradient is
value / count, and is meaningful only where the count is nonzero.
"""

from __future__ import annotations
from typing import Sequence

import numpy as np

from pmfint.core.grid import Grid, GridConfig
from pmfint.core.count_grid import SampleCountGrid


class VectorFieldGrid(Grid):
    """Grid with one gradient component per dimension in every bin."""

    def __init__(self, config: GridConfig, samples: SampleCountGrid | None = None):
        super().__init__(config, fill=0.0, mult=config.ndim, margin=False)

        if samples is None:
            samples = SampleCountGrid(config)
        elif samples.shape != self.shape:
            raise ValueError(
                f"Sample grid shape {samples.shape} does not match gradient grid {self.shape}"
            )
        self.samples = samples

    def wrap_edge(self, ix: Sequence[int]) -> bool:
        """True if ix lies outside a non-periodic dimension."""
        return self.wrap(ix)[1]

    def acc_force(self, ix: Sequence[int], force: Sequence[float]) -> None:
        """Add one gradient sample to a bin and count it."""
        self.accumulate(ix, force)
        self.samples.incr_count(ix)

    def mean_value(self, ix: Sequence[int]) -> np.ndarray:
        """Sample-averaged gradient of a bin (zeros for an empty bin)."""
        count = self.samples.value(ix)
        if count == 0:
            return np.zeros(self.mult)
        return np.atleast_1d(self.value(ix)) / count

    def average(self) -> float:
        """
        Mean of the sample-averaged gradient over a 1D grid.

        Returns 0.0 for multi-dimensional grids.
        """
        if self.nd != 1:
            return 0.0

        total = 0.0
        for ix in self.iter_indices():
            count = self.samples.value(ix)
            if count:
                total += self.value(ix) / count
        return total / self.nx[0]

    def integral_1d(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Integrate a 1D gradient grid into a free-energy profile.

        The profile is a cumulative sum over bins of the mean gradient
        times the bin width. Empty bins add nothing. On a periodic axis
        the average gradient is subtracted first so the profile closes
        on itself.

        Returns:
            (positions, values) - nx + 1 bin edges and the profile at
            each edge, shifted so its minimum is zero
        """
        if self.nd != 1:
            raise ValueError("Cannot compute a 1D integral of a multi-dimensional gradient grid")

        corr = self.average() if self.periodic[0] else 0.0
        width = self.widths[0]

        integral = 0.0
        values = [0.0]
        for ix in self.iter_indices():
            count = self.samples.value(ix)
            if count:
                integral += (self.value(ix) / count - corr) * width
            values.append(integral)

        values = np.array(values)
        positions = self.lower_boundaries[0] + width * np.arange(self.nx[0] + 1)
        return positions, values - values.min()
