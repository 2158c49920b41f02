"""
ScalarGrid: one real number per bin (potentials, densities, probabilities).
"""

from __future__ import annotations

import numpy as np

from pmfint.core.grid import Grid, GridConfig


class ScalarGrid(Grid):
    """Grid of floats with multiplicity 1 and simple reductions."""

    def __init__(self, config: GridConfig, fill: float = 0.0, margin: bool = False):
        super().__init__(config, fill=fill, mult=1, margin=margin, dtype=np.float64)

    def maximum_value(self) -> float:
        return float(self.data.max())

    def minimum_value(self) -> float:
        return float(self.data.min())

    def minimum_pos_value(self) -> float:
        """
        Smallest strictly positive value.

        Falls back to the first stored value when no bin is positive.
        """
        positive = self.data[self.data > 0]
        if positive.size == 0:
            return float(self.data[0])
        return float(positive.min())

    def average(self) -> float:
        return float(self.data.mean())

    def integral(self) -> float:
        """Sum of all values times the bin volume."""
        return self.bin_volume * float(self.data.sum())

    def entropy(self) -> float:
        """
        -Σ p log p times the bin volume, treating the values as probabilities.

        Empty bins contribute zero.
        """
        p = self.data[self.data > 0]
        return self.bin_volume * float(-(p * np.log(p)).sum())

    def add_constant(self, c: float) -> None:
        self.data += c

    def multiply_constant(self, c: float) -> None:
        self.data *= c
