"""
Grid: a flat-array container over a rectangular lattice of bins.

The grid stores ONLY values per bin. It knows nothing about forces,
divergences or potentials; those live in the integrate layer.

Addressing is a mixed-radix encoding of the index vector with the last
dimension varying fastest, so a 2D grid reshapes to [nx[0], nx[1]].
Every bin holds `mult` values stored contiguously.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np


@dataclass
class GridConfig:
    """Axes of the sampled space (one entry per dimension)."""

    nx: list[int]  # Bins per dimension
    widths: list[float] | None = None  # Bin widths (default 1.0)
    lower_boundaries: list[float] | None = None  # Lower edge of bin 0 (default 0.0)
    periodic: list[bool] | None = None  # Periodicity flags (default False)

    def __post_init__(self):
        self.nx = [int(n) for n in self.nx]
        nd = len(self.nx)
        if nd == 0:
            raise ValueError("GridConfig needs at least one dimension")

        if self.widths is None:
            self.widths = [1.0] * nd
        if self.lower_boundaries is None:
            self.lower_boundaries = [0.0] * nd
        if self.periodic is None:
            self.periodic = [False] * nd

        self.widths = [float(w) for w in self.widths]
        self.lower_boundaries = [float(lb) for lb in self.lower_boundaries]
        self.periodic = [bool(p) for p in self.periodic]

        for name in ("widths", "lower_boundaries", "periodic"):
            if len(getattr(self, name)) != nd:
                raise ValueError(
                    f"GridConfig.{name} has {len(getattr(self, name))} entries, expected {nd}"
                )
        if any(n < 1 for n in self.nx):
            raise ValueError(f"Bin counts must be positive, got {self.nx}")
        if any(w <= 0.0 for w in self.widths):
            raise ValueError(f"Bin widths must be positive, got {self.widths}")

    @property
    def ndim(self) -> int:
        """Number of dimensions."""
        return len(self.nx)


class Grid:
    """
    Dimension-generic grid of bins backed by one flat numpy array.

    With margin=True, each non-periodic dimension gets one extra bin and
    starts half a bin lower: grid points then sit on the corners of the
    bins described by `config`, so finite-difference stencils evaluated
    at the boundary of the unmargined grid always have neighbors.

    Out-of-range indices are NOT checked by `address` or `value`; callers
    test `index_ok` (or the edge flag of `wrap`) first.
    """

    def __init__(
        self,
        config: GridConfig,
        fill: float = 0.0,
        mult: int = 1,
        margin: bool = False,
        dtype=np.float64,
    ):
        if mult < 1:
            raise ValueError(f"Multiplicity must be at least 1, got {mult}")

        self.config = config
        self.margin = margin
        self.mult = int(mult)
        self.periodic = list(config.periodic)
        self.widths = list(config.widths)

        self.nx: list[int] = []
        self.lower_boundaries: list[float] = []
        for n, w, lb, per in zip(
            config.nx, config.widths, config.lower_boundaries, config.periodic
        ):
            if margin and not per:
                self.nx.append(n + 1)
                self.lower_boundaries.append(lb - 0.5 * w)
            else:
                self.nx.append(n)
                self.lower_boundaries.append(lb)

        self.nd = len(self.nx)

        # Strides of the mixed-radix address, last index fastest
        self.nxc = [1] * self.nd
        for i in range(self.nd - 2, -1, -1):
            self.nxc[i] = self.nxc[i + 1] * self.nx[i + 1]

        self.nt = int(np.prod(self.nx))
        self.data = np.full(self.nt * self.mult, fill, dtype=dtype)

    @property
    def shape(self) -> tuple[int, ...]:
        """Bins per dimension, including margins."""
        return tuple(self.nx)

    @property
    def bin_volume(self) -> float:
        return float(np.prod(self.widths))

    # ───────────────────────────────────────────────────────────────
    # Addressing and traversal
    # ───────────────────────────────────────────────────────────────

    def address(self, ix: Sequence[int]) -> int:
        """Flat bin offset of an index vector (not bounds-checked)."""
        addr = 0
        for i, stride in zip(ix, self.nxc):
            addr += i * stride
        return addr

    def wrap(self, ix: Sequence[int]) -> tuple[tuple[int, ...], bool]:
        """
        Fold periodic components back into range.

        Returns:
            (wrapped index, edge) - edge is True if any non-periodic
            component is out of range (those components are left as is)
        """
        wrapped = []
        edge = False
        for d, i in enumerate(ix):
            n = self.nx[d]
            if self.periodic[d]:
                i = i % n
            elif i < 0 or i >= n:
                edge = True
            wrapped.append(i)
        return tuple(wrapped), edge

    def index_ok(self, ix: Sequence[int]) -> bool:
        """True if every component of ix lies inside the grid."""
        return all(0 <= i < n for i, n in zip(ix, self.nx))

    def new_index(self) -> tuple[int, ...]:
        """First index of the row-major traversal."""
        return (0,) * self.nd

    def incr(self, ix: Sequence[int]) -> tuple[int, ...]:
        """Next index in row-major order; past the end, index_ok() is False."""
        ix = list(ix)
        for d in range(self.nd - 1, -1, -1):
            ix[d] += 1
            if ix[d] < self.nx[d]:
                break
            if d > 0:
                ix[d] = 0
        return tuple(ix)

    def iter_indices(self) -> Iterator[tuple[int, ...]]:
        """Iterate over all valid index vectors in row-major order."""
        ix = self.new_index()
        while self.index_ok(ix):
            yield ix
            ix = self.incr(ix)

    # ───────────────────────────────────────────────────────────────
    # Values
    # ───────────────────────────────────────────────────────────────

    def value(self, ix: Sequence[int]):
        """
        Stored value(s) of a bin.

        Returns a scalar for mult == 1, otherwise a view of the bin's
        `mult` components.
        """
        a = self.address(ix) * self.mult
        if self.mult == 1:
            return self.data[a]
        return self.data[a:a + self.mult]

    def set_value(self, ix: Sequence[int], value) -> None:
        """Overwrite the value(s) of a bin."""
        a = self.address(ix) * self.mult
        self.data[a:a + self.mult] = value

    def accumulate(self, ix: Sequence[int], value) -> None:
        """Add to the value(s) of a bin."""
        a = self.address(ix) * self.mult
        self.data[a:a + self.mult] += value

    def reset(self, fill: float = 0.0) -> None:
        self.data.fill(fill)

    def as_array(self) -> np.ndarray:
        """Reshaped view of the storage: shape nx, or nx + [mult]."""
        if self.mult == 1:
            return self.data.reshape(self.nx)
        return self.data.reshape(self.nx + [self.mult])

    def copy(self) -> "Grid":
        """Create a copy of this grid with its own storage."""
        return copy.deepcopy(self)

    # ───────────────────────────────────────────────────────────────
    # Coordinates
    # ───────────────────────────────────────────────────────────────

    def bin_center(self, ix: Sequence[int]) -> np.ndarray:
        """Coordinates of the center of a bin."""
        return np.array(
            [lb + (i + 0.5) * w for i, lb, w in zip(ix, self.lower_boundaries, self.widths)]
        )

    def axis_centers(self, d: int) -> np.ndarray:
        """Bin centers along dimension d."""
        return self.lower_boundaries[d] + (np.arange(self.nx[d]) + 0.5) * self.widths[d]

    def value_to_bin(self, x: Sequence[float]) -> tuple[int, ...]:
        """Bin index containing point x (periodic coordinates are wrapped)."""
        ix = tuple(
            int(np.floor((xi - lb) / w))
            for xi, lb, w in zip(x, self.lower_boundaries, self.widths)
        )
        return self.wrap(ix)[0]
