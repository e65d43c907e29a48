from __future__ import annotations

from dataclasses import dataclass
import logging
from math import sqrt
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Constraint:
    """
    Edge constraint between two grid vertices.

    Args:
        start: Index of the lower-index endpoint.
        end: Index of the other endpoint.
        rest_length: Distance the edge tries to keep between its endpoints.
    """
    start: int
    end: int
    rest_length: float


class GridTopology:
    """
    Square N x N cloth patch with structural and shear edges.

    Vertices are numbered row-major, index(row, col) = row * N + col.
    """
    def __init__(
        self,
        nside: int,
        size: float,
    ) -> None:
        """
        Initialize the grid.

        Args:
            nside: Number of vertices per side.
            size: Physical side length of the patch.
        """
        self.nside = nside
        self.size = size

        self.structural_length: float = size / (nside - 1)
        self.shear_length: float = sqrt(2) * self.structural_length

        self.constraints: list[Constraint] = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(nside={self.nside}, size={self.size}, constraints={len(self.constraints)})"

    @property
    def number_of_vertices(self) -> int:
        """Return the number of vertices in the grid."""
        return self.nside * self.nside

    @property
    def number_of_constraints(self) -> int:
        """Return the number of generated constraints."""
        return len(self.constraints)

    @property
    def is_finalized(self) -> bool:
        """True once the constraints have been generated."""
        return bool(self.constraints)

    def index(self, row: int, col: int) -> int:
        """Return the vertex index of a grid coordinate."""
        if not (0 <= row < self.nside and 0 <= col < self.nside):
            raise IndexError(f"Grid coordinate ({row}, {col}) outside a {self.nside}x{self.nside} grid.")
        return row * self.nside + col

    def generate_constraints(self) -> list[Constraint]:
        """
        Emit the structural and shear edges of the grid.

        For each (row, col) in row-major order the edges to (row, col+1),
        (row+1, col), (row+1, col+1) and (row+1, col-1) are added, in that
        order, when the neighbour exists. Every edge is emitted once, from its
        lower-index endpoint. A second call leaves the constraints untouched.

        Returns:
            The generated constraints.
        """
        if self.constraints:
            return self.constraints

        n = self.nside
        constraints: list[Constraint] = []
        for row in range(n):
            for col in range(n):
                i = row * n + col
                if col + 1 < n:
                    constraints.append(Constraint(i, i + 1, self.structural_length))
                if row + 1 < n:
                    constraints.append(Constraint(i, i + n, self.structural_length))
                if row + 1 < n and col + 1 < n:
                    constraints.append(Constraint(i, i + n + 1, self.shear_length))
                if row + 1 < n and col - 1 >= 0:
                    constraints.append(Constraint(i, i + n - 1, self.shear_length))

        self.constraints = constraints
        logger.debug(f"Generated {len(constraints)} constraints for a {n}x{n} grid.")
        return self.constraints

    def constraint_arrays(self) -> tuple[npt.NDArray[np.int64], npt.NDArray[np.int64], npt.NDArray[np.float64]]:
        """
        Return the constraints as flat arrays.

        Returns:
            starts: (C,) start vertex indices.
            ends: (C,) end vertex indices.
            rest_lengths: (C,) rest lengths.
        """
        starts = np.fromiter((c.start for c in self.constraints), dtype=np.int64, count=len(self.constraints))
        ends = np.fromiter((c.end for c in self.constraints), dtype=np.int64, count=len(self.constraints))
        rest_lengths = np.fromiter(
            (c.rest_length for c in self.constraints), dtype=np.float64, count=len(self.constraints)
        )
        return starts, ends, rest_lengths

    def rest_positions(self) -> npt.NDArray[np.float64]:
        """
        Flat planar layout of the patch, shape (3V,).

        Rows run along x, columns along z and the vertical axis y is zero.
        """
        n = self.nside
        coords = self.size * np.arange(n, dtype=np.float64) / (n - 1)
        rows, cols = np.meshgrid(coords, coords, indexing="ij")

        positions = np.zeros((n * n, 3), dtype=np.float64)
        positions[:, 0] = rows.ravel()
        positions[:, 2] = cols.ravel()
        return positions.ravel()
