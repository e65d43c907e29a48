from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import scipy as sp

if TYPE_CHECKING:
    import numpy.typing as npt

    from clothpd.config import SimulationConfig
    from clothpd.pre.topology import GridTopology


class ClothModel:
    """
    Class represent the assembled cloth system.

    This class holds the immutable system and projection matrices together with
    the per-vertex and per-constraint state vectors advanced by the stepper.
    """
    n_dof_per_node: int = 3

    def __init__(
        self,
        topology: GridTopology,
        config: SimulationConfig,
    ) -> None:
        """Initialize an empty model for a finalized topology."""
        self.topology = topology
        self.config = config

        empty = sp.sparse.csr_matrix((0, 0), dtype=np.float64)
        self.m_global: sp.sparse.csr_matrix = empty  # Mass matrix M
        self.l_global: sp.sparse.csr_matrix = empty  # Stiffness Laplacian L
        self.y_global: sp.sparse.csr_matrix = empty  # System matrix Y = M + dt^2 L
        self.j_global: sp.sparse.csr_matrix = empty  # Projection matrix J

        self.x: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.x_prev: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.y: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.f_external: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.b: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.d: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)

        self.starts: npt.NDArray[np.int64] = np.empty(0, dtype=np.int64)
        self.ends: npt.NDArray[np.int64] = np.empty(0, dtype=np.int64)
        self.rest_lengths: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)
        self.rest_directions: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)

    @property
    def number_of_vertices(self) -> int:
        """Return the number of vertices in the model."""
        return self.topology.number_of_vertices

    @property
    def number_of_constraints(self) -> int:
        """Return the number of edge constraints in the model."""
        return self.topology.number_of_constraints

    @property
    def number_of_equations(self) -> int:
        """Return the size of the global system (3 DOFs per vertex)."""
        return self.number_of_vertices * self.n_dof_per_node

    @property
    def positions(self) -> npt.NDArray[np.float64]:
        """Current vertex positions as a (V, 3) view of x."""
        return self.x.reshape(-1, self.n_dof_per_node)
