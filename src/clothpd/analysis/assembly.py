from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import scipy as sp

from clothpd.analysis.model import ClothModel
from clothpd.config import VERTICAL_AXIS
from clothpd.exceptions import DimensionMismatchError, TopologyError

if TYPE_CHECKING:
    import numpy.typing as npt

    from clothpd.config import SimulationConfig
    from clothpd.pre.topology import GridTopology

logger = logging.getLogger(__name__)

N_AXES = 3


def assemble_sparse(
    rows: npt.NDArray[np.int64],
    cols: npt.NDArray[np.int64],
    data: npt.NDArray[np.float64],
    shape: tuple[int, int],
) -> sp.sparse.csr_matrix:
    """
    Compress (row, col, value) triplets into a CSR matrix.

    Duplicate (row, col) pairs are summed, never overwritten, so the order in
    which the triplets were produced does not matter.

    Args:
        rows: Row index of each triplet.
        cols: Column index of each triplet.
        data: Value of each triplet.
        shape: Shape of the resulting matrix.

    Returns:
        The assembled matrix in CSR format with canonical (sorted, summed) indices.
    """
    if not (rows.shape == cols.shape == data.shape):
        raise DimensionMismatchError(
            f"Triplet arrays differ in length: rows {rows.shape}, cols {cols.shape}, data {data.shape}."
        )

    # COO tolerates duplicates; .tocsr() sums them
    matrix = sp.sparse.coo_matrix(
        (data, (rows, cols)),
        shape=shape,
        dtype=np.float64
    ).tocsr()
    matrix.sum_duplicates()
    return matrix


class SystemBuilder:
    """
    Assembles the immutable linear system of a cloth patch.

    The builder runs once, after the topology has generated its constraints,
    and produces a ClothModel holding M, L, Y = M + dt^2 L, J and the initial
    state vectors.
    """

    def __init__(
        self,
        topology: GridTopology,
        config: SimulationConfig,
    ) -> None:
        """
        Initialize the builder.

        Args:
            topology: Grid with generated constraints.
            config: Simulation parameters (mass, stiffness, time step, gravity).
        """
        if not topology.is_finalized:
            raise TopologyError("Constraints must be generated before the system is assembled.")
        if topology.nside != config.nside:
            raise DimensionMismatchError(
                f"Topology has {topology.nside} vertices per side, config expects {config.nside}."
            )

        self.topology = topology
        self.config = config

        self.starts, self.ends, self.rest_lengths = topology.constraint_arrays()

        self.neq = N_AXES * topology.number_of_vertices
        self.ncon = N_AXES * topology.number_of_constraints

    def _axis_dofs(self, vertices: npt.NDArray[np.int64]) -> npt.NDArray[np.int64]:
        """Expand vertex indices (n,) to their DOF indices (n, 3)."""
        return N_AXES * vertices[:, None] + np.arange(N_AXES, dtype=np.int64)

    def assemble_mass_matrix(self) -> sp.sparse.csr_matrix:
        """
        Assemble the diagonal mass matrix [M], one entry per DOF.
        """
        dofs = np.arange(self.neq, dtype=np.int64)
        data = np.full(self.neq, self.config.mass, dtype=np.float64)
        return assemble_sparse(dofs, dofs, data, shape=(self.neq, self.neq))

    def assemble_stiffness_matrix(self) -> sp.sparse.csr_matrix:
        """
        Assemble the stiffness-scaled graph Laplacian [L].

        Every constraint (s, e) adds, on each axis, the 2x2 block
        k [[1, -1], [-1, 1]] at the DOFs of s and e.
        """
        k = self.config.stiffness

        # (C * 3, 2) pairs of coupled DOFs, one row per constraint and axis
        dofs = np.stack(
            (self._axis_dofs(self.starts).ravel(), self._axis_dofs(self.ends).ravel()),
            axis=1
        )
        k_el = k * np.array([[1.0, -1.0], [-1.0, 1.0]])

        n_dofs = dofs.shape[1]
        rows = np.repeat(dofs, n_dofs, axis=1).ravel()
        cols = np.tile(dofs, (1, n_dofs)).ravel()
        data = np.tile(k_el.ravel(), dofs.shape[0])

        return assemble_sparse(rows, cols, data, shape=(self.neq, self.neq))

    def assemble_system_matrix(
        self,
        m_global: sp.sparse.csr_matrix,
        l_global: sp.sparse.csr_matrix,
    ) -> sp.sparse.csr_matrix:
        """
        Combine mass and stiffness into the SPD system matrix Y = M + dt^2 L.
        """
        if m_global.shape != l_global.shape:
            raise DimensionMismatchError(f"Mass {m_global.shape} and stiffness {l_global.shape} differ in shape.")
        y_global = (m_global + self.config.dt2 * l_global).tocsr()
        y_global.sort_indices()
        return y_global

    def assemble_projection_matrix(self) -> sp.sparse.csr_matrix:
        """
        Assemble the projection matrix [J] of shape (3V, 3C).

        Constraint i owns columns 3i..3i+2; the row block of its start vertex
        gets -k on the diagonal, the row block of its end vertex +k.
        """
        k = self.config.stiffness
        con_dofs = np.arange(self.ncon, dtype=np.int64)

        rows = np.concatenate((self._axis_dofs(self.starts).ravel(), self._axis_dofs(self.ends).ravel()))
        cols = np.concatenate((con_dofs, con_dofs))
        data = np.concatenate((np.full(self.ncon, -k), np.full(self.ncon, k)))

        return assemble_sparse(rows, cols, data, shape=(self.neq, self.ncon))

    def init_vectors(self, model: ClothModel) -> None:
        """
        Allocate and initialize the state vectors of the model.

        Positions start on the flat grid, x_prev is an exact copy of x, and the
        external force acts on the vertical axis only.
        """
        model.x = self.topology.rest_positions()
        model.x_prev = model.x.copy()

        model.y = np.zeros(self.neq, dtype=np.float64)
        model.b = np.zeros(self.neq, dtype=np.float64)
        model.d = np.zeros(self.ncon, dtype=np.float64)

        model.f_external = np.zeros(self.neq, dtype=np.float64)
        model.f_external[VERTICAL_AXIS::N_AXES] = self.config.gravity

        model.starts = self.starts
        model.ends = self.ends
        model.rest_lengths = self.rest_lengths

        # Unit edge directions of the flat rest state
        rest = model.x.reshape(-1, N_AXES)
        edges = rest[self.ends] - rest[self.starts]
        model.rest_directions = (edges / np.linalg.norm(edges, axis=1)[:, None]).ravel()

    def build(self) -> ClothModel:
        """
        Assemble matrices and vectors into a new ClothModel.
        """
        logger.info(
            f"Assembling system for {self.topology.number_of_vertices} vertices "
            f"and {self.topology.number_of_constraints} constraints..."
        )
        model = ClothModel(topology=self.topology, config=self.config)

        self.init_vectors(model)

        model.m_global = self.assemble_mass_matrix()
        model.l_global = self.assemble_stiffness_matrix()
        model.y_global = self.assemble_system_matrix(model.m_global, model.l_global)
        model.j_global = self.assemble_projection_matrix()

        logger.info(
            f"System matrix {model.y_global.shape} with {model.y_global.nnz} non-zeros, "
            f"projection matrix {model.j_global.shape} with {model.j_global.nnz} non-zeros."
        )
        return model
