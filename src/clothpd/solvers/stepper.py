"""
Projective Dynamics Stepper
===========================
Advances the cloth one frame at a time.

Each frame predicts the inertial positions, alternates the per-edge local
projection with the global solve of Y x = b a fixed number of times, and
finally writes the pinned vertices back to their captured positions.

Classes:
    Stage: Lifecycle of a stepper (UNINITIALIZED -> READY).
    Pin: A vertex held at a fixed position.
    Stepper: Owns the assembled model, the solver and the pins.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from clothpd.analysis.assembly import SystemBuilder
from clothpd.exceptions import ClothError, NumericalBreakdownError, UninitializedError
from clothpd.pre.topology import GridTopology
from clothpd.solvers.cg import ConjugateGradient
from clothpd.solvers.kernels import combine_rhs, predict_inertia, project_constraints

if TYPE_CHECKING:
    import numpy.typing as npt

    from clothpd.analysis.model import ClothModel
    from clothpd.config import SimulationConfig
    from clothpd.solvers.cg import CGResult

logger = logging.getLogger(__name__)


class Stage(IntEnum):
    """Lifecycle of a stepper."""
    UNINITIALIZED = 0
    READY = 1


@dataclass(frozen=True)
class Pin:
    """A vertex held at a fixed position, re-applied after every frame."""
    vertex: int
    position: tuple[float, float, float]


class Stepper:
    """
    Local/global projective dynamics integrator for a grid cloth.
    """

    def __init__(
        self,
        topology: GridTopology,
        config: SimulationConfig,
    ) -> None:
        """
        Create an uninitialized stepper.

        Args:
            topology: Grid of the cloth; constraints are generated on initialize().
            config: Simulation parameters.
        """
        self.topology = topology
        self.config = config

        self.stage: Stage = Stage.UNINITIALIZED
        self.model: Optional[ClothModel] = None
        self.cg: Optional[ConjugateGradient] = None

        self._pins: list[Pin] = []
        self._jd: npt.NDArray[np.float64] = np.empty(0, dtype=np.float64)

        self.frame: int = 0
        self.last_solve: Optional[CGResult] = None
        self.degenerate_constraints: int = 0

    @classmethod
    def from_config(cls, config: SimulationConfig) -> Stepper:
        """Build the grid described by `config` and return a READY stepper."""
        stepper = cls(topology=GridTopology(nside=config.nside, size=config.size), config=config)
        stepper.initialize()
        return stepper

    def initialize(self) -> None:
        """
        Generate the constraints, assemble the system and bind the solver.
        """
        if self.stage is Stage.READY:
            raise ClothError("Stepper is already initialized.")

        self.topology.generate_constraints()
        self.model = SystemBuilder(topology=self.topology, config=self.config).build()
        self.cg = ConjugateGradient(self.model.y_global)
        self._jd = np.zeros(self.model.number_of_equations, dtype=np.float64)

        self.stage = Stage.READY
        logger.info(f"Stepper ready: {self.topology}, {self.config.n_iter} iterations per frame.")

    def _require_ready(self, action: str) -> ClothModel:
        if self.stage is not Stage.READY or self.model is None:
            raise UninitializedError(f"Cannot {action}: stepper is not initialized.")
        return self.model

    @property
    def pins(self) -> tuple[Pin, ...]:
        return tuple(self._pins)

    @property
    def positions(self) -> npt.NDArray[np.float64]:
        """Current vertex positions, a (V, 3) view."""
        return self._require_ready("read positions").positions

    def index(self, row: int, col: int) -> int:
        return self.topology.index(row, col)

    def add_fixed(self, row: int, col: int) -> Pin:
        """
        Pin a grid vertex at its current simulated position.

        Args:
            row: Grid row.
            col: Grid column.

        Returns:
            The registered pin.
        """
        model = self._require_ready("add a fixed vertex")
        vertex = self.index(row, col)
        x, y, z = model.x[3 * vertex:3 * vertex + 3]
        pin = Pin(vertex=vertex, position=(float(x), float(y), float(z)))
        self._pins.append(pin)
        logger.debug(f"Pinned vertex {vertex} at {pin.position}.")
        return pin

    def pin_corners(self) -> None:
        """Pin the two corners of the first row, (0, 0) and (0, N-1)."""
        self.add_fixed(0, 0)
        self.add_fixed(0, self.topology.nside - 1)

    def local_step(self) -> None:
        """Project every constraint onto its rest length into d."""
        model = self._require_ready("run the local step")
        self.degenerate_constraints = project_constraints(
            model.x, model.starts, model.ends, model.rest_lengths, model.rest_directions, model.d
        )
        if self.degenerate_constraints:
            logger.debug(f"{self.degenerate_constraints} degenerate constraints used their rest direction.")

    def global_step(self) -> CGResult:
        """Build b = dt^2 J d + dt^2 f_external + y and solve Y x = b into x."""
        model = self._require_ready("run the global step")
        cfg = self.config

        self._jd[:] = model.j_global @ model.d
        combine_rhs(self._jd, model.f_external, model.y, cfg.dt2, model.b)

        self.last_solve = self.cg.solve(
            model.b,
            x=model.x,
            tolerance=cfg.tolerance,
            max_iterations=cfg.max_iterations,
        )
        return self.last_solve

    def apply_pins(self) -> None:
        """Overwrite the DOFs of every pinned vertex with its captured position."""
        model = self._require_ready("apply pins")
        for pin in self._pins:
            model.x[3 * pin.vertex:3 * pin.vertex + 3] = pin.position

    def step(self) -> None:
        """
        Advance the simulation by one frame.

        If the global solve breaks down, x and x_prev are rolled back to their
        values before the call and the NumericalBreakdownError propagates.
        """
        model = self._require_ready("step")

        # Pre-frame state, restored if a solve breaks down mid-frame
        x_saved = model.x.copy()
        x_prev_saved = model.x_prev.copy()

        predict_inertia(model.x, model.x_prev, model.y, self.config.preservation)

        try:
            for _ in range(self.config.n_iter):
                self.local_step()
                self.global_step()
        except NumericalBreakdownError:
            model.x[:] = x_saved
            model.x_prev[:] = x_prev_saved
            logger.error(f"Frame {self.frame + 1} aborted, positions restored to frame {self.frame}.")
            raise

        self.apply_pins()
        self.frame += 1

        logger.debug(
            f"Frame: {self.frame} - CG iterations: {self.last_solve.iterations} "
            f"- Residual Norm: {self.last_solve.residual_norm:.3e}"
        )
