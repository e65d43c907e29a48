"""
Simulation Configuration
========================
Central registry for the simulation constants.

Grid resolution, cloth size, stiffness and iteration count describe the
cloth; time step, gravity and damping describe the integrator. All of them
are fixed before the first frame and travel together in one immutable
SimulationConfig that is handed explicitly to the builder and the stepper.

Exports:
    SimulationConfig: Frozen parameter set with validation.
    DEFAULT_DT, DEFAULT_GRAVITY, DEFAULT_PRESERVATION, DEFAULT_TOLERANCE
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from clothpd.exceptions import ConfigurationError


# Global Constants
DEFAULT_DT: float = 1.0 / 60.0
DEFAULT_GRAVITY: float = -9.8
DEFAULT_PRESERVATION: float = 0.02
DEFAULT_TOLERANCE: float = 1e-6

# Index of the vertical axis inside a vertex's (x, y, z) block
VERTICAL_AXIS: int = 1


@dataclass(frozen=True)
class SimulationConfig:
    """
    Parameters of one cloth simulation.

    Args:
        nside: Number of vertices along each side of the square patch.
        size: Physical side length of the patch.
        stiffness: Edge stiffness k shared by every constraint.
        n_iter: Local/global iterations per frame.
        mass: Uniform per-vertex mass.
        dt: Time step.
        gravity: External force per vertex on the vertical axis.
        preservation: Damping factor p of the inertial prediction
                      y = (2 - p) x - (1 - p) x_prev. 0 keeps full momentum,
                      1 discards it.
        tolerance: Conjugate gradient residual tolerance.
        max_iterations: Conjugate gradient iteration cap (None = unbounded).
    """
    nside: int = 20
    size: float = 1.0
    stiffness: float = 1000.0
    n_iter: int = 10
    mass: float = 1.0
    dt: float = DEFAULT_DT
    gravity: float = DEFAULT_GRAVITY
    preservation: float = DEFAULT_PRESERVATION
    tolerance: float = DEFAULT_TOLERANCE
    max_iterations: Optional[int] = None

    def __post_init__(self) -> None:
        if self.nside < 2:
            raise ConfigurationError(f"nside must be at least 2, got {self.nside}.")
        for name in ("size", "stiffness", "mass", "dt", "tolerance"):
            value = getattr(self, name)
            if not value > 0.0:
                raise ConfigurationError(f"{name} must be positive, got {value}.")
        if self.n_iter < 1:
            raise ConfigurationError(f"n_iter must be at least 1, got {self.n_iter}.")
        if not 0.0 <= self.preservation <= 1.0:
            raise ConfigurationError(f"preservation must lie in [0, 1], got {self.preservation}.")
        if self.max_iterations is not None and self.max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be at least 1, got {self.max_iterations}.")

    @property
    def dt2(self) -> float:
        """Squared time step."""
        return self.dt * self.dt
