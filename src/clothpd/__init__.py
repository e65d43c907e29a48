"""
Projective dynamics cloth simulation.

The core builds an N x N cloth grid, assembles its sparse SPD system once and
advances it frame by frame with local edge projections and a global
conjugate gradient solve. It has no knowledge of rendering or user input.
"""
from clothpd.config import SimulationConfig
from clothpd.exceptions import (
    ClothError,
    ConfigurationError,
    DimensionMismatchError,
    NumericalBreakdownError,
    TopologyError,
    UninitializedError,
)
from clothpd.pre.topology import Constraint, GridTopology
from clothpd.analysis.assembly import SystemBuilder
from clothpd.analysis.model import ClothModel
from clothpd.solvers.cg import CGResult, ConjugateGradient
from clothpd.solvers.stepper import Pin, Stage, Stepper

__all__ = [
    "CGResult",
    "ClothError",
    "ClothModel",
    "ConfigurationError",
    "ConjugateGradient",
    "Constraint",
    "DimensionMismatchError",
    "GridTopology",
    "NumericalBreakdownError",
    "Pin",
    "SimulationConfig",
    "Stage",
    "Stepper",
    "SystemBuilder",
    "TopologyError",
    "UninitializedError",
]
