"""
Cloth Simulation Exceptions
===========================
Structured exception hierarchy for the simulation core.

All package errors inherit from ClothError so callers can catch them
generically and decide whether to abort or recover.
"""


class ClothError(RuntimeError):
    """Base exception for all cloth simulation errors."""


class ConfigurationError(ClothError, ValueError):
    """Invalid simulation parameters.

    Raised when:
    - Grid resolution, size, mass, stiffness or time step are out of range
    - The damping factor lies outside [0, 1]
    """


class DimensionMismatchError(ClothError, ValueError):
    """Two structures that must share a size do not (matrix vs. vector, vector vs. vector)."""


class TopologyError(ClothError):
    """The system was assembled from a topology whose constraints were never generated."""


class UninitializedError(ClothError):
    """The stepper was used before its system matrices and vectors were built."""


class NumericalBreakdownError(ClothError, ArithmeticError):
    """Conjugate gradient hit a non-positive or non-finite curvature term p·Ap.

    Raised when:
    - The system matrix is not positive definite
    - Round-off drives the search direction to zero before convergence
    """
