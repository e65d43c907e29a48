from __future__ import annotations

from dataclasses import dataclass
import logging
from math import isfinite
from typing import TYPE_CHECKING, Optional

import numpy as np
import scipy as sp

from clothpd.config import DEFAULT_TOLERANCE
from clothpd.exceptions import DimensionMismatchError, NumericalBreakdownError
from clothpd.solvers.kernels import axpby, inner, norm

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


@dataclass
class CGResult:
    """
    Outcome of one conjugate gradient solve.

    Attributes:
        x: Solution vector (the caller's buffer when one was passed in).
        iterations: Number of completed CG iterations.
        residual_norm: Norm of the last computed residual.
        converged: True when residual_norm dropped below the tolerance.
    """
    x: npt.NDArray[np.float64]
    iterations: int
    residual_norm: float
    converged: bool


class ConjugateGradient:
    """
    Preconditioner-free conjugate gradient for a fixed SPD matrix.

    The solver owns only the matrix; the right-hand side is passed to every
    solve() call, so the caller decides when its contents change.
    """

    def __init__(
        self,
        matrix: sp.sparse.spmatrix | npt.NDArray[np.float64],
    ) -> None:
        """
        Bind the solver to a square system matrix.

        Args:
            matrix: Symmetric positive definite matrix (sparse or dense).
        """
        rows, cols = matrix.shape
        if rows != cols:
            raise DimensionMismatchError(f"System matrix must be square, got {rows}x{cols}.")

        self.A = sp.sparse.csr_matrix(matrix, dtype=np.float64)
        self.n: int = rows

    def _check_size(self, name: str, vector: npt.NDArray[np.float64]) -> None:
        if vector.ndim != 1 or vector.size != self.n:
            raise DimensionMismatchError(
                f"{name} has shape {vector.shape}, system dimension is {self.n}."
            )

    def solve(
        self,
        b: npt.NDArray[np.float64],
        x: Optional[npt.NDArray[np.float64]] = None,
        tolerance: float = DEFAULT_TOLERANCE,
        max_iterations: Optional[int] = None,
    ) -> CGResult:
        """
        Solve A x = b starting from x = 0.

        Args:
            b: Right-hand side, length n. Read at call time; only modified
               when it is also passed as `x`.
            x: Optional output buffer of length n, zeroed and overwritten in
               place. A fresh vector is allocated when omitted.
            tolerance: Stop once the residual norm falls below this value.
            max_iterations: Iteration cap, None for no cap.

        Returns:
            CGResult with the solution and convergence information.
        """
        b = np.asarray(b, dtype=np.float64)
        self._check_size("Right-hand side", b)
        if x is not None:
            self._check_size("Solution vector", x)

        A = self.A

        # r = b - A x, with x = 0; taken before x is cleared since x may alias b
        r = b.copy()
        r_next = np.empty_like(r)
        p = r.copy()

        if x is None:
            x = np.zeros(self.n, dtype=np.float64)
        else:
            x.fill(0.0)

        r_sqr = inner(r, r)
        r_norm = norm(r)
        if r_norm < tolerance:
            return CGResult(x=x, iterations=0, residual_norm=r_norm, converged=True)

        iteration = 0
        while max_iterations is None or iteration < max_iterations:
            Ap = A @ p
            pt_a_p = inner(p, Ap)
            if not (isfinite(pt_a_p) and pt_a_p > 0.0):
                raise NumericalBreakdownError(
                    f"Conjugate gradient breakdown at iteration {iteration}: p·Ap = {pt_a_p}."
                )

            alpha = r_sqr / pt_a_p

            # x += alpha * p
            axpby(1.0, x, alpha, p, x)

            # r_next = r - alpha * A p
            axpby(1.0, r, -alpha, Ap, r_next)
            iteration += 1

            rnext_sqr = inner(r_next, r_next)
            rnext_norm = norm(r_next)
            if rnext_norm < tolerance:
                return CGResult(x=x, iterations=iteration, residual_norm=rnext_norm, converged=True)

            beta = rnext_sqr / r_sqr

            # p = beta * p + r_next
            axpby(beta, p, 1.0, r_next, p)

            r, r_next = r_next, r
            r_sqr = rnext_sqr

        residual_norm = norm(r)
        logger.warning(
            f"Conjugate gradient stopped after {iteration} iterations with residual {residual_norm:.3e} "
            f"(tolerance {tolerance:.1e})."
        )
        return CGResult(x=x, iterations=iteration, residual_norm=residual_norm, converged=False)
