# kernels.py
from __future__ import annotations

import numpy as np
import numpy.typing as npt
import numba as nb

# Edges shorter than this have no usable direction
DEGENERATE_EPS: float = 1e-12


def inner(q: npt.NDArray[np.float64], w: npt.NDArray[np.float64]) -> float:
    """
    Inner product q·w.

    Every dot product and norm of the solver goes through this one sequential
    reduction so repeated runs on the same vector size agree bit for bit.
    """
    return float(np.dot(q, w))


def norm(q: npt.NDArray[np.float64]) -> float:
    """Euclidean norm built on inner()."""
    return float(np.sqrt(inner(q, q)))

# ---- JIT’d data-parallel kernels (one element per iteration, no shared writes) ----

@nb.njit(cache=True, fastmath=True, parallel=True)
def axpby(
    alpha: float,
    q: npt.NDArray[np.float64],
    beta: float,
    w: npt.NDArray[np.float64],
    out: npt.NDArray[np.float64],
) -> None:
    """out = alpha * q + beta * w. `out` may alias q or w."""
    for i in nb.prange(q.size):
        out[i] = alpha * q[i] + beta * w[i]


@nb.njit(cache=True, fastmath=True, parallel=True)
def predict_inertia(
    x: npt.NDArray[np.float64],
    x_prev: npt.NDArray[np.float64],
    y: npt.NDArray[np.float64],
    preservation: float,
) -> None:
    """
    Inertial prediction y = (2 - p) x - (1 - p) x_prev, then x_prev = x.

    Args:
        x: Current positions, shape (3V,).
        x_prev: Previous positions, overwritten with x.
        y: Output prediction, shape (3V,).
        preservation: Damping factor p.
    """
    for i in nb.prange(x.size):
        y[i] = (2.0 - preservation) * x[i] - (1.0 - preservation) * x_prev[i]
        x_prev[i] = x[i]


@nb.njit(cache=True, fastmath=True, parallel=True)
def project_constraints(
    x: npt.NDArray[np.float64],
    starts: npt.NDArray[np.int64],
    ends: npt.NDArray[np.int64],
    rest_lengths: npt.NDArray[np.float64],
    rest_directions: npt.NDArray[np.float64],
    d: npt.NDArray[np.float64],
) -> int:
    """
    Local step: project every edge onto its rest length.

    d[3i:3i+3] = normalize(x[end] - x[start]) * rest_length. An edge whose
    endpoints coincide falls back to its rest direction.

    Args:
        x: Positions, shape (3V,).
        starts: (C,) start vertex per constraint.
        ends: (C,) end vertex per constraint.
        rest_lengths: (C,) rest lengths.
        rest_directions: (3C,) unit directions of the rest state.
        d: Output projections, shape (3C,).

    Returns:
        Number of degenerate edges that used the fallback direction.
    """
    degenerate = 0
    for i in nb.prange(starts.size):
        s = 3 * starts[i]
        e = 3 * ends[i]
        d0 = x[e] - x[s]
        d1 = x[e + 1] - x[s + 1]
        d2 = x[e + 2] - x[s + 2]
        length = np.sqrt(d0 * d0 + d1 * d1 + d2 * d2)
        if length > DEGENERATE_EPS:
            scale = rest_lengths[i] / length
            d[3 * i] = d0 * scale
            d[3 * i + 1] = d1 * scale
            d[3 * i + 2] = d2 * scale
        else:
            d[3 * i] = rest_directions[3 * i] * rest_lengths[i]
            d[3 * i + 1] = rest_directions[3 * i + 1] * rest_lengths[i]
            d[3 * i + 2] = rest_directions[3 * i + 2] * rest_lengths[i]
            degenerate += 1
    return degenerate


@nb.njit(cache=True, fastmath=True, parallel=True)
def combine_rhs(
    jd: npt.NDArray[np.float64],
    f_external: npt.NDArray[np.float64],
    y: npt.NDArray[np.float64],
    dt2: float,
    b: npt.NDArray[np.float64],
) -> None:
    """b = dt^2 (J d) + dt^2 f_external + y, with J d precomputed in jd."""
    for i in nb.prange(b.size):
        b[i] = dt2 * jd[i] + f_external[i] * dt2 + y[i]
