import numpy as np
import pytest
import scipy as sp

from clothpd.exceptions import DimensionMismatchError, NumericalBreakdownError
from clothpd.solvers.cg import ConjugateGradient
from clothpd.solvers.kernels import inner, norm


def random_spd(n: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    q = rng.standard_normal((n, n))
    return q @ q.T + n * np.eye(n)


def test_diagonal_system():
    cg = ConjugateGradient(sp.sparse.diags([1.0, 2.0, 3.0]))
    result = cg.solve(np.array([1.0, 2.0, 3.0]))

    assert result.converged
    assert result.iterations <= 3
    np.testing.assert_allclose(result.x, [1.0, 1.0, 1.0], atol=1e-6)


def test_identity_converges_in_one_iteration():
    rng = np.random.default_rng(3)
    b = rng.standard_normal(8)
    result = ConjugateGradient(sp.sparse.identity(8, format="csr")).solve(b)

    assert result.iterations == 1
    np.testing.assert_allclose(result.x, b, atol=1e-12)


def test_random_spd_residual_below_tolerance():
    n = 30
    a = random_spd(n)
    b = np.random.default_rng(1).standard_normal(n)

    result = ConjugateGradient(sp.sparse.csr_matrix(a)).solve(b, tolerance=1e-8)

    assert result.converged
    assert result.iterations <= n
    assert np.linalg.norm(a @ result.x - b) < 1e-6


def test_dense_matrix_accepted():
    a = random_spd(5, seed=2)
    b = np.ones(5)
    result = ConjugateGradient(a).solve(b)
    np.testing.assert_allclose(a @ result.x, b, atol=1e-5)


def test_solves_in_place_from_zero():
    cg = ConjugateGradient(sp.sparse.diags([2.0, 4.0]))
    x = np.array([100.0, -100.0])
    result = cg.solve(np.array([2.0, 4.0]), x=x)

    assert result.x is x
    np.testing.assert_allclose(x, [1.0, 1.0], atol=1e-6)


def test_solution_buffer_may_alias_rhs():
    cg = ConjugateGradient(sp.sparse.diags([1.0, 2.0, 3.0]))
    b = np.array([1.0, 2.0, 3.0])
    result = cg.solve(b, x=b)

    assert result.x is b
    assert result.converged
    assert result.iterations >= 1
    np.testing.assert_allclose(b, [1.0, 1.0, 1.0], atol=1e-6)


def test_rhs_read_at_call_time_and_not_modified():
    cg = ConjugateGradient(sp.sparse.diags([1.0, 2.0, 4.0]))
    b = np.array([1.0, 2.0, 4.0])
    first = cg.solve(b).x.copy()

    b *= 2.0
    snapshot = b.copy()
    second = cg.solve(b).x

    np.testing.assert_array_equal(b, snapshot)
    np.testing.assert_allclose(second, 2.0 * first, atol=1e-6)


def test_zero_rhs_returns_zero_without_iterating():
    result = ConjugateGradient(sp.sparse.diags([1.0, 2.0])).solve(np.zeros(2))
    assert result.iterations == 0
    assert result.converged
    np.testing.assert_array_equal(result.x, 0.0)


def test_non_square_matrix_rejected():
    with pytest.raises(DimensionMismatchError):
        ConjugateGradient(sp.sparse.csr_matrix((3, 4)))


def test_rhs_size_mismatch():
    cg = ConjugateGradient(sp.sparse.identity(3, format="csr"))
    with pytest.raises(DimensionMismatchError):
        cg.solve(np.ones(4))


def test_solution_size_mismatch():
    cg = ConjugateGradient(sp.sparse.identity(3, format="csr"))
    with pytest.raises(DimensionMismatchError):
        cg.solve(np.ones(3), x=np.zeros(2))


def test_indefinite_matrix_breaks_down():
    cg = ConjugateGradient(sp.sparse.diags([1.0, -1.0]))
    with pytest.raises(NumericalBreakdownError):
        cg.solve(np.array([0.0, 1.0]))


def test_iteration_cap_reports_non_convergence(caplog):
    cg = ConjugateGradient(sp.sparse.diags(np.arange(1.0, 11.0)))
    result = cg.solve(np.ones(10), max_iterations=1)

    assert not result.converged
    assert result.iterations == 1
    assert result.residual_norm > 1e-6
    assert "stopped after 1 iterations" in caplog.text


def test_inner_and_norm():
    q = np.array([3.0, 4.0])
    assert inner(q, np.array([1.0, 2.0])) == pytest.approx(11.0)
    assert norm(q) == pytest.approx(5.0)
