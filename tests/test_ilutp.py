# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import warnings

import numpy as np
import pytest
import scipy.sparse as sp

from numkit.errors import ArgumentOutOfRangeError, InvalidArgumentError, MatrixNotInitializedError
from numkit.ilutp import Ilutp
from numkit.sparse import SparseMatrix
from numkit.utils import is_permutation, random_diagonally_dominant

A3 = np.array([[-1.0, 5.0, 6.0], [3.0, -6.0, 1.0], [6.0, 8.0, 9.0]])


def _permutation_matrix(pivots):
    n = len(pivots)
    P = np.zeros((n, n))
    P[np.arange(n), pivots] = 1.0
    return P


def _reverse_unit(n):
    M = SparseMatrix(n)
    for i in range(n):
        M[i, n - 1 - i] = 2.0
    return M


def test_complete_fill_without_pivoting_reproduces_matrix():
    ilu = Ilutp(fill_level=10, drop_tolerance=0.0, pivot_tolerance=0.0)
    ilu.initialize(SparseMatrix.from_dense(A3))
    L = ilu.lower_triangle().to_dense()
    U = ilu.upper_triangle().to_dense()

    assert np.allclose(np.triu(L, 1), 0)
    assert np.allclose(np.tril(U, -1), 0)
    assert np.allclose(np.diag(L), 1)
    np.testing.assert_allclose(L @ U, A3, atol=1e-12)
    np.testing.assert_array_equal(ilu.pivots(), np.arange(3))


def test_complete_fill_with_pivoting_reproduces_matrix():
    ilu = Ilutp(fill_level=10, drop_tolerance=0.0, pivot_tolerance=1.0)
    ilu.initialize(A3)
    L = ilu.lower_triangle().to_dense()
    U = ilu.upper_triangle().to_dense()
    pivots = ilu.pivots()

    assert is_permutation(pivots)
    assert not np.array_equal(pivots, np.arange(3))
    assert np.allclose(np.tril(U, -1), 0)
    np.testing.assert_allclose(L @ U @ _permutation_matrix(pivots), A3, atol=1e-12)


@pytest.mark.parametrize("pivot_tolerance", [0.0, 1.0])
def test_identity_returns_rhs(pivot_tolerance):
    n = 10
    ilu = Ilutp(fill_level=100, drop_tolerance=0.0, pivot_tolerance=pivot_tolerance)
    ilu.initialize(SparseMatrix.identity(n))
    b = np.arange(1.0, n + 1)
    x = np.zeros(n)
    out = ilu.approximate(b, x)
    assert out is x
    np.testing.assert_allclose(x, b)


def test_reverse_unit_matrix_with_pivoting():
    n = 10
    A = _reverse_unit(n)
    ilu = Ilutp(fill_level=10, drop_tolerance=0.0, pivot_tolerance=1.0)
    ilu.initialize(A)
    b = np.arange(1.0, n + 1)
    x = ilu.approximate(b)
    np.testing.assert_allclose(A.multiply(x), b, atol=1e-12)
    assert is_permutation(ilu.pivots())


def test_zero_pivot_tolerance_never_pivots():
    rng = np.random.default_rng(3)
    A = rng.normal(size=(12, 12))
    ilu = Ilutp(fill_level=50, drop_tolerance=0.0, pivot_tolerance=0.0)
    ilu.initialize(A)
    np.testing.assert_array_equal(ilu.pivots(), np.arange(12))


def test_second_to_last_row_can_pivot():
    ilu = Ilutp(fill_level=10, drop_tolerance=0.0, pivot_tolerance=1.0)
    ilu.initialize(np.array([[0.0, 1.0], [1.0, 0.0]]))
    np.testing.assert_array_equal(ilu.pivots(), [1, 0])
    np.testing.assert_allclose(ilu.upper_triangle().to_dense(), np.eye(2))
    np.testing.assert_allclose(ilu.approximate(np.array([1.0, 2.0])), [2.0, 1.0])


def test_zero_pivot_propagates_non_finite_values():
    ilu = Ilutp()
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        ilu.initialize(np.array([[0.0, 1.0], [1.0, 0.0]]))
        x = ilu.approximate(np.array([1.0, 2.0]))
    assert ilu.upper_triangle()[0, 0] == 0
    assert not np.all(np.isfinite(x))


@pytest.mark.parametrize("fill_level, upper_nnz", [(1.0, 4), (1.5, 6)])
def test_fill_budget_scales_with_fractional_fill_level(fill_level, upper_nnz):
    # Budget is int(fill_level * nnz(A)): 9 entries at 1.0, 13 at 1.5
    ilu = Ilutp(fill_level=fill_level, drop_tolerance=0.0, pivot_tolerance=0.0)
    ilu.initialize(A3)
    assert ilu.upper_triangle().non_zeros_count == upper_nnz
    assert ilu.lower_triangle().non_zeros_count == 5


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_random_pivoting_reproduces_matrix_with_complete_fill(seed):
    rng = np.random.default_rng(seed)
    A = rng.normal(size=(8, 8))
    ilu = Ilutp(fill_level=100, drop_tolerance=0.0, pivot_tolerance=0.5)
    ilu.initialize(A)
    L = ilu.lower_triangle().to_dense()
    U = ilu.upper_triangle().to_dense()
    pivots = ilu.pivots()
    assert is_permutation(pivots)
    np.testing.assert_allclose(L @ U @ _permutation_matrix(pivots), A, atol=1e-10)

    b = rng.normal(size=8)
    np.testing.assert_allclose(A @ ilu.approximate(b), b, atol=1e-8)


def test_diagonally_dominant_solve_is_accurate():
    A = random_diagonally_dominant(60, density=0.2, seed=5)
    ilu = Ilutp(fill_level=200, drop_tolerance=0.0)
    ilu.initialize(sp.csr_matrix(A))
    b = np.random.default_rng(0).normal(size=60)
    x = ilu.approximate(b)
    np.testing.assert_allclose(A @ x, b, atol=1e-10)


def test_dropping_limits_fill():
    A = random_diagonally_dominant(80, density=0.3, seed=8)
    nnz = int(np.count_nonzero(A))
    ilu = Ilutp(fill_level=1.0, drop_tolerance=1e-2)
    ilu.initialize(A)
    total = ilu.lower_triangle().non_zeros_count + ilu.upper_triangle().non_zeros_count
    # Unit diagonal of L is stored on top of the budget
    assert total <= nnz + 80
    b = np.ones(80)
    x = ilu.approximate(b)
    # An incomplete factorization still approximates A^-1 reasonably here
    assert np.linalg.norm(A @ x - b) < np.linalg.norm(b)


def test_complex_matrix():
    rng = np.random.default_rng(4)
    A = random_diagonally_dominant(20, density=0.3, seed=4, dtype=np.complex128)
    ilu = Ilutp(fill_level=100, drop_tolerance=0.0, pivot_tolerance=0.5)
    ilu.initialize(A)
    b = rng.normal(size=20) + 1j * rng.normal(size=20)
    np.testing.assert_allclose(A @ ilu.approximate(b), b, atol=1e-10)


def test_factors_are_copies():
    ilu = Ilutp(fill_level=10, drop_tolerance=0.0)
    ilu.initialize(A3)
    U = ilu.upper_triangle()
    U[0, 0] = 1234.0
    assert ilu.upper_triangle()[0, 0] == -1.0
    p = ilu.pivots()
    p[0] = 2
    assert ilu.pivots()[0] == 0


def test_use_before_initialize():
    ilu = Ilutp()
    with pytest.raises(MatrixNotInitializedError):
        ilu.approximate(np.ones(3))
    with pytest.raises(MatrixNotInitializedError):
        ilu.upper_triangle()
    with pytest.raises(MatrixNotInitializedError):
        ilu.pivots()


def test_argument_errors():
    with pytest.raises(ArgumentOutOfRangeError):
        Ilutp(fill_level=-1)
    with pytest.raises(ArgumentOutOfRangeError):
        Ilutp(drop_tolerance=-1e-3)
    with pytest.raises(ArgumentOutOfRangeError):
        Ilutp(pivot_tolerance=-0.5)

    ilu = Ilutp()
    with pytest.raises(InvalidArgumentError):
        ilu.initialize(None)
    with pytest.raises(InvalidArgumentError):
        ilu.initialize(np.ones((2, 3)))

    ilu.initialize(A3)
    with pytest.raises(InvalidArgumentError):
        ilu.approximate(None)
    with pytest.raises(InvalidArgumentError):
        ilu.approximate(np.ones(4))
    with pytest.raises(InvalidArgumentError):
        ilu.approximate(np.ones(3), np.zeros(2))
