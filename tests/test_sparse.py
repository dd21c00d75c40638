# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest
import scipy.sparse as sp

from numkit.errors import ArgumentOutOfRangeError, InvalidArgumentError
from numkit.sparse import SparseMatrix, as_sparse


def _sample():
    return np.array([[1.0, 0.0, 2.0], [0.0, 0.0, 3.0], [4.0, 5.0, 0.0]])


def test_dense_round_trip():
    A = _sample()
    M = SparseMatrix.from_dense(A)
    assert M.shape == (3, 3)
    assert M.non_zeros_count == 5
    np.testing.assert_array_equal(M.to_dense(), A)


def test_scipy_round_trip():
    rng = np.random.default_rng(1)
    D = rng.normal(size=(20, 15))
    D[rng.uniform(size=D.shape) > 0.2] = 0.0
    A = sp.coo_matrix(D)
    M = SparseMatrix.from_scipy(A)
    assert M.shape == (20, 15)
    np.testing.assert_allclose(M.to_scipy().toarray(), A.toarray())


def test_from_triplets_sums_duplicates():
    M = SparseMatrix.from_triplets(2, 2, [(0, 0, 1.0), (0, 0, 2.0), (1, 0, -1.0)])
    np.testing.assert_array_equal(M.to_dense(), [[3.0, 0.0], [-1.0, 0.0]])


def test_setting_zero_removes_entry():
    M = SparseMatrix.from_dense(_sample())
    M[0, 0] = 0
    assert M.non_zeros_count == 4
    assert 0 not in M.row_items(0)


def test_complex_assignment_upgrades_dtype():
    M = SparseMatrix(2)
    M[0, 1] = 1 + 2j
    assert M.dtype == np.complex128
    assert M[0, 1] == 1 + 2j


def test_row_and_set_row():
    M = SparseMatrix.from_dense(_sample())
    work = np.full(3, 9.0)
    M.row(2, out=work)
    np.testing.assert_array_equal(work, [4.0, 5.0, 0.0])

    M.set_row(1, np.array([7.0, 0.0, 8.0]), columns=[2])
    assert M.row_items(1) == {2: 8.0}


def test_swap_columns():
    M = SparseMatrix.from_dense(_sample())
    M.swap_columns(0, 2)
    np.testing.assert_array_equal(M.to_dense(), _sample()[:, [2, 1, 0]])


def test_multiply_matches_dense():
    A = _sample()
    M = SparseMatrix.from_dense(A)
    x = np.array([1.0, -2.0, 0.5])
    np.testing.assert_allclose(M.multiply(x), A @ x)
    np.testing.assert_allclose(M @ x, A @ x)
    np.testing.assert_allclose((M @ M).to_dense(), A @ A)


def test_triangles():
    M = SparseMatrix.from_dense(_sample())
    np.testing.assert_array_equal(M.lower_triangle().to_dense(), np.tril(_sample()))
    np.testing.assert_array_equal(M.upper_triangle().to_dense(), np.triu(_sample()))


def test_copy_is_independent():
    M = SparseMatrix.identity(3)
    C = M.copy()
    C[0, 0] = 5.0
    assert M[0, 0] == 1.0


def test_errors():
    with pytest.raises(ArgumentOutOfRangeError):
        SparseMatrix(-1)
    with pytest.raises(IndexError):
        SparseMatrix(2)[2, 0]
    with pytest.raises(InvalidArgumentError):
        SparseMatrix(2).multiply(np.ones(3))
    with pytest.raises(InvalidArgumentError):
        as_sparse(None)
    with pytest.raises(InvalidArgumentError):
        SparseMatrix.from_dense(np.ones(3))


def test_as_sparse_passthrough():
    M = SparseMatrix.identity(2)
    assert as_sparse(M) is M
    assert isinstance(as_sparse(np.eye(2)), SparseMatrix)
    assert isinstance(as_sparse(sp.eye(2)), SparseMatrix)
