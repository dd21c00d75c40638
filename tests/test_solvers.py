# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest
import scipy.sparse as sp

from numkit.errors import InvalidArgumentError
from numkit.ilutp import Ilutp
from numkit.preconditioners import DiagonalPreconditioner, Preconditioner, UnitPreconditioner
from numkit.solvers import BiCgStab
from numkit.sparse import SparseMatrix
from numkit.stop_criteria import (
    DivergenceStopCriterion,
    FailureStopCriterion,
    IterationCountStopCriterion,
    IterationMonitor,
    IterationStatus,
    ResidualStopCriterion,
)
from numkit.utils import random_diagonally_dominant


def _monitor(max_iterations=500):
    return IterationMonitor(
        [
            IterationCountStopCriterion(max_iterations),
            ResidualStopCriterion(1e-10),
            DivergenceStopCriterion(),
            FailureStopCriterion(),
        ]
    )


@pytest.mark.parametrize(
    "make_preconditioner",
    [UnitPreconditioner, DiagonalPreconditioner, lambda: Ilutp(fill_level=10, drop_tolerance=1e-4)],
)
def test_bicgstab_solves_diagonally_dominant_system(make_preconditioner):
    n = 100
    A = random_diagonally_dominant(n, density=0.05, seed=12)
    b = np.random.default_rng(1).normal(size=n)

    preconditioner = make_preconditioner()
    assert isinstance(preconditioner, Preconditioner)
    solver = BiCgStab(preconditioner, _monitor())
    x = solver.solve(sp.csr_matrix(A), b)

    assert solver.iteration_result is IterationStatus.CONVERGED
    np.testing.assert_allclose(x, np.linalg.solve(A, b), atol=1e-8)


def test_bicgstab_complex_system():
    n = 40
    A = random_diagonally_dominant(n, density=0.1, seed=3, dtype=np.complex128)
    rng = np.random.default_rng(2)
    b = rng.normal(size=n) + 1j * rng.normal(size=n)
    solver = BiCgStab(Ilutp(fill_level=5, drop_tolerance=1e-3), _monitor())
    x = solver.solve(SparseMatrix.from_dense(A), b)
    assert solver.iteration_result is IterationStatus.CONVERGED
    np.testing.assert_allclose(A @ x, b, atol=1e-8)


def test_bicgstab_writes_into_result():
    A = random_diagonally_dominant(20, density=0.2, seed=0)
    b = np.ones(20)
    result = np.zeros(20)
    out = BiCgStab(DiagonalPreconditioner(), _monitor()).solve(A, b, result)
    assert out is result
    np.testing.assert_allclose(A @ result, b, atol=1e-8)


def test_zero_rhs_converges_immediately():
    A = random_diagonally_dominant(10, seed=0)
    solver = BiCgStab()
    x = solver.solve(A, np.zeros(10))
    assert solver.iteration_result is IterationStatus.CONVERGED
    assert np.all(x == 0)


def test_iteration_limit_stops_without_convergence():
    A = random_diagonally_dominant(50, density=0.3, seed=4)
    b = np.ones(50)
    solver = BiCgStab(UnitPreconditioner(), IterationMonitor([IterationCountStopCriterion(1), ResidualStopCriterion(1e-14)]))
    solver.solve(A, b)
    assert solver.iteration_result is IterationStatus.STOPPED_WITHOUT_CONVERGENCE


def test_argument_errors():
    solver = BiCgStab()
    with pytest.raises(InvalidArgumentError):
        solver.solve(np.ones((2, 3)), np.ones(2))
    with pytest.raises(InvalidArgumentError):
        solver.solve(np.eye(3), np.ones(2))
    with pytest.raises(InvalidArgumentError):
        solver.solve(np.eye(3), None)
    with pytest.raises(InvalidArgumentError):
        solver.solve(np.eye(3), np.ones(3), np.zeros(4))


def test_diagonal_preconditioner_rejects_zero_diagonal():
    with pytest.raises(InvalidArgumentError):
        DiagonalPreconditioner().initialize(np.array([[0.0, 1.0], [1.0, 0.0]]))


def test_zero_pivot_in_ilutp_ends_with_terminal_status():
    A = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 2.0]])
    solver = BiCgStab(Ilutp())
    x = solver.solve(A, np.ones(3))
    assert solver.iteration_result in (IterationStatus.FAILURE, IterationStatus.DIVERGED)
    assert not np.all(np.isfinite(x))
