# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Preconditioner interface consumed by the iterative solvers, plus the two
trivial preconditioners. The incomplete LU preconditioner lives in
:mod:`numkit.ilutp`.
"""

from typing import Optional, Protocol, runtime_checkable

import numpy as np

from .errors import InvalidArgumentError, MatrixNotInitializedError
from .sparse import as_sparse


@runtime_checkable
class Preconditioner(Protocol):
    """M approximates A; ``approximate`` applies M^-1."""

    def initialize(self, matrix) -> None:
        ...

    def approximate(self, rhs: np.ndarray, lhs: Optional[np.ndarray] = None) -> np.ndarray:
        ...


def _check_vectors(rhs, lhs, size: int) -> np.ndarray:
    if rhs is None:
        raise InvalidArgumentError("Value cannot be None", "rhs")
    rhs = np.asarray(rhs)
    if rhs.shape != (size,):
        raise InvalidArgumentError("All vectors must have the same dimensionality", "rhs")
    if lhs is not None and lhs.shape != rhs.shape:
        raise InvalidArgumentError("All vectors must have the same dimensionality", "lhs")
    return rhs


class UnitPreconditioner:
    """M = I: returns the right-hand side unchanged."""

    def __init__(self):
        self._size: Optional[int] = None

    def initialize(self, matrix) -> None:
        A = as_sparse(matrix)
        if not A.is_square:
            raise InvalidArgumentError("Matrix must be square", "matrix")
        self._size = A.row_count

    def approximate(self, rhs: np.ndarray, lhs: Optional[np.ndarray] = None) -> np.ndarray:
        if self._size is None:
            raise MatrixNotInitializedError()
        rhs = _check_vectors(rhs, lhs, self._size)
        if lhs is None:
            return rhs.copy()
        lhs[:] = rhs
        return lhs


class DiagonalPreconditioner:
    """Jacobi preconditioner, M = diag(A)."""

    def __init__(self):
        self._inverse_diagonal: Optional[np.ndarray] = None

    def diagonal_entries(self) -> np.ndarray:
        if self._inverse_diagonal is None:
            raise MatrixNotInitializedError()
        return 1.0 / self._inverse_diagonal

    def initialize(self, matrix) -> None:
        A = as_sparse(matrix)
        if not A.is_square:
            raise InvalidArgumentError("Matrix must be square", "matrix")
        diagonal = np.array([A[i, i] for i in range(A.row_count)], dtype=A.dtype)
        if np.any(diagonal == 0):
            raise InvalidArgumentError("Matrix has a zero on its diagonal", "matrix")
        self._inverse_diagonal = 1.0 / diagonal

    def approximate(self, rhs: np.ndarray, lhs: Optional[np.ndarray] = None) -> np.ndarray:
        if self._inverse_diagonal is None:
            raise MatrixNotInitializedError()
        rhs = _check_vectors(rhs, lhs, len(self._inverse_diagonal))
        result = rhs * self._inverse_diagonal
        if lhs is None:
            return result
        lhs[:] = result
        return lhs
