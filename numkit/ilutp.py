# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Incomplete LU factorization with threshold and partial pivoting (ILUTP).

The factorization proceeds row by row (IKJ ordering). For row i:

    w = A[i, :] (columns permuted by the pivots found so far)
    for j < i with w[j] != 0:
        w[j] /= U[j, j]
        drop w[j] if |w[j]| < drop_tolerance
        otherwise w[j+1:] -= w[j] * U[j, j+1:]
    drop w[j], j >= i, if |w[j]| <= drop_tolerance * ||A[i, :]||_inf
    space_row = space_left // (n - i + 1)
    L[i, :i]   <- largest space_row // 2 entries of w[:i]
    U[i, i+1:] <- largest (space_row - nnz(L[i]) - 1) entries of w[i+1:]
    U[i, i]    <- w[i]
    pivot: if |w[i]| < pivot_tolerance * max|w[i+1:]|, swap the two
           columns of U and record the swap
    space_left -= nnz(L[i]) + nnz(U[i])

The total budget is ``fill_level * nnz(A)``. It is handed out greedily and
a row that needs less than its share does not give the rest back.
"""

import logging
from typing import Optional

import numpy as np
from scipy.sparse.linalg import spsolve_triangular

from .element_sorter import largest_nonzero
from .errors import ArgumentOutOfRangeError, InvalidArgumentError, MatrixNotInitializedError
from .sparse import SparseMatrix, as_sparse
from .utils import infinity_norm

logger = logging.getLogger(__name__)


class Ilutp:
    """
    ILUTP preconditioner.

    Parameters
    ----------
    fill_level : float
        Multiple of nnz(A) giving the total number of entries L and U may hold.
    drop_tolerance : float
        Magnitude below which multipliers and fill-in are discarded.
    pivot_tolerance : float
        Pivot when |U[i, i]| < pivot_tolerance * (largest candidate).
        Zero disables pivoting.
    """

    DEFAULT_FILL_LEVEL = 200.0
    DEFAULT_DROP_TOLERANCE = 0.0001
    DEFAULT_PIVOT_TOLERANCE = 0.0

    def __init__(
        self,
        fill_level: float = DEFAULT_FILL_LEVEL,
        drop_tolerance: float = DEFAULT_DROP_TOLERANCE,
        pivot_tolerance: float = DEFAULT_PIVOT_TOLERANCE,
    ):
        self.fill_level = fill_level
        self.drop_tolerance = drop_tolerance
        self.pivot_tolerance = pivot_tolerance

        self._upper: Optional[SparseMatrix] = None
        self._lower: Optional[SparseMatrix] = None
        self._pivots: Optional[np.ndarray] = None
        self._upper_csr = None
        self._lower_csr = None
        self._singular = False

    # -----------------------------------------------------------------
    # Settings
    # -----------------------------------------------------------------
    @property
    def fill_level(self) -> float:
        return self._fill_level

    @fill_level.setter
    def fill_level(self, value: float) -> None:
        if value < 0:
            raise ArgumentOutOfRangeError("fill_level")
        self._fill_level = float(value)

    @property
    def drop_tolerance(self) -> float:
        return self._drop_tolerance

    @drop_tolerance.setter
    def drop_tolerance(self, value: float) -> None:
        if value < 0:
            raise ArgumentOutOfRangeError("drop_tolerance")
        self._drop_tolerance = float(value)

    @property
    def pivot_tolerance(self) -> float:
        return self._pivot_tolerance

    @pivot_tolerance.setter
    def pivot_tolerance(self, value: float) -> None:
        if value < 0:
            raise ArgumentOutOfRangeError("pivot_tolerance")
        self._pivot_tolerance = float(value)

    # -----------------------------------------------------------------
    # Inspection (copies)
    # -----------------------------------------------------------------
    def _require_factors(self) -> None:
        if self._upper is None:
            raise MatrixNotInitializedError()

    def upper_triangle(self) -> SparseMatrix:
        self._require_factors()
        return self._upper.copy()

    def lower_triangle(self) -> SparseMatrix:
        self._require_factors()
        return self._lower.copy()

    def pivots(self) -> np.ndarray:
        self._require_factors()
        return self._pivots.copy()

    # -----------------------------------------------------------------
    # Factorization
    # -----------------------------------------------------------------
    def initialize(self, matrix) -> None:
        """
        Build L, U and the column permutation from `matrix`.

        Parameters
        ----------
        matrix : SparseMatrix, scipy sparse matrix or 2-D ndarray
            Square coefficient matrix.

        Raises
        ------
        InvalidArgumentError : if `matrix` is None or not square.
        """
        A = as_sparse(matrix)
        if not A.is_square:
            raise InvalidArgumentError("Matrix must be square", "matrix")

        n = A.row_count
        dtype = np.complex128 if A.dtype.kind == "c" else np.float64
        upper = SparseMatrix(n, n, dtype=dtype)
        lower = SparseMatrix(n, n, dtype=dtype)
        pivots = np.arange(n)
        work = np.zeros(n, dtype=dtype)

        space_left = int(self._fill_level * A.non_zeros_count)
        swaps = 0

        for i in range(n):
            A.row(i, out=work)
            # Bring the row into the column order U is being built in
            work[:] = work[pivots]
            row_norm = infinity_norm(work)

            # A zero pivot turns into Inf/NaN here; the solver's stop criteria report it
            with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
                for j in range(i):
                    if work[j] == 0:
                        continue
                    work[j] = work[j] / upper[j, j]
                    if abs(work[j]) < self._drop_tolerance:
                        work[j] = 0
                        continue
                    factor = work[j]
                    for k, value in upper.row_items(j).items():
                        if k > j:
                            work[k] -= factor * value

            tail = work[i:]
            tail[np.abs(tail) <= self._drop_tolerance * row_norm] = 0

            space_row = space_left // (n - i + 1)

            lower_cols = largest_nonzero(range(i), work, space_row // 2)
            lower.set_row(i, work, lower_cols)

            upper_cols = largest_nonzero(range(i + 1, n), work, space_row - len(lower_cols) - 1)
            upper.set_row(i, work, upper_cols)
            upper[i, i] = work[i]

            # A pivot tolerance of zero can never satisfy the strict inequality.
            # Row n - 2 may pivot too (with the last column); only the last row cannot.
            if i < n - 1:
                candidate = i + 1 + int(np.argmax(np.abs(work[i + 1 :])))
                if (
                    abs(work[i]) < self._pivot_tolerance * abs(work[candidate])
                    and upper[i, candidate] != 0
                ):
                    upper.swap_columns(i, candidate)
                    pivots[i], pivots[candidate] = pivots[candidate], pivots[i]
                    swaps += 1

            if upper[i, i] == 0:
                logger.warning("ILUTP produced a zero pivot in row %d", i)

            space_left -= len(lower_cols) + len(upper.row_items(i))

        for i in range(n):
            lower[i, i] = 1

        self._lower = lower
        self._upper = upper
        self._pivots = pivots
        self._lower_csr = lower.to_scipy()
        self._upper_csr = upper.to_scipy()
        self._singular = not (
            np.all(self._upper_csr.diagonal() != 0)
            and np.all(np.isfinite(self._lower_csr.data))
            and np.all(np.isfinite(self._upper_csr.data))
        )
        logger.debug(
            "ILUTP initialized: n=%d, nnz(A)=%d, nnz(L)=%d, nnz(U)=%d, pivots=%d",
            n,
            A.non_zeros_count,
            lower.non_zeros_count,
            upper.non_zeros_count,
            swaps,
        )

    # -----------------------------------------------------------------
    # Solve
    # -----------------------------------------------------------------
    def approximate(self, rhs: np.ndarray, lhs: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Approximate the solution of A x = rhs using the factors.

        Solves L y = rhs, then U z = y, then undoes the column permutation.
        When `lhs` is given the result is written into it and returned.

        Raises
        ------
        InvalidArgumentError : `rhs` is None or has the wrong length,
            or `lhs` does not match `rhs`.
        MatrixNotInitializedError : :meth:`initialize` has not been called.
        """
        if rhs is None:
            raise InvalidArgumentError("Value cannot be None", "rhs")
        self._require_factors()
        rhs = np.asarray(rhs)
        n = self._upper.row_count
        if rhs.shape != (n,):
            raise InvalidArgumentError("All vectors must have the same dimensionality", "rhs")
        if lhs is not None and lhs.shape != rhs.shape:
            raise InvalidArgumentError("All vectors must have the same dimensionality", "lhs")

        dtype = np.result_type(self._upper.dtype, rhs.dtype, np.float64)
        if n == 0:
            result = np.zeros(0, dtype=dtype)
        else:
            lower = self._lower_csr.astype(dtype)
            upper = self._upper_csr.astype(dtype)
            if self._singular:
                y = _substitute(lower, rhs.astype(dtype), lower=True)
                z = _substitute(upper, y, lower=False)
            else:
                y = spsolve_triangular(lower, rhs.astype(dtype), lower=True, unit_diagonal=True)
                z = spsolve_triangular(upper, y, lower=False)
            # U was built on permuted columns: z[k] belongs to unknown pivots[k]
            result = np.empty(n, dtype=dtype)
            result[self._pivots] = z

        if lhs is not None:
            lhs[:] = result
            return lhs
        return result


def _substitute(factor, rhs: np.ndarray, lower: bool) -> np.ndarray:
    """
    Row-by-row triangular solve on a CSR factor.

    Used instead of ``spsolve_triangular`` when the factor has a zero on its
    diagonal or non-finite entries: division by zero yields Inf/NaN in the
    result rather than an exception.
    """
    n = factor.shape[0]
    x = rhs.copy()
    diagonal = factor.diagonal()
    order = range(n) if lower else range(n - 1, -1, -1)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for i in order:
            start, end = factor.indptr[i], factor.indptr[i + 1]
            cols = factor.indices[start:end]
            vals = factor.data[start:end]
            known = cols < i if lower else cols > i
            x[i] = (x[i] - np.dot(vals[known], x[cols[known]])) / diagonal[i]
    return x
