# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Row-addressable sparse matrix.

Each row is a ``{column: value}`` map, which makes the operations an
incomplete factorization leans on cheap: pulling a row into a dense work
vector, writing a pruned row back, and swapping two columns. Conversion
to and from ``scipy.sparse`` is provided for interop.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .errors import ArgumentOutOfRangeError, InvalidArgumentError

logger = logging.getLogger(__name__)


class SparseMatrix:
    """
    Sparse matrix stored as one dictionary of nonzeros per row.

    Entries that are not stored are zero; assigning zero removes an entry.
    """

    def __init__(self, rows: int, columns: Optional[int] = None, dtype=np.float64):
        if columns is None:
            columns = rows
        if rows < 0:
            raise ArgumentOutOfRangeError("rows")
        if columns < 0:
            raise ArgumentOutOfRangeError("columns")
        self._rows: List[Dict[int, complex]] = [dict() for _ in range(rows)]
        self._columns = int(columns)
        self.dtype = np.dtype(dtype)

    # -----------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------
    @classmethod
    def from_dense(cls, A) -> "SparseMatrix":
        A = np.asarray(A)
        if A.ndim != 2:
            raise InvalidArgumentError("Expected a two-dimensional array", "A")
        dtype = np.complex128 if np.iscomplexobj(A) else np.float64
        M = cls(A.shape[0], A.shape[1], dtype=dtype)
        for i, j in zip(*np.nonzero(A)):
            M._rows[i][int(j)] = A[i, j]
        return M

    @classmethod
    def from_scipy(cls, A) -> "SparseMatrix":
        csr = sp.csr_matrix(A)
        csr.eliminate_zeros()
        dtype = np.complex128 if np.iscomplexobj(csr.data) else np.float64
        M = cls(csr.shape[0], csr.shape[1], dtype=dtype)
        for i in range(csr.shape[0]):
            lo, hi = csr.indptr[i], csr.indptr[i + 1]
            M._rows[i] = dict(zip(csr.indices[lo:hi].tolist(), csr.data[lo:hi]))
        return M

    @classmethod
    def from_triplets(
        cls,
        rows: int,
        columns: int,
        triplets: Iterable[Tuple[int, int, complex]],
        dtype=np.float64,
    ) -> "SparseMatrix":
        """Build from (i, j, value) triplets; duplicates are summed."""
        M = cls(rows, columns, dtype=dtype)
        for i, j, v in triplets:
            M[i, j] = M[i, j] + v
        return M

    @classmethod
    def identity(cls, n: int, dtype=np.float64) -> "SparseMatrix":
        M = cls(n, n, dtype=dtype)
        for i in range(n):
            M._rows[i][i] = M.dtype.type(1)
        return M

    # -----------------------------------------------------------------
    # Shape / inspection
    # -----------------------------------------------------------------
    @property
    def shape(self) -> Tuple[int, int]:
        return len(self._rows), self._columns

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def column_count(self) -> int:
        return self._columns

    @property
    def is_square(self) -> bool:
        return self.row_count == self.column_count

    @property
    def non_zeros_count(self) -> int:
        return sum(len(r) for r in self._rows)

    def __repr__(self) -> str:
        m, n = self.shape
        return f"SparseMatrix({m}x{n}, nnz={self.non_zeros_count}, dtype={self.dtype})"

    def _check_index(self, i: int, j: int) -> None:
        if not 0 <= i < self.row_count:
            raise IndexError(f"row index {i} out of range")
        if not 0 <= j < self.column_count:
            raise IndexError(f"column index {j} out of range")

    # -----------------------------------------------------------------
    # Element and row access
    # -----------------------------------------------------------------
    def __getitem__(self, key):
        i, j = key
        self._check_index(i, j)
        return self._rows[i].get(j, self.dtype.type(0))

    def __setitem__(self, key, value):
        i, j = key
        self._check_index(i, j)
        if value == 0:
            self._rows[i].pop(j, None)
        else:
            if np.iscomplexobj(value) and self.dtype.kind != "c":
                self.dtype = np.dtype(np.complex128)
            self._rows[i][j] = value

    def row_items(self, i: int) -> Dict[int, complex]:
        """Read-only view of the nonzeros of row `i` (column -> value)."""
        return self._rows[i]

    def row(self, i: int, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Copy row `i` into a dense vector (`out` is zeroed and reused)."""
        if not 0 <= i < self.row_count:
            raise IndexError(f"row index {i} out of range")
        if out is None:
            out = np.zeros(self.column_count, dtype=self.dtype)
        else:
            if out.shape != (self.column_count,):
                raise InvalidArgumentError("Vector length does not match the column count", "out")
            out[:] = 0
        items = self._rows[i]
        if items:
            out[list(items.keys())] = list(items.values())
        return out

    def set_row(self, i: int, values: np.ndarray, columns: Optional[Iterable[int]] = None) -> None:
        """
        Replace row `i`. With `columns` given, only those positions of the
        dense `values` are stored; otherwise every nonzero is.
        """
        if columns is None:
            columns = np.flatnonzero(values)
        self._rows[i] = {int(j): values[j] for j in columns if values[j] != 0}

    def swap_columns(self, a: int, b: int) -> None:
        if not (0 <= a < self.column_count and 0 <= b < self.column_count):
            raise IndexError("column index out of range")
        if a == b:
            return
        for items in self._rows:
            va = items.pop(a, None)
            vb = items.pop(b, None)
            if va is not None:
                items[b] = va
            if vb is not None:
                items[a] = vb

    # -----------------------------------------------------------------
    # Arithmetic / conversion
    # -----------------------------------------------------------------
    def multiply(self, x: np.ndarray) -> np.ndarray:
        """Matrix-vector (or matrix-matrix) product with a dense operand."""
        x = np.asarray(x)
        if x.shape[0] != self.column_count:
            raise InvalidArgumentError("Matrix dimensions must agree", "x")
        return self.to_scipy() @ x

    def __matmul__(self, other):
        if isinstance(other, SparseMatrix):
            return SparseMatrix.from_scipy(self.to_scipy() @ other.to_scipy())
        return self.multiply(other)

    def to_scipy(self) -> sp.csr_matrix:
        indptr = np.zeros(self.row_count + 1, dtype=np.int64)
        indices: List[int] = []
        data: List[complex] = []
        for i, items in enumerate(self._rows):
            cols = sorted(items)
            indices.extend(cols)
            data.extend(items[c] for c in cols)
            indptr[i + 1] = len(indices)
        return sp.csr_matrix(
            (np.asarray(data, dtype=self.dtype), np.asarray(indices, dtype=np.int64), indptr),
            shape=self.shape,
        )

    def to_dense(self) -> np.ndarray:
        A = np.zeros(self.shape, dtype=self.dtype)
        for i, items in enumerate(self._rows):
            if items:
                A[i, list(items.keys())] = list(items.values())
        return A

    def copy(self) -> "SparseMatrix":
        M = SparseMatrix(self.row_count, self.column_count, dtype=self.dtype)
        M._rows = [dict(items) for items in self._rows]
        return M

    def lower_triangle(self) -> "SparseMatrix":
        """Entries on or below the diagonal."""
        M = SparseMatrix(self.row_count, self.column_count, dtype=self.dtype)
        M._rows = [{j: v for j, v in items.items() if j <= i} for i, items in enumerate(self._rows)]
        return M

    def upper_triangle(self) -> "SparseMatrix":
        """Entries on or above the diagonal."""
        M = SparseMatrix(self.row_count, self.column_count, dtype=self.dtype)
        M._rows = [{j: v for j, v in items.items() if j >= i} for i, items in enumerate(self._rows)]
        return M


def as_sparse(matrix) -> SparseMatrix:
    """Coerce a SparseMatrix, scipy sparse matrix or dense array."""
    if matrix is None:
        raise InvalidArgumentError("Value cannot be None", "matrix")
    if isinstance(matrix, SparseMatrix):
        return matrix
    if sp.issparse(matrix):
        return SparseMatrix.from_scipy(matrix)
    return SparseMatrix.from_dense(matrix)
