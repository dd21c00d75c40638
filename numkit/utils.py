# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np

COMPLEX_TYPES = (np.complex64, np.complex128)
REAL_TYPES = (np.float32, np.float64)


def infinity_norm(v) -> float:
    """Largest modulus of any element (complex aware). NaN propagates."""
    v = np.asarray(v)
    if v.size == 0:
        return 0.0
    return float(np.max(np.abs(v)))


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def ceiling_power_of_two(n: int) -> int:
    """Smallest power of two that is >= n."""
    if n <= 1:
        return 1
    return 1 << (int(n) - 1).bit_length()


def is_permutation(perm) -> bool:
    """True if `perm` is a bijection on [0, len(perm))."""
    perm = np.asarray(perm)
    n = perm.shape[0]
    if perm.ndim != 1:
        return False
    seen = np.zeros(n, dtype=bool)
    for p in perm:
        if p < 0 or p >= n or seen[p]:
            return False
        seen[p] = True
    return True


def scale_inplace(buffer: np.ndarray, factor: float) -> None:
    """Multiply `buffer` by `factor` in place, keeping its dtype."""
    buffer *= buffer.real.dtype.type(factor)


def check_complex_buffer(buffer, name: str = "samples") -> np.ndarray:
    """Validate a complex64/complex128 1-D ndarray suitable for in-place work."""
    if not isinstance(buffer, np.ndarray):
        raise TypeError(f"{name} must be a NumPy ndarray")
    if buffer.dtype.type not in COMPLEX_TYPES:
        raise TypeError(f"{name} must have dtype complex64 or complex128, got {buffer.dtype}")
    return buffer


def random_complex(n, seed=None, dtype=np.complex128, low=-1.0, high=1.0) -> np.ndarray:
    """
    Uniform random complex samples, real and imaginary parts
    drawn independently from [low, high).
    """
    rng = np.random.default_rng(seed)
    re = rng.uniform(low, high, size=n)
    im = rng.uniform(low, high, size=n)
    return (re + 1j * im).astype(dtype)


def random_diagonally_dominant(n, density=0.1, seed=None, dtype=np.float64) -> np.ndarray:
    """
    Build a sparse-pattern, strictly diagonally dominant dense matrix.

    Off-diagonal entries are kept with probability `density`; the
    diagonal is then set to one more than the absolute row sum so the
    matrix is nonsingular and LU needs no pivoting.

    Returns
    -------
    Matrix with the requested dtype
    """
    rng = np.random.default_rng(seed)
    A = rng.uniform(-1.0, 1.0, size=(n, n))
    if np.issubdtype(dtype, np.complexfloating):
        A = A + 1j * rng.uniform(-1.0, 1.0, size=(n, n))
    mask = rng.uniform(size=(n, n)) < density
    A = np.where(mask, A, 0.0)
    np.fill_diagonal(A, 0.0)
    row_sums = np.abs(A).sum(axis=1)
    A[np.diag_indices(n)] = row_sums + 1.0
    return np.asarray(A, dtype=dtype)
