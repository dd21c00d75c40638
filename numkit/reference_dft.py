# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Textbook O(N^2) discrete Fourier transform.

This is the ground truth the fast kernels in :mod:`numkit.fourier` are
tested against, so it deliberately shares nothing with them except the
convention helpers. Every output bin is an explicit sum

    X[k] = sum_n x[n] exp(sign * j * 2 pi * k * n / N)

evaluated in double precision. Output bins are split into blocks across
the worker pool; each block writes its own slice of a fresh buffer.
"""

import logging

import numpy as np

from .control import Control
from .fourier_options import (
    FourierOptions,
    forward_scale_by_options,
    inverse_scale_by_options,
    sign_by_options,
)
from .utils import check_complex_buffer

logger = logging.getLogger(__name__)

# complex128 elements per block of the kernel matrix (~16 MiB)
_BLOCK_ELEMENTS = 1 << 20


def naive(samples: np.ndarray, exponent_sign: int) -> np.ndarray:
    """
    Unscaled naive DFT of `samples` with kernel sign `exponent_sign`.

    Returns a new array of the same dtype; `samples` is not modified.
    """
    samples = check_complex_buffer(samples)
    n = len(samples)
    result = np.empty(n, dtype=samples.dtype)
    if n == 0:
        return result

    x = samples.astype(np.complex128)
    time_index = np.arange(n, dtype=np.int64)
    w0 = exponent_sign * 2.0 * np.pi / n

    def body(lo: int, hi: int):
        # Bins are summed in rows of at most _BLOCK_ELEMENTS kernel entries
        rows = max(1, _BLOCK_ELEMENTS // n)
        for k0 in range(lo, hi, rows):
            k1 = min(k0 + rows, hi)
            # (k * n) mod N keeps the phase argument small and exact
            phase = np.outer(np.arange(k0, k1, dtype=np.int64), time_index) % n
            kernel = np.exp(1j * w0 * phase)
            result[k0:k1] = kernel @ x

    Control.worker_pool().parallel_for(0, n, body)
    return result


def naive_forward(samples: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> np.ndarray:
    """Reference forward transform; returns a new, convention-scaled array."""
    spectrum = naive(samples, sign_by_options(options))
    forward_scale_by_options(options, spectrum)
    return spectrum


def naive_inverse(spectrum: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> np.ndarray:
    """Reference inverse transform; returns a new, convention-scaled array."""
    samples = naive(spectrum, -sign_by_options(options))
    inverse_scale_by_options(options, samples)
    return samples


def forward(samples: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """In-place reference forward transform."""
    samples[:] = naive_forward(samples, options)


def inverse(spectrum: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """In-place reference inverse transform."""
    spectrum[:] = naive_inverse(spectrum, options)
