# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Fast discrete Fourier transforms.

Power-of-two lengths use an iterative radix-2 decimation-in-time kernel;
every other length goes through Bluestein's chirp-z algorithm, which turns
the transform into a power-of-two circular convolution. Both run in
O(N log N).

All transforms work in place on 1-D ``complex64`` / ``complex128`` arrays:
the caller owns the buffer and must copy it first if the original samples
are still needed.

Example
-------
>>> import numpy as np
>>> from numkit import fourier, FourierOptions
>>> x = np.exp(2j * np.pi * np.arange(8) / 8)
>>> fourier.forward(x, FourierOptions.NO_SCALING)
>>> int(np.argmax(np.abs(x)))
1
"""

import logging
import math
from functools import lru_cache
from typing import Sequence, Tuple

import numpy as np

from . import reference_dft
from .control import Control
from .errors import ArgumentOutOfRangeError, InvalidArgumentError
from .fourier_options import (
    FourierOptions,
    FourierTransformScaling,
    apply_scaling,
    forward_plan,
    forward_scale_by_options,
    inverse_plan,
    inverse_scale_by_options,
    sign_by_options,
)
from .utils import (
    REAL_TYPES,
    ceiling_power_of_two,
    check_complex_buffer,
    is_power_of_two,
)

logger = logging.getLogger(__name__)

naive_forward = reference_dft.naive_forward
naive_inverse = reference_dft.naive_inverse


# ---------------------------------------------------------------------
# Precomputed tables
# ---------------------------------------------------------------------
@lru_cache(maxsize=32)
def _bit_reversal(n: int) -> np.ndarray:
    """Bit-reversed index permutation for a power-of-two length."""
    bits = n.bit_length() - 1
    idx = np.arange(n, dtype=np.int64)
    rev = np.zeros(n, dtype=np.int64)
    for _ in range(bits):
        rev = (rev << 1) | (idx & 1)
        idx >>= 1
    rev.setflags(write=False)
    return rev


@lru_cache(maxsize=32)
def _bluestein_sequence(n: int) -> np.ndarray:
    """Chirp exp(j pi k^2 / n), k = 0..n-1."""
    k = np.arange(n, dtype=np.int64)
    # k^2 mod 2n keeps the phase small; exp(j pi k^2/n) has period 2n in k^2
    phase = (k * k) % (2 * n)
    chirp = np.exp(1j * np.pi * phase / n)
    chirp.setflags(write=False)
    return chirp


# ---------------------------------------------------------------------
# Raw kernels (unscaled, in place)
# ---------------------------------------------------------------------
def radix2(samples: np.ndarray, exponent_sign: int) -> None:
    """
    In-place radix-2 Cooley-Tukey transform (decimation in time).

    Parameters
    ----------
    samples : (n,) complex ndarray, n a power of two
    exponent_sign : -1 or +1
        Sign of the kernel exponent.
    """
    n = len(samples)
    if n <= 1:
        return
    if not is_power_of_two(n):
        raise InvalidArgumentError("The array length must be a power of 2", "samples")

    x = np.ascontiguousarray(samples)
    x[:] = x[_bit_reversal(n)]

    pool = Control.worker_pool()
    parallel = pool.is_parallel and n >= Control.parallelize_order()

    m = 1
    while m < n:
        groups = n // (2 * m)
        twiddles = np.exp(exponent_sign * 1j * np.pi * np.arange(m) / m).astype(x.dtype)
        view = x.reshape(groups, 2, m)

        def butterflies(g0, g1, j0, j1, view=view, twiddles=twiddles):
            top = view[g0:g1, 0, j0:j1].copy()
            t = view[g0:g1, 1, j0:j1] * twiddles[j0:j1]
            view[g0:g1, 0, j0:j1] = top + t
            view[g0:g1, 1, j0:j1] = top - t

        # Butterflies of one stage touch disjoint pairs, so any split is safe
        if not parallel:
            butterflies(0, groups, 0, m)
        elif groups >= m:
            pool.parallel_for(0, groups, lambda lo, hi: butterflies(lo, hi, 0, m))
        else:
            pool.parallel_for(0, m, lambda lo, hi: butterflies(0, groups, lo, hi))
        m *= 2

    if x is not samples:
        samples[:] = x


def bluestein(samples: np.ndarray, exponent_sign: int) -> None:
    """
    In-place transform of arbitrary length via Bluestein's algorithm.

    Uses k*n = (k^2 + n^2 - (k-n)^2) / 2 to write the DFT as a chirp
    multiplication, a convolution with the conjugate chirp and another
    chirp multiplication. The convolution is zero-padded to a power of two
    >= 2n - 1 and evaluated with :func:`radix2`.
    """
    n = len(samples)
    if n <= 1:
        return

    m = ceiling_power_of_two(2 * n - 1)
    chirp = _bluestein_sequence(n)
    if exponent_sign < 0:
        chirp = chirp.conj()

    a = np.zeros(m, dtype=np.complex128)
    a[:n] = samples * chirp

    b = np.zeros(m, dtype=np.complex128)
    b[:n] = chirp.conj()
    b[m - n + 1 :] = chirp[1:][::-1].conj()

    radix2(a, -1)
    radix2(b, -1)
    a *= b
    radix2(a, 1)
    a *= 1.0 / m

    samples[:] = (a[:n] * chirp).astype(samples.dtype)


def transform(samples: np.ndarray, exponent_sign: int) -> None:
    """Unscaled in-place DFT of any length, choosing the kernel by length."""
    n = len(samples)
    if n <= 1:
        return
    if is_power_of_two(n):
        logger.debug("radix-2 transform, n=%d", n)
        radix2(samples, exponent_sign)
    else:
        logger.debug("Bluestein transform, n=%d", n)
        bluestein(samples, exponent_sign)


def forward_raw(samples: np.ndarray, scaling: FourierTransformScaling) -> None:
    """Provider-level forward transform (kernel exp(-j...))."""
    transform(samples, -1)
    apply_scaling(samples, scaling, backward=False)


def backward_raw(samples: np.ndarray, scaling: FourierTransformScaling) -> None:
    """Provider-level backward transform (kernel exp(+j...))."""
    transform(samples, 1)
    apply_scaling(samples, scaling, backward=True)


def _run_plan(samples: np.ndarray, plan: Tuple[str, FourierTransformScaling]) -> None:
    kernel, scaling = plan
    if kernel == "forward":
        forward_raw(samples, scaling)
    else:
        backward_raw(samples, scaling)


def _check_samples(samples, name: str) -> np.ndarray:
    check_complex_buffer(samples, name)
    if samples.ndim != 1:
        raise InvalidArgumentError("Expected a one-dimensional array", name)
    return samples


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------
def forward(samples: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """
    Forward transform, in place.

    Parameters
    ----------
    samples : (n,) complex64 or complex128 ndarray
        Time-space samples; overwritten with the spectrum.
    options : FourierOptions
        Exponent sign and scaling convention.
    """
    _check_samples(samples, "samples")
    _run_plan(samples, forward_plan(options))


def inverse(spectrum: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """Inverse transform, in place. See :func:`forward`."""
    _check_samples(spectrum, "spectrum")
    _run_plan(spectrum, inverse_plan(options))


def _check_split(real: np.ndarray, imaginary: np.ndarray):
    if real.shape != imaginary.shape:
        raise InvalidArgumentError("The arrays must have the same length", "imaginary")
    if real.dtype.type not in REAL_TYPES:
        raise TypeError(f"real must have dtype float32 or float64, got {real.dtype}")
    dtype = np.complex64 if real.dtype == np.float32 else np.complex128
    return (real + 1j * imaginary).astype(dtype)


def forward_split(
    real: np.ndarray, imaginary: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT
) -> None:
    """Forward transform of samples held as separate real/imaginary arrays."""
    data = _check_split(real, imaginary)
    forward(data, options)
    real[:] = data.real
    imaginary[:] = data.imag


def inverse_split(
    real: np.ndarray, imaginary: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT
) -> None:
    """Inverse transform of a spectrum held as separate real/imaginary arrays."""
    data = _check_split(real, imaginary)
    inverse(data, options)
    real[:] = data.real
    imaginary[:] = data.imag


# ---------------------------------------------------------------------
# Real-input transforms (packed spectrum)
# ---------------------------------------------------------------------
def packed_length(n: int) -> int:
    """Array length needed to hold the packed spectrum of n real samples."""
    return n + 2 if n % 2 == 0 else n + 1


def _check_real(data, n: int, options: FourierOptions):
    if not isinstance(data, np.ndarray):
        raise TypeError("data must be a NumPy ndarray")
    if data.dtype.type not in REAL_TYPES:
        raise TypeError(f"data must have dtype float32 or float64, got {data.dtype}")
    if n < 0:
        raise ArgumentOutOfRangeError("n")
    length = packed_length(n)
    if len(data) < length:
        raise InvalidArgumentError(
            f"The given array is too small. It must be at least {length} long", "data"
        )
    if options & FourierOptions.INVERSE_EXPONENT:
        raise NotImplementedError("Real transforms do not support the inverse exponent")
    return np.complex64 if data.dtype == np.float32 else np.complex128


def forward_real(data: np.ndarray, n: int, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """
    Forward transform of `n` real samples, in place, packed spectrum output.

    ``data[:n]`` holds the samples. On return ``data`` holds the
    interleaved (real, imaginary) pairs of bins ``0..n//2``; the remaining
    bins follow from conjugate symmetry. `data` must be at least
    ``n + 2`` (even n) or ``n + 1`` (odd n) long.
    """
    ctype = _check_real(data, n, options)
    if n == 0:
        return
    scaling = (
        FourierTransformScaling.NO_SCALING
        if options & (FourierOptions.NO_SCALING | FourierOptions.ASYMMETRIC_SCALING)
        else FourierTransformScaling.SYMMETRIC_SCALING
    )

    if n % 2 == 0:
        # Pack even/odd samples into one complex signal of half length
        h = n // 2
        z = (data[0:n:2] + 1j * data[1:n:2]).astype(ctype)
        transform(z, -1)
        k = np.arange(h + 1)
        zk = z[k % h]
        zc = np.conj(z[(h - k) % h])
        even = 0.5 * (zk + zc)
        odd = -0.5j * (zk - zc)
        spectrum = (even + np.exp(-2j * np.pi * k / n) * odd).astype(ctype)
    else:
        spectrum = data[:n].astype(ctype)
        transform(spectrum, -1)
        spectrum = spectrum[: (n + 1) // 2].copy()

    apply_scaling(spectrum, scaling, backward=False, n=n)
    data[0 : 2 * len(spectrum) : 2] = spectrum.real
    data[1 : 2 * len(spectrum) : 2] = spectrum.imag


def inverse_real(data: np.ndarray, n: int, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """
    Inverse of :func:`forward_real`: packed spectrum in, `n` real samples
    out in ``data[:n]``. Trailing slots of the packed layout are zeroed.
    """
    ctype = _check_real(data, n, options)
    if n == 0:
        return
    if options & FourierOptions.NO_SCALING:
        scaling = FourierTransformScaling.NO_SCALING
    elif options & FourierOptions.ASYMMETRIC_SCALING:
        scaling = FourierTransformScaling.BACKWARD_SCALING
    else:
        scaling = FourierTransformScaling.SYMMETRIC_SCALING

    bins = n // 2 + 1
    spectrum = (data[0 : 2 * bins : 2] + 1j * data[1 : 2 * bins : 2]).astype(np.complex128)

    if n % 2 == 0:
        h = n // 2
        k = np.arange(h)
        xc = np.conj(spectrum[h - k])
        even = 0.5 * (spectrum[:h] + xc)
        odd = 0.5 * (spectrum[:h] - xc) * np.exp(2j * np.pi * k / n)
        z = (even + 1j * odd).astype(ctype)
        transform(z, 1)
        # Half-length transform yields h * x; the full one would give n * x
        z *= z.real.dtype.type(2.0)
        apply_scaling(z, scaling, backward=True, n=n)
        data[0:n:2] = z.real
        data[1:n:2] = z.imag
        data[n : n + 2] = 0.0
    else:
        full = np.empty(n, dtype=ctype)
        full[:bins] = spectrum
        full[bins:] = np.conj(spectrum[1:bins][::-1])
        transform(full, 1)
        apply_scaling(full, scaling, backward=True, n=n)
        data[:n] = full.real
        data[n] = 0.0


# ---------------------------------------------------------------------
# Multi-dimensional transforms
# ---------------------------------------------------------------------
def _transform_multidim(samples: np.ndarray, dimensions: Sequence[int], exponent_sign: int) -> None:
    dimensions = tuple(int(d) for d in dimensions)
    if any(d < 0 for d in dimensions):
        raise ArgumentOutOfRangeError("dimensions")
    if math.prod(dimensions) != samples.size:
        raise InvalidArgumentError(
            f"Dimensions {dimensions} do not match {samples.size} samples", "dimensions"
        )
    work = samples.reshape(dimensions).copy()
    for axis, length in enumerate(dimensions):
        if length <= 1:
            continue
        moved = np.moveaxis(work, axis, -1)
        lines = moved.reshape(-1, length).copy()
        for line in lines:
            transform(line, exponent_sign)
        moved[...] = lines.reshape(moved.shape)
    samples[...] = work.reshape(samples.shape)


def _run_plan_multidim(samples, dimensions, plan) -> None:
    kernel, scaling = plan
    backward = kernel == "backward"
    _transform_multidim(samples, dimensions, 1 if backward else -1)
    apply_scaling(samples, scaling, backward=backward, n=samples.size)


def forward_multidim(
    samples: np.ndarray, dimensions: Sequence[int], options: FourierOptions = FourierOptions.DEFAULT
) -> None:
    """
    Forward transform over every axis of a row-major buffer, in place.

    `samples` may be flat (with `dimensions` giving the logical shape) or
    already shaped. Scaling uses the total number of samples.
    """
    check_complex_buffer(samples)
    _run_plan_multidim(samples, dimensions, forward_plan(options))


def inverse_multidim(
    spectrum: np.ndarray, dimensions: Sequence[int], options: FourierOptions = FourierOptions.DEFAULT
) -> None:
    """Inverse of :func:`forward_multidim`."""
    check_complex_buffer(spectrum, "spectrum")
    _run_plan_multidim(spectrum, dimensions, inverse_plan(options))


def forward_2d(samples: np.ndarray, rows: int = None, columns: int = None,
               options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """2-D forward transform of a (rows, columns) array or a flat row-major buffer."""
    if rows is None or columns is None:
        if samples.ndim != 2:
            raise InvalidArgumentError("rows and columns are required for flat input", "rows")
        rows, columns = samples.shape
    forward_multidim(samples, (rows, columns), options)


def inverse_2d(spectrum: np.ndarray, rows: int = None, columns: int = None,
               options: FourierOptions = FourierOptions.DEFAULT) -> None:
    """2-D inverse transform. See :func:`forward_2d`."""
    if rows is None or columns is None:
        if spectrum.ndim != 2:
            raise InvalidArgumentError("rows and columns are required for flat input", "rows")
        rows, columns = spectrum.shape
    inverse_multidim(spectrum, (rows, columns), options)


# ---------------------------------------------------------------------
# Explicit algorithm selection
# ---------------------------------------------------------------------
def radix2_forward(samples: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    _check_samples(samples, "samples")
    radix2(samples, sign_by_options(options))
    forward_scale_by_options(options, samples)


def radix2_inverse(spectrum: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    _check_samples(spectrum, "spectrum")
    radix2(spectrum, -sign_by_options(options))
    inverse_scale_by_options(options, spectrum)


def bluestein_forward(samples: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    _check_samples(samples, "samples")
    bluestein(samples, sign_by_options(options))
    forward_scale_by_options(options, samples)


def bluestein_inverse(spectrum: np.ndarray, options: FourierOptions = FourierOptions.DEFAULT) -> None:
    _check_samples(spectrum, "spectrum")
    bluestein(spectrum, -sign_by_options(options))
    inverse_scale_by_options(options, spectrum)


def frequency_scale(length: int, sample_rate: float) -> np.ndarray:
    """
    Frequency (in units of `sample_rate`) of every bin of a `length`-point
    spectrum: non-negative frequencies up to Nyquist, then the negative ones.
    """
    if length < 0:
        raise ArgumentOutOfRangeError("length")
    step = sample_rate / length if length else 0.0
    second_half = (length >> 1) + 1
    scale = np.empty(length, dtype=float)
    head = min(second_half, length)
    scale[:head] = np.arange(head) * step
    scale[head:] = (np.arange(head, length) - length) * step
    return scale
