# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Fourier transform conventions.

Two independent axes select a convention:

- exponent sign: the forward kernel is ``exp(-j 2 pi k n / N)`` unless
  ``INVERSE_EXPONENT`` flips it to ``exp(+j ...)``;
- scaling: symmetric ``1/sqrt(N)`` both ways (default), ``1/N`` on the
  inverse only (``ASYMMETRIC_SCALING``), or none (``NO_SCALING``).

The same helpers scale the output of the reference transform and of the
fast kernels, which keeps the two directly comparable.
"""

import enum
import math

import numpy as np

from .utils import scale_inplace


class FourierOptions(enum.IntFlag):
    DEFAULT = 0
    INVERSE_EXPONENT = 1
    ASYMMETRIC_SCALING = 2
    NO_SCALING = 4
    # exp(+j), no scaling
    NUMERICAL_RECIPES = INVERSE_EXPONENT | NO_SCALING
    # exp(-j) forward, 1/N on the inverse
    MATLAB = ASYMMETRIC_SCALING


class FourierTransformScaling(enum.Enum):
    """Scaling applied by the raw forward/backward kernels."""

    NO_SCALING = "none"
    SYMMETRIC_SCALING = "symmetric"
    FORWARD_SCALING = "forward"
    BACKWARD_SCALING = "backward"


def sign_by_options(options: FourierOptions) -> int:
    """Exponent sign of the forward transform under `options`."""
    return 1 if options & FourierOptions.INVERSE_EXPONENT else -1


def forward_scale_by_options(options: FourierOptions, samples: np.ndarray) -> None:
    if options & (FourierOptions.NO_SCALING | FourierOptions.ASYMMETRIC_SCALING):
        return
    if len(samples) == 0:
        return
    scale_inplace(samples, math.sqrt(1.0 / len(samples)))


def inverse_scale_by_options(options: FourierOptions, samples: np.ndarray) -> None:
    if options & FourierOptions.NO_SCALING:
        return
    if len(samples) == 0:
        return
    factor = 1.0 / len(samples)
    if not options & FourierOptions.ASYMMETRIC_SCALING:
        factor = math.sqrt(factor)
    scale_inplace(samples, factor)


def apply_scaling(
    samples: np.ndarray,
    scaling: FourierTransformScaling,
    backward: bool,
    n: int = None,
) -> None:
    """
    Scale the output of a raw kernel.

    ``FORWARD_SCALING`` divides by N only after a forward kernel,
    ``BACKWARD_SCALING`` only after a backward one. `n` overrides the
    logical length (packed real spectra are longer than the signal).
    """
    n = len(samples) if n is None else n
    if n == 0 or scaling is FourierTransformScaling.NO_SCALING:
        return
    if scaling is FourierTransformScaling.SYMMETRIC_SCALING:
        scale_inplace(samples, math.sqrt(1.0 / n))
    elif scaling is FourierTransformScaling.FORWARD_SCALING and not backward:
        scale_inplace(samples, 1.0 / n)
    elif scaling is FourierTransformScaling.BACKWARD_SCALING and backward:
        scale_inplace(samples, 1.0 / n)


def forward_plan(options: FourierOptions):
    """
    Map options for a forward transform onto (kernel, scaling).

    kernel is ``"forward"`` (exponent -1) or ``"backward"`` (exponent +1).
    """
    flipped = bool(options & FourierOptions.INVERSE_EXPONENT)
    kernel = "backward" if flipped else "forward"
    if options & (FourierOptions.NO_SCALING | FourierOptions.ASYMMETRIC_SCALING):
        return kernel, FourierTransformScaling.NO_SCALING
    return kernel, FourierTransformScaling.SYMMETRIC_SCALING


def inverse_plan(options: FourierOptions):
    """Map options for an inverse transform onto (kernel, scaling)."""
    flipped = bool(options & FourierOptions.INVERSE_EXPONENT)
    kernel = "forward" if flipped else "backward"
    if options & FourierOptions.NO_SCALING:
        return kernel, FourierTransformScaling.NO_SCALING
    if options & FourierOptions.ASYMMETRIC_SCALING:
        if flipped:
            return kernel, FourierTransformScaling.FORWARD_SCALING
        return kernel, FourierTransformScaling.BACKWARD_SCALING
    return kernel, FourierTransformScaling.SYMMETRIC_SCALING
