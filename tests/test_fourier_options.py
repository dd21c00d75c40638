# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import io
import logging

import numpy as np
import pytest

import numkit
from numkit.fourier_options import (
    FourierOptions,
    FourierTransformScaling,
    apply_scaling,
    forward_plan,
    inverse_plan,
    inverse_scale_by_options,
    sign_by_options,
)


def test_named_conventions():
    assert FourierOptions.MATLAB == FourierOptions.ASYMMETRIC_SCALING
    assert FourierOptions.NUMERICAL_RECIPES & FourierOptions.INVERSE_EXPONENT
    assert FourierOptions.NUMERICAL_RECIPES & FourierOptions.NO_SCALING
    assert sign_by_options(FourierOptions.DEFAULT) == -1
    assert sign_by_options(FourierOptions.NUMERICAL_RECIPES) == 1


@pytest.mark.parametrize(
    "options, forward, inverse",
    [
        (
            FourierOptions.DEFAULT,
            ("forward", FourierTransformScaling.SYMMETRIC_SCALING),
            ("backward", FourierTransformScaling.SYMMETRIC_SCALING),
        ),
        (
            FourierOptions.MATLAB,
            ("forward", FourierTransformScaling.NO_SCALING),
            ("backward", FourierTransformScaling.BACKWARD_SCALING),
        ),
        (
            FourierOptions.NUMERICAL_RECIPES,
            ("backward", FourierTransformScaling.NO_SCALING),
            ("forward", FourierTransformScaling.NO_SCALING),
        ),
        (
            FourierOptions.INVERSE_EXPONENT | FourierOptions.ASYMMETRIC_SCALING,
            ("backward", FourierTransformScaling.NO_SCALING),
            ("forward", FourierTransformScaling.FORWARD_SCALING),
        ),
    ],
)
def test_plans(options, forward, inverse):
    assert forward_plan(options) == forward
    assert inverse_plan(options) == inverse


def test_apply_scaling():
    x = np.ones(4, dtype=np.complex64)
    apply_scaling(x, FourierTransformScaling.SYMMETRIC_SCALING, backward=False)
    np.testing.assert_allclose(x, 0.5)
    assert x.dtype == np.complex64

    x = np.ones(4, dtype=np.complex128)
    apply_scaling(x, FourierTransformScaling.FORWARD_SCALING, backward=True)
    np.testing.assert_allclose(x, 1.0)
    apply_scaling(x, FourierTransformScaling.BACKWARD_SCALING, backward=True, n=8)
    np.testing.assert_allclose(x, 0.125)


def test_inverse_scale_by_options():
    x = np.ones(4, dtype=np.complex128)
    inverse_scale_by_options(FourierOptions.MATLAB, x)
    np.testing.assert_allclose(x, 0.25)


def test_logging_setup_is_idempotent():
    stream = io.StringIO()
    logger = numkit.logging_setup(logging.DEBUG, stream)
    numkit.logging_setup(logging.DEBUG, stream)
    try:
        console = [h for h in logger.handlers if getattr(h, "_numkit_console", False)]
        assert len(console) == 1
        logging.getLogger("numkit.fourier").debug("hello")
        assert "hello" in stream.getvalue()
    finally:
        for handler in console:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
