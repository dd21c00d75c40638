# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
numkit
======

Discrete Fourier transforms and incomplete-LU preconditioned iterative
solvers on top of numpy / scipy.

Public API
~~~~~~~~~~
- Fourier transforms (in place)
    - `forward`, `inverse`, `forward_real`, `inverse_real`,
      `forward_multidim`, `inverse_multidim`, `FourierOptions`
- Reference transform
    - `naive_forward`, `naive_inverse`
- Sparse systems
    - `SparseMatrix`, `Ilutp`, `DiagonalPreconditioner`,
      `UnitPreconditioner`, `BiCgStab`
- Stop criteria
    - `IterationMonitor` and the `*StopCriterion` classes
- Quadrature
    - `GaussLegendreRule`, `clear_gauss_point_cache`
- Configuration
    - `Control`, `logging_setup`

Example
-------
>>> import numpy as np, numkit as nk
>>> x = nk.utils.random_complex(128, seed=0)
>>> y = x.copy()
>>> nk.forward(y); nk.inverse(y)
>>> np.allclose(x, y)
True
"""

from importlib.metadata import version as _pkg_version

from . import utils
from .control import Control
from .errors import (
    ArgumentOutOfRangeError,
    InvalidArgumentError,
    MatrixNotInitializedError,
    NumericalBreakdownError,
    WorkerPoolError,
)
from .fourier import (
    forward,
    forward_2d,
    forward_multidim,
    forward_real,
    forward_split,
    frequency_scale,
    inverse,
    inverse_2d,
    inverse_multidim,
    inverse_real,
    inverse_split,
    naive_forward,
    naive_inverse,
    packed_length,
)
from .fourier_options import FourierOptions, FourierTransformScaling
from .ilutp import Ilutp
from .integration import GaussLegendreRule, clear_gauss_point_cache, gauss_legendre_points
from .preconditioners import DiagonalPreconditioner, Preconditioner, UnitPreconditioner
from .solvers import BiCgStab
from .sparse import SparseMatrix
from .stop_criteria import (
    DivergenceStopCriterion,
    FailureStopCriterion,
    IterationCountStopCriterion,
    IterationMonitor,
    IterationStatus,
    ResidualStopCriterion,
    StopCriterion,
    StopLevel,
)

__all__ = [
    "forward",
    "inverse",
    "forward_split",
    "inverse_split",
    "forward_real",
    "inverse_real",
    "packed_length",
    "forward_multidim",
    "inverse_multidim",
    "forward_2d",
    "inverse_2d",
    "frequency_scale",
    "naive_forward",
    "naive_inverse",
    "FourierOptions",
    "FourierTransformScaling",
    "SparseMatrix",
    "Preconditioner",
    "UnitPreconditioner",
    "DiagonalPreconditioner",
    "Ilutp",
    "BiCgStab",
    "IterationStatus",
    "StopLevel",
    "StopCriterion",
    "IterationCountStopCriterion",
    "ResidualStopCriterion",
    "DivergenceStopCriterion",
    "FailureStopCriterion",
    "IterationMonitor",
    "GaussLegendreRule",
    "gauss_legendre_points",
    "clear_gauss_point_cache",
    "Control",
    "InvalidArgumentError",
    "ArgumentOutOfRangeError",
    "MatrixNotInitializedError",
    "NumericalBreakdownError",
    "WorkerPoolError",
    "logging_setup",
    "utils",
]

# ---------------------------------------------------------------------
# Version string
# ---------------------------------------------------------------------
try:  # installed via pip / build backend
    __version__ = _pkg_version(__name__)
except Exception:  # running from a checkout
    __version__ = "0.0.0.dev0"

# ---------------------------------------------------------------------
# Silent by default; logging_setup() opts in to console output.
# ---------------------------------------------------------------------
import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def logging_setup(level=_logging.INFO, stream=None) -> _logging.Logger:
    """Attach one stream handler to the ``numkit`` logger (idempotent)."""
    root = _logging.getLogger(__name__)
    root.setLevel(level)
    if not any(getattr(h, "_numkit_console", False) for h in root.handlers):
        handler = _logging.StreamHandler(stream)
        handler.setFormatter(_logging.Formatter(_LOG_FORMAT))
        handler._numkit_console = True
        root.addHandler(handler)
    return root
