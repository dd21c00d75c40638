# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Preconditioned BiCGStab (van der Vorst, 1992) for general sparse systems.

The solver owns neither the preconditioner nor the stop criteria: both are
passed in, so the same ILUTP factorization machinery and the same
:class:`~numkit.stop_criteria.IterationMonitor` can drive any Krylov method.
"""

import logging
from typing import Optional

import numpy as np

from .errors import InvalidArgumentError, NumericalBreakdownError
from .preconditioners import Preconditioner, UnitPreconditioner
from .sparse import as_sparse
from .stop_criteria import IterationMonitor, IterationStatus

logger = logging.getLogger(__name__)

_BREAKDOWN = np.finfo(np.float64).tiny


class BiCgStab:
    """
    Bi-conjugate gradient stabilized solver.

    Parameters
    ----------
    preconditioner : Preconditioner, optional
        Right preconditioner; :class:`UnitPreconditioner` when omitted.
    monitor : IterationMonitor, optional
        Stop criteria; :meth:`IterationMonitor.create_default` when omitted.

    Example
    -------
    >>> import numpy as np
    >>> from numkit.ilutp import Ilutp
    >>> A = np.array([[4.0, 1.0], [2.0, 5.0]])
    >>> x = BiCgStab(Ilutp()).solve(A, np.array([1.0, 2.0]))
    >>> bool(np.allclose(A @ x, [1.0, 2.0]))
    True
    """

    def __init__(
        self,
        preconditioner: Optional[Preconditioner] = None,
        monitor: Optional[IterationMonitor] = None,
    ):
        self.preconditioner = preconditioner if preconditioner is not None else UnitPreconditioner()
        self.monitor = monitor if monitor is not None else IterationMonitor.create_default()

    @property
    def iteration_result(self) -> IterationStatus:
        """Status reported by the monitor for the last solve."""
        return self.monitor.status

    def stop_solve(self) -> None:
        """Cancel a running solve; it returns at the next status check."""
        self.monitor.cancel()

    def solve(self, matrix, rhs, result: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Solve ``matrix @ x = rhs``.

        Parameters
        ----------
        matrix : SparseMatrix, scipy sparse matrix or 2-D ndarray
            Square coefficient matrix.
        rhs : (n,) array_like
            Right-hand side.
        result : (n,) ndarray, optional
            Initial guess; overwritten with the solution when given.

        Returns
        -------
        ndarray
            The last iterate. Check :attr:`iteration_result` to see whether
            it converged.

        Raises
        ------
        InvalidArgumentError : None arguments, non-square matrix or
            mismatched lengths.
        NumericalBreakdownError : rho or omega vanished.
        """
        A_sparse = as_sparse(matrix)
        if not A_sparse.is_square:
            raise InvalidArgumentError("Matrix must be square", "matrix")
        if rhs is None:
            raise InvalidArgumentError("Value cannot be None", "rhs")
        b = np.asarray(rhs)
        n = A_sparse.row_count
        if b.shape != (n,):
            raise InvalidArgumentError("All vectors must have the same dimensionality", "rhs")
        if result is not None and result.shape != (n,):
            raise InvalidArgumentError("All vectors must have the same dimensionality", "result")

        A = A_sparse.to_scipy()
        dtype = np.result_type(A.dtype, b.dtype, np.float64)
        b = b.astype(dtype)
        x = np.zeros(n, dtype=dtype) if result is None else result.astype(dtype)

        self.preconditioner.initialize(A_sparse)
        self.monitor.reset()

        r = b - A @ x
        r_tilde = r.copy()
        p = np.zeros(n, dtype=dtype)
        v = np.zeros(n, dtype=dtype)
        rho_prev = alpha = omega = 1.0

        iteration = 0
        while self.monitor.determine_status(iteration, x, b, r) is IterationStatus.CONTINUE:
            rho = np.vdot(r_tilde, r)
            if abs(rho) < _BREAKDOWN:
                raise NumericalBreakdownError(f"rho vanished at iteration {iteration}")

            if iteration == 0:
                p[:] = r
            else:
                beta = (rho / rho_prev) * (alpha / omega)
                p = r + beta * (p - omega * v)

            p_hat = self.preconditioner.approximate(p)
            v = A @ p_hat
            alpha = rho / np.vdot(r_tilde, v)
            s = r - alpha * v
            x_half = x + alpha * p_hat

            # Half step already good enough
            if self.monitor.determine_status(iteration, x_half, b, s).terminates_calculation:
                x = x_half
                break

            s_hat = self.preconditioner.approximate(s)
            t = A @ s_hat
            t_norm = np.vdot(t, t)
            if abs(t_norm) < _BREAKDOWN:
                raise NumericalBreakdownError(f"omega vanished at iteration {iteration}")
            omega = np.vdot(t, s) / t_norm
            if abs(omega) < _BREAKDOWN:
                raise NumericalBreakdownError(f"omega vanished at iteration {iteration}")

            x = x_half + omega * s_hat
            r = s - omega * t
            rho_prev = rho
            iteration += 1

        logger.debug(
            "BiCgStab finished after %d iterations: %s", iteration, self.monitor.status.value
        )
        if result is not None:
            result[:] = x
            return result
        return x
