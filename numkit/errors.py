# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Exception hierarchy shared by the transforms, the preconditioners and the
iterative solvers.
"""

from typing import Optional, Sequence


class InvalidArgumentError(ValueError):
    """An argument failed validation at the API boundary."""

    def __init__(self, message: str, param: Optional[str] = None):
        self.param = param
        if param is not None:
            message = f"{message} (parameter: {param})"
        super().__init__(message)


class ArgumentOutOfRangeError(InvalidArgumentError):
    """A numeric argument lies outside its allowed domain."""

    def __init__(self, param: str, message: Optional[str] = None):
        super().__init__(message or "Value is out of range", param)


class MatrixNotInitializedError(RuntimeError):
    """A preconditioner was used before ``initialize`` was called."""

    def __init__(self, message: str = "The matrix does not exist; call initialize() first"):
        super().__init__(message)


class NumericalBreakdownError(ArithmeticError):
    """An iterative solver hit a division by (numerically) zero."""


class WorkerPoolError(ExceptionGroup):
    """Every exception raised by the workers of one parallel loop."""

    def __new__(cls, message: str, exceptions: Sequence[Exception]):
        return super().__new__(cls, message, exceptions)

    def derive(self, excs):
        return WorkerPoolError(self.message, excs)


def require_not_none(value, param: str):
    if value is None:
        raise InvalidArgumentError("Value cannot be None", param)
    return value
