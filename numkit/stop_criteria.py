# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Stop criteria for iterative solvers.

Each criterion is a small state machine advanced by ``determine_status``
once per iteration. Every state except ``CONTINUE`` terminates the
calculation. NaN values are an outcome here, not an exception: a solver
that blows up reports ``DIVERGED`` or ``FAILURE`` and the caller decides
what to do next.

Example
-------
>>> import numpy as np
>>> from numkit.stop_criteria import IterationCountStopCriterion, IterationStatus
>>> crit = IterationCountStopCriterion(10)
>>> v = np.ones(3)
>>> crit.determine_status(10, v, v, v) is IterationStatus.STOPPED_WITHOUT_CONVERGENCE
True
"""

import abc
import copy
import enum
import logging
import math
from typing import Iterable, List

import numpy as np

from .errors import ArgumentOutOfRangeError, InvalidArgumentError, require_not_none
from .utils import infinity_norm

logger = logging.getLogger(__name__)


class IterationStatus(enum.Enum):
    CONTINUE = "continue"
    CONVERGED = "converged"
    DIVERGED = "diverged"
    FAILURE = "failure"
    STOPPED_WITHOUT_CONVERGENCE = "stopped_without_convergence"
    CANCELLED = "cancelled"

    @property
    def terminates_calculation(self) -> bool:
        return self is not IterationStatus.CONTINUE


class StopLevel(enum.IntEnum):
    """Priority of a criterion when several terminate at once (lower wins)."""

    FAILURE = 0
    DIVERGENCE = 1
    STOPPED_WITHOUT_CONVERGENCE = 2
    CONVERGENCE = 3


def _vector(value, param: str) -> np.ndarray:
    return np.asarray(require_not_none(value, param))


class StopCriterion(abc.ABC):
    """Base class: argument checks, status bookkeeping, reset and clone."""

    stop_level: StopLevel = StopLevel.CONVERGENCE

    def __init__(self):
        self._status = IterationStatus.CONTINUE

    @property
    def status(self) -> IterationStatus:
        return self._status

    def determine_status(self, iteration: int, solution, source, residual) -> IterationStatus:
        """
        Advance the criterion by one observation.

        Parameters
        ----------
        iteration : int
            Zero-based iteration number.
        solution, source, residual : (n,) array_like
            Current iterate, right-hand side and residual. Must share a length.

        Returns
        -------
        IterationStatus
            The new status (also available as :attr:`status`).
        """
        if iteration < 0:
            raise ArgumentOutOfRangeError("iteration")
        solution = _vector(solution, "solution")
        source = _vector(source, "source")
        residual = _vector(residual, "residual")
        if solution.shape != source.shape:
            raise InvalidArgumentError("All vectors must have the same dimensionality", "source")
        if solution.shape != residual.shape:
            raise InvalidArgumentError("All vectors must have the same dimensionality", "residual")

        self._status = self._evaluate(iteration, solution, source, residual)
        return self._status

    @abc.abstractmethod
    def _evaluate(self, iteration, solution, source, residual) -> IterationStatus:
        ...

    def _reset_state(self) -> None:
        pass

    def reset(self) -> None:
        """Back to ``CONTINUE``; configuration is kept."""
        self._status = IterationStatus.CONTINUE
        self._reset_state()

    def clone(self) -> "StopCriterion":
        return copy.deepcopy(self)


class IterationCountStopCriterion(StopCriterion):
    """Stops without convergence once `maximum_iterations` is reached."""

    DEFAULT_MAXIMUM_ITERATIONS = 1000
    stop_level = StopLevel.STOPPED_WITHOUT_CONVERGENCE

    def __init__(self, maximum_iterations: int = DEFAULT_MAXIMUM_ITERATIONS):
        super().__init__()
        self.maximum_iterations = maximum_iterations

    @property
    def maximum_iterations(self) -> int:
        return self._maximum_iterations

    @maximum_iterations.setter
    def maximum_iterations(self, value: int) -> None:
        if value < 1:
            raise ArgumentOutOfRangeError("maximum_iterations")
        self._maximum_iterations = int(value)

    def reset_maximum_iterations_to_default(self) -> None:
        self._maximum_iterations = self.DEFAULT_MAXIMUM_ITERATIONS

    def _evaluate(self, iteration, solution, source, residual) -> IterationStatus:
        if iteration >= self._maximum_iterations:
            return IterationStatus.STOPPED_WITHOUT_CONVERGENCE
        return IterationStatus.CONTINUE


class ResidualStopCriterion(StopCriterion):
    """
    Converged once ``||r||_inf <= maximum * ||b||_inf`` has held for at
    least `minimum_iterations_below_maximum` iterations, counted from the
    last iteration observed above the threshold (or from before the first
    observation). NaN in the source or residual means divergence.
    """

    DEFAULT_MAXIMUM = 1e-12
    DEFAULT_MINIMUM_ITERATIONS_BELOW_MAXIMUM = 0

    def __init__(
        self,
        maximum: float = DEFAULT_MAXIMUM,
        minimum_iterations_below_maximum: int = DEFAULT_MINIMUM_ITERATIONS_BELOW_MAXIMUM,
    ):
        super().__init__()
        self.maximum = maximum
        self.minimum_iterations_below_maximum = minimum_iterations_below_maximum
        self._reset_state()

    @property
    def maximum(self) -> float:
        return self._maximum

    @maximum.setter
    def maximum(self, value: float) -> None:
        if value < 0:
            raise ArgumentOutOfRangeError("maximum")
        self._maximum = float(value)

    @property
    def minimum_iterations_below_maximum(self) -> int:
        return self._minimum_iterations

    @minimum_iterations_below_maximum.setter
    def minimum_iterations_below_maximum(self, value: int) -> None:
        if value < 0:
            raise ArgumentOutOfRangeError("minimum_iterations_below_maximum")
        self._minimum_iterations = int(value)

    @property
    def iterations_below_maximum(self) -> int:
        return self._iteration_count

    def reset_maximum_to_default(self) -> None:
        self._maximum = self.DEFAULT_MAXIMUM

    def reset_minimum_iterations_below_maximum_to_default(self) -> None:
        self._minimum_iterations = self.DEFAULT_MINIMUM_ITERATIONS_BELOW_MAXIMUM

    def _reset_state(self) -> None:
        self._iteration_count = 0
        self._last_iteration = -1
        self._run_start = None

    def _evaluate(self, iteration, solution, source, residual) -> IterationStatus:
        residual_norm = infinity_norm(residual)
        threshold = self._maximum * infinity_norm(source)

        if math.isnan(threshold) or math.isnan(residual_norm):
            self._iteration_count = 0
            self._run_start = None
            self._last_iteration = iteration
            return IterationStatus.DIVERGED

        # Out-of-order observations do not change the verdict
        if iteration < self._last_iteration:
            return self._status

        if residual_norm <= threshold:
            if self._run_start is None:
                self._run_start = self._last_iteration
            self._iteration_count = iteration - self._run_start
            status = (
                IterationStatus.CONVERGED
                if self._iteration_count >= self._minimum_iterations
                else IterationStatus.CONTINUE
            )
        else:
            self._iteration_count = 0
            self._run_start = None
            status = IterationStatus.CONTINUE

        self._last_iteration = iteration
        return status


class DivergenceStopCriterion(StopCriterion):
    """
    Diverged when the residual norm grew by more than
    `maximum_relative_increase` at every one of the last
    `minimum_iterations` steps, or immediately on NaN.
    """

    DEFAULT_MAXIMUM_RELATIVE_INCREASE = 0.08
    DEFAULT_MINIMUM_ITERATIONS = 10
    stop_level = StopLevel.DIVERGENCE

    def __init__(
        self,
        maximum_relative_increase: float = DEFAULT_MAXIMUM_RELATIVE_INCREASE,
        minimum_iterations: int = DEFAULT_MINIMUM_ITERATIONS,
    ):
        super().__init__()
        self.maximum_relative_increase = maximum_relative_increase
        self.minimum_iterations = minimum_iterations
        self._reset_state()

    @property
    def maximum_relative_increase(self) -> float:
        return self._maximum_relative_increase

    @maximum_relative_increase.setter
    def maximum_relative_increase(self, value: float) -> None:
        if value <= 0:
            raise ArgumentOutOfRangeError("maximum_relative_increase")
        self._maximum_relative_increase = float(value)

    @property
    def minimum_iterations(self) -> int:
        return self._minimum_iterations

    @minimum_iterations.setter
    def minimum_iterations(self, value: int) -> None:
        # Need at least three points to see a trend
        if value < 3:
            raise ArgumentOutOfRangeError("minimum_iterations")
        self._minimum_iterations = int(value)

    def reset_maximum_relative_increase_to_default(self) -> None:
        self._maximum_relative_increase = self.DEFAULT_MAXIMUM_RELATIVE_INCREASE

    def reset_minimum_iterations_to_default(self) -> None:
        self._minimum_iterations = self.DEFAULT_MINIMUM_ITERATIONS

    def _reset_state(self) -> None:
        self._last_iteration = -1
        self._history = None

    def _evaluate(self, iteration, solution, source, residual) -> IterationStatus:
        if iteration <= self._last_iteration:
            return self._status

        length = self._minimum_iterations + 1
        if self._history is None or len(self._history) != length:
            self._history = np.zeros(length)

        self._history[:-1] = self._history[1:].copy()
        self._history[-1] = infinity_norm(residual)

        if math.isnan(self._history[-1]):
            return IterationStatus.DIVERGED

        self._last_iteration = iteration
        if self._is_diverging():
            return IterationStatus.DIVERGED
        return IterationStatus.CONTINUE

    def _is_diverging(self) -> bool:
        previous = self._history[:-1]
        current = self._history[1:]
        growing = current - previous >= 0
        too_fast = previous * (1 + self._maximum_relative_increase) < current
        return bool(np.all(growing & too_fast))


class FailureStopCriterion(StopCriterion):
    """Fails as soon as the solution or residual holds NaN or infinity."""

    stop_level = StopLevel.FAILURE

    def __init__(self):
        super().__init__()
        self._reset_state()

    def _reset_state(self) -> None:
        self._last_iteration = -1

    def _evaluate(self, iteration, solution, source, residual) -> IterationStatus:
        if iteration <= self._last_iteration:
            return self._status
        self._last_iteration = iteration
        if not (np.all(np.isfinite(solution)) and np.all(np.isfinite(residual))):
            return IterationStatus.FAILURE
        return IterationStatus.CONTINUE


class IterationMonitor:
    """
    Runs a set of stop criteria side by side.

    All criteria observe every iteration; when several terminate at once
    the one with the lowest :class:`StopLevel` decides the status.
    """

    def __init__(self, criteria: Iterable[StopCriterion] = ()):
        self._criteria: List[StopCriterion] = []
        self._status = IterationStatus.CONTINUE
        self._cancelled = False
        for criterion in criteria:
            self.add(criterion)

    @classmethod
    def create_default(cls) -> "IterationMonitor":
        return cls(
            [
                FailureStopCriterion(),
                DivergenceStopCriterion(),
                IterationCountStopCriterion(),
                ResidualStopCriterion(),
            ]
        )

    @property
    def criteria(self) -> List[StopCriterion]:
        return list(self._criteria)

    @property
    def status(self) -> IterationStatus:
        return self._status

    def add(self, criterion: StopCriterion) -> None:
        if criterion is None:
            raise InvalidArgumentError("Value cannot be None", "criterion")
        if any(type(c) is type(criterion) for c in self._criteria):
            raise InvalidArgumentError(
                f"A {type(criterion).__name__} is already registered", "criterion"
            )
        self._criteria.append(criterion)

    def remove(self, criterion: StopCriterion) -> None:
        self._criteria.remove(criterion)

    def cancel(self) -> None:
        """Mark the calculation as cancelled; the next status is CANCELLED."""
        self._cancelled = True
        self._status = IterationStatus.CANCELLED

    def determine_status(self, iteration: int, solution, source, residual) -> IterationStatus:
        if not self._criteria:
            raise RuntimeError("No stop criteria have been registered")
        if self._cancelled:
            return self._status

        statuses = [
            (c.stop_level, c.determine_status(iteration, solution, source, residual))
            for c in self._criteria
        ]
        terminating = [s for s in statuses if s[1].terminates_calculation]
        if terminating:
            self._status = min(terminating, key=lambda s: s[0])[1]
            logger.debug("Iteration %d terminated: %s", iteration, self._status.value)
        else:
            self._status = IterationStatus.CONTINUE
        return self._status

    def reset(self) -> None:
        self._status = IterationStatus.CONTINUE
        self._cancelled = False
        for criterion in self._criteria:
            criterion.reset()

    def clone(self) -> "IterationMonitor":
        return IterationMonitor(c.clone() for c in self._criteria)
