# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Data-parallel loops over index ranges.

A :class:`WorkerPool` splits ``[start, stop)`` into contiguous, disjoint
ranges and runs one body call per range on a fixed set of threads. NumPy
releases the GIL inside its vectorised kernels, so the ranges genuinely
overlap in time for the transform sizes we care about.

Work submitted from inside a worker runs inline: a nested loop would
otherwise wait on a pool that is already saturated by its parent.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .errors import ArgumentOutOfRangeError, InvalidArgumentError, WorkerPoolError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_context = threading.local()


def in_worker() -> bool:
    """True when the calling thread is executing a pool task."""
    return getattr(_context, "active", False)


def partition(start: int, stop: int, range_size: int) -> List[Tuple[int, int]]:
    """Split [start, stop) into contiguous (lo, hi) chunks of `range_size`."""
    return [(lo, min(lo + range_size, stop)) for lo in range(start, stop, range_size)]


class WorkerPool:
    """
    Fixed-size thread pool with a join-on-completion ``parallel_for``.

    The pool is created explicitly and must be shut down by its owner
    (or used as a context manager).
    """

    def __init__(self, max_workers: int):
        if max_workers < 1:
            raise ArgumentOutOfRangeError("max_workers")
        self.max_workers = int(max_workers)
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.max_workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="numkit-worker"
            )
        logger.debug("Started worker pool with %d worker(s)", self.max_workers)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    @property
    def is_parallel(self) -> bool:
        return self._executor is not None

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.debug("Worker pool shut down")

    def _run_tasks(self, tasks: Sequence[Callable[[], T]]) -> List[T]:
        """Run every task, wait for all of them, then raise collected failures."""

        def guarded(task):
            _context.active = True
            try:
                return task()
            finally:
                _context.active = False

        futures = [self._executor.submit(guarded, task) for task in tasks]
        results = []
        errors = []
        for future in futures:
            exc = future.exception()
            if exc is not None:
                errors.append(exc)
            else:
                results.append(future.result())
        if errors:
            raise WorkerPoolError(
                f"{len(errors)} of {len(tasks)} parallel task(s) failed", errors
            )
        return results

    def _sequential(self, length: int, range_size: int) -> bool:
        return (
            self._executor is None
            or in_worker()
            or range_size * 2 > length
        )

    def parallel_for(
        self,
        start: int,
        stop: int,
        body: Callable[[int, int], None],
        range_size: Optional[int] = None,
    ) -> None:
        """
        Call ``body(lo, hi)`` on disjoint sub-ranges covering [start, stop).

        Returns only after every sub-range has completed. Ranges that
        are too small to be worth splitting run inline on the caller.

        Raises
        ------
        WorkerPoolError
            Aggregating the exception of every failed sub-range.
        """
        if body is None:
            raise InvalidArgumentError("Value cannot be None", "body")
        if start < 0:
            raise ArgumentOutOfRangeError("start")
        if start > stop:
            raise ArgumentOutOfRangeError("stop")
        length = stop - start
        if range_size is None:
            range_size = max(1, length // self.max_workers)
        if range_size < 1:
            raise ArgumentOutOfRangeError("range_size")
        if length == 0:
            return

        if self._sequential(length, range_size):
            body(start, stop)
            return

        chunks = partition(start, stop, range_size)
        self._run_tasks([lambda lo=lo, hi=hi: body(lo, hi) for lo, hi in chunks])

    def invoke(self, *actions: Callable[[], None]) -> None:
        """Run independent actions, possibly concurrently."""
        if not actions:
            return
        if len(actions) == 1 or self._executor is None or in_worker():
            for action in actions:
                action()
            return
        self._run_tasks(list(actions))

    def aggregate(
        self,
        start: int,
        stop: int,
        select: Callable[[int], T],
        reduce: Callable[[List[T]], T],
    ) -> T:
        """Map `select` over [start, stop) and fold the results with `reduce`."""
        if select is None:
            raise InvalidArgumentError("Value cannot be None", "select")
        if reduce is None:
            raise InvalidArgumentError("Value cannot be None", "reduce")
        if start >= stop:
            return reduce([])
        if stop - start == 1:
            return reduce([select(start)])

        length = stop - start
        range_size = max(1, length // self.max_workers)
        if self._sequential(length, range_size):
            return reduce([select(k) for k in range(start, stop)])

        chunks = partition(start, stop, range_size)
        parts = self._run_tasks(
            [lambda lo=lo, hi=hi: [select(k) for k in range(lo, hi)] for lo, hi in chunks]
        )
        return reduce([item for part in parts for item in part])
