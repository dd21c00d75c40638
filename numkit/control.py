# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Process-wide settings and the lifecycle of the shared worker pool.

The degree of parallelism defaults to the number of CPUs and can be
overridden with the ``NUMKIT_MAX_DEGREE_OF_PARALLELISM`` environment
variable. Changing it tears down the current pool; the next call to
:meth:`Control.worker_pool` builds a new one.
"""

import logging
import os
import threading
from typing import Optional

from .errors import ArgumentOutOfRangeError
from .parallel import WorkerPool

logger = logging.getLogger(__name__)

ENV_MAX_DEGREE = "NUMKIT_MAX_DEGREE_OF_PARALLELISM"
DEFAULT_PARALLELIZE_ORDER = 1024


def _default_degree() -> int:
    raw = os.environ.get(ENV_MAX_DEGREE)
    if raw:
        try:
            value = int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", ENV_MAX_DEGREE, raw)
        else:
            if value >= 1:
                return value
            logger.warning("Ignoring %s=%r, must be >= 1", ENV_MAX_DEGREE, raw)
    return os.cpu_count() or 1


class Control:
    """Global configuration, shared by every transform and preconditioner."""

    _lock = threading.Lock()
    _pool: Optional[WorkerPool] = None
    _max_degree_of_parallelism: int = _default_degree()
    _parallelize_order: int = DEFAULT_PARALLELIZE_ORDER

    @classmethod
    def max_degree_of_parallelism(cls) -> int:
        return cls._max_degree_of_parallelism

    @classmethod
    def set_max_degree_of_parallelism(cls, value: int) -> None:
        if value < 1:
            raise ArgumentOutOfRangeError("value")
        with cls._lock:
            if value == cls._max_degree_of_parallelism:
                return
            cls._max_degree_of_parallelism = int(value)
            cls._shutdown_locked()

    @classmethod
    def parallelize_order(cls) -> int:
        """Minimum transform length before kernels split work across workers."""
        return cls._parallelize_order

    @classmethod
    def set_parallelize_order(cls, value: int) -> None:
        if value < 1:
            raise ArgumentOutOfRangeError("value")
        cls._parallelize_order = int(value)

    @classmethod
    def use_single_thread(cls) -> None:
        cls.set_max_degree_of_parallelism(1)

    @classmethod
    def use_multi_thread(cls) -> None:
        cls.set_max_degree_of_parallelism(os.cpu_count() or 1)

    @classmethod
    def reset(cls) -> None:
        """Restore defaults (environment variable included)."""
        cls.set_max_degree_of_parallelism(_default_degree())
        cls._parallelize_order = DEFAULT_PARALLELIZE_ORDER

    @classmethod
    def worker_pool(cls) -> WorkerPool:
        with cls._lock:
            if cls._pool is None:
                cls._pool = WorkerPool(cls._max_degree_of_parallelism)
            return cls._pool

    @classmethod
    def shutdown(cls) -> None:
        with cls._lock:
            cls._shutdown_locked()

    @classmethod
    def _shutdown_locked(cls) -> None:
        if cls._pool is not None:
            cls._pool.shutdown()
            cls._pool = None
