# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Gauss-Legendre quadrature with a process-wide table cache.

Abscissas and weights are generated once per order and shared by every
caller. The cache is explicit (a dict behind a lock) so it can be cleared,
and the cached arrays are read-only so no caller can corrupt them.
"""

import logging
import threading
from typing import Callable, Dict, Tuple

import numpy as np
from numpy.polynomial.legendre import leggauss

from .errors import ArgumentOutOfRangeError

logger = logging.getLogger(__name__)

_cache: Dict[int, Tuple[np.ndarray, np.ndarray]] = {}
_cache_lock = threading.Lock()


def gauss_legendre_points(order: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Abscissas and weights of the `order`-point rule on [-1, 1].

    Returns
    -------
    (abscissas, weights) : tuple of read-only (order,) ndarrays
    """
    if order < 1:
        raise ArgumentOutOfRangeError("order")
    with _cache_lock:
        table = _cache.get(order)
        if table is None:
            abscissas, weights = leggauss(order)
            abscissas.setflags(write=False)
            weights.setflags(write=False)
            table = _cache[order] = (abscissas, weights)
            logger.debug("Computed Gauss-Legendre table of order %d", order)
    return table


def clear_gauss_point_cache() -> None:
    with _cache_lock:
        _cache.clear()


def cached_orders() -> Tuple[int, ...]:
    with _cache_lock:
        return tuple(sorted(_cache))


class GaussLegendreRule:
    """
    An `order`-point Gauss-Legendre rule, exact for polynomials of degree
    up to ``2 * order - 1``.
    """

    def __init__(self, order: int):
        self.abscissas, self.weights = gauss_legendre_points(order)

    @property
    def order(self) -> int:
        return len(self.weights)

    def integrate(self, f: Callable, a: float, b: float) -> float:
        """Integral of `f` over [a, b]; `f` is called once with all nodes."""
        half = 0.5 * (b - a)
        mid = 0.5 * (b + a)
        values = np.asarray(f(half * self.abscissas + mid))
        return half * np.dot(self.weights, values)

    def integrate_2d(
        self,
        f: Callable,
        a_x: float,
        b_x: float,
        a_y: float,
        b_y: float,
    ) -> float:
        """Tensor-product rule over the rectangle [a_x, b_x] x [a_y, b_y]."""
        half_x = 0.5 * (b_x - a_x)
        half_y = 0.5 * (b_y - a_y)
        x = half_x * self.abscissas + 0.5 * (b_x + a_x)
        y = half_y * self.abscissas + 0.5 * (b_y + a_y)
        X, Y = np.meshgrid(x, y, indexing="ij")
        values = np.asarray(f(X, Y))
        return half_x * half_y * (self.weights @ values @ self.weights)
