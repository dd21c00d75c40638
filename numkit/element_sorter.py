# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Heap sorts used by the ILUTP preconditioner to pick the largest entries
of a work row. All sorts are in place and produce decreasing order; they
are not stable.
"""

from typing import Callable, List, MutableSequence, Sequence

import numpy as np


def _heap_sort_decreasing(items: MutableSequence, lo: int, hi: int, key: Callable) -> None:
    """Sort items[lo..hi] (inclusive) in decreasing `key` order."""
    count = hi - lo + 1
    if count < 2:
        return

    def sift(root: int, size: int) -> None:
        # min-heap over items[lo : lo + size]
        while True:
            child = 2 * root + 1
            if child >= size:
                return
            if child + 1 < size and key(items[lo + child + 1]) < key(items[lo + child]):
                child += 1
            if key(items[lo + child]) < key(items[lo + root]):
                items[lo + root], items[lo + child] = items[lo + child], items[lo + root]
                root = child
            else:
                return

    for root in range(count // 2 - 1, -1, -1):
        sift(root, count)
    # Moving the current minimum to the back leaves the range decreasing
    for end in range(count - 1, 0, -1):
        items[lo], items[lo + end] = items[lo + end], items[lo]
        sift(0, end)


def sort_integers_decreasing(values: MutableSequence[int]) -> None:
    """Heap sort a sequence of integers into decreasing order, in place."""
    _heap_sort_decreasing(values, 0, len(values) - 1, key=lambda v: v)


def sort_double_indices_decreasing(
    lower_bound: int,
    upper_bound: int,
    sorted_indices: MutableSequence[int],
    values: Sequence,
) -> None:
    """
    Sort ``sorted_indices[lower_bound..upper_bound]`` so that the indices
    refer to entries of `values` in decreasing magnitude.

    The sorted block is moved to the front of `sorted_indices` first, so
    on return the result occupies positions ``0..upper_bound-lower_bound``.
    Magnitude is the complex modulus for complex values.
    """
    if lower_bound > 0:
        for i in range(upper_bound - lower_bound + 1):
            j = i + lower_bound
            sorted_indices[i], sorted_indices[j] = sorted_indices[j], sorted_indices[i]
        upper_bound -= lower_bound
        lower_bound = 0

    magnitudes = np.abs(np.asarray(values))
    _heap_sort_decreasing(sorted_indices, lower_bound, upper_bound, key=lambda idx: magnitudes[idx])


def find_largest_items(
    lower_bound: int,
    upper_bound: int,
    sorted_indices: List[int],
    values: Sequence,
) -> None:
    """
    Fill `sorted_indices` with ``lower_bound..upper_bound`` followed by
    ``-1`` padding, then order the real indices by decreasing magnitude.
    """
    span = max(0, upper_bound + 1 - lower_bound)
    for i in range(len(sorted_indices)):
        sorted_indices[i] = lower_bound + i if i < span else -1
    if span > 1:
        sort_double_indices_decreasing(0, span - 1, sorted_indices, values)


def largest_nonzero(candidates: Sequence[int], values: np.ndarray, count: int) -> List[int]:
    """
    Up to `count` indices from `candidates` whose entries in `values` have
    the largest magnitude; zero entries are never returned.
    """
    if count <= 0:
        return []
    indices = [int(c) for c in candidates if values[c] != 0]
    if not indices:
        return []
    sort_double_indices_decreasing(0, len(indices) - 1, indices, values)
    return indices[:count]
