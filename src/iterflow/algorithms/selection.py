"""
Order statistics via quickselect.

Median and percentiles are found by partial partitioning instead of a
full sort: expected O(n) per selection.
"""

import math
from typing import Any, Dict, List, MutableSequence


def _median_of_three(data: MutableSequence[Any], lo: int, hi: int) -> int:
    """Order data[lo], data[mid], data[hi] in place; the median ends at mid."""
    mid = (lo + hi) // 2
    if data[mid] < data[lo]:
        data[lo], data[mid] = data[mid], data[lo]
    if data[hi] < data[lo]:
        data[lo], data[hi] = data[hi], data[lo]
    if data[hi] < data[mid]:
        data[mid], data[hi] = data[hi], data[mid]
    return mid


def _hoare_partition(data: MutableSequence[Any], lo: int, hi: int) -> int:
    """
    Partition data[lo:hi+1] around a median-of-three pivot.

    Returns j with lo <= j < hi such that every element of data[lo:j+1]
    is <= every element of data[j+1:hi+1].
    """
    pivot = data[_median_of_three(data, lo, hi)]
    i = lo - 1
    j = hi + 1
    while True:
        i += 1
        while data[i] < pivot:
            i += 1
        j -= 1
        while data[j] > pivot:
            j -= 1
        if i >= j:
            return j
        data[i], data[j] = data[j], data[i]


def quickselect(data: MutableSequence[Any], k: int) -> Any:
    """
    Return the k-th smallest element (0-based), reordering data in place.

    On return every element before position k is <= data[k] and every
    element after it is >= data[k].
    """
    if not 0 <= k < len(data):
        raise IndexError(f"k={k} out of range for {len(data)} elements")

    lo, hi = 0, len(data) - 1
    while lo < hi:
        p = _hoare_partition(data, lo, hi)
        if k <= p:
            hi = p
        else:
            lo = p + 1
    return data[k]


def _select_pair(data: MutableSequence[Any], k: int):
    """The k-th and (k+1)-th smallest elements."""
    lower = quickselect(data, k)
    if k + 1 >= len(data):
        return lower, lower
    # After selection everything right of k is >= lower
    return lower, min(data[k + 1:])


def median_of(data: List[float]) -> float:
    """Median of a non-empty list; the list is reordered."""
    n = len(data)
    mid = n // 2
    if n % 2:
        return quickselect(data, mid)
    lower, upper = _select_pair(data, mid - 1)
    return (lower + upper) / 2


def percentile_of(data: List[float], p: float) -> float:
    """
    Linearly interpolated percentile of a non-empty list, p in [0, 100].

    The rank is p/100 * (n - 1); fractional ranks blend the two
    neighbouring order statistics.
    """
    n = len(data)
    if p == 0:
        return min(data)
    if p == 100:
        return max(data)

    rank = (p / 100) * (n - 1)
    lower_index = math.floor(rank)
    weight = rank - lower_index
    if weight == 0:
        return quickselect(data, lower_index)

    lower, upper = _select_pair(data, lower_index)
    return lower * (1 - weight) + upper * weight


def quartiles_of(data: List[float]) -> Dict[str, float]:
    return {
        "Q1": percentile_of(data, 25),
        "Q2": percentile_of(data, 50),
        "Q3": percentile_of(data, 75),
    }
