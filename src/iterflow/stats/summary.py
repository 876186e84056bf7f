"""
Terminal statistics over numeric sequences.

Every function consumes its input once. On an empty sequence the
behaviour follows ``on_empty``: ``EmptyPolicy.RAISE`` raises an
EMPTY_SEQUENCE error, ``EmptyPolicy.RETURN_NONE`` returns None. When
``on_empty`` is omitted the configured default applies. Policies may be
given as enum members or their names (``"raise"``, ``"return_none"``);
an unknown name is a VALIDATION error raised before any input is read.

Order statistics (median, percentile, quartiles) buffer the input and
honour ``nan_policy``: ``NanPolicy.OMIT`` drops NaN before selection,
``NanPolicy.PROPAGATE`` returns NaN when any is present.
"""

import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Tuple

from iterflow.algorithms.selection import median_of, percentile_of, quartiles_of
from iterflow.config import EmptyPolicy, NanPolicy, resolve_empty_policy, resolve_nan_policy
from iterflow.errors import empty_sequence_error, validation_error
from iterflow.memory import BufferGuard
from iterflow.stats.accumulators import RunningCovariance, RunningStats
from iterflow.validation import to_number, validate_range


def _empty(operation: str, policy: EmptyPolicy) -> None:
    if policy == EmptyPolicy.RAISE:
        raise empty_sequence_error(operation)
    return None


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def _buffer_numbers(data: Iterable[Any], operation: str) -> List[float]:
    guard = BufferGuard(operation)
    values: List[float] = []
    for item in data:
        values.append(to_number(item, operation))
        guard.track(len(values))
    return values


def _order_statistic_input(data: Iterable[Any],
                           operation: str,
                           nan_policy: NanPolicy) -> Tuple[List[float], bool]:
    """Buffer values for selection; returns (values, had_nan)."""
    values = _buffer_numbers(data, operation)
    had_nan = any(_is_nan(v) for v in values)
    if had_nan and nan_policy == NanPolicy.OMIT:
        values = [v for v in values if not _is_nan(v)]
    return values, had_nan


def sum(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    policy = resolve_empty_policy(on_empty, "sum")
    total = 0
    count = 0
    for item in data:
        total += to_number(item, "sum")
        count += 1
    if count == 0:
        return _empty("sum", policy)
    return total


def mean(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    policy = resolve_empty_policy(on_empty, "mean")
    stats = RunningStats()
    for item in data:
        stats.update(to_number(item, "mean"))
    if stats.count == 0:
        return _empty("mean", policy)
    return stats.mean


def min(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    policy = resolve_empty_policy(on_empty, "min")
    result = None
    for item in data:
        value = to_number(item, "min")
        if result is None or value < result:
            result = value
    if result is None:
        return _empty("min", policy)
    return result


def max(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    policy = resolve_empty_policy(on_empty, "max")
    result = None
    for item in data:
        value = to_number(item, "max")
        if result is None or value > result:
            result = value
    if result is None:
        return _empty("max", policy)
    return result


def span(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    """Difference between the largest and smallest value."""
    policy = resolve_empty_policy(on_empty, "span")
    low = high = None
    for item in data:
        value = to_number(item, "span")
        if low is None or value < low:
            low = value
        if high is None or value > high:
            high = value
    if low is None:
        return _empty("span", policy)
    return high - low


def product(data: Iterable[Any]) -> float:
    """Product of all values; 1 for an empty sequence."""
    result = 1
    for item in data:
        result *= to_number(item, "product")
    return result


def variance(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    """Population variance using Welford's online algorithm."""
    policy = resolve_empty_policy(on_empty, "variance")
    stats = RunningStats()
    for item in data:
        stats.update(to_number(item, "variance"))
    if stats.count == 0:
        return _empty("variance", policy)
    return stats.variance


def std_dev(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    policy = resolve_empty_policy(on_empty, "std_dev")
    stats = RunningStats()
    for item in data:
        stats.update(to_number(item, "std_dev"))
    if stats.count == 0:
        return _empty("std_dev", policy)
    return stats.std_dev


def median(data: Iterable[Any],
           on_empty: Optional[EmptyPolicy] = None,
           nan_policy: Optional[NanPolicy] = None) -> Optional[float]:
    policy = resolve_empty_policy(on_empty, "median")
    nans = resolve_nan_policy(nan_policy, "median")
    values, had_nan = _order_statistic_input(data, "median", nans)
    if not values:
        if had_nan:
            return math.nan
        return _empty("median", policy)
    if had_nan and nans == NanPolicy.PROPAGATE:
        return math.nan
    return median_of(values)


def percentile(data: Iterable[Any],
               p: float,
               on_empty: Optional[EmptyPolicy] = None,
               nan_policy: Optional[NanPolicy] = None) -> Optional[float]:
    """
    Linearly interpolated percentile.

    Args:
        data: Numeric values
        p: Percentile in [0, 100], validated before the input is read
        on_empty: Empty-sequence policy
        nan_policy: NaN policy

    Returns:
        The interpolated value at rank p/100 * (n - 1)
    """
    validate_range(p, 0, 100, "percentile", "percentile")
    policy = resolve_empty_policy(on_empty, "percentile")
    nans = resolve_nan_policy(nan_policy, "percentile")

    values, had_nan = _order_statistic_input(data, "percentile", nans)
    if not values:
        if had_nan:
            return math.nan
        return _empty("percentile", policy)
    if had_nan and nans == NanPolicy.PROPAGATE:
        return math.nan
    return percentile_of(values, p)


def quartiles(data: Iterable[Any],
              on_empty: Optional[EmptyPolicy] = None,
              nan_policy: Optional[NanPolicy] = None) -> Optional[Dict[str, float]]:
    """Q1, Q2 and Q3 as a dict keyed ``"Q1"``, ``"Q2"``, ``"Q3"``."""
    policy = resolve_empty_policy(on_empty, "quartiles")
    nans = resolve_nan_policy(nan_policy, "quartiles")
    values, had_nan = _order_statistic_input(data, "quartiles", nans)
    if had_nan and (not values or nans == NanPolicy.PROPAGATE):
        return {"Q1": math.nan, "Q2": math.nan, "Q3": math.nan}
    if not values:
        return _empty("quartiles", policy)
    return quartiles_of(values)


def mode(data: Iterable[Any], on_empty: Optional[EmptyPolicy] = None) -> Optional[List[float]]:
    """All values sharing the highest frequency, sorted ascending."""
    policy = resolve_empty_policy(on_empty, "mode")
    guard = BufferGuard("mode")
    frequency: Counter = Counter()
    highest = 0
    for item in data:
        value = to_number(item, "mode")
        frequency[value] += 1
        if frequency[value] > highest:
            highest = frequency[value]
        if frequency[value] == 1:
            guard.track(len(frequency))
    if highest == 0:
        return _empty("mode", policy)
    return sorted(value for value, count in frequency.items() if count == highest)


def length_mismatch(operation: str, policy: EmptyPolicy, compared: int) -> None:
    """Unequal paired inputs: VALIDATION under RAISE, None otherwise."""
    if policy == EmptyPolicy.RAISE:
        raise validation_error(
            "Sequences must have the same length", operation,
            compared=compared,
        )
    return None


def _paired(xs: Iterable[Any], ys: Iterable[Any], operation: str,
            on_empty: Optional[EmptyPolicy]) -> Optional[RunningCovariance]:
    policy = resolve_empty_policy(on_empty, operation)
    acc = RunningCovariance()
    left = iter(xs)
    right = iter(ys)
    sentinel = object()
    while True:
        x = next(left, sentinel)
        y = next(right, sentinel)
        if x is sentinel and y is sentinel:
            break
        if x is sentinel or y is sentinel:
            return length_mismatch(operation, policy, acc.count)
        acc.update(to_number(x, operation), to_number(y, operation))
    if acc.count == 0:
        return _empty(operation, policy)
    return acc


def covariance(xs: Iterable[Any], ys: Iterable[Any],
               on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    """Population covariance of two equal-length sequences."""
    acc = _paired(xs, ys, "covariance", on_empty)
    return None if acc is None else acc.covariance


def correlation(xs: Iterable[Any], ys: Iterable[Any],
                on_empty: Optional[EmptyPolicy] = None) -> Optional[float]:
    """Pearson correlation; None when either sequence has zero variance."""
    acc = _paired(xs, ys, "correlation", on_empty)
    return None if acc is None else acc.correlation
