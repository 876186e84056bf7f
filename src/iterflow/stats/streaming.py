"""
Streaming statistics stages.

Each operator yields one running result per upstream element and keeps
O(1) state, except the windowed extrema which keep at most ``size``
candidates.
"""

import math
from collections import deque
from typing import Any, Iterator, Optional, Tuple

from iterflow.config import config
from iterflow.stats.accumulators import RunningCovariance, RunningStats
from iterflow.streams.operators import StreamOperator
from iterflow.validation import to_number, validate_smoothing_factor, validate_window_size


class EwmaOperator(StreamOperator):
    """
    Exponentially weighted moving average.

    The first output equals the first input; afterwards
    ``out = alpha * x + (1 - alpha) * previous``. A NaN or infinite input
    carries into every later output.
    """

    def __init__(self, alpha: float):
        validate_smoothing_factor(alpha, "ewma")
        self.alpha = alpha

    def apply(self, iterator: Iterator[Any]) -> Iterator[float]:
        alpha = self.alpha
        previous: Optional[float] = None
        for item in iterator:
            x = to_number(item, "ewma")
            if previous is None:
                previous = x
            else:
                previous = alpha * x + (1 - alpha) * previous
            yield previous


class StreamingMeanOperator(StreamOperator):
    """Running mean after each element."""

    def apply(self, iterator: Iterator[Any]) -> Iterator[float]:
        stats = RunningStats()
        for item in iterator:
            stats.update(to_number(item, "streaming_mean"))
            yield stats.mean


class StreamingVarianceOperator(StreamOperator):
    """Running population variance after each element (Welford)."""

    def apply(self, iterator: Iterator[Any]) -> Iterator[float]:
        stats = RunningStats()
        for item in iterator:
            stats.update(to_number(item, "streaming_variance"))
            yield stats.variance


class StreamingCovarianceOperator(StreamOperator):
    """Running population covariance of (x, y) pairs."""

    def apply(self, iterator: Iterator[Tuple[Any, Any]]) -> Iterator[float]:
        acc = RunningCovariance()
        for x, y in iterator:
            acc.update(to_number(x, "streaming_covariance"), to_number(y, "streaming_covariance"))
            yield acc.covariance


class StreamingCorrelationOperator(StreamOperator):
    """Running Pearson correlation of (x, y) pairs; None while undefined."""

    def apply(self, iterator: Iterator[Tuple[Any, Any]]) -> Iterator[Optional[float]]:
        acc = RunningCovariance()
        for x, y in iterator:
            acc.update(to_number(x, "streaming_correlation"), to_number(y, "streaming_correlation"))
            yield acc.correlation


class StreamingZScoreOperator(StreamOperator):
    """
    Score each value against the mean and standard deviation of the
    values seen before it.

    Yields None until two prior values exist. While the prior standard
    deviation is zero a value equal to the prior mean scores 0.0 and any
    other value scores positive or negative infinity.
    """

    def apply(self, iterator: Iterator[Any]) -> Iterator[Optional[float]]:
        stats = RunningStats()
        for item in iterator:
            x = to_number(item, "streaming_zscore")
            if stats.count < 2:
                score = None
            else:
                std = stats.std_dev
                deviation = x - stats.mean
                if std == 0:
                    score = 0.0 if deviation == 0 else math.copysign(math.inf, deviation)
                else:
                    score = deviation / std
            stats.update(x)
            yield score


class WindowedExtremumOperator(StreamOperator):
    """
    Sliding-window minimum or maximum using a monotonic deque.

    The deque holds (index, value) candidates; each element is pushed and
    popped at most once, so the cost is O(1) amortised per element.
    """

    def __init__(self, size: int, largest: bool = False):
        operation = "windowed_max" if largest else "windowed_min"
        validate_window_size(size, config.max_window_size, operation)
        self.size = size
        self.largest = largest

    def apply(self, iterator: Iterator[Any]) -> Iterator[Any]:
        size = self.size
        candidates: deque = deque()
        if self.largest:
            dominated = lambda old, new: old <= new
        else:
            dominated = lambda old, new: old >= new

        for index, value in enumerate(iterator):
            while candidates and dominated(candidates[-1][1], value):
                candidates.pop()
            candidates.append((index, value))

            # Evict the candidate that slid out of the window
            if candidates[0][0] <= index - size:
                candidates.popleft()

            if index >= size - 1:
                yield candidates[0][1]
