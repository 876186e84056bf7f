"""
Lazy, pull-based streams.
"""

import math
import numbers
from typing import (
    Any, Callable, Dict, Hashable, Iterable, Iterator, List, Optional,
    TypeVar, Union, Tuple
)

import numpy as np

from iterflow.config import EmptyPolicy, NanPolicy
from iterflow.errors import index_out_of_bounds, validation_error
from iterflow.streams.operators import (
    StreamOperator, MapOperator, FilterOperator, FlatMapOperator, EnumerateOperator,
    TakeOperator, SkipOperator, TakeWhileOperator, DropWhileOperator,
    DistinctOperator, ConcatOperator, IntersperseOperator, ScanOperator,
    TapOperator, ChunkOperator, WindowOperator, PairwiseOperator, ZipOperator,
    InterleaveOperator, MergeOperator, ReverseOperator, SortOperator,
)
from iterflow.validation import (
    validate_callable,
    validate_finite_number,
    validate_non_negative_integer,
    validate_non_zero,
)

T = TypeVar('T')
U = TypeVar('U')
K = TypeVar('K')

_MISSING = object()


class Stream(Iterable[T]):
    """
    A lazy stream: a source plus a chain of stages.

    Building a chain never touches the source. Work happens only when a
    terminal (``collect``, ``sum``, a ``for`` loop...) pulls elements, and
    each stage pulls from the one before it one element at a time.
    """

    def __init__(self, source: Union[Iterable[T], Iterator[T], Callable[[], Iterator[T]]]):
        """
        Initialize stream.

        Args:
            source: Data source (iterable, iterator, or callable returning iterator).
                An iterator source can be consumed only once.
        """
        if callable(source) and not hasattr(source, '__iter__'):
            self._source = source
        elif hasattr(source, '__iter__'):
            self._source = lambda: iter(source)
        else:
            raise TypeError("Source must be iterable or callable")

        self._operators: List[StreamOperator] = []

    def __iter__(self) -> Iterator[T]:
        """Create iterator with all operators applied."""
        iterator = iter(self._source())

        for op in self._operators:
            iterator = op.apply(iterator)

        return iterator

    def _then(self, operator: StreamOperator) -> 'Stream[Any]':
        new_stream = Stream(self._source)
        new_stream._operators = self._operators + [operator]
        return new_stream

    # Transformation operators

    def map(self, func: Callable[[T], U]) -> 'Stream[U]':
        """Apply function to each element."""
        return self._then(MapOperator(func))

    def filter(self, predicate: Callable[[T], bool]) -> 'Stream[T]':
        """Keep only elements matching predicate."""
        return self._then(FilterOperator(predicate))

    def flat_map(self, func: Callable[[T], Iterable[U]]) -> 'Stream[U]':
        """Map each element to multiple elements."""
        return self._then(FlatMapOperator(func))

    def enumerate(self, start: int = 0) -> 'Stream[Tuple[int, T]]':
        """Pair each element with its index, counting from ``start``."""
        return self._then(EnumerateOperator(start))

    def take(self, n: int) -> 'Stream[T]':
        """Take first n elements; n is validated immediately."""
        return self._then(TakeOperator(n))

    def drop(self, n: int) -> 'Stream[T]':
        """Skip first n elements; n is validated immediately."""
        return self._then(SkipOperator(n))

    skip = drop

    def take_while(self, predicate: Callable[[T], bool]) -> 'Stream[T]':
        """Take elements until predicate first fails."""
        return self._then(TakeWhileOperator(predicate))

    def drop_while(self, predicate: Callable[[T], bool]) -> 'Stream[T]':
        """Skip elements while predicate holds, then pass the rest."""
        return self._then(DropWhileOperator(predicate))

    def distinct(self) -> 'Stream[T]':
        """Remove duplicate elements (elements must be hashable)."""
        return self._then(DistinctOperator())

    def distinct_by(self, key_func: Callable[[T], Hashable]) -> 'Stream[T]':
        """Remove elements whose key was already seen."""
        return self._then(DistinctOperator(key_func))

    def concat(self, *others: Iterable[T]) -> 'Stream[T]':
        """Append other iterables after this stream."""
        return self._then(ConcatOperator(*others))

    def intersperse(self, separator: T) -> 'Stream[T]':
        """Insert separator between consecutive elements."""
        return self._then(IntersperseOperator(separator))

    def scan(self, func: Callable[[U, T], U], initial: U) -> 'Stream[U]':
        """Running fold; yields ``initial`` followed by each accumulator."""
        return self._then(ScanOperator(func, initial))

    def tap(self, func: Callable[[T], Any]) -> 'Stream[T]':
        """Call func on each element for its side effect."""
        return self._then(TapOperator(func))

    def chunk(self, size: int) -> 'Stream[List[T]]':
        """Group elements into chunks; the last one may be short."""
        return self._then(ChunkOperator(size))

    def window(self, size: int) -> 'Stream[List[T]]':
        """Sliding windows of ``size`` consecutive elements."""
        return self._then(WindowOperator(size))

    def pairwise(self) -> 'Stream[Tuple[T, T]]':
        """Consecutive (previous, current) pairs."""
        return self._then(PairwiseOperator())

    def zip(self, *others: Iterable[Any]) -> 'Stream[Tuple[Any, ...]]':
        """Tuples of corresponding elements, stopping at the shortest input."""
        return self._then(ZipOperator(*others))

    def interleave(self, *others: Iterable[T]) -> 'Stream[T]':
        """Round-robin over this stream and the others until all are exhausted."""
        return self._then(InterleaveOperator(*others))

    def merge(self, *others: Iterable[T],
              comparator: Optional[Callable[[T, T], int]] = None) -> 'Stream[T]':
        """Merge this sorted stream with other sorted iterables."""
        return self._then(MergeOperator(*others, comparator=comparator))

    # Buffering operators: these drain the upstream on first pull

    def reverse(self) -> 'Stream[T]':
        """Yield elements in reverse order."""
        return self._then(ReverseOperator())

    def sort(self, key: Optional[Callable[[T], Any]] = None, reverse: bool = False) -> 'Stream[T]':
        """Sort elements."""
        return self._then(SortOperator(key=key, reverse=reverse))

    def sort_by(self, comparator: Callable[[T, T], int]) -> 'Stream[T]':
        """Sort with a ``cmp(a, b)`` comparator."""
        return self._then(SortOperator(comparator=comparator))

    # Streaming statistics

    def ewma(self, alpha: float) -> 'Stream[float]':
        """Exponentially weighted moving average, alpha in (0, 1]."""
        from iterflow.stats.streaming import EwmaOperator
        return self._then(EwmaOperator(alpha))

    def streaming_mean(self) -> 'Stream[float]':
        from iterflow.stats.streaming import StreamingMeanOperator
        return self._then(StreamingMeanOperator())

    def streaming_variance(self) -> 'Stream[float]':
        from iterflow.stats.streaming import StreamingVarianceOperator
        return self._then(StreamingVarianceOperator())

    def streaming_covariance(self) -> 'Stream[float]':
        """Running covariance of a stream of (x, y) pairs."""
        from iterflow.stats.streaming import StreamingCovarianceOperator
        return self._then(StreamingCovarianceOperator())

    def streaming_correlation(self) -> 'Stream[Optional[float]]':
        """Running correlation of a stream of (x, y) pairs."""
        from iterflow.stats.streaming import StreamingCorrelationOperator
        return self._then(StreamingCorrelationOperator())

    def streaming_zscore(self) -> 'Stream[Optional[float]]':
        from iterflow.stats.streaming import StreamingZScoreOperator
        return self._then(StreamingZScoreOperator())

    def windowed_min(self, size: int) -> 'Stream[T]':
        from iterflow.stats.streaming import WindowedExtremumOperator
        return self._then(WindowedExtremumOperator(size))

    def windowed_max(self, size: int) -> 'Stream[T]':
        from iterflow.stats.streaming import WindowedExtremumOperator
        return self._then(WindowedExtremumOperator(size, largest=True))

    # Parallel stages

    def map_parallel(self, func: Callable[[T], Any], concurrency: Optional[int] = None):
        """Map with up to ``concurrency`` calls in flight; returns an AsyncStream."""
        from iterflow.streams.async_stream import AsyncStream
        return AsyncStream(self).map_parallel(func, concurrency)

    def filter_parallel(self, predicate: Callable[[T], Any], concurrency: Optional[int] = None):
        from iterflow.streams.async_stream import AsyncStream
        return AsyncStream(self).filter_parallel(predicate, concurrency)

    def flat_map_parallel(self, func: Callable[[T], Any], concurrency: Optional[int] = None):
        from iterflow.streams.async_stream import AsyncStream
        return AsyncStream(self).flat_map_parallel(func, concurrency)

    # Terminal operators

    def collect(self) -> List[T]:
        """Collect all elements into a list."""
        return list(self)

    to_list = collect

    def to_numpy(self, dtype: Any = float) -> np.ndarray:
        """Collect all elements into a one-dimensional numpy array."""
        return np.fromiter(iter(self), dtype=dtype)

    def reduce(self, func: Callable[[U, T], U], initial: U) -> U:
        """Reduce stream to single value."""
        result = initial
        for item in self:
            result = func(result, item)
        return result

    def count(self) -> int:
        """Count elements."""
        return sum(1 for _ in self)

    def first(self, default: Optional[T] = None) -> Optional[T]:
        """Get first element."""
        for item in self:
            return item
        return default

    def last(self, default: Optional[T] = None) -> Optional[T]:
        result = default
        for item in self:
            result = item
        return result

    def nth(self, index: int, default: Any = _MISSING) -> T:
        """
        Element at ``index`` (0-based).

        Raises an INDEX_OUT_OF_BOUNDS error when the stream is too short
        and no default is given.
        """
        validate_non_negative_integer(index, "index", "nth")
        seen = 0
        for position, item in enumerate(self):
            if position == index:
                return item
            seen = position + 1
        if default is _MISSING:
            raise index_out_of_bounds(index, seen, "nth")
        return default

    def find(self, predicate: Callable[[T], bool]) -> Optional[T]:
        for item in self:
            if predicate(item):
                return item
        return None

    def find_index(self, predicate: Callable[[T], bool]) -> int:
        """Position of the first match, or -1."""
        for position, item in enumerate(self):
            if predicate(item):
                return position
        return -1

    def some(self, predicate: Callable[[T], bool]) -> bool:
        return any(predicate(item) for item in self)

    def every(self, predicate: Callable[[T], bool]) -> bool:
        return all(predicate(item) for item in self)

    def includes(self, value: T) -> bool:
        return any(item == value for item in self)

    def is_empty(self) -> bool:
        for _ in self:
            return False
        return True

    def foreach(self, func: Callable[[T], None]) -> None:
        """Apply function to each element."""
        for item in self:
            func(item)

    def partition(self, predicate: Callable[[T], bool]) -> Tuple[List[T], List[T]]:
        """Split into (matching, not matching)."""
        matching, rest = [], []
        for item in self:
            (matching if predicate(item) else rest).append(item)
        return matching, rest

    def group_by(self, key_func: Callable[[T], K]) -> Dict[K, List[T]]:
        """Group elements by key, preserving first-seen key order."""
        groups: Dict[K, List[T]] = {}
        for item in self:
            groups.setdefault(key_func(item), []).append(item)
        return groups

    # Statistical terminals

    def sum(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.sum(self, on_empty)

    def mean(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.mean(self, on_empty)

    def min(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.min(self, on_empty)

    def max(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.max(self, on_empty)

    def span(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.span(self, on_empty)

    def product(self):
        from iterflow import stats
        return stats.product(self)

    def variance(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.variance(self, on_empty)

    def std_dev(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.std_dev(self, on_empty)

    stddev = std_dev

    def median(self, on_empty: Optional[EmptyPolicy] = None,
               nan_policy: Optional[NanPolicy] = None):
        from iterflow import stats
        return stats.median(self, on_empty, nan_policy)

    def percentile(self, p: float, on_empty: Optional[EmptyPolicy] = None,
                   nan_policy: Optional[NanPolicy] = None):
        from iterflow import stats
        return stats.percentile(self, p, on_empty, nan_policy)

    def quartiles(self, on_empty: Optional[EmptyPolicy] = None,
                  nan_policy: Optional[NanPolicy] = None):
        from iterflow import stats
        return stats.quartiles(self, on_empty, nan_policy)

    def mode(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.mode(self, on_empty)

    def covariance(self, other: Iterable[Any], on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.covariance(self, other, on_empty)

    def correlation(self, other: Iterable[Any], on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        return stats.correlation(self, other, on_empty)

    # Factory methods

    @classmethod
    def from_iterable(cls, iterable: Iterable[T]) -> 'Stream[T]':
        """Create stream from iterable."""
        return cls(iterable)

    @classmethod
    def range(cls, start: float, stop: Optional[float] = None, step: float = 1) -> 'Stream[float]':
        """
        Arithmetic progression from start (inclusive) to stop (exclusive).

        With a single argument it counts from 0. Floats are accepted;
        ``step`` must be finite and non-zero.
        """
        if stop is None:
            start, stop = 0, start
        validate_finite_number(start, "start", "range")
        if isinstance(stop, bool) or not isinstance(stop, numbers.Real) or math.isnan(stop):
            raise validation_error(
                f"stop must be a number, got {stop!r}", "range", param_name="stop", value=stop,
            )
        validate_non_zero(step, "step", "range")

        def generator():
            # Multiplying avoids accumulated float drift
            i = 0
            value = start
            while (value < stop) if step > 0 else (value > stop):
                yield value
                i += 1
                value = start + i * step

        return cls(generator)

    @classmethod
    def repeat(cls, value: T, times: Optional[int] = None) -> 'Stream[T]':
        """Repeat a value ``times`` times, or forever."""
        if times is not None:
            validate_non_negative_integer(times, "times", "repeat")

        def generator():
            if times is None:
                while True:
                    yield value
            for _ in range(times):
                yield value

        return cls(generator)

    @classmethod
    def infinite(cls, func: Callable[[], T]) -> 'Stream[T]':
        """Create infinite stream."""
        def generator():
            while True:
                yield func()
        return cls(generator)

    @classmethod
    def zip_all(cls, *iterables: Iterable[Any]) -> 'Stream[Tuple[Any, ...]]':
        """Tuples of corresponding elements, stopping at the shortest."""
        return cls(lambda: zip(*iterables))

    @classmethod
    def chain(cls, *iterables: Iterable[T]) -> 'Stream[T]':
        if not iterables:
            return cls(())
        return cls(iterables[0]).concat(*iterables[1:])

    @classmethod
    def interleave_all(cls, *iterables: Iterable[T]) -> 'Stream[T]':
        if not iterables:
            return cls(())
        return cls(iterables[0]).interleave(*iterables[1:])

    @classmethod
    def merge_all(cls, *iterables: Iterable[T],
                  comparator: Optional[Callable[[T, T], int]] = None) -> 'Stream[T]':
        """Merge already-sorted iterables into one sorted stream."""
        from iterflow.algorithms.merge import merge
        if comparator is not None:
            validate_callable(comparator, "comparator", "merge")
        return cls(lambda: merge(*iterables, comparator=comparator))
