"""
Lazy asynchronous streams.

``AsyncStream`` mirrors ``Stream`` for async sources and callables and
hosts the ordered parallel stages. Every stage owns its upstream and
closes it when it stops early, so abandoning a chain (``take``, ``first``,
an exception) reaches the parallel executor and releases its tasks.
"""

import inspect
from collections import Counter
from contextlib import asynccontextmanager
from typing import (
    Any, AsyncIterable, AsyncIterator, Awaitable, Callable, Dict, Iterable, List,
    Optional, Tuple, TypeVar, Union
)

from iterflow.config import EmptyPolicy, NanPolicy, config, resolve_empty_policy, resolve_nan_policy
from iterflow.errors import empty_sequence_error, index_out_of_bounds, type_conversion_error
from iterflow.memory import BufferGuard
from iterflow.parallel.executor import filter_parallel, flat_map_parallel, map_parallel
from iterflow.stats.accumulators import RunningCovariance, RunningStats
from iterflow.streams.operators import SortOperator
from iterflow.validation import (
    to_number,
    validate_callable,
    validate_non_negative_integer,
    validate_positive_integer,
    validate_range,
    validate_window_size,
)

T = TypeVar('T')
U = TypeVar('U')

AsyncOperator = Callable[[AsyncIterator[Any]], AsyncIterator[Any]]

_MISSING = object()


async def _resolve(value: Union[U, Awaitable[U]]) -> U:
    if inspect.isawaitable(value):
        return await value
    return value


async def _from_sync(iterable: Iterable[T]) -> AsyncIterator[T]:
    for item in iterable:
        yield item


def _check_parallel(func, concurrency, operation):
    validate_callable(func, "func", operation)
    if concurrency is not None:
        validate_positive_integer(concurrency, "concurrency", operation)


async def _close(iterator: AsyncIterator[Any]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


@asynccontextmanager
async def _owning(iterator: AsyncIterator[Any]):
    try:
        yield iterator
    finally:
        await _close(iterator)


async def _drain(upstream: AsyncIterator[T], operation: str) -> List[T]:
    guard = BufferGuard(operation)
    items: List[T] = []
    async with _owning(upstream):
        async for item in upstream:
            items.append(item)
            guard.track(len(items))
    return items


class AsyncStream(AsyncIterable[T]):
    """
    A lazy asynchronous stream.

    Accepts an async iterable, a plain iterable (including a ``Stream``),
    or a callable returning either. Callables passed to ``map``, ``filter``
    and friends may be plain functions or coroutine functions.
    """

    def __init__(self, source: Union[AsyncIterable[T], Iterable[T], Callable[[], Any]]):
        if hasattr(source, '__aiter__'):
            self._source = lambda: source.__aiter__()
        elif hasattr(source, '__iter__'):
            self._source = lambda: _from_sync(source)
        elif callable(source):
            self._source = lambda: AsyncStream(source()).__aiter__()
        else:
            raise TypeError("Source must be an async iterable, iterable or callable")

        self._operators: List[AsyncOperator] = []

    def __aiter__(self) -> AsyncIterator[T]:
        iterator = self._source()
        for op in self._operators:
            iterator = op(iterator)
        return iterator

    def _then(self, operator: AsyncOperator) -> 'AsyncStream[Any]':
        new_stream = AsyncStream.__new__(AsyncStream)
        new_stream._source = self._source
        new_stream._operators = self._operators + [operator]
        return new_stream

    @classmethod
    def from_iterable(cls, iterable: Union[AsyncIterable[T], Iterable[T]]) -> 'AsyncStream[T]':
        return cls(iterable)

    # Transformation operators

    def map(self, func: Callable[[T], Any]) -> 'AsyncStream[Any]':
        validate_callable(func, "func", "map")

        async def stage(upstream):
            async with _owning(upstream):
                async for item in upstream:
                    yield await _resolve(func(item))

        return self._then(stage)

    def filter(self, predicate: Callable[[T], Any]) -> 'AsyncStream[T]':
        validate_callable(predicate, "predicate", "filter")

        async def stage(upstream):
            async with _owning(upstream):
                async for item in upstream:
                    if await _resolve(predicate(item)):
                        yield item

        return self._then(stage)

    def flat_map(self, func: Callable[[T], Any]) -> 'AsyncStream[Any]':
        validate_callable(func, "func", "flat_map")

        async def stage(upstream):
            async with _owning(upstream):
                async for item in upstream:
                    values = await _resolve(func(item))
                    if hasattr(values, '__aiter__'):
                        async for value in values:
                            yield value
                    else:
                        for value in values:
                            yield value

        return self._then(stage)

    def tap(self, func: Callable[[T], Any]) -> 'AsyncStream[T]':
        validate_callable(func, "func", "tap")

        async def stage(upstream):
            async with _owning(upstream):
                async for item in upstream:
                    await _resolve(func(item))
                    yield item

        return self._then(stage)

    def enumerate(self, start: int = 0) -> 'AsyncStream[Tuple[int, T]]':
        async def stage(upstream):
            index = start
            async with _owning(upstream):
                async for item in upstream:
                    yield (index, item)
                    index += 1

        return self._then(stage)

    def take(self, n: int) -> 'AsyncStream[T]':
        """First n elements; element n+1 is never pulled."""
        validate_non_negative_integer(n, "n", "take")

        async def stage(upstream):
            remaining = n
            try:
                while remaining > 0:
                    try:
                        item = await upstream.__anext__()
                    except StopAsyncIteration:
                        return
                    remaining -= 1
                    yield item
            finally:
                await _close(upstream)

        return self._then(stage)

    def drop(self, n: int) -> 'AsyncStream[T]':
        validate_non_negative_integer(n, "n", "drop")

        async def stage(upstream):
            seen = 0
            async with _owning(upstream):
                async for item in upstream:
                    if seen >= n:
                        yield item
                    seen += 1

        return self._then(stage)

    skip = drop

    def take_while(self, predicate: Callable[[T], Any]) -> 'AsyncStream[T]':
        validate_callable(predicate, "predicate", "take_while")

        async def stage(upstream):
            async with _owning(upstream):
                async for item in upstream:
                    if not await _resolve(predicate(item)):
                        return
                    yield item

        return self._then(stage)

    def drop_while(self, predicate: Callable[[T], Any]) -> 'AsyncStream[T]':
        validate_callable(predicate, "predicate", "drop_while")

        async def stage(upstream):
            dropping = True
            async with _owning(upstream):
                async for item in upstream:
                    if dropping and await _resolve(predicate(item)):
                        continue
                    dropping = False
                    yield item

        return self._then(stage)

    def chunk(self, size: int) -> 'AsyncStream[List[T]]':
        validate_window_size(size, config.max_window_size, "chunk")

        async def stage(upstream):
            chunk = []
            async with _owning(upstream):
                async for item in upstream:
                    chunk.append(item)
                    if len(chunk) == size:
                        yield chunk
                        chunk = []
            if chunk:
                yield chunk

        return self._then(stage)

    def window(self, size: int) -> 'AsyncStream[List[T]]':
        """Sliding windows over a circular buffer, as ``Stream.window``."""
        validate_window_size(size, config.max_window_size, "window")

        async def stage(upstream):
            buffer: List[Any] = [None] * size
            count = 0
            cursor = 0
            async with _owning(upstream):
                async for item in upstream:
                    buffer[cursor] = item
                    cursor = (cursor + 1) % size
                    count += 1
                    if count >= size:
                        yield buffer[cursor:] + buffer[:cursor]

        return self._then(stage)

    def distinct(self) -> 'AsyncStream[T]':
        """Remove duplicate elements (elements must be hashable)."""
        return self._distinct(None, "distinct")

    def distinct_by(self, key_func: Callable[[T], Any]) -> 'AsyncStream[T]':
        """Remove elements whose key was already seen; ``key_func`` may be async."""
        validate_callable(key_func, "key_func", "distinct_by")
        return self._distinct(key_func, "distinct_by")

    def _distinct(self, key_func, operation):
        async def stage(upstream):
            seen = set()
            async with _owning(upstream):
                async for item in upstream:
                    key = item if key_func is None else await _resolve(key_func(item))
                    try:
                        if key in seen:
                            continue
                        seen.add(key)
                    except TypeError:
                        raise type_conversion_error(key, "hashable", operation) from None
                    yield item

        return self._then(stage)

    def concat(self, *others: Union[AsyncIterable[T], Iterable[T]]) -> 'AsyncStream[T]':
        """Append sync or async iterables after the upstream is exhausted."""
        async def stage(upstream):
            async with _owning(upstream):
                async for item in upstream:
                    yield item
            for other in others:
                async with _owning(AsyncStream(other).__aiter__()) as iterator:
                    async for item in iterator:
                        yield item

        return self._then(stage)

    def intersperse(self, separator: T) -> 'AsyncStream[T]':
        async def stage(upstream):
            first = True
            async with _owning(upstream):
                async for item in upstream:
                    if not first:
                        yield separator
                    first = False
                    yield item

        return self._then(stage)

    def scan(self, func: Callable[[U, T], Any], initial: U) -> 'AsyncStream[U]':
        """Running fold; yields ``initial`` followed by each accumulator."""
        validate_callable(func, "func", "scan")

        async def stage(upstream):
            accumulator = initial
            yield accumulator
            async with _owning(upstream):
                async for item in upstream:
                    accumulator = await _resolve(func(accumulator, item))
                    yield accumulator

        return self._then(stage)

    def pairwise(self) -> 'AsyncStream[Tuple[T, T]]':
        async def stage(upstream):
            sentinel = object()
            previous = sentinel
            async with _owning(upstream):
                async for item in upstream:
                    if previous is not sentinel:
                        yield (previous, item)
                    previous = item

        return self._then(stage)

    # Buffering operators: these drain the upstream on first pull

    def reverse(self) -> 'AsyncStream[T]':
        async def stage(upstream):
            items = await _drain(upstream, "reverse")
            items.reverse()
            for item in items:
                yield item

        return self._then(stage)

    def sort(self, key: Optional[Callable[[T], Any]] = None, reverse: bool = False) -> 'AsyncStream[T]':
        """Stable sort; ``key`` must be a plain function."""
        return self._sorted(SortOperator(key=key, reverse=reverse))

    def sort_by(self, comparator: Callable[[T, T], int]) -> 'AsyncStream[T]':
        """Sort with a ``cmp(a, b)`` comparator."""
        return self._sorted(SortOperator(comparator=comparator))

    def _sorted(self, op: SortOperator):
        async def stage(upstream):
            items = await _drain(upstream, op.operation)
            items.sort(key=op.key, reverse=op.reverse)
            for item in items:
                yield item

        return self._then(stage)

    # Parallel operators

    def map_parallel(self, func: Callable[[T], Any],
                     concurrency: Optional[int] = None) -> 'AsyncStream[Any]':
        """
        Map with at most ``concurrency`` calls in flight.

        Results are emitted in input order regardless of completion order.
        A failing call aborts the stream with an OPERATION error.
        """
        _check_parallel(func, concurrency, "map_parallel")
        return self._then(lambda upstream: map_parallel(upstream, func, concurrency))

    def filter_parallel(self, predicate: Callable[[T], Any],
                        concurrency: Optional[int] = None) -> 'AsyncStream[T]':
        _check_parallel(predicate, concurrency, "filter_parallel")
        return self._then(lambda upstream: filter_parallel(upstream, predicate, concurrency))

    def flat_map_parallel(self, func: Callable[[T], Any],
                          concurrency: Optional[int] = None) -> 'AsyncStream[Any]':
        _check_parallel(func, concurrency, "flat_map_parallel")
        return self._then(lambda upstream: flat_map_parallel(upstream, func, concurrency))

    # Terminal operators

    async def collect(self) -> List[T]:
        return [item async for item in self]

    to_list = collect

    async def reduce(self, func: Callable[[U, T], Any], initial: U) -> U:
        result = initial
        async for item in self:
            result = await _resolve(func(result, item))
        return result

    async def count(self) -> int:
        total = 0
        async for _ in self:
            total += 1
        return total

    async def first(self, default: Optional[T] = None) -> Optional[T]:
        async with _owning(self.__aiter__()) as iterator:
            async for item in iterator:
                return item
        return default

    async def last(self, default: Optional[T] = None) -> Optional[T]:
        result = default
        async for item in self:
            result = item
        return result

    async def nth(self, index: int, default: Any = _MISSING) -> T:
        """
        Element at ``index`` (0-based).

        Raises an INDEX_OUT_OF_BOUNDS error when the stream is too short
        and no default is given.
        """
        validate_non_negative_integer(index, "index", "nth")
        seen = 0
        async with _owning(self.__aiter__()) as iterator:
            async for item in iterator:
                if seen == index:
                    return item
                seen += 1
        if default is _MISSING:
            raise index_out_of_bounds(index, seen, "nth")
        return default

    async def find(self, predicate: Callable[[T], Any]) -> Optional[T]:
        validate_callable(predicate, "predicate", "find")
        async with _owning(self.__aiter__()) as iterator:
            async for item in iterator:
                if await _resolve(predicate(item)):
                    return item
        return None

    async def find_index(self, predicate: Callable[[T], Any]) -> int:
        """Position of the first match, or -1."""
        validate_callable(predicate, "predicate", "find_index")
        position = 0
        async with _owning(self.__aiter__()) as iterator:
            async for item in iterator:
                if await _resolve(predicate(item)):
                    return position
                position += 1
        return -1

    async def some(self, predicate: Callable[[T], Any]) -> bool:
        return await self.find_index(predicate) != -1

    async def every(self, predicate: Callable[[T], Any]) -> bool:
        validate_callable(predicate, "predicate", "every")
        async with _owning(self.__aiter__()) as iterator:
            async for item in iterator:
                if not await _resolve(predicate(item)):
                    return False
        return True

    async def includes(self, value: T) -> bool:
        async with _owning(self.__aiter__()) as iterator:
            async for item in iterator:
                if item == value:
                    return True
        return False

    async def is_empty(self) -> bool:
        async with _owning(self.__aiter__()) as iterator:
            async for _ in iterator:
                return False
        return True

    async def foreach(self, func: Callable[[T], Any]) -> None:
        async for item in self:
            await _resolve(func(item))

    async def partition(self, predicate: Callable[[T], Any]) -> Tuple[List[T], List[T]]:
        """Split into (matching, not matching)."""
        validate_callable(predicate, "predicate", "partition")
        matching, rest = [], []
        async for item in self:
            (matching if await _resolve(predicate(item)) else rest).append(item)
        return matching, rest

    async def group_by(self, key_func: Callable[[T], Any]) -> Dict[Any, List[T]]:
        """Group elements by key, preserving first-seen key order."""
        validate_callable(key_func, "key_func", "group_by")
        groups: Dict[Any, List[T]] = {}
        async for item in self:
            groups.setdefault(await _resolve(key_func(item)), []).append(item)
        return groups

    # Statistical terminals. Single-pass statistics keep O(1) state; the
    # order statistics buffer through a BufferGuard like their sync versions.

    async def _running(self, operation: str) -> RunningStats:
        acc = RunningStats()
        async for item in self:
            acc.update(to_number(item, operation))
        return acc

    async def _extremes(self, operation: str) -> Tuple[Optional[float], Optional[float]]:
        low = high = None
        async for item in self:
            value = to_number(item, operation)
            if low is None or value < low:
                low = value
            if high is None or value > high:
                high = value
        return low, high

    async def _numbers(self, operation: str) -> List[float]:
        guard = BufferGuard(operation)
        values: List[float] = []
        async for item in self:
            values.append(to_number(item, operation))
            guard.track(len(values))
        return values

    async def sum(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "sum")
        total = 0
        count = 0
        async for item in self:
            total += to_number(item, "sum")
            count += 1
        if count == 0:
            return stats.sum((), policy)
        return total

    async def mean(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "mean")
        acc = await self._running("mean")
        if acc.count == 0:
            return stats.mean((), policy)
        return acc.mean

    async def variance(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "variance")
        acc = await self._running("variance")
        if acc.count == 0:
            return stats.variance((), policy)
        return acc.variance

    async def std_dev(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "std_dev")
        acc = await self._running("std_dev")
        if acc.count == 0:
            return stats.std_dev((), policy)
        return acc.std_dev

    stddev = std_dev

    async def min(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "min")
        low, _ = await self._extremes("min")
        if low is None:
            return stats.min((), policy)
        return low

    async def max(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "max")
        _, high = await self._extremes("max")
        if high is None:
            return stats.max((), policy)
        return high

    async def span(self, on_empty: Optional[EmptyPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "span")
        low, high = await self._extremes("span")
        if low is None:
            return stats.span((), policy)
        return high - low

    async def product(self):
        result = 1
        async for item in self:
            result *= to_number(item, "product")
        return result

    async def median(self, on_empty: Optional[EmptyPolicy] = None,
                     nan_policy: Optional[NanPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "median")
        nans = resolve_nan_policy(nan_policy, "median")
        return stats.median(await self._numbers("median"), policy, nans)

    async def percentile(self, p: float, on_empty: Optional[EmptyPolicy] = None,
                         nan_policy: Optional[NanPolicy] = None):
        from iterflow import stats
        validate_range(p, 0, 100, "percentile", "percentile")
        policy = resolve_empty_policy(on_empty, "percentile")
        nans = resolve_nan_policy(nan_policy, "percentile")
        return stats.percentile(await self._numbers("percentile"), p, policy, nans)

    async def quartiles(self, on_empty: Optional[EmptyPolicy] = None,
                        nan_policy: Optional[NanPolicy] = None):
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "quartiles")
        nans = resolve_nan_policy(nan_policy, "quartiles")
        return stats.quartiles(await self._numbers("quartiles"), policy, nans)

    async def mode(self, on_empty: Optional[EmptyPolicy] = None):
        """All values sharing the highest frequency, sorted ascending."""
        from iterflow import stats
        policy = resolve_empty_policy(on_empty, "mode")
        guard = BufferGuard("mode")
        frequency: Counter = Counter()
        async for item in self:
            value = to_number(item, "mode")
            frequency[value] += 1
            if frequency[value] == 1:
                guard.track(len(frequency))
        if not frequency:
            return stats.mode((), policy)
        highest = frequency.most_common(1)[0][1]
        return sorted(value for value, count in frequency.items() if count == highest)

    async def _paired(self, other, operation: str,
                      on_empty: Optional[EmptyPolicy]) -> Optional[RunningCovariance]:
        from iterflow.stats.summary import length_mismatch
        policy = resolve_empty_policy(on_empty, operation)
        acc = RunningCovariance()
        sentinel = object()
        async with _owning(self.__aiter__()) as left, \
                _owning(AsyncStream(other).__aiter__()) as right:
            while True:
                x = await anext(left, sentinel)
                y = await anext(right, sentinel)
                if x is sentinel and y is sentinel:
                    break
                if x is sentinel or y is sentinel:
                    return length_mismatch(operation, policy, acc.count)
                acc.update(to_number(x, operation), to_number(y, operation))
        if acc.count == 0:
            if policy == EmptyPolicy.RAISE:
                raise empty_sequence_error(operation)
            return None
        return acc

    async def covariance(self, other: Union[AsyncIterable[Any], Iterable[Any]],
                         on_empty: Optional[EmptyPolicy] = None):
        """Population covariance against a sync or async iterable of equal length."""
        acc = await self._paired(other, "covariance", on_empty)
        return None if acc is None else acc.covariance

    async def correlation(self, other: Union[AsyncIterable[Any], Iterable[Any]],
                          on_empty: Optional[EmptyPolicy] = None):
        acc = await self._paired(other, "correlation", on_empty)
        return None if acc is None else acc.correlation
