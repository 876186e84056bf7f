"""
Stream operators for transformation.

An operator is built with its configuration (validated immediately) and
turned into a stage with ``apply(iterator)``, which returns a generator
owning that single upstream iterator. Nothing is pulled until the
generator is advanced.
"""

import logging
from abc import ABC, abstractmethod
from functools import cmp_to_key
from typing import Any, Callable, Hashable, Iterable, Iterator, List, Optional, Tuple, TypeVar

from iterflow.config import config
from iterflow.errors import type_conversion_error
from iterflow.memory import BufferGuard
from iterflow.validation import (
    validate_callable,
    validate_non_negative_integer,
    validate_window_size,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')
U = TypeVar('U')


class StreamOperator(ABC):
    """Base class for stream operators."""

    @abstractmethod
    def apply(self, iterator: Iterator[T]) -> Iterator[Any]:
        """Apply operator to iterator."""
        pass


class MapOperator(StreamOperator):
    """Map each element to a new value."""

    def __init__(self, func: Callable[[T], U]):
        validate_callable(func, "func", "map")
        self.func = func

    def apply(self, iterator: Iterator[T]) -> Iterator[U]:
        func = self.func
        for item in iterator:
            yield func(item)


class FilterOperator(StreamOperator):
    """Filter elements by predicate."""

    def __init__(self, predicate: Callable[[T], bool]):
        validate_callable(predicate, "predicate", "filter")
        self.predicate = predicate

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        predicate = self.predicate
        for item in iterator:
            if predicate(item):
                yield item


class FlatMapOperator(StreamOperator):
    """Map each element to an iterable and splice it in."""

    def __init__(self, func: Callable[[T], Iterable[U]]):
        validate_callable(func, "func", "flat_map")
        self.func = func

    def apply(self, iterator: Iterator[T]) -> Iterator[U]:
        for item in iterator:
            yield from self.func(item)


class EnumerateOperator(StreamOperator):
    """Pair each element with its position."""

    def __init__(self, start: int = 0):
        self.start = start

    def apply(self, iterator: Iterator[T]) -> Iterator[Tuple[int, T]]:
        return enumerate(iterator, self.start)


class TakeOperator(StreamOperator):
    """Take first n elements."""

    def __init__(self, n: int):
        validate_non_negative_integer(n, "n", "take")
        self.n = n

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        remaining = self.n
        # Stop before pulling element n+1
        while remaining > 0:
            for item in iterator:
                remaining -= 1
                yield item
                break
            else:
                return


class SkipOperator(StreamOperator):
    """Skip first n elements."""

    def __init__(self, n: int):
        validate_non_negative_integer(n, "n", "drop")
        self.n = n

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        for i, item in enumerate(iterator):
            if i >= self.n:
                yield item


class TakeWhileOperator(StreamOperator):
    """Take elements while predicate is true."""

    def __init__(self, predicate: Callable[[T], bool]):
        validate_callable(predicate, "predicate", "take_while")
        self.predicate = predicate

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        for item in iterator:
            if self.predicate(item):
                yield item
            else:
                break


class DropWhileOperator(StreamOperator):
    """Drop elements while predicate is true."""

    def __init__(self, predicate: Callable[[T], bool]):
        validate_callable(predicate, "predicate", "drop_while")
        self.predicate = predicate

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        dropping = True
        for item in iterator:
            if dropping and self.predicate(item):
                continue
            dropping = False
            yield item


class DistinctOperator(StreamOperator):
    """
    Remove duplicate elements, keeping first occurrences.

    Identity is Python hash-and-equality on the element (or on
    ``key_func(element)``), so keys must be hashable. The set of seen keys
    lives as long as the stage and is never pruned.
    """

    def __init__(self, key_func: Optional[Callable[[T], Hashable]] = None):
        if key_func is not None:
            validate_callable(key_func, "key_func", "distinct_by")
        self.key_func = key_func

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        operation = "distinct" if self.key_func is None else "distinct_by"
        seen = set()

        for item in iterator:
            key = item if self.key_func is None else self.key_func(item)
            try:
                if key in seen:
                    continue
                seen.add(key)
            except TypeError:
                raise type_conversion_error(key, "hashable", operation) from None
            yield item


class ConcatOperator(StreamOperator):
    """Append further iterables after the upstream is exhausted."""

    def __init__(self, *others: Iterable[T]):
        self.others = others

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        yield from iterator
        for other in self.others:
            yield from other


class IntersperseOperator(StreamOperator):
    """Place a separator between consecutive elements."""

    def __init__(self, separator: T):
        self.separator = separator

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        first = True
        for item in iterator:
            if not first:
                yield self.separator
            first = False
            yield item


class ScanOperator(StreamOperator):
    """Yield every intermediate accumulator, starting with ``initial``."""

    def __init__(self, func: Callable[[U, T], U], initial: U):
        validate_callable(func, "func", "scan")
        self.func = func
        self.initial = initial

    def apply(self, iterator: Iterator[T]) -> Iterator[U]:
        accumulator = self.initial
        yield accumulator
        for item in iterator:
            accumulator = self.func(accumulator, item)
            yield accumulator


class TapOperator(StreamOperator):
    """Call a side-effect function on each element and pass it through."""

    def __init__(self, func: Callable[[T], Any]):
        validate_callable(func, "func", "tap")
        self.func = func

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        for item in iterator:
            self.func(item)
            yield item


class ChunkOperator(StreamOperator):
    """Group elements into non-overlapping chunks of ``size``."""

    def __init__(self, size: int):
        validate_window_size(size, config.max_window_size, "chunk")
        self.size = size

    def apply(self, iterator: Iterator[T]) -> Iterator[List[T]]:
        chunk = []

        for item in iterator:
            chunk.append(item)

            if len(chunk) == self.size:
                yield chunk
                chunk = []

        # Final short chunk
        if chunk:
            yield chunk


class WindowOperator(StreamOperator):
    """
    Sliding window of the last ``size`` elements.

    Uses a circular buffer: each pull overwrites the oldest slot, so no
    elements are shifted. Every emitted window is a fresh list in arrival
    order.
    """

    def __init__(self, size: int):
        validate_window_size(size, config.max_window_size, "window")
        self.size = size

    def apply(self, iterator: Iterator[T]) -> Iterator[List[T]]:
        size = self.size
        buffer: List[Any] = [None] * size
        count = 0
        cursor = 0

        for item in iterator:
            buffer[cursor] = item
            cursor = (cursor + 1) % size
            count += 1

            if count >= size:
                # cursor now points at the oldest element
                yield buffer[cursor:] + buffer[:cursor]


class PairwiseOperator(StreamOperator):
    """Consecutive (previous, current) pairs."""

    def apply(self, iterator: Iterator[T]) -> Iterator[Tuple[T, T]]:
        sentinel = object()
        previous = sentinel
        for item in iterator:
            if previous is not sentinel:
                yield (previous, item)
            previous = item


class ZipOperator(StreamOperator):
    """Tuples of corresponding elements; stops at the shortest input."""

    def __init__(self, *others: Iterable[Any]):
        self.others = others

    def apply(self, iterator: Iterator[T]) -> Iterator[Tuple[Any, ...]]:
        return zip(iterator, *self.others)


class InterleaveOperator(StreamOperator):
    """Round-robin over the upstream and further iterables until all are exhausted."""

    def __init__(self, *others: Iterable[T]):
        self.others = others

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        active = [iterator] + [iter(other) for other in self.others]
        while active:
            still_active = []
            for source in active:
                for item in source:
                    yield item
                    still_active.append(source)
                    break
            active = still_active


class MergeOperator(StreamOperator):
    """k-way merge of the (sorted) upstream with further sorted iterables."""

    def __init__(self, *others: Iterable[T], comparator: Optional[Callable[[T, T], int]] = None):
        if comparator is not None:
            validate_callable(comparator, "comparator", "merge")
        self.others = others
        self.comparator = comparator

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        from iterflow.algorithms.merge import merge
        return merge(iterator, *self.others, comparator=self.comparator)


class BufferingOperator(StreamOperator):
    """
    Drain the whole upstream before yielding anything.

    Memory grows with the input; never use on an infinite stream.
    """

    operation = "buffer"

    def drain(self, iterator: Iterator[T]) -> List[T]:
        guard = BufferGuard(self.operation)
        items: List[T] = []
        for item in iterator:
            items.append(item)
            guard.track(len(items))
        logger.debug(f"{self.operation}: buffered {len(items):,} elements")
        return items


class ReverseOperator(BufferingOperator):
    """Yield elements in reverse order."""

    operation = "reverse"

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        items = self.drain(iterator)
        items.reverse()
        yield from items


class SortOperator(BufferingOperator):
    """Stable sort by natural order, a key function, or a comparator."""

    def __init__(self,
                 key: Optional[Callable[[T], Any]] = None,
                 reverse: bool = False,
                 comparator: Optional[Callable[[T, T], int]] = None):
        self.operation = "sort" if comparator is None else "sort_by"
        if key is not None:
            validate_callable(key, "key", self.operation)
        if comparator is not None:
            validate_callable(comparator, "comparator", self.operation)
            key = cmp_to_key(comparator)
        self.key = key
        self.reverse = reverse

    def apply(self, iterator: Iterator[T]) -> Iterator[T]:
        items = self.drain(iterator)
        items.sort(key=self.key, reverse=self.reverse)
        yield from items
