"""
Streaming k-way merge of already-sorted sequences.
"""

import heapq
import logging
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Iterator, List, Optional, TypeVar

from iterflow.validation import validate_callable

logger = logging.getLogger(__name__)

T = TypeVar('T')

Comparator = Callable[[Any, Any], int]


def merge(*iterables: Iterable[T], comparator: Optional[Comparator] = None) -> Iterator[T]:
    """
    Merge sorted iterables into one sorted iterator.

    Each input must already be sorted under ``comparator`` (natural
    ordering when omitted); this is assumed, not checked. Unsorted inputs
    produce a deterministic but unsorted interleaving.

    The heap holds one entry per non-exhausted source, so each element
    costs O(log k) for k sources. When two heads compare equal the one
    from the earlier source is emitted first.

    Nothing is pulled until the returned iterator is first advanced.

    Args:
        *iterables: Sorted inputs
        comparator: ``cmp(a, b)`` returning negative, zero or positive

    Returns:
        Iterator over all elements in sorted order
    """
    if comparator is not None:
        validate_callable(comparator, "comparator", "merge")
    return _merge(iterables, comparator)


def _merge(iterables, comparator) -> Iterator[T]:
    key = cmp_to_key(comparator) if comparator is not None else None

    # Seed the heap with the head of every non-empty source
    heap: List[list] = []
    for index, iterable in enumerate(iterables):
        source = iter(iterable)
        for value in source:
            heap.append([key(value) if key else value, index, value, source])
            break
    heapq.heapify(heap)
    logger.debug(f"merge: seeded heap with {len(heap)} of {len(iterables)} sources")

    while heap:
        entry = heap[0]
        yield entry[2]

        source = entry[3]
        for value in source:
            # Replace the root in place and sift it down
            heapq.heapreplace(heap, [key(value) if key else value, entry[1], value, source])
            break
        else:
            # Source exhausted: last entry moves to the root
            heapq.heappop(heap)
