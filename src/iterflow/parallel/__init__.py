"""Ordered, bounded-concurrency asynchronous execution."""

from iterflow.parallel.executor import (
    ExecutorState,
    OrderedParallelExecutor,
    map_parallel,
    filter_parallel,
    flat_map_parallel,
)

__all__ = [
    "ExecutorState",
    "OrderedParallelExecutor",
    "map_parallel",
    "filter_parallel",
    "flat_map_parallel",
]
