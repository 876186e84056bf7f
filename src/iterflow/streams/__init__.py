"""Lazy synchronous and asynchronous streams."""

from iterflow.streams.stream import Stream
from iterflow.streams.async_stream import AsyncStream
from iterflow.streams.operators import (
    StreamOperator,
    MapOperator,
    FilterOperator,
    FlatMapOperator,
    ChunkOperator,
    WindowOperator,
    MergeOperator,
    SortOperator,
)

__all__ = [
    "Stream",
    "AsyncStream",
    "StreamOperator",
    "MapOperator",
    "FilterOperator",
    "FlatMapOperator",
    "ChunkOperator",
    "WindowOperator",
    "MergeOperator",
    "SortOperator",
]
