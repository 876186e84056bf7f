"""
iterflow: lazy sequence processing with numerically stable statistics.

Streams are built from chained stages that pull one element at a time.
Statistical terminals use Welford-style accumulation and quickselect,
and async streams can run stages with bounded, order-preserving
concurrency.
"""

from iterflow.config import IterFlowConfig, EmptyPolicy, NanPolicy, config
from iterflow.errors import ErrorKind, IterFlowError
from iterflow.streams import Stream, AsyncStream
from iterflow.algorithms import merge
from iterflow.memory import MemoryMonitor, MemoryPressureLevel
from iterflow import stats
from iterflow import parallel

__version__ = "0.1.0"
__author__ = "iterflow contributors"
__license__ = "Apache-2.0"

__all__ = [
    "IterFlowConfig",
    "EmptyPolicy",
    "NanPolicy",
    "config",
    "ErrorKind",
    "IterFlowError",
    "Stream",
    "AsyncStream",
    "merge",
    "MemoryMonitor",
    "MemoryPressureLevel",
    "stats",
    "parallel",
]
