"""Memory monitoring for buffering stages."""

from iterflow.memory.monitor import (
    MemoryMonitor,
    MemoryPressureLevel,
    MemoryInfo,
    MemoryPressureHandler,
    monitor,
)
from iterflow.memory.handlers import LoggingHandler
from iterflow.memory.guard import BufferGuard

__all__ = [
    "MemoryMonitor",
    "MemoryPressureLevel",
    "MemoryInfo",
    "MemoryPressureHandler",
    "LoggingHandler",
    "BufferGuard",
    "monitor",
]
