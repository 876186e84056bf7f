"""Memory pressure sampling for buffering stages."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import psutil

from iterflow.config import config

logger = logging.getLogger(__name__)


class MemoryPressureLevel(Enum):
    """Memory pressure levels, ordered by severity."""
    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    def __gt__(self, other):
        if not isinstance(other, MemoryPressureLevel):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if not isinstance(other, MemoryPressureLevel):
            return NotImplemented
        return self.value >= other.value


# Lowest percent-used at which each level starts, most severe first
_THRESHOLDS = (
    (95.0, MemoryPressureLevel.CRITICAL),
    (85.0, MemoryPressureLevel.HIGH),
    (70.0, MemoryPressureLevel.MEDIUM),
    (50.0, MemoryPressureLevel.LOW),
)


def classify(percent: float) -> MemoryPressureLevel:
    for threshold, level in _THRESHOLDS:
        if percent >= threshold:
            return level
    return MemoryPressureLevel.NONE


@dataclass
class MemoryInfo:
    """One memory sample, measured against the effective limit."""
    total: int
    used: int
    percent: float
    pressure_level: MemoryPressureLevel
    timestamp: float

    @property
    def available(self) -> int:
        return max(0, self.total - self.used)

    def __str__(self) -> str:
        gb = 1024 ** 3
        return (f"{self.percent:.1f}% of {self.total / gb:.2f} GB used, "
                f"{self.available / gb:.2f} GB free ({self.pressure_level.name})")


class MemoryPressureHandler(ABC):
    """Reacts to a memory sample at or above some pressure level."""

    @abstractmethod
    def can_handle(self, level: MemoryPressureLevel, info: MemoryInfo) -> bool:
        pass

    @abstractmethod
    def handle(self, level: MemoryPressureLevel, info: MemoryInfo) -> None:
        pass


class MemoryMonitor:
    """
    On-demand memory sampler.

    There is no background thread: buffering stages call
    ``check_memory_pressure`` at their own cadence (see ``BufferGuard``),
    and every registered handler that accepts the level is notified.
    """

    def __init__(self, memory_limit: Optional[int] = None):
        """
        Args:
            memory_limit: Cap in bytes; falls back to ``config.memory_limit``
        """
        self._memory_limit = memory_limit
        self.handlers: List[MemoryPressureHandler] = []
        self.last_info: Optional[MemoryInfo] = None

    @property
    def memory_limit(self) -> int:
        return self._memory_limit or config.memory_limit

    def add_handler(self, handler: MemoryPressureHandler) -> None:
        self.handlers.append(handler)

    def remove_handler(self, handler: MemoryPressureHandler) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    def get_memory_info(self) -> MemoryInfo:
        """Sample system memory, treating the limit as the total when it is smaller."""
        vm = psutil.virtual_memory()
        total = min(vm.total, self.memory_limit)
        percent = 100.0 * vm.used / total if total else 100.0
        self.last_info = MemoryInfo(
            total=total,
            used=vm.used,
            percent=percent,
            pressure_level=classify(percent),
            timestamp=time.time(),
        )
        return self.last_info

    def check_memory_pressure(self) -> MemoryPressureLevel:
        """Sample memory, notify interested handlers and return the level."""
        info = self.get_memory_info()
        level = info.pressure_level

        for handler in [h for h in self.handlers if h.can_handle(level, info)]:
            try:
                handler.handle(level, info)
            except Exception:
                logger.exception(f"Memory pressure handler {handler!r} failed")

        return level


# Shared monitor used by buffer guards
monitor = MemoryMonitor()
