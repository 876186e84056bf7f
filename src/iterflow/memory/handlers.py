"""Memory pressure handlers."""

import logging
import time
from typing import Dict, Optional

from iterflow.memory.monitor import (
    MemoryInfo,
    MemoryPressureHandler,
    MemoryPressureLevel,
)

_LOG_LEVELS = {
    MemoryPressureLevel.CRITICAL: logging.CRITICAL,
    MemoryPressureLevel.HIGH: logging.ERROR,
    MemoryPressureLevel.MEDIUM: logging.WARNING,
}


class LoggingHandler(MemoryPressureHandler):
    """
    Log pressure samples at or above ``min_level``.

    Repeats of the same level are suppressed for ``quiet_period`` seconds,
    so a long sort under steady pressure logs once rather than at every
    check.
    """

    def __init__(self,
                 logger: Optional[logging.Logger] = None,
                 min_level: MemoryPressureLevel = MemoryPressureLevel.MEDIUM,
                 quiet_period: float = 60.0):
        self.logger = logger or logging.getLogger(__name__)
        self.min_level = min_level
        self.quiet_period = quiet_period
        self._logged_at: Dict[MemoryPressureLevel, float] = {}

    def can_handle(self, level: MemoryPressureLevel, info: MemoryInfo) -> bool:
        return level >= self.min_level

    def handle(self, level: MemoryPressureLevel, info: MemoryInfo) -> None:
        now = time.monotonic()
        previous = self._logged_at.get(level)
        if previous is not None and now - previous < self.quiet_period:
            return
        self._logged_at[level] = now

        self.logger.log(_LOG_LEVELS.get(level, logging.INFO),
                        f"{level.name} memory pressure: {info}")
