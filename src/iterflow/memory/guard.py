"""Size and memory-pressure checks for buffering stages."""

import logging
from typing import Optional

from iterflow.config import config
from iterflow.errors import validation_error
from iterflow.memory.monitor import MemoryMonitor, MemoryPressureLevel, monitor

logger = logging.getLogger(__name__)


class BufferGuard:
    """
    Watch an in-memory buffer as a stage fills it.

    Stages that must drain their upstream (sort, reverse, order statistics)
    call ``track`` after each append. The guard enforces
    ``config.max_buffer_size`` and samples memory pressure every
    ``config.memory_check_interval`` elements.
    """

    def __init__(self, operation: str, memory_monitor: Optional[MemoryMonitor] = None):
        self.operation = operation
        self.monitor = memory_monitor or monitor
        self.max_size = config.max_buffer_size
        self.interval = max(1, config.memory_check_interval)
        self.warned = False

    def track(self, size: int) -> None:
        if self.max_size is not None and size > self.max_size:
            raise validation_error(
                f"Operation would exceed buffer limit ({size} elements > "
                f"{self.max_size} maximum). Consider using streaming operations "
                f"with take() or chunk().",
                self.operation, size=size, max_elements=self.max_size,
            )

        if size % self.interval == 0:
            level = self.monitor.check_memory_pressure()
            if level >= MemoryPressureLevel.HIGH and not self.warned:
                self.warned = True
                logger.warning(
                    f"{self.operation} is buffering {size:,} elements under "
                    f"{level.name} memory pressure"
                )
