#!/usr/bin/env python3
"""
Tests for memory monitoring and buffer guards.
"""

import unittest
from collections import namedtuple
from unittest import mock

from iterflow import ErrorKind, IterFlowConfig, IterFlowError, Stream
from iterflow.memory import (
    BufferGuard,
    LoggingHandler,
    MemoryMonitor,
    MemoryPressureHandler,
    MemoryPressureLevel,
)

VirtualMemory = namedtuple("VirtualMemory", "total used")

GB = 1024 ** 3


def fake_memory(percent_used):
    return VirtualMemory(total=16 * GB, used=int(16 * GB * percent_used / 100))


class RecordingHandler(MemoryPressureHandler):
    def __init__(self):
        self.levels = []

    def can_handle(self, level, info):
        return level >= MemoryPressureLevel.LOW

    def handle(self, level, info):
        self.levels.append(level)


class TestMemoryMonitor(unittest.TestCase):
    """Pressure classification from psutil readings."""

    def test_pressure_levels(self):
        monitor = MemoryMonitor(memory_limit=16 * GB)
        cases = [(10, MemoryPressureLevel.NONE), (55, MemoryPressureLevel.LOW),
                 (75, MemoryPressureLevel.MEDIUM), (90, MemoryPressureLevel.HIGH),
                 (97, MemoryPressureLevel.CRITICAL)]
        for percent, level in cases:
            with mock.patch("psutil.virtual_memory", return_value=fake_memory(percent)):
                self.assertEqual(monitor.check_memory_pressure(), level)

    def test_memory_limit_caps_total(self):
        monitor = MemoryMonitor(memory_limit=8 * GB)
        with mock.patch("psutil.virtual_memory", return_value=fake_memory(25)):
            info = monitor.get_memory_info()
        self.assertEqual(info.total, 8 * GB)
        self.assertEqual(info.pressure_level, MemoryPressureLevel.LOW)

    def test_handlers_notified(self):
        monitor = MemoryMonitor(memory_limit=16 * GB)
        handler = RecordingHandler()
        monitor.add_handler(handler)
        with mock.patch("psutil.virtual_memory", return_value=fake_memory(10)):
            monitor.check_memory_pressure()
        with mock.patch("psutil.virtual_memory", return_value=fake_memory(80)):
            monitor.check_memory_pressure()
        self.assertEqual(handler.levels, [MemoryPressureLevel.MEDIUM])

        monitor.remove_handler(handler)
        self.assertEqual(monitor.handlers, [])

    def test_logging_handler_quiet_period(self):
        monitor = MemoryMonitor(memory_limit=16 * GB)
        monitor.add_handler(LoggingHandler(min_level=MemoryPressureLevel.MEDIUM))
        with mock.patch("psutil.virtual_memory", return_value=fake_memory(90)):
            with self.assertLogs("iterflow.memory.handlers", level="ERROR") as logs:
                monitor.check_memory_pressure()
                monitor.check_memory_pressure()
        self.assertEqual(len(logs.records), 1)
        self.assertIn("HIGH memory pressure", logs.output[0])


class TestBufferGuard(unittest.TestCase):
    """Size limits and pressure warnings while buffering."""

    def setUp(self):
        IterFlowConfig.reset()

    def tearDown(self):
        IterFlowConfig.reset()

    def test_unbounded_by_default(self):
        guard = BufferGuard("sort")
        guard.track(5_000)

    def test_limit_enforced(self):
        IterFlowConfig.set_defaults(max_buffer_size=3)
        guard = BufferGuard("median")
        guard.track(3)
        with self.assertRaises(IterFlowError) as ctx:
            guard.track(4)
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
        self.assertEqual(ctx.exception.operation, "median")
        self.assertEqual(ctx.exception.context["max_elements"], 3)

    def test_limit_applies_to_order_statistics(self):
        IterFlowConfig.set_defaults(max_buffer_size=10)
        self.assertEqual(Stream(range(10)).median(), 4.5)
        with self.assertRaises(IterFlowError):
            Stream(range(11)).percentile(50)

    def test_warns_once_under_high_pressure(self):
        IterFlowConfig.set_defaults(memory_check_interval=2)
        monitor = mock.Mock()
        monitor.check_memory_pressure.return_value = MemoryPressureLevel.HIGH
        guard = BufferGuard("reverse", memory_monitor=monitor)

        with self.assertLogs("iterflow.memory.guard", level="WARNING") as logs:
            for size in range(1, 9):
                guard.track(size)

        self.assertEqual(monitor.check_memory_pressure.call_count, 4)
        self.assertEqual(len(logs.records), 1)
        self.assertTrue(guard.warned)

    def test_no_warning_under_low_pressure(self):
        IterFlowConfig.set_defaults(memory_check_interval=1)
        monitor = mock.Mock()
        monitor.check_memory_pressure.return_value = MemoryPressureLevel.LOW
        guard = BufferGuard("sort", memory_monitor=monitor)
        for size in range(1, 4):
            guard.track(size)
        self.assertFalse(guard.warned)


if __name__ == '__main__':
    unittest.main()
