#!/usr/bin/env python3
"""
Tests for the error taxonomy and global configuration.
"""

import unittest

from iterflow import EmptyPolicy, ErrorKind, IterFlowConfig, IterFlowError, NanPolicy, config
from iterflow.errors import (
    empty_sequence_error,
    index_out_of_bounds,
    operation_error,
    type_conversion_error,
    validation_error,
)


class TestErrors(unittest.TestCase):
    """Error construction and rendering."""

    def test_factories_set_kind(self):
        self.assertEqual(validation_error("bad", "op").kind, ErrorKind.VALIDATION)
        self.assertEqual(empty_sequence_error("mean").kind, ErrorKind.EMPTY_SEQUENCE)
        self.assertEqual(index_out_of_bounds(4, 2, "nth").kind, ErrorKind.INDEX_OUT_OF_BOUNDS)
        self.assertEqual(type_conversion_error("x", "number").kind, ErrorKind.TYPE_CONVERSION)
        self.assertEqual(operation_error("map_parallel", RuntimeError()).kind, ErrorKind.OPERATION)

    def test_is_an_exception(self):
        with self.assertRaises(IterFlowError):
            raise empty_sequence_error("median")

    def test_detailed_string(self):
        cause = ZeroDivisionError("division by zero")
        error = operation_error("map_parallel", cause, index=7)
        text = error.to_detailed_string()

        self.assertTrue(text.startswith("OPERATION: Operation 'map_parallel' failed"))
        self.assertIn("Operation: map_parallel", text)
        self.assertIn("index: 7", text)
        self.assertIn("Caused by: ZeroDivisionError: division by zero", text)
        self.assertIs(error.cause, cause)

    def test_detailed_string_with_unserialisable_context(self):
        error = type_conversion_error(object, "number", "sum")
        self.assertIn("value: <class 'object'>", error.to_detailed_string())

    def test_message(self):
        error = index_out_of_bounds(5, 3, "nth")
        self.assertEqual(str(error), "Index 5 is out of bounds (size: 3)")
        self.assertEqual(error.context, {"index": 5, "size": 3})


class TestConfig(unittest.TestCase):
    """Singleton defaults, overrides and reset."""

    def setUp(self):
        IterFlowConfig.reset()

    def tearDown(self):
        IterFlowConfig.reset()

    def test_defaults(self):
        self.assertIs(IterFlowConfig.get_instance(), config)
        self.assertEqual(config.empty_policy, EmptyPolicy.RAISE)
        self.assertEqual(config.nan_policy, NanPolicy.OMIT)
        self.assertEqual(config.default_concurrency, 10)
        self.assertTrue(config.cancel_abandoned_tasks)
        self.assertEqual(config.max_window_size, 1_000_000)
        self.assertIsNone(config.max_buffer_size)
        self.assertGreater(config.memory_limit, 0)

    def test_set_defaults_coerces_policy_names(self):
        IterFlowConfig.set_defaults(empty_policy="RETURN_NONE", nan_policy="propagate")
        self.assertEqual(config.empty_policy, EmptyPolicy.RETURN_NONE)
        self.assertEqual(config.nan_policy, NanPolicy.PROPAGATE)

    def test_set_defaults_rejects_unknown_option(self):
        with self.assertRaises(IterFlowError) as ctx:
            IterFlowConfig.set_defaults(chunk_strategy="sqrt_n")
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
        self.assertEqual(ctx.exception.context["option"], "chunk_strategy")

    def test_set_defaults_rejects_bad_policy(self):
        with self.assertRaises(IterFlowError):
            IterFlowConfig.set_defaults(nan_policy="ignore")

    def test_reset_restores_defaults(self):
        IterFlowConfig.set_defaults(default_concurrency=2, max_buffer_size=100)
        IterFlowConfig.reset()
        self.assertEqual(config.default_concurrency, 10)
        self.assertIsNone(config.max_buffer_size)


if __name__ == '__main__':
    unittest.main()
