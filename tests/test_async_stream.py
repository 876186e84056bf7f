#!/usr/bin/env python3
"""
Tests for AsyncStream stages, terminals and statistics.
"""

import asyncio
import math
import unittest
import weakref

import numpy as np

from iterflow import AsyncStream, EmptyPolicy, ErrorKind, IterFlowConfig, IterFlowError, Stream


class Reading(float):
    """A float that can be weakly referenced."""


async def numbers(n, pulled=None, closed=None):
    try:
        for i in range(n):
            if pulled is not None:
                pulled.append(i)
            yield i
    finally:
        if closed is not None:
            closed.append(True)


async def is_even(x):
    await asyncio.sleep(0)
    return x % 2 == 0


class TestAsyncStages(unittest.IsolatedAsyncioTestCase):
    """Stages that mirror their Stream counterparts."""

    def setUp(self):
        IterFlowConfig.reset()

    def tearDown(self):
        IterFlowConfig.reset()

    async def test_distinct(self):
        data = [3, 1, 3, 2, 1, 4]
        self.assertEqual(await AsyncStream(data).distinct().collect(), [3, 1, 2, 4])

        async def parity(x):
            return x % 2

        self.assertEqual(await AsyncStream(data).distinct_by(parity).collect(), [3, 2])

    async def test_distinct_unhashable(self):
        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream([[1], [1]]).distinct().collect()
        self.assertEqual(ctx.exception.kind, ErrorKind.TYPE_CONVERSION)
        self.assertEqual(ctx.exception.operation, "distinct")

    async def test_scan(self):
        async def add(acc, x):
            return acc + x

        self.assertEqual(await AsyncStream([1, 2, 3]).scan(add, 0).collect(), [0, 1, 3, 6])
        self.assertEqual(await AsyncStream([]).scan(add, 10).collect(), [10])

    async def test_concat_sync_and_async(self):
        result = await AsyncStream([0]).concat(numbers(3), Stream([7, 8])).collect()
        self.assertEqual(result, [0, 0, 1, 2, 7, 8])

    async def test_intersperse_and_pairwise(self):
        self.assertEqual(await AsyncStream("abc").intersperse("-").collect(),
                         ["a", "-", "b", "-", "c"])
        self.assertEqual(await AsyncStream([1]).intersperse(0).collect(), [1])
        self.assertEqual(await AsyncStream(numbers(4)).pairwise().collect(),
                         [(0, 1), (1, 2), (2, 3)])
        self.assertEqual(await AsyncStream([5]).pairwise().collect(), [])

    async def test_reverse_and_sort(self):
        data = [5, 3, 9, 1, 3]
        self.assertEqual(await AsyncStream(data).reverse().collect(), [3, 1, 9, 3, 5])
        self.assertEqual(await AsyncStream(data).sort().collect(), sorted(data))
        self.assertEqual(await AsyncStream(data).sort(reverse=True).collect(),
                         sorted(data, reverse=True))

        words = ["bb", "a", "ccc", "dd"]
        self.assertEqual(await AsyncStream(words).sort(key=len).collect(),
                         ["a", "bb", "dd", "ccc"])
        self.assertEqual(await AsyncStream(words).sort_by(lambda a, b: len(b) - len(a)).collect(),
                         ["ccc", "bb", "dd", "a"])

    async def test_buffering_stages_respect_limit(self):
        IterFlowConfig.set_defaults(max_buffer_size=10)
        for build in (lambda s: s.sort(), lambda s: s.reverse()):
            with self.assertRaises(IterFlowError) as ctx:
                await build(AsyncStream(numbers(50))).collect()
            self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

    async def test_eager_validation(self):
        for build in (lambda s: s.distinct_by(None),
                      lambda s: s.scan("add", 0),
                      lambda s: s.sort(key=5),
                      lambda s: s.sort_by("cmp")):
            with self.assertRaises(IterFlowError) as ctx:
                build(AsyncStream([1]))
            self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)


class TestAsyncTerminals(unittest.IsolatedAsyncioTestCase):
    """Non-statistical terminals, including early exit."""

    def setUp(self):
        IterFlowConfig.reset()

    async def test_last_and_nth(self):
        self.assertEqual(await AsyncStream(numbers(5)).last(), 4)
        self.assertEqual(await AsyncStream([]).last("none"), "none")
        self.assertEqual(await AsyncStream(numbers(5)).nth(2), 2)
        self.assertEqual(await AsyncStream([1, 2]).nth(5, default=0), 0)

        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream([1, 2]).nth(5)
        self.assertEqual(ctx.exception.kind, ErrorKind.INDEX_OUT_OF_BOUNDS)
        self.assertEqual(ctx.exception.context["size"], 2)

        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream([1, 2]).nth(-1)
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

    async def test_search(self):
        data = [1, 3, 4, 7, 8]
        self.assertEqual(await AsyncStream(data).find(is_even), 4)
        self.assertIsNone(await AsyncStream([1, 3]).find(is_even))
        self.assertEqual(await AsyncStream(data).find_index(is_even), 2)
        self.assertEqual(await AsyncStream([1, 3]).find_index(is_even), -1)
        self.assertTrue(await AsyncStream(data).some(is_even))
        self.assertFalse(await AsyncStream(data).every(is_even))
        self.assertTrue(await AsyncStream([]).every(is_even))
        self.assertTrue(await AsyncStream(data).includes(7))
        self.assertFalse(await AsyncStream(data).includes(2))
        self.assertTrue(await AsyncStream([]).is_empty())
        self.assertFalse(await AsyncStream(numbers(3)).is_empty())

    async def test_early_exit_closes_source(self):
        for terminal in (lambda s: s.find(lambda x: x == 3),
                         lambda s: s.includes(3),
                         lambda s: s.nth(3),
                         lambda s: s.some(lambda x: x == 3)):
            pulled, closed = [], []
            await terminal(AsyncStream(numbers(100, pulled, closed)))
            self.assertEqual(pulled, [0, 1, 2, 3])
            self.assertEqual(closed, [True])

    async def test_partition_and_group_by(self):
        self.assertEqual(await AsyncStream(numbers(6)).partition(is_even),
                         ([0, 2, 4], [1, 3, 5]))

        async def initial(word):
            return word[0]

        groups = await AsyncStream(["apple", "bean", "avocado", "beet", "corn"]).group_by(initial)
        self.assertEqual(list(groups), ["a", "b", "c"])
        self.assertEqual(groups["b"], ["bean", "beet"])


class TestAsyncStatistics(unittest.IsolatedAsyncioTestCase):
    """Statistical terminals agree with numpy and the sync versions."""

    STATISTICS = ("sum", "mean", "min", "max", "span", "variance", "std_dev",
                  "median", "quartiles", "mode")

    def setUp(self):
        IterFlowConfig.reset()
        rng = np.random.default_rng(11)
        self.data = rng.normal(loc=-1.0, scale=4.0, size=400)
        self.values = self.data.tolist()

    def tearDown(self):
        IterFlowConfig.reset()

    async def test_moments_and_extremes(self):
        stream = AsyncStream(self.values)
        self.assertAlmostEqual(await stream.mean(), float(np.mean(self.data)), places=12)
        self.assertAlmostEqual(await stream.variance(), float(np.var(self.data)), places=10)
        self.assertAlmostEqual(await stream.std_dev(), float(np.std(self.data)), places=10)
        self.assertEqual(await stream.min(), float(np.min(self.data)))
        self.assertEqual(await stream.max(), float(np.max(self.data)))
        self.assertAlmostEqual(await stream.span(), float(np.ptp(self.data)), places=12)
        self.assertEqual(await AsyncStream([2, 3, 4]).product(), 24)
        self.assertEqual(await AsyncStream([]).product(), 1)

    async def test_order_statistics(self):
        stream = AsyncStream(self.values)
        self.assertAlmostEqual(await stream.median(), float(np.median(self.data)), places=12)
        for p in (0, 10, 37.5, 90, 100):
            with self.subTest(p=p):
                self.assertAlmostEqual(await stream.percentile(p),
                                       float(np.percentile(self.data, p)), places=10)
        self.assertEqual(await stream.quartiles(), Stream(self.values).quartiles())
        self.assertEqual(await AsyncStream([1, 2, 2, 3, 3]).mode(), [2, 3])

    async def test_percentile_validated_before_reading(self):
        pulled = []
        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream(numbers(5, pulled)).percentile(150)
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
        self.assertEqual(pulled, [])

    async def test_mean_keeps_no_buffer(self):
        """mean folds as it pulls, so neither the buffer limit nor old readings get in the way."""
        IterFlowConfig.set_defaults(max_buffer_size=10)
        refs = []
        live_peak = 0

        async def readings():
            nonlocal live_peak
            for i in range(2000):
                reading = Reading(i)
                refs.append(weakref.ref(reading))
                if i % 100 == 0:
                    live_peak = max(live_peak, sum(1 for ref in refs if ref() is not None))
                yield reading

        self.assertAlmostEqual(await AsyncStream(readings()).mean(), 999.5)
        self.assertLessEqual(live_peak, 3)

        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream(numbers(2000)).median()
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

    async def test_paired_statistics(self):
        rng = np.random.default_rng(3)
        xs = rng.normal(size=200)
        ys = 2.0 * xs + rng.normal(scale=0.5, size=200)

        async def other():
            for y in ys.tolist():
                yield y

        expected_cov = float(np.cov(xs, ys, bias=True)[0, 1])
        expected_corr = float(np.corrcoef(xs, ys)[0, 1])
        self.assertAlmostEqual(await AsyncStream(xs.tolist()).covariance(other()), expected_cov, places=10)
        self.assertAlmostEqual(await AsyncStream(xs.tolist()).correlation(ys.tolist()),
                               expected_corr, places=10)
        self.assertIsNone(await AsyncStream([1, 1, 1]).correlation([1, 2, 3]))

    async def test_paired_length_mismatch_and_empty(self):
        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream([1, 2, 3]).covariance(numbers(2))
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
        self.assertIsNone(await AsyncStream([1, 2, 3]).covariance([1, 2], on_empty="return_none"))

        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream([]).correlation([])
        self.assertEqual(ctx.exception.kind, ErrorKind.EMPTY_SEQUENCE)
        self.assertIsNone(await AsyncStream([]).correlation([], on_empty=EmptyPolicy.RETURN_NONE))

    async def test_empty_policy(self):
        for name in self.STATISTICS:
            with self.subTest(statistic=name):
                with self.assertRaises(IterFlowError) as ctx:
                    await getattr(AsyncStream([]), name)()
                self.assertEqual(ctx.exception.kind, ErrorKind.EMPTY_SEQUENCE)
                self.assertEqual(ctx.exception.operation, name)
                self.assertIsNone(await getattr(AsyncStream([]), name)(on_empty="return_none"))

        with self.assertRaises(IterFlowError) as ctx:
            await AsyncStream([1]).mean(on_empty="bogus")
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

    async def test_nan_policy(self):
        data = [3.0, float("nan"), 1.0]
        self.assertEqual(await AsyncStream(data).median(), 2.0)
        self.assertTrue(math.isnan(await AsyncStream(data).median(nan_policy="propagate")))


if __name__ == '__main__':
    unittest.main()
