#!/usr/bin/env python3
"""
Basic usage examples for iterflow.
"""

import asyncio
import logging
import random

from iterflow import (
    EmptyPolicy,
    IterFlowConfig,
    IterFlowError,
    Stream,
    merge,
)


def example_lazy_chain():
    """Example: Nothing runs until a terminal pulls."""
    print("\n=== Lazy Chain Example ===")

    data = [
        {'name': 'Alice', 'age': 25, 'score': 85},
        {'name': 'Bob', 'age': 30, 'score': 90},
        {'name': 'Charlie', 'age': 25, 'score': 78},
        {'name': 'David', 'age': 30, 'score': 92},
        {'name': 'Eve', 'age': 25, 'score': 88},
    ]

    result = Stream.from_iterable(data) \
        .filter(lambda x: x['age'] == 25) \
        .map(lambda x: {'name': x['name'], 'grade': 'A' if x['score'] >= 85 else 'B'}) \
        .collect()
    print(f"Filtered results: {result}")

    # An infinite source is fine as long as something stops pulling
    squares = Stream.range(0, float("inf")).map(lambda x: x * x).take(5).collect()
    print(f"First five squares: {squares}")


def example_windows():
    """Example: Sliding windows and chunks."""
    print("\n=== Windowing Example ===")

    readings = [random.gauss(20, 2) for _ in range(20)]
    averages = Stream(readings).window(5).map(lambda w: sum(w) / len(w)).collect()
    print(f"Moving averages (window 5): {[round(a, 2) for a in averages[:5]]} ...")

    batches = Stream(range(10)).chunk(4).collect()
    print(f"Batches of 4: {batches}")

    peaks = Stream(readings).windowed_max(5).take(5).collect()
    print(f"Windowed max: {[round(p, 2) for p in peaks]}")


def example_merge():
    """Example: Merge sorted sources."""
    print("\n=== Merge Example ===")

    logs_a = [1, 4, 9, 12]
    logs_b = [2, 3, 10]
    logs_c = [5, 11]
    print(f"Merged timestamps: {list(merge(logs_a, logs_b, logs_c))}")


def example_statistics():
    """Example: Stable statistics."""
    print("\n=== Statistics Example ===")

    values = [1e15 + i for i in range(5)]
    print(f"Variance at 1e15 offset: {Stream(values).variance()}")

    latencies = Stream([random.expovariate(1 / 40) for _ in range(1000)])
    print(f"Median latency: {latencies.median():.1f} ms")
    print(f"p99 latency: {latencies.percentile(99):.1f} ms")
    quartiles = {k: round(v, 1) for k, v in latencies.quartiles().items()}
    print(f"Quartiles: {quartiles}")

    try:
        Stream([]).mean()
    except IterFlowError as e:
        print(f"Strict mean of nothing: {e}")
    print(f"Permissive mean of nothing: {Stream([]).mean(on_empty=EmptyPolicy.RETURN_NONE)}")

    smoothed = Stream([10, 12, 11, 30, 12]).ewma(0.5).collect()
    print(f"EWMA: {smoothed}")

    scores = Stream([10, 11, 9, 10, 12, 10, 11, 9, 10, 50]).streaming_zscore().collect()
    print(f"Last z-score: {scores[-1]:.1f}")


async def fetch(item_id):
    """Simulated I/O call with variable latency."""
    await asyncio.sleep(random.uniform(0, 0.05))
    return {'id': item_id, 'status': 'ok'}


async def example_parallel():
    """Example: Bounded concurrency with ordered results."""
    print("\n=== Parallel Example ===")

    results = await Stream(range(10)).map_parallel(fetch, concurrency=3).collect()
    print(f"Ids in order: {[r['id'] for r in results]}")

    first_two = await Stream.range(0, float("inf")).map_parallel(fetch, 4).take(2).collect()
    print(f"First two of an endless feed: {first_two}")


def main():
    """Run all examples."""
    print("=== iterflow Examples ===")

    logging.basicConfig(level=logging.WARNING)
    IterFlowConfig.set_defaults(
        default_concurrency=8,
        max_buffer_size=1_000_000,
    )

    example_lazy_chain()
    example_windows()
    example_merge()
    example_statistics()
    asyncio.run(example_parallel())

    print("\n=== All examples completed! ===")


if __name__ == "__main__":
    main()
