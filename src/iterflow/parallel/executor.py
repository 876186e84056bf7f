"""
Bounded-concurrency execution that preserves submission order.

Key points:
- At most ``concurrency`` calls are outstanding at any time
- Results complete in any order but are emitted in submission order
- The first failure aborts the stage; nothing is retried
"""

import asyncio
import inspect
import logging
from contextlib import aclosing
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, Optional, Tuple

from iterflow.config import config
from iterflow.errors import operation_error
from iterflow.validation import validate_callable, validate_positive_integer

logger = logging.getLogger(__name__)


class ExecutorState(Enum):
    """Phases of an ordered parallel run."""
    FILLING = "filling"
    DRAINING = "draining"
    EXHAUSTED = "exhausted"


class OrderedParallelExecutor:
    """
    Run ``func`` over an async source with bounded concurrency.

    While the upstream has items and fewer than ``concurrency`` items are
    submitted but not yet emitted, the executor pulls and submits
    (FILLING). Once the limit is reached or the upstream ends it waits for the first completion
    (DRAINING), files the result under its submission index and emits
    every result contiguous with the last emitted index. The run ends
    (EXHAUSTED) when the upstream is done and nothing is outstanding.

    A slot is held from submission until the result is emitted, so a slow
    head item stalls submission instead of letting finished results pile
    up. Outstanding tasks plus the pending-output map never exceed
    ``concurrency`` entries.
    """

    def __init__(self,
                 func: Callable[[Any], Any],
                 concurrency: Optional[int] = None,
                 operation: str = "map_parallel"):
        validate_callable(func, "func", operation)
        if concurrency is None:
            concurrency = config.default_concurrency
        validate_positive_integer(concurrency, "concurrency", operation)

        self.func = func
        self.concurrency = concurrency
        self.operation = operation
        self.state = ExecutorState.FILLING
        self.max_outstanding = 0
        self.submitted = 0
        self.emitted = 0

    async def _invoke(self, item: Any) -> Any:
        result = self.func(item)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run(self, source: AsyncIterable[Any]) -> AsyncIterator[Tuple[Any, Any]]:
        """Yield ``(item, result)`` pairs in submission order."""
        upstream = source.__aiter__()
        upstream_done = False
        outstanding: Dict[asyncio.Task, Tuple[int, Any]] = {}
        pending: Dict[int, Tuple[Any, Any]] = {}

        try:
            while True:
                self.state = ExecutorState.FILLING
                while not upstream_done and self.submitted - self.emitted < self.concurrency:
                    try:
                        item = await upstream.__anext__()
                    except StopAsyncIteration:
                        upstream_done = True
                        break
                    task = asyncio.ensure_future(self._invoke(item))
                    outstanding[task] = (self.submitted, item)
                    logger.debug(f"{self.operation}: submitted task {self.submitted}")
                    self.submitted += 1
                    self.max_outstanding = max(self.max_outstanding, len(outstanding))

                if not outstanding:
                    self.state = ExecutorState.EXHAUSTED
                    logger.debug(f"{self.operation}: exhausted after {self.emitted} results")
                    return

                self.state = ExecutorState.DRAINING
                done, _ = await asyncio.wait(set(outstanding), return_when=asyncio.FIRST_COMPLETED)

                for task in done:
                    index, item = outstanding.pop(task)
                    try:
                        result = task.result()
                    except Exception as exc:
                        logger.debug(f"{self.operation}: task {index} failed: {exc!r}")
                        raise operation_error(self.operation, exc, index=index) from exc
                    pending[index] = (item, result)
                    logger.debug(f"{self.operation}: task {index} completed")

                while self.emitted in pending:
                    yield pending.pop(self.emitted)
                    self.emitted += 1
        finally:
            if outstanding:
                self._abandon(list(outstanding))
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _abandon(self, tasks) -> None:
        if config.cancel_abandoned_tasks:
            logger.debug(f"{self.operation}: cancelling {len(tasks)} outstanding tasks")
            for task in tasks:
                if task.done():
                    _consume(task)
                else:
                    task.cancel()
            return

        logger.warning(
            f"{self.operation}: abandoning {len(tasks)} in-flight tasks; "
            f"they will run to completion unobserved"
        )
        for task in tasks:
            task.add_done_callback(_consume)


def _consume(task: asyncio.Future) -> None:
    # Mark the outcome as retrieved so asyncio does not report it
    if not task.cancelled():
        task.exception()


def map_parallel(source: AsyncIterable[Any],
                 func: Callable[[Any], Any],
                 concurrency: Optional[int] = None) -> AsyncIterator[Any]:
    """Ordered ``func(item)`` results with bounded concurrency."""
    executor = OrderedParallelExecutor(func, concurrency, "map_parallel")

    async def results():
        async with aclosing(executor.run(source)) as pairs:
            async for _, result in pairs:
                yield result

    return results()


def filter_parallel(source: AsyncIterable[Any],
                    predicate: Callable[[Any], Any],
                    concurrency: Optional[int] = None) -> AsyncIterator[Any]:
    """Items whose predicate holds, in input order."""
    executor = OrderedParallelExecutor(predicate, concurrency, "filter_parallel")

    async def kept():
        async with aclosing(executor.run(source)) as pairs:
            async for item, keep in pairs:
                if keep:
                    yield item

    return kept()


def flat_map_parallel(source: AsyncIterable[Any],
                      func: Callable[[Any], Any],
                      concurrency: Optional[int] = None) -> AsyncIterator[Any]:
    """
    Splice the iterable returned for each item into the output, in
    input order. Sync and async iterables are both accepted.
    """
    executor = OrderedParallelExecutor(func, concurrency, "flat_map_parallel")

    async def spliced():
        async with aclosing(executor.run(source)) as pairs:
            async for _, values in pairs:
                if hasattr(values, "__aiter__"):
                    async for value in values:
                        yield value
                else:
                    for value in values:
                        yield value

    return spliced()
