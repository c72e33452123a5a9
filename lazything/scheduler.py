"""
Fixed-window batch scheduler.

Runs a coroutine over a work list in batches of bounded width, pausing for a
cooldown between batches to stay under GitHub's rate limits. This does not
look at rate-limit headers; it is a plain fixed-window limiter.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')

DEFAULT_BATCH_SIZE = 50


class SchedulerState(Enum):
    """Lifecycle of one scheduler run."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    DONE = "done"


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Split items into consecutive slices of at most size elements."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchScheduler:
    """
    Runs all items of a batch concurrently, batches strictly in sequence.

    Usage:
        scheduler = BatchScheduler(batch_size=50, cooldown=1.0, name="dates")
        results = await scheduler.run(hits, lookup_date)

    Results come back in input order. If a worker raises, the rest of its
    batch is still awaited, then the first failure (in input order) is
    re-raised and no further batch starts.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cooldown: float = 0.0,
        name: str = "batch",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if cooldown < 0:
            raise ValueError("cooldown must not be negative")

        self.batch_size = batch_size
        self.cooldown = cooldown
        self.name = name
        self._sleep = sleep

        self.state = SchedulerState.IDLE
        self.batch_index = 0
        self.completed = 0

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        progress_callback: Optional[Callable[[int, int], Awaitable[None]]] = None,
        on_batch: Optional[Callable[[Sequence[T], List[R]], None]] = None,
    ) -> List[R]:
        """
        Process items through worker.

        Args:
            items: Work list
            worker: Coroutine function applied to each item
            progress_callback: Async callback with (completed, total) after each batch
            on_batch: Called with (batch, results) once a batch has fully succeeded

        Returns:
            Worker results, in the order of items
        """
        total = len(items)
        batches = list(chunked(items, self.batch_size))
        results: List[R] = []

        self.batch_index = 0
        self.completed = 0

        logger.debug(f"{self.name}: {total} items in {len(batches)} batches of {self.batch_size}")

        try:
            for index, batch in enumerate(batches):
                if index > 0 and self.cooldown > 0:
                    self.state = SchedulerState.PAUSED
                    logger.debug(f"{self.name}: cooling down {self.cooldown}s")
                    await self._sleep(self.cooldown)

                self.state = SchedulerState.RUNNING
                self.batch_index = index

                batch_results = await asyncio.gather(
                    *(worker(item) for item in batch),
                    return_exceptions=True,
                )

                for res in batch_results:
                    if isinstance(res, BaseException):
                        raise res

                if on_batch:
                    on_batch(batch, batch_results)

                results.extend(batch_results)
                self.completed += len(batch)

                if progress_callback:
                    await progress_callback(self.completed, total)
        finally:
            self.state = SchedulerState.DONE

        return results
