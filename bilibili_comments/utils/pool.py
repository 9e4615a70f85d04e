"""
Bounded-concurrency task pool.

This module provides a small scheduler that runs asynchronous tasks with a fixed
upper limit on how many may be in flight at once. Tasks are started in the exact
order they were submitted; each caller receives a future that settles with the
outcome of its own task only.
"""
import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Set, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# A task is a zero-argument callable returning an awaitable
TaskFunc = Callable[[], Awaitable[Any]]


class BoundedTaskPool:
    """
    Run asynchronous tasks with at most ``concurrency`` of them in flight.

    The pool owns a FIFO queue of pending tasks and a count of running ones.
    All bookkeeping happens synchronously on the event loop thread, so no
    locking is needed. A pool is meant to live for one batch of work: create
    it, schedule tasks, gather the returned futures and drop it.

    Example:
        pool = BoundedTaskPool(5)
        futures = [pool.schedule(lambda rpid=rpid: fetch(rpid)) for rpid in ids]
        results = await asyncio.gather(*futures, return_exceptions=True)
    """

    def __init__(self, concurrency: int) -> None:
        """
        Create a pool.

        Args:
            concurrency: Maximum number of tasks running at the same time

        Raises:
            ValueError: If concurrency is not a positive integer
        """
        if isinstance(concurrency, bool) or not isinstance(concurrency, int) or concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {concurrency!r}")

        self._concurrency = concurrency
        self._queue: Deque[Tuple[TaskFunc, "asyncio.Future[Any]"]] = deque()
        self._active_count = 0
        # Strong references to runner tasks so they are not garbage collected mid-flight
        self._runners: Set["asyncio.Task[None]"] = set()

    @property
    def concurrency(self) -> int:
        """Configured concurrency limit."""
        return self._concurrency

    @property
    def active_count(self) -> int:
        """Number of tasks started but not yet settled."""
        return self._active_count

    @property
    def pending_count(self) -> int:
        """Number of tasks waiting for a free slot."""
        return len(self._queue)

    def schedule(self, task: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """
        Submit a task to the pool.

        Args:
            task: Zero-argument callable returning an awaitable

        Returns:
            A future that settles with the task's result or exception
        """
        loop = asyncio.get_running_loop()
        future: "asyncio.Future[T]" = loop.create_future()
        self._queue.append((task, future))
        self._advance()
        return future

    def _advance(self) -> None:
        """Start queued tasks while there are free slots."""
        while self._active_count < self._concurrency and self._queue:
            task, future = self._queue.popleft()
            if future.done():
                # Cancelled by its caller before it got a slot
                continue
            self._active_count += 1
            runner = asyncio.get_running_loop().create_task(self._run(task, future))
            self._runners.add(runner)
            runner.add_done_callback(self._runners.discard)

        logger.debug(
            f"Pool state: active={self._active_count}/{self._concurrency}, "
            f"pending={len(self._queue)}"
        )

    async def _run(self, task: TaskFunc, future: "asyncio.Future[Any]") -> None:
        """Execute one task and settle its future, then free the slot."""
        try:
            result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._active_count -= 1
            self._advance()
