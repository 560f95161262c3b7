"""
Bounded concurrent job execution with semaphore-based backpressure.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    Awaitable,
    Callable,
    Generic,
    Iterable,
    List,
    Optional,
    Set,
    TypeVar,
    Union,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ProcessorState(Enum):
    """Concurrent processor state."""

    IDLE = "idle"
    PROCESSING = "processing"
    SHUTTING_DOWN = "shutting_down"
    SHUTDOWN = "shutdown"


@dataclass
class ProcessingStats:
    """Statistics for concurrent processing operations."""

    total_tasks: int = 0
    completed_tasks: int = 0
    failed_tasks: int = 0
    cancelled_tasks: int = 0
    max_concurrent_reached: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def active_tasks(self) -> int:
        return (
            self.total_tasks
            - self.completed_tasks
            - self.failed_tasks
            - self.cancelled_tasks
        )

    @property
    def success_rate(self) -> float:
        attempted_tasks = self.completed_tasks + self.failed_tasks
        if attempted_tasks == 0:
            return 0.0
        return (self.completed_tasks / attempted_tasks) * 100.0

    @property
    def duration_seconds(self) -> Optional[float]:
        if not self.start_time:
            return None
        end_time = self.end_time or datetime.now()
        return (end_time - self.start_time).total_seconds()


class ConcurrentProcessor(Generic[T, R]):
    """
    Runs a job per item with at most ``max_concurrent`` jobs in flight.

    A slot is acquired before an item is pulled from the source, so lazy
    sources (paginated listings) are consumed only as fast as jobs finish.
    Several batches may run at once on the same processor and then share the
    same bound.
    """

    def __init__(self, max_concurrent: int = 5):
        """
        Initialize concurrent processor.

        Args:
            max_concurrent: Maximum concurrent jobs (1-50)
        """
        if not (1 <= max_concurrent <= 50):
            raise ValueError(
                f"max_concurrent must be between 1 and 50, got {max_concurrent}"
            )

        self.max_concurrent = max_concurrent

        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.state = ProcessorState.IDLE
        self.stats = ProcessingStats()
        self._active_tasks: Set["asyncio.Task[Any]"] = set()
        self._active_batches = 0

        logger.debug(
            f"Initialized concurrent processor: max_concurrent={max_concurrent}"
        )

    async def process_with_concurrency(
        self,
        items: Union[Iterable[T], AsyncIterable[T]],
        processor_func: Callable[[T], Awaitable[R]],
    ) -> List[Union[R, BaseException]]:
        """
        Process items concurrently.

        Args:
            items: Items to process, sync or async iterable
            processor_func: Async function run once per item

        Returns:
            Results in start order; failed jobs contribute their exception

        Raises:
            Whatever the item source raises while being iterated, after jobs
            already started have finished
        """
        if self.state in (ProcessorState.SHUTTING_DOWN, ProcessorState.SHUTDOWN):
            raise RuntimeError(f"Processor is {self.state.value}")

        self._begin_batch()
        tasks: List["asyncio.Task[R]"] = []

        source = self._iterate(items)

        try:
            while True:
                await self.semaphore.acquire()
                if self.state == ProcessorState.SHUTTING_DOWN:
                    self.semaphore.release()
                    logger.info("Processor shutting down, not starting further jobs")
                    break
                try:
                    item = await source.__anext__()
                except StopAsyncIteration:
                    self.semaphore.release()
                    break
                except BaseException:
                    self.semaphore.release()
                    raise
                tasks.append(self._start_task(item, processor_func, len(tasks)))

        except BaseException:
            # Source failed or we were cancelled; let started jobs settle first.
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            self._end_batch()
            raise

        results = await asyncio.gather(*tasks, return_exceptions=True)
        self._end_batch()
        return list(results)

    @staticmethod
    async def _iterate(items: Union[Iterable[T], AsyncIterable[T]]) -> Any:
        if hasattr(items, "__aiter__"):
            async for item in items:  # type: ignore[union-attr]
                yield item
        else:
            for item in items:  # type: ignore[union-attr]
                yield item

    def _start_task(
        self, item: T, processor_func: Callable[[T], Awaitable[R]], index: int
    ) -> "asyncio.Task[R]":
        self.stats.total_tasks += 1
        task = asyncio.ensure_future(
            self._run_single(item, processor_func, f"job_{index}")
        )
        self._active_tasks.add(task)
        self.stats.max_concurrent_reached = max(
            self.stats.max_concurrent_reached, len(self._active_tasks)
        )
        task.add_done_callback(self._active_tasks.discard)
        return task

    async def _run_single(
        self, item: T, processor_func: Callable[[T], Awaitable[R]], task_name: str
    ) -> R:
        start_time = time.time()
        try:
            result = await processor_func(item)
            self.stats.completed_tasks += 1
            return result

        except asyncio.CancelledError:
            self.stats.cancelled_tasks += 1
            raise
        except Exception as e:
            self.stats.failed_tasks += 1
            logger.error(
                f"Job {task_name} failed after {time.time() - start_time:.3f}s: {e}"
            )
            raise
        finally:
            self.semaphore.release()

    def _begin_batch(self) -> None:
        if self._active_batches == 0:
            self.stats.start_time = datetime.now()
            self.stats.end_time = None
        self._active_batches += 1
        self.state = ProcessorState.PROCESSING

    def _end_batch(self) -> None:
        self._active_batches -= 1
        if self._active_batches == 0:
            self.stats.end_time = datetime.now()
            if self.state == ProcessorState.PROCESSING:
                self.state = ProcessorState.IDLE
            self._log_completion_summary()

    def _log_completion_summary(self) -> None:
        duration = self.stats.duration_seconds or 0
        logger.debug(
            f"Concurrent processing idle: {self.stats.completed_tasks}/"
            f"{self.stats.total_tasks} jobs completed "
            f"({self.stats.success_rate:.1f}% success rate) in {duration:.2f}s, "
            f"max_concurrent={self.stats.max_concurrent_reached}"
        )
        if self.stats.failed_tasks > 0:
            logger.debug(f"Failed jobs: {self.stats.failed_tasks}")
        if self.stats.cancelled_tasks > 0:
            logger.debug(f"Cancelled jobs: {self.stats.cancelled_tasks}")

    async def shutdown(self, timeout: float = 30.0) -> None:
        """
        Stop starting new jobs and wait for running ones.

        Jobs still running after ``timeout`` seconds are cancelled.
        """
        logger.info("Initiating concurrent processor shutdown")
        self.state = ProcessorState.SHUTTING_DOWN

        active = list(self._active_tasks)
        if active:
            done, pending = await asyncio.wait(active, timeout=timeout)
            if pending:
                logger.warning(
                    f"Shutdown timeout reached, cancelling {len(pending)} active jobs"
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        self.state = ProcessorState.SHUTDOWN
        logger.info("Concurrent processor shutdown completed")

    @property
    def active_task_count(self) -> int:
        return len(self._active_tasks)
