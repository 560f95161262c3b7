"""
Unit tests for concurrent processor with semaphore-based backpressure.
"""

import asyncio

import pytest

from zendesk_export.core.concurrent_processor import (
    ConcurrentProcessor,
    ProcessingStats,
    ProcessorState,
)


class Tracker:
    """Records how many jobs run at once."""

    def __init__(self, delay: float = 0.01):
        self.delay = delay
        self.running = 0
        self.peak = 0
        self.started = []

    async def __call__(self, item):
        self.started.append(item)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await asyncio.sleep(self.delay)
            return item * 2
        finally:
            self.running -= 1


class TestProcessingStats:
    """Test statistics helpers."""

    def test_empty(self):
        stats = ProcessingStats()
        assert stats.active_tasks == 0
        assert stats.success_rate == 0.0
        assert stats.duration_seconds is None

    def test_rates(self):
        stats = ProcessingStats(
            total_tasks=4, completed_tasks=3, failed_tasks=1
        )
        assert stats.success_rate == 75.0
        assert stats.active_tasks == 0


class TestConcurrentProcessor:
    """Test ConcurrentProcessor behaviour."""

    @pytest.mark.parametrize("value", [0, 51, -1])
    def test_invalid_max_concurrent(self, value):
        with pytest.raises(ValueError, match="max_concurrent"):
            ConcurrentProcessor(max_concurrent=value)

    @pytest.mark.asyncio
    async def test_results_in_start_order(self):
        processor = ConcurrentProcessor(max_concurrent=3)

        results = await processor.process_with_concurrency([1, 2, 3, 4], Tracker())

        assert results == [2, 4, 6, 8]
        assert processor.state == ProcessorState.IDLE
        assert processor.stats.completed_tasks == 4

    @pytest.mark.asyncio
    async def test_bound_respected(self):
        processor = ConcurrentProcessor(max_concurrent=2)
        tracker = Tracker()

        await processor.process_with_concurrency(range(10), tracker)

        assert tracker.peak == 2
        assert processor.stats.max_concurrent_reached == 2

    @pytest.mark.asyncio
    async def test_async_source_pulled_only_as_slots_free(self):
        processor = ConcurrentProcessor(max_concurrent=2)
        release = asyncio.Event()
        pulled = []

        async def source():
            for item in range(5):
                pulled.append(item)
                yield item

        async def job(item):
            await release.wait()
            return item

        batch = asyncio.ensure_future(processor.process_with_concurrency(source(), job))
        for _ in range(5):
            await asyncio.sleep(0)

        assert pulled == [0, 1]
        assert processor.active_task_count == 2

        release.set()
        assert await batch == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_exhausted_source_returns_its_slot(self):
        processor = ConcurrentProcessor(max_concurrent=1)

        first = await processor.process_with_concurrency([1], Tracker())
        second = await asyncio.wait_for(
            processor.process_with_concurrency([], Tracker()), timeout=1
        )
        third = await asyncio.wait_for(
            processor.process_with_concurrency([3], Tracker()), timeout=1
        )

        assert (first, second, third) == ([2], [], [6])
        assert not processor.semaphore.locked()

    @pytest.mark.asyncio
    async def test_failures_are_returned_not_raised(self):
        processor = ConcurrentProcessor(max_concurrent=2)

        async def job(item):
            if item == 2:
                raise RuntimeError("boom")
            return item

        results = await processor.process_with_concurrency([1, 2, 3], job)

        assert results[0] == 1
        assert isinstance(results[1], RuntimeError)
        assert results[2] == 3
        assert processor.stats.failed_tasks == 1

    @pytest.mark.asyncio
    async def test_source_error_after_started_jobs(self):
        processor = ConcurrentProcessor(max_concurrent=3)
        finished = []

        async def source():
            yield 1
            yield 2
            raise ConnectionError("listing failed")

        async def job(item):
            await asyncio.sleep(0.01)
            finished.append(item)

        with pytest.raises(ConnectionError):
            await processor.process_with_concurrency(source(), job)

        assert sorted(finished) == [1, 2]
        assert processor.active_task_count == 0
        assert not processor.semaphore.locked()

    @pytest.mark.asyncio
    async def test_shutdown_cancels_after_timeout(self):
        processor = ConcurrentProcessor(max_concurrent=2)

        async def job(item):
            await asyncio.sleep(10)

        batch = asyncio.ensure_future(processor.process_with_concurrency([1, 2], job))
        await asyncio.sleep(0.01)

        await processor.shutdown(timeout=0.01)

        results = await batch
        assert all(isinstance(r, asyncio.CancelledError) for r in results)
        assert processor.state == ProcessorState.SHUTDOWN
        assert processor.stats.cancelled_tasks == 2

    @pytest.mark.asyncio
    async def test_rejects_work_after_shutdown(self):
        processor = ConcurrentProcessor()
        await processor.shutdown()

        with pytest.raises(RuntimeError):
            await processor.process_with_concurrency([1], Tracker())

    @pytest.mark.asyncio
    async def test_batches_share_bound(self):
        processor = ConcurrentProcessor(max_concurrent=2)
        tracker = Tracker()

        await asyncio.gather(
            processor.process_with_concurrency([1, 2, 3], tracker),
            processor.process_with_concurrency([4, 5, 6], tracker),
        )

        assert tracker.peak == 2
        assert sorted(tracker.started) == [1, 2, 3, 4, 5, 6]
        assert processor.state == ProcessorState.IDLE
