"""Bounded-concurrency worker pool with streaming delivery.

Jobs are launched in input order, at most `max_concurrency` at a time.
Finished jobs hand their ResultBatch to a bounded queue drained by a single
delivery task, so `on_batch` is never called concurrently with itself and a
slow consumer holds back new launches.

Usage:
    pool = BoundedWorkerPool(max_concurrency=50)
    stats = await pool.run(items, analyzer.process, on_batch=sink.append_batch)
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Iterable, Mapping
from typing import Any, Callable, Union

from listing_pipeline.config.constants import LAUNCH_DELAY
from listing_pipeline.core.types import PoolStats, ResultBatch, WorkItem
from listing_pipeline.observability.logger import get_logger, log_context

logger = get_logger(__name__)

Rows = Iterable[Mapping[str, Any]]
Worker = Callable[[WorkItem], Awaitable[Union[Rows, None]]]
OnBatch = Callable[[ResultBatch], Union[Awaitable[Any], None]]


def as_work_items(items: Iterable[Any]) -> list[WorkItem]:
    """Wrap raw inputs as WorkItems, keeping existing WorkItems unchanged."""
    work_items = []
    for index, item in enumerate(items):
        if isinstance(item, WorkItem):
            work_items.append(item)
        elif isinstance(item, Mapping):
            work_items.append(WorkItem(index=index, payload=dict(item)))
        else:
            work_items.append(WorkItem(index=index, payload={"value": item}))
    return work_items


class _PoolRun:
    """State of one pool run. Only ever touched from the event loop thread."""

    def __init__(
        self,
        items: list[WorkItem],
        worker: Worker,
        on_batch: OnBatch | None,
        max_concurrency: int,
        launch_delay: float,
        queue_size: int,
        progress_interval: int,
    ) -> None:
        self.items = items
        self.worker = worker
        self.on_batch = on_batch
        self.max_concurrency = max_concurrency
        self.launch_delay = launch_delay
        self.progress_interval = progress_interval

        self.loop = asyncio.get_running_loop()
        self.stats = PoolStats(submitted=len(items))
        self.cursor = 0
        self.jobs: set[asyncio.Task[None]] = set()
        self.queue: asyncio.Queue[ResultBatch | None] = asyncio.Queue(maxsize=queue_size)
        self.done: asyncio.Future[None] = self.loop.create_future()
        self.launch_handle: asyncio.TimerHandle | None = None
        self.closed = False

    def launch(self) -> None:
        self.launch_handle = None
        if self.closed:
            return
        while self.cursor < len(self.items) and self.stats.active < self.max_concurrency:
            item = self.items[self.cursor]
            self.cursor += 1
            self.stats.active += 1
            self.stats.peak_active = max(self.stats.peak_active, self.stats.active)
            task = self.loop.create_task(self._job(item))
            self.jobs.add(task)
            task.add_done_callback(self._job_done)

    def _job_done(self, task: asyncio.Task[None]) -> None:
        self.jobs.discard(task)
        self.stats.active -= 1
        self.stats.completed += 1

        if self.progress_interval and self.stats.completed % self.progress_interval == 0:
            logger.info(f"Processed {self.stats.completed}/{self.stats.submitted}")

        if self.cursor < len(self.items) and self.launch_handle is None and not self.closed:
            self.launch_handle = self.loop.call_later(self.launch_delay, self.launch)

        if self.stats.is_done and not self.done.done():
            self.done.set_result(None)

    async def _job(self, item: WorkItem) -> None:
        with log_context(item=item.identity):
            try:
                rows = await self.worker(item)
                batch = ResultBatch(item=item, rows=tuple(rows or ()))
            except Exception as e:
                self.stats.failed += 1
                self.stats.failed_items.append(item.identity)
                logger.error(
                    f"Item {item.identity} failed: {e}",
                    extra={"error_type": type(e).__name__},
                )
                return

            self.stats.succeeded += 1
            self.stats.rows += len(batch.rows)
            if batch.rows and self.on_batch is not None:
                # Slot stays held until the batch is queued
                await self.queue.put(batch)

    async def deliver(self) -> None:
        while True:
            batch = await self.queue.get()
            if batch is None:
                return
            result = self.on_batch(batch)
            if inspect.isawaitable(result):
                await result
            self.stats.delivered += 1

    def shutdown(self) -> None:
        self.closed = True
        if self.launch_handle is not None:
            self.launch_handle.cancel()
            self.launch_handle = None
        for task in list(self.jobs):
            task.cancel()


class BoundedWorkerPool:
    """Runs independent jobs with a fixed maximum concurrency.

    A failing job is logged with the item's identity, counted and dropped;
    it never cancels sibling jobs. A failing `on_batch` aborts the run and
    propagates, since it means results can no longer be stored.
    """

    def __init__(
        self,
        max_concurrency: int,
        launch_delay: float = LAUNCH_DELAY,
        queue_size: int | None = None,
        progress_interval: int = 10,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self.launch_delay = launch_delay
        self.queue_size = queue_size or max_concurrency
        self.progress_interval = progress_interval

    async def run(
        self,
        items: Iterable[Any],
        worker: Worker,
        on_batch: OnBatch | None = None,
    ) -> PoolStats:
        """Process every item and wait for the pool to drain.

        Args:
            items: WorkItems or raw inputs (wrapped via `as_work_items`)
            worker: Coroutine function returning the item's output rows
            on_batch: Called once per non-empty ResultBatch, in completion order

        Returns:
            PoolStats with completion counts and the failed item identities
        """
        work_items = as_work_items(items)
        run = _PoolRun(
            work_items,
            worker,
            on_batch,
            self.max_concurrency,
            self.launch_delay,
            self.queue_size,
            self.progress_interval,
        )

        logger.info(
            f"Processing {len(work_items)} items with concurrency {self.max_concurrency}"
        )

        if not work_items:
            return run.stats

        delivery = asyncio.create_task(run.deliver()) if on_batch is not None else None
        stopper: asyncio.Future[None] | None = None
        run.launch()

        try:
            if delivery is None:
                await run.done
            else:
                await asyncio.wait({run.done, delivery}, return_when=asyncio.FIRST_COMPLETED)
                if delivery.done():
                    # Consumer died before the pool drained
                    run.shutdown()
                    delivery.result()
                    raise RuntimeError("Result delivery stopped before the pool finished")
                stopper = asyncio.ensure_future(run.queue.put(None))
                await asyncio.wait({stopper, delivery}, return_when=asyncio.FIRST_COMPLETED)
                await delivery
        finally:
            run.shutdown()
            for task in (stopper, delivery):
                if task is not None and not task.done():
                    task.cancel()

        logger.info(
            f"Pool finished: {run.stats.succeeded} succeeded, {run.stats.failed} failed",
            extra={"peak_active": run.stats.peak_active},
        )
        return run.stats


async def run_pool(
    items: Iterable[Any],
    concurrency: int,
    worker: Worker,
    on_batch: OnBatch | None = None,
    **options: Any,
) -> PoolStats:
    """Run `worker` over `items` with bounded concurrency.

    Completion is signalled by the returned coroutine finishing, which
    happens once every item has completed and no job is active.
    """
    pool = BoundedWorkerPool(max_concurrency=concurrency, **options)
    return await pool.run(items, worker, on_batch)
