"""Bounded worker pool for fire-and-forget side effects.

Event publication and notification fan-out are handed to this pool so
the request path only waits on the primary write. ``submit`` never
blocks: when the queue is full the task is dropped, logged and counted.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class _Job:
    name: str
    fn: Callable[..., Awaitable[Any]]
    args: tuple[Any, ...]


class BackgroundTaskPool:
    """N worker tasks draining a bounded ``asyncio.Queue``.

    Usage:
        pool = BackgroundTaskPool(workers=4, queue_size=1000)
        await pool.start()
        pool.submit(publisher.publish_alert, alert, name="publish_alert")
        ...
        await pool.stop()
    """

    def __init__(
        self,
        workers: int = 4,
        queue_size: int = 1000,
        drain_timeout: float = 10.0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._worker_count = workers
        self._drain_timeout = drain_timeout
        self._queue: asyncio.Queue[_Job] = asyncio.Queue(maxsize=max(1, queue_size))
        self._workers: list[asyncio.Task] = []
        self._metrics = get_metrics()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        """Jobs waiting in the queue (not counting in-flight ones)."""
        return self._queue.qsize()

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"background-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info(
            "Background pool started (workers=%d, queue_size=%d)",
            self._worker_count, self._queue.maxsize,
        )

    def submit(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        name: str | None = None,
    ) -> bool:
        """Queue ``fn(*args)`` for a worker.

        Returns:
            True if queued, False if the queue was full and the job dropped.
        """
        job = _Job(name=name or getattr(fn, "__name__", "task"), fn=fn, args=args)
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            self._metrics.record_background_task("dropped")
            logger.warning(
                "Background queue full (%d), dropping %s",
                self._queue.maxsize, job.name,
            )
            return False
        self._metrics.set_background_queue_depth(self._queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Drain the queue (bounded by ``drain_timeout``) then stop workers."""
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._drain_timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Background pool drain timed out after %.1fs, %d jobs abandoned",
                self._drain_timeout, self._queue.qsize(),
            )

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Background pool stopped")

    async def _worker_loop(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job.fn(*job.args)
                self._metrics.record_background_task("completed")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._metrics.record_background_task("failed")
                logger.error(
                    "Background job %s failed on worker %d: %s",
                    job.name, index, e,
                )
            finally:
                self._queue.task_done()
                self._metrics.set_background_queue_depth(self._queue.qsize())
