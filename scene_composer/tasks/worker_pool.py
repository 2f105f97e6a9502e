"""Bounded asyncio worker pool for composition jobs."""

import asyncio
import logging
from typing import Awaitable, Callable

from scene_composer.exceptions import QueueFullError
from scene_composer.tasks.compose_task import ComposeJob

logger = logging.getLogger(__name__)

JobHandler = Callable[[ComposeJob], Awaitable[object]]


class WorkerPool:
    """A fixed number of workers draining a bounded queue.

    Each job runs start to finish inside one worker; jobs run concurrently
    with each other up to ``size``.
    """

    def __init__(self, handler: JobHandler, size: int = 2, max_queued: int = 16) -> None:
        self.handler = handler
        self.size = size
        self._queue: asyncio.Queue[ComposeJob] = asyncio.Queue(maxsize=max_queued)
        self._workers: list[asyncio.Task] = []

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"compose-worker-{i}")
            for i in range(self.size)
        ]
        logger.info(f"[WORKERS] Started {self.size} workers")

    def submit(self, job: ComposeJob) -> None:
        """Enqueue without waiting.

        Raises:
            QueueFullError: If the queue is at capacity
        """
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            raise QueueFullError(
                f"Composition queue is full ({self._queue.maxsize} jobs waiting)"
            )
        logger.info(f"[WORKERS] Queued job {job.job_id} ({self._queue.qsize()} waiting)")

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("[WORKERS] Stopped")

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                logger.info(f"[WORKERS] Worker {index} picked up job {job.job_id}")
                await self.handler(job)
            except Exception:
                logger.exception(f"[WORKERS] Worker {index} failed on job {job.job_id}")
            finally:
                self._queue.task_done()
