"""Periodic eviction of stale job registry entries."""

import asyncio
import logging

from scene_composer.jobs.registry import JobRegistry

logger = logging.getLogger(__name__)


class JobSweeper:
    """Runs ``registry.sweep()`` every ``interval_seconds`` on the event loop."""

    def __init__(self, registry: JobRegistry, interval_seconds: float = 300) -> None:
        self.registry = registry
        self.interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="job-sweeper")
        logger.info(f"[JOBS] Sweeper started (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[JOBS] Sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.registry.sweep()
            except Exception:
                logger.exception("[JOBS] Sweep failed")
