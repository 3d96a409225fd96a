"""
Cron scheduler.

One asyncio task per scheduled pipeline sleeps until the next fire time and
starts the run as a separate task, so a slow pipeline never delays the
schedule of another. A tick that fires while the same pipeline is still
running is skipped.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Callable, Dict, Optional, Set

from spacegun.modules.api import PipelineDescription, PipelineParams

from .cron import next_runs
from .module import JobsModule

logger = logging.getLogger("spacegun.jobs.scheduler")


class CronScheduler:
    def __init__(self, jobs: JobsModule, clock: Callable[[], datetime] = lambda: datetime.now(UTC)):
        self.jobs = jobs
        self._clock = clock
        self._loops: Dict[str, asyncio.Task] = {}
        self._active: Dict[str, asyncio.Task] = {}
        self._runs: Set[asyncio.Task] = set()

    @property
    def scheduled(self) -> list:
        return sorted(self._loops)

    def start(self) -> None:
        """Start one loop per pipeline with a cron expression."""
        for pipeline in self.jobs.pipelines.values():
            if not pipeline.cron:
                logger.info(f"Pipeline {pipeline.name} has no cron, manual runs only")
                continue
            if pipeline.name not in self._loops:
                self._loops[pipeline.name] = asyncio.create_task(
                    self._loop(pipeline), name=f"cron:{pipeline.name}"
                )
                logger.info(f"Scheduled pipeline {pipeline.name} with cron '{pipeline.cron}'")

    async def stop(self) -> None:
        """Cancel schedule loops and any run still in progress."""
        tasks = list(self._loops.values()) + list(self._runs)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._active.clear()
        self._runs.clear()

    async def _loop(self, pipeline: PipelineDescription) -> None:
        previous: Optional[datetime] = None
        while True:
            now = self._clock()
            # Never fire the same slot twice when the sleep wakes up early
            reference = max(now, previous) if previous else now
            fire_at = next_runs(pipeline.cron, reference, 1)[0]
            await asyncio.sleep(max(0.0, (fire_at - now).total_seconds()))
            previous = fire_at
            self.tick(pipeline.name)

    def tick(self, name: str) -> Optional[asyncio.Task]:
        """
        Start a run of a pipeline unless one is still in progress.

        Returns:
            The run task, or None when the tick was skipped
        """
        active = self._active.get(name)
        if (active is not None and not active.done()) or self.jobs.is_running(name):
            logger.warning(f"Skipping scheduled run of {name}, previous run still in progress")
            return None

        task = asyncio.create_task(self._run(name), name=f"run:{name}")
        self._active[name] = task
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _run(self, name: str) -> None:
        logger.info(f"Running scheduled pipeline {name}")
        try:
            deployments = await self.jobs.run(PipelineParams(name=name))
            logger.info(f"Scheduled run of {name} updated {len(deployments)} deployment(s)")
        except Exception as e:
            # The next tick is the retry
            logger.error(f"Scheduled run of {name} failed: {e}")
            await self.jobs.report_failure(name, e)
