import asyncio
import logging
from datetime import UTC, datetime
from typing import Callable, Dict, List

from spacegun.errors import PipelineNotFoundError
from spacegun.modules.api import (
    ApplyReport,
    Cron,
    Deployment,
    Event,
    EventField,
    JobPlan,
    NoParams,
    PipelineDescription,
    PipelineParams,
    PipelineState,
)
from spacegun.modules.cluster import operations as cluster_ops
from spacegun.modules.dispatcher import Dispatcher, OperationRegistry
from spacegun.modules.events import LOG, report_event

from .cron import next_runs
from .planner import Planner

logger = logging.getLogger("spacegun.jobs")

PIPELINES = "jobs.pipelines"
SCHEDULES = "jobs.schedules"
STATE = "jobs.state"
PLAN = "jobs.plan"
APPLY = "jobs.apply"
RUN = "jobs.run"


def declare(registry: OperationRegistry) -> None:
    """Declare job operations (all layers)."""
    registry.declare(PIPELINES, NoParams, List[PipelineDescription])
    registry.declare(SCHEDULES, PipelineParams, Cron)
    registry.declare(STATE, PipelineParams, PipelineState)
    registry.declare(PLAN, PipelineParams, JobPlan)
    registry.declare(APPLY, JobPlan, List[Deployment])
    registry.declare(RUN, PipelineParams, List[Deployment])


class JobsModule:
    """
    Owns pipeline definitions, their run state and plan/apply execution.

    Runs of one pipeline never overlap: run() and apply() hold a per-pipeline
    lock. Plans take no lock since they do not mutate anything.
    """

    SCHEDULE_PREVIEW = 5

    def __init__(
        self,
        pipelines: List[PipelineDescription],
        dispatcher: Dispatcher,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ):
        """
        Initialize jobs module.

        Args:
            pipelines: Pipeline descriptions, immutable for the process lifetime
            dispatcher: Dispatcher for cluster, image and event operations
            clock: Time source, replaceable in tests
        """
        self.pipelines: Dict[str, PipelineDescription] = {p.name: p for p in pipelines}
        self.dispatcher = dispatcher
        self.planner = Planner(dispatcher)
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {name: asyncio.Lock() for name in self.pipelines}
        self._states: Dict[str, PipelineState] = {name: PipelineState.IDLE for name in self.pipelines}
        self._manual_plans: Dict[str, int] = {name: 0 for name in self.pipelines}
        # Session state only, lost on restart
        self._last_runs: Dict[str, datetime] = {}

    def bind(self, registry: OperationRegistry) -> None:
        declare(registry)
        registry.bind(PIPELINES, self.list_pipelines)
        registry.bind(SCHEDULES, self.schedules)
        registry.bind(STATE, self.state)
        registry.bind(PLAN, self.plan)
        registry.bind(APPLY, self.apply)
        registry.bind(RUN, self.run)

    def get(self, name: str) -> PipelineDescription:
        pipeline = self.pipelines.get(name)
        if pipeline is None:
            raise PipelineNotFoundError(name)
        return pipeline

    def is_running(self, name: str) -> bool:
        self.get(name)
        return self._locks[name].locked()

    async def list_pipelines(self, params: NoParams) -> List[PipelineDescription]:
        return list(self.pipelines.values())

    async def schedules(self, params: PipelineParams) -> Cron:
        """Last completed run and upcoming fire times. Triggers nothing."""
        pipeline = self.get(params.name)
        upcoming = []
        if pipeline.cron:
            upcoming = next_runs(pipeline.cron, self._clock(), self.SCHEDULE_PREVIEW)
        return Cron(name=pipeline.name, last_run=self._last_runs.get(pipeline.name), next_runs=upcoming)

    async def state(self, params: PipelineParams) -> PipelineState:
        self.get(params.name)
        return self._states[params.name]

    async def plan(self, params: PipelineParams) -> JobPlan:
        """
        Compute a plan without taking the pipeline lock.

        An idle pipeline reports Planning until its last concurrent manual
        plan finishes. A running pipeline keeps the state of its run.
        """
        pipeline = self.get(params.name)
        name = pipeline.name
        if self._locks[name].locked():
            return await self.planner.plan(pipeline)

        self._manual_plans[name] += 1
        self._states[name] = PipelineState.PLANNING
        try:
            return await self.planner.plan(pipeline)
        finally:
            self._manual_plans[name] -= 1
            if not self._manual_plans[name] and not self._locks[name].locked():
                self._states[name] = PipelineState.IDLE

    async def apply(self, plan: JobPlan) -> List[Deployment]:
        """Apply a previously computed plan, waiting for a running instance to finish."""
        name = self.get(plan.pipeline.name).name
        async with self._locks[name]:
            try:
                return await self._apply(plan)
            finally:
                self._states[name] = PipelineState.IDLE

    async def run(self, params: PipelineParams) -> List[Deployment]:
        """Plan and apply in one go."""
        pipeline = self.get(params.name)
        async with self._locks[pipeline.name]:
            try:
                self._states[pipeline.name] = PipelineState.PLANNING
                plan = await self.planner.plan(pipeline)
                return await self._apply(plan)
            finally:
                self._states[pipeline.name] = PipelineState.IDLE

    async def _apply(self, plan: JobPlan) -> List[Deployment]:
        """
        Execute the captured actions in order.

        Logic:
        1. Update each deployment through the dispatcher
        2. Record a failure and continue with the next action
        3. Emit one event for a non-empty batch
        4. Return the deployments that were updated
        """
        name = plan.pipeline.name
        self._states[name] = PipelineState.APPLYING
        group = plan.group
        update = self.dispatcher.call(cluster_ops.UPDATE_DEPLOYMENT)

        applied: List[Deployment] = []
        report = ApplyReport()
        for action in plan.actions:
            label = f"Deployment {action.deployment.name} to {action.image.url}"
            try:
                applied.append(await update(group=group, deployment=action.deployment, image=action.image))
                report.applied.append(label)
            except Exception as e:
                logger.error(f"Pipeline {name} failed to update deployment {action.deployment.name}: {e}")
                report.errored.append(label)

        self._last_runs[name] = self._clock()
        logger.info(f"Applied pipeline {name}: {len(report.applied)} applied, {len(report.errored)} errored")
        if not report.is_empty:
            await self.dispatcher.call(LOG)(
                report_event(
                    f"Applied Pipeline {name}",
                    f"Applied {name} in {group.cluster} ∞ {group.get_namespace()}",
                    report,
                )
            )
        return applied

    async def report_failure(self, name: str, error: Exception) -> None:
        """Emit an event for a scheduled run that failed as a whole."""
        await self.dispatcher.call(LOG)(
            Event(
                message=f"Pipeline {name} failed",
                timestamp=self._clock(),
                topics=["slack"],
                description=f"Scheduled run of {name} failed",
                fields=[EventField(title="Failure", value=str(error))],
            )
        )
