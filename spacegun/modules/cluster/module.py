import logging
from typing import List

from spacegun.modules.api import (
    ApplyReport,
    ApplySnapshotParams,
    ClusterParams,
    ClusterSnapshot,
    Deployment,
    NoParams,
    Pod,
    RestartDeploymentParams,
    Scaler,
    ServerGroup,
    UpdateDeploymentParams,
)
from spacegun.modules.dispatcher import Dispatcher, OperationRegistry
from spacegun.modules.events import LOG, report_event

from .repository import ClusterRepository

logger = logging.getLogger("spacegun.cluster")

CLUSTERS = "cluster.clusters"
NAMESPACES = "cluster.namespaces"
PODS = "cluster.pods"
DEPLOYMENTS = "cluster.deployments"
SCALERS = "cluster.scalers"
UPDATE_DEPLOYMENT = "cluster.update_deployment"
RESTART_DEPLOYMENT = "cluster.restart_deployment"
TAKE_SNAPSHOT = "cluster.take_snapshot"
APPLY_SNAPSHOT = "cluster.apply_snapshot"


def declare(registry: OperationRegistry) -> None:
    """Declare cluster operations (all layers)."""
    registry.declare(CLUSTERS, NoParams, List[str])
    registry.declare(NAMESPACES, ClusterParams, List[str])
    registry.declare(PODS, ServerGroup, List[Pod])
    registry.declare(DEPLOYMENTS, ServerGroup, List[Deployment])
    registry.declare(SCALERS, ServerGroup, List[Scaler])
    registry.declare(UPDATE_DEPLOYMENT, UpdateDeploymentParams, Deployment)
    registry.declare(RESTART_DEPLOYMENT, RestartDeploymentParams, Deployment)
    registry.declare(TAKE_SNAPSHOT, ServerGroup, ClusterSnapshot)
    registry.declare(APPLY_SNAPSHOT, ApplySnapshotParams, ApplyReport)


class ClusterModule:
    """Binds cluster operations to a cluster gateway."""

    def __init__(self, repository: ClusterRepository, dispatcher: Dispatcher):
        """
        Initialize cluster module.

        Args:
            repository: Cluster gateway
            dispatcher: Dispatcher used to emit events
        """
        self.repository = repository
        self.dispatcher = dispatcher

    def bind(self, registry: OperationRegistry) -> None:
        declare(registry)
        registry.bind(CLUSTERS, self.clusters)
        registry.bind(NAMESPACES, self.namespaces)
        registry.bind(PODS, self.pods)
        registry.bind(DEPLOYMENTS, self.deployments)
        registry.bind(SCALERS, self.scalers)
        registry.bind(UPDATE_DEPLOYMENT, self.update_deployment)
        registry.bind(RESTART_DEPLOYMENT, self.restart_deployment)
        registry.bind(TAKE_SNAPSHOT, self.take_snapshot)
        registry.bind(APPLY_SNAPSHOT, self.apply_snapshot)

    async def clusters(self, params: NoParams) -> List[str]:
        return self.repository.clusters

    async def namespaces(self, params: ClusterParams) -> List[str]:
        return await self.repository.namespaces(params.cluster)

    async def pods(self, group: ServerGroup) -> List[Pod]:
        return await self.repository.pods(group)

    async def deployments(self, group: ServerGroup) -> List[Deployment]:
        return await self.repository.deployments(group)

    async def scalers(self, group: ServerGroup) -> List[Scaler]:
        return await self.repository.scalers(group)

    async def update_deployment(self, params: UpdateDeploymentParams) -> Deployment:
        return await self.repository.update_deployment(params.group, params.deployment, params.image)

    async def restart_deployment(self, params: RestartDeploymentParams) -> Deployment:
        return await self.repository.restart_deployment(params.group, params.deployment)

    async def take_snapshot(self, group: ServerGroup) -> ClusterSnapshot:
        return await self.repository.take_snapshot(group)

    async def apply_snapshot(self, params: ApplySnapshotParams) -> ApplyReport:
        """Apply a snapshot and emit one event when anything was written or failed."""
        group = params.group
        report = await self.repository.apply_snapshot(group, params.snapshot, params.ignore_image)
        logger.info(
            f"Applied snapshot to {group.cluster}/{group.get_namespace()}: "
            f"{len(report.applied)} applied, {len(report.errored)} errored"
        )
        if not report.is_empty:
            event = report_event(
                "Applied Snapshots",
                f"Applied Snapshots in {group.cluster} ∞ {group.get_namespace()}",
                report,
            )
            await self.dispatcher.call(LOG)(event)
        return report
