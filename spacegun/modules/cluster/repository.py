"""Cluster gateway interface following Black Box Design principles."""
from typing import List, Protocol

from spacegun.modules.api import (
    ApplyReport,
    ClusterSnapshot,
    Deployment,
    Image,
    Pod,
    Scaler,
    ServerGroup,
)


class ClusterRepository(Protocol):
    """Protocol for cluster gateways - allows swappable implementations."""

    @property
    def clusters(self) -> List[str]:
        """Names of all known clusters."""
        ...

    async def namespaces(self, cluster: str) -> List[str]:
        ...

    async def pods(self, group: ServerGroup) -> List[Pod]:
        ...

    async def deployments(self, group: ServerGroup) -> List[Deployment]:
        ...

    async def scalers(self, group: ServerGroup) -> List[Scaler]:
        ...

    async def update_deployment(self, group: ServerGroup, deployment: Deployment, image: Image) -> Deployment:
        """Point the deployment's first container at image and return the result."""
        ...

    async def restart_deployment(self, group: ServerGroup, deployment: Deployment) -> Deployment:
        """Trigger a rollout without changing the spec."""
        ...

    async def take_snapshot(self, group: ServerGroup) -> ClusterSnapshot:
        ...

    async def apply_snapshot(
        self, group: ServerGroup, snapshot: ClusterSnapshot, ignore_image: bool
    ) -> ApplyReport:
        """
        Restore deployments from a snapshot.

        Deployments already equal to the snapshot are not written. Failures
        are reported per deployment, never raised.
        """
        ...
