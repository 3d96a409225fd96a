"""
Kubernetes cluster gateway.

One ApiClient per kubeconfig context; every context is a cluster. The
official client is blocking, so calls run in worker threads.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Callable, Dict, List, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client import ApiClient
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from spacegun.errors import ConfigError, GatewayError
from spacegun.modules.api import (
    ApplyReport,
    ClusterSnapshot,
    Deployment,
    Image,
    Pod,
    Replicas,
    Scaler,
    ServerGroup,
)
from spacegun.modules.cache import TTLCache

from . import snapshot as snapshots

logger = logging.getLogger("spacegun.cluster.kubernetes")

RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"


class KubernetesClusterRepository:
    """Cluster gateway backed by the official Kubernetes client."""

    NAMESPACES_TTL = 60

    @classmethod
    def from_config(cls, config_file: str, namespaces: Optional[List[str]] = None) -> "KubernetesClusterRepository":
        """
        Build one API client per context of a kubeconfig file.

        Raises:
            ConfigError: If the kubeconfig cannot be loaded
        """
        try:
            contexts, _ = config.list_kube_config_contexts(config_file=config_file)
            api_clients = {
                context["name"]: config.new_client_from_config(config_file=config_file, context=context["name"])
                for context in contexts
            }
        except (ConfigException, OSError) as e:
            raise ConfigError(f"Could not load kubeconfig {config_file}: {e}")
        logger.info(f"Loaded {len(api_clients)} cluster context(s) from {config_file}")
        return cls(api_clients, namespaces)

    def __init__(self, api_clients: Dict[str, ApiClient], allowed_namespaces: Optional[List[str]] = None):
        """
        Initialize repository.

        Args:
            api_clients: API client per cluster name
            allowed_namespaces: Restrict namespaces to this list (None allows all)
        """
        self.api_clients = api_clients
        self.allowed_namespaces = allowed_namespaces
        self._namespaces_cache: TTLCache[str, List[str]] = TTLCache(self.NAMESPACES_TTL)

    @property
    def clusters(self) -> List[str]:
        return list(self.api_clients.keys())

    async def namespaces(self, cluster: str) -> List[str]:
        async def fetch() -> List[str]:
            result = await self._call(cluster, "list namespaces", lambda api: client.CoreV1Api(api).list_namespace())
            return [
                item["metadata"]["name"]
                for item in result["items"]
                if self._is_namespace_allowed(item["metadata"]["name"])
            ]

        return await self._namespaces_cache.calculate(cluster, fetch)

    async def pods(self, group: ServerGroup) -> List[Pod]:
        namespace = group.get_namespace()
        result = await self._call(
            group.cluster,
            f"list pods in {namespace}",
            lambda api: client.CoreV1Api(api).list_namespaced_pod(namespace),
        )
        return [snapshots.to_pod(item) for item in result["items"]]

    async def deployments(self, group: ServerGroup) -> List[Deployment]:
        items = await self._list_deployments(group)
        return [snapshots.to_deployment(item) for item in items]

    async def scalers(self, group: ServerGroup) -> List[Scaler]:
        namespace = group.get_namespace()
        result = await self._call(
            group.cluster,
            f"list autoscalers in {namespace}",
            lambda api: client.AutoscalingV1Api(api).list_namespaced_horizontal_pod_autoscaler(namespace),
        )
        return [
            Scaler(
                name=item["metadata"]["name"],
                replicas=Replicas(
                    current=(item.get("status") or {}).get("currentReplicas"),
                    minimum=(item.get("spec") or {}).get("minReplicas"),
                    maximum=(item.get("spec") or {}).get("maxReplicas"),
                ),
            )
            for item in result["items"]
        ]

    async def update_deployment(self, group: ServerGroup, deployment: Deployment, image: Image) -> Deployment:
        namespace = group.get_namespace()
        current = await self._call(
            group.cluster,
            f"read deployment {deployment.name}",
            lambda api: client.AppsV1Api(api).read_namespaced_deployment(deployment.name, namespace),
        )
        target = snapshots.minify(current)
        snapshots.set_image(target, image.url)

        result = await self._call(
            group.cluster,
            f"replace deployment {deployment.name}",
            lambda api: client.AppsV1Api(api).replace_namespaced_deployment(deployment.name, namespace, target),
        )
        logger.info(f"Updated deployment {deployment.name} in {group.cluster}/{namespace} to {image.url}")
        return snapshots.to_deployment(result)

    async def restart_deployment(self, group: ServerGroup, deployment: Deployment) -> Deployment:
        namespace = group.get_namespace()
        patch = {
            "spec": {
                "template": {
                    "metadata": {"annotations": {RESTARTED_AT_ANNOTATION: datetime.now(UTC).isoformat()}}
                }
            }
        }
        result = await self._call(
            group.cluster,
            f"restart deployment {deployment.name}",
            lambda api: client.AppsV1Api(api).patch_namespaced_deployment(deployment.name, namespace, patch),
        )
        logger.info(f"Restarted deployment {deployment.name} in {group.cluster}/{namespace}")
        return snapshots.to_deployment(result)

    async def take_snapshot(self, group: ServerGroup) -> ClusterSnapshot:
        return snapshots.create_snapshot(await self._list_deployments(group))

    async def apply_snapshot(self, group: ServerGroup, snapshot: ClusterSnapshot, ignore_image: bool) -> ApplyReport:
        namespace = group.get_namespace()
        live = {item["metadata"]["name"]: item for item in await self._list_deployments(group)}

        async def write(name: str, body: Dict[str, Any], exists: bool) -> None:
            if exists:
                await self._call(
                    group.cluster,
                    f"replace deployment {name}",
                    lambda api: client.AppsV1Api(api).replace_namespaced_deployment(name, namespace, body),
                )
            else:
                await self._call(
                    group.cluster,
                    f"create deployment {name}",
                    lambda api: client.AppsV1Api(api).create_namespaced_deployment(namespace, body),
                )

        return await snapshots.apply_snapshot(snapshot, live, namespace, ignore_image, write)

    async def _list_deployments(self, group: ServerGroup) -> List[Dict[str, Any]]:
        namespace = group.get_namespace()
        result = await self._call(
            group.cluster,
            f"list deployments in {namespace}",
            lambda api: client.AppsV1Api(api).list_namespaced_deployment(namespace),
        )
        return result["items"]

    async def _call(self, cluster: str, description: str, request: Callable[[ApiClient], Any]) -> Any:
        """
        Run a blocking client call in a thread and return its JSON form.

        Raises:
            GatewayError: For unknown clusters and any API or transport failure
        """
        api_client = self.api_clients.get(cluster)
        if api_client is None:
            raise GatewayError(f"Config for cluster {cluster} could not be found", status=404)
        try:
            result = await asyncio.to_thread(request, api_client)
        except ApiException as e:
            raise GatewayError(f"{description} in {cluster} failed: {e.status} {e.reason}", status=e.status)
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise GatewayError(f"{description} in {cluster} failed: {e}")
        return api_client.sanitize_for_serialization(result)

    def _is_namespace_allowed(self, namespace: str) -> bool:
        return self.allowed_namespaces is None or namespace in self.allowed_namespaces
