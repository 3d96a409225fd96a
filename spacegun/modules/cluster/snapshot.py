"""
Snapshot and diff logic for deployments.

Deployments are handled in their Kubernetes JSON form (camelCase keys, as
produced by ApiClient.sanitize_for_serialization). Minification keeps only
identity metadata and the spec, so two deployments compare equal exactly
when applying one over the other would change nothing we own.
"""

import copy
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from spacegun.modules.api import ApplyReport, ClusterSnapshot, Deployment, Image, Pod

logger = logging.getLogger("spacegun.cluster")

# Written by the controller on every rollout, never part of the desired state
SERVER_ANNOTATIONS = frozenset({"deployment.kubernetes.io/revision"})

SnapshotWriter = Callable[[str, Dict[str, Any], bool], Awaitable[None]]


def minify(deployment: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Strip a deployment down to name, namespace, annotations and spec.

    Deterministic and idempotent: minify(minify(x)) == minify(x).
    The input is never modified.
    """
    metadata = deployment.get("metadata") or {}
    minified_metadata = {}
    for key in ("name", "namespace"):
        if metadata.get(key) is not None:
            minified_metadata[key] = metadata[key]
    annotations = {
        key: value
        for key, value in (metadata.get("annotations") or {}).items()
        if key not in SERVER_ANNOTATIONS
    }
    if annotations:
        minified_metadata["annotations"] = annotations

    result: Dict[str, Any] = {"metadata": minified_metadata}
    if deployment.get("spec") is not None:
        result["spec"] = copy.deepcopy(deployment["spec"])
    return result


def needs_update(current: Optional[Mapping[str, Any]], target: Mapping[str, Any]) -> bool:
    """A missing deployment always needs an update."""
    if current is None:
        return True
    return minify(target) != minify(current)


def containers_of(deployment: Mapping[str, Any]) -> List[Dict[str, Any]]:
    spec = deployment.get("spec") or {}
    template = spec.get("template") or {}
    return (template.get("spec") or {}).get("containers") or []


def image_from_containers(containers: List[Mapping[str, Any]]) -> Optional[Image]:
    """The image of the first container, which is the one we deploy."""
    if containers and containers[0].get("image"):
        return Image.from_url(containers[0]["image"])
    return None


def deployment_image(deployment: Mapping[str, Any]) -> Optional[Image]:
    return image_from_containers(containers_of(deployment))


def set_image(deployment: Dict[str, Any], url: str) -> None:
    containers = containers_of(deployment)
    if containers:
        containers[0]["image"] = url


def to_deployment(deployment: Mapping[str, Any]) -> Deployment:
    return Deployment(name=deployment["metadata"]["name"], image=deployment_image(deployment))


def to_pod(pod: Mapping[str, Any]) -> Pod:
    status = pod.get("status") or {}
    container_statuses = status.get("containerStatuses") or []
    restarts = container_statuses[0].get("restartCount") if container_statuses else None
    ready = any(
        condition.get("type") == "Ready" and condition.get("status") == "True"
        for condition in status.get("conditions") or []
    )
    containers = (pod.get("spec") or {}).get("containers") or []
    return Pod(
        name=pod["metadata"]["name"],
        image=image_from_containers(containers),
        restarts=restarts,
        ready=ready,
    )


def create_snapshot(deployments: List[Mapping[str, Any]]) -> ClusterSnapshot:
    return ClusterSnapshot(
        deployments=[
            {"name": deployment["metadata"]["name"], "data": minify(deployment)}
            for deployment in deployments
        ]
    )


async def apply_snapshot(
    snapshot: ClusterSnapshot,
    live: Mapping[str, Mapping[str, Any]],
    namespace: str,
    ignore_image: bool,
    write: SnapshotWriter,
) -> ApplyReport:
    """
    Bring live deployments in line with a snapshot.

    Args:
        snapshot: Desired deployments, applied in listed order
        live: Current deployments of the target namespace, by name
        namespace: Target namespace, recorded namespaces are overwritten
        ignore_image: Keep the image currently running instead of the recorded one
        write: Coroutine writing (name, body, exists) to the cluster

    Returns:
        ApplyReport listing applied and errored deployments

    Logic:
    1. Minify the recorded deployment and retarget it to the namespace
    2. With ignore_image, substitute the live image into the target
    3. Skip the write when target and live deployment minify equal
    4. Record failures per deployment and carry on
    """
    report = ApplyReport()
    for entry in snapshot.deployments:
        current = live.get(entry.name)
        target = minify(entry.data)
        target["metadata"]["name"] = entry.name
        target["metadata"]["namespace"] = namespace

        if ignore_image and current is not None:
            image = deployment_image(current)
            if image is not None:
                set_image(target, image.url)

        if not needs_update(current, target):
            logger.debug(f"Deployment {entry.name} is up to date")
            continue

        try:
            await write(entry.name, target, current is not None)
            report.applied.append(f"Deployment {entry.name}")
        except Exception as e:
            logger.error(f"Failed to apply snapshot of deployment {entry.name}: {e}")
            report.errored.append(f"Deployment {entry.name}")
    return report
