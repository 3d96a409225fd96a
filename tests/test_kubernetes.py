"""
Kubernetes gateway tests.

The official client classes are patched; ApiClient.sanitize_for_serialization
is an identity so the fakes can return plain JSON documents.
"""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException

from conftest import deployment_doc

from spacegun.errors import GatewayError
from spacegun.modules.api import ClusterSnapshot, Deployment, Image, ServerGroup
from spacegun.modules.cluster.kubernetes import RESTARTED_AT_ANNOTATION, KubernetesClusterRepository
from spacegun.modules.cluster.snapshot import deployment_image

MODULE = "spacegun.modules.cluster.kubernetes.client"


@pytest.fixture
def api_client():
    api = MagicMock()
    api.sanitize_for_serialization.side_effect = lambda result: result
    return api


@pytest.fixture
def apps(api_client):
    apps_api = MagicMock()
    apps_api.list_namespaced_deployment.return_value = {
        "items": [deployment_doc("api", "registry/api:v1"), deployment_doc("web", "registry/web:v1")]
    }
    apps_api.read_namespaced_deployment.side_effect = lambda name, namespace: deployment_doc(name, f"registry/{name}:v1")
    apps_api.replace_namespaced_deployment.side_effect = lambda name, namespace, body: body
    apps_api.patch_namespaced_deployment.side_effect = lambda name, namespace, body: deployment_doc(name, "registry/api:v1")
    with patch(f"{MODULE}.AppsV1Api", return_value=apps_api):
        yield apps_api


@pytest.fixture
def core(api_client):
    core_api = MagicMock()
    core_api.list_namespace.return_value = {
        "items": [{"metadata": {"name": n}} for n in ("default", "kube-system", "web")]
    }
    with patch(f"{MODULE}.CoreV1Api", return_value=core_api):
        yield core_api


@pytest.fixture
def repository(api_client):
    return KubernetesClusterRepository({"dev": api_client})


@pytest.mark.asyncio
async def test_deployments_are_parsed(repository, apps):
    deployments = await repository.deployments(ServerGroup(cluster="dev"))

    assert deployments == [
        Deployment(name="api", image=Image.from_url("registry/api:v1")),
        Deployment(name="web", image=Image.from_url("registry/web:v1")),
    ]
    apps.list_namespaced_deployment.assert_called_with("default")


@pytest.mark.asyncio
async def test_namespaces_respect_allow_list(api_client, core):
    repository = KubernetesClusterRepository({"dev": api_client}, allowed_namespaces=["default", "web"])

    assert await repository.namespaces("dev") == ["default", "web"]
    assert await repository.namespaces("dev") == ["default", "web"]
    assert core.list_namespace.call_count == 1


@pytest.mark.asyncio
async def test_unknown_cluster_is_a_gateway_error(repository):
    with pytest.raises(GatewayError, match="could not be found"):
        await repository.deployments(ServerGroup(cluster="nope"))


@pytest.mark.asyncio
async def test_api_exception_is_a_gateway_error(repository, apps):
    apps.list_namespaced_deployment.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(GatewayError) as exc_info:
        await repository.deployments(ServerGroup(cluster="dev"))

    assert exc_info.value.status == 403


@pytest.mark.asyncio
async def test_update_deployment_writes_minified_deployment_with_new_image(repository, apps):
    result = await repository.update_deployment(
        ServerGroup(cluster="dev"),
        Deployment(name="api"),
        Image.from_url("registry/api:v2"),
    )

    name, namespace, body = apps.replace_namespaced_deployment.call_args.args
    assert (name, namespace) == ("api", "default")
    assert "status" not in body
    assert "resourceVersion" not in body["metadata"]
    assert deployment_image(body).url == "registry/api:v2"
    assert result.image.tag == "v2"


@pytest.mark.asyncio
async def test_restart_patches_template_annotation(repository, apps):
    await repository.restart_deployment(ServerGroup(cluster="dev", namespace="web"), Deployment(name="api"))

    name, namespace, patch_body = apps.patch_namespaced_deployment.call_args.args
    assert (name, namespace) == ("api", "web")
    assert RESTARTED_AT_ANNOTATION in patch_body["spec"]["template"]["metadata"]["annotations"]


@pytest.mark.asyncio
async def test_take_snapshot_minifies(repository, apps):
    snapshot = await repository.take_snapshot(ServerGroup(cluster="dev"))

    assert [entry.name for entry in snapshot.deployments] == ["api", "web"]
    assert "status" not in snapshot.deployments[0].data


@pytest.mark.asyncio
async def test_apply_snapshot_replaces_existing_and_creates_missing(repository, apps):
    snapshot = ClusterSnapshot(
        deployments=[
            {"name": "api", "data": deployment_doc("api", "registry/api:v1", replicas=3)},
            {"name": "worker", "data": deployment_doc("worker", "registry/worker:v1")},
        ]
    )

    report = await repository.apply_snapshot(ServerGroup(cluster="dev"), snapshot, ignore_image=True)

    assert report.applied == ["Deployment api", "Deployment worker"]
    assert apps.replace_namespaced_deployment.call_args.args[0] == "api"
    namespace, body = apps.create_namespaced_deployment.call_args.args
    assert namespace == "default"
    assert body["metadata"]["name"] == "worker"


@pytest.mark.asyncio
async def test_apply_snapshot_reports_failed_writes(repository, apps):
    apps.create_namespaced_deployment.side_effect = ApiException(status=422, reason="Invalid")
    snapshot = ClusterSnapshot(
        deployments=[{"name": "worker", "data": deployment_doc("worker", "registry/worker:v1")}]
    )

    report = await repository.apply_snapshot(ServerGroup(cluster="dev"), snapshot, ignore_image=True)

    assert report.errored == ["Deployment worker"]
    assert report.applied == []
