import pytest

from spacegun.modules.api import ApplyReport, ClusterSnapshot, Deployment, ServerGroup
from spacegun.modules.cluster import operations as cluster_ops


@pytest.mark.asyncio
async def test_clusters_and_namespaces(dispatcher):
    assert await dispatcher.call(cluster_ops.CLUSTERS)() == ["dev", "prod"]
    assert await dispatcher.call(cluster_ops.NAMESPACES)(cluster="dev") == ["default", "web"]


@pytest.mark.asyncio
async def test_apply_snapshot_emits_event_for_non_empty_report(dispatcher, cluster_repository, sink):
    cluster_repository.apply_snapshot.return_value = ApplyReport(
        applied=["Deployment api"], errored=["Deployment web"]
    )

    report = await dispatcher.call(cluster_ops.APPLY_SNAPSHOT)(
        group=ServerGroup(cluster="prod", namespace="web"),
        snapshot=ClusterSnapshot(),
    )

    assert report.errored == ["Deployment web"]
    group, snapshot, ignore_image = cluster_repository.apply_snapshot.await_args.args
    assert ignore_image is True
    assert sink.events[0].message == "Applied Snapshots"
    assert sink.events[0].description == "Applied Snapshots in prod ∞ web"
    assert [f.title for f in sink.events[0].fields] == ["Failure", "Success"]


@pytest.mark.asyncio
async def test_apply_snapshot_without_changes_emits_nothing(dispatcher, sink):
    await dispatcher.call(cluster_ops.APPLY_SNAPSHOT)(group=ServerGroup(cluster="prod"), snapshot=ClusterSnapshot())

    assert sink.events == []


@pytest.mark.asyncio
async def test_restart_deployment(dispatcher, cluster_repository):
    result = await dispatcher.call(cluster_ops.RESTART_DEPLOYMENT)(
        group=ServerGroup(cluster="dev"), deployment=Deployment(name="api")
    )

    assert result.name == "api"
    cluster_repository.restart_deployment.assert_awaited_once()
