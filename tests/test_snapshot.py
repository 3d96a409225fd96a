"""
Tests for snapshot minification and snapshot apply.

Tests cover:
- minify keeps only identity metadata and spec, and is idempotent
- create_snapshot captures minified deployments by name
- apply_snapshot skips up-to-date deployments, preserves live images with
  ignore_image, creates missing deployments and isolates failures
"""

import copy

import pytest

from conftest import deployment_doc

from spacegun.modules.api import ClusterSnapshot
from spacegun.modules.cluster.snapshot import (
    apply_snapshot,
    create_snapshot,
    deployment_image,
    minify,
    needs_update,
    to_pod,
)


class RecordingWriter:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.writes = []

    async def __call__(self, name, body, exists):
        if name in self.fail_on:
            raise RuntimeError(f"cannot write {name}")
        self.writes.append((name, copy.deepcopy(body), exists))


def snapshot_of(*docs):
    return create_snapshot(list(docs))


# =============================================================================
# Minification
# =============================================================================


def test_minify_keeps_identity_and_spec():
    doc = deployment_doc("api", "registry/api:v1", annotations={"team": "core"})

    minified = minify(doc)

    assert set(minified) == {"metadata", "spec"}
    assert minified["metadata"] == {
        "name": "api",
        "namespace": "default",
        "annotations": {"team": "core"},
    }
    assert minified["spec"] == doc["spec"]


def test_minify_is_idempotent():
    doc = deployment_doc("api", "registry/api:v1", annotations={"team": "core"})

    assert minify(minify(doc)) == minify(doc)


def test_minify_does_not_mutate_input():
    doc = deployment_doc("api", "registry/api:v1")
    original = copy.deepcopy(doc)

    minified = minify(doc)
    minified["spec"]["replicas"] = 99

    assert doc == original


def test_server_side_changes_do_not_need_update():
    current = deployment_doc("api", "registry/api:v1")
    target = copy.deepcopy(current)
    target["metadata"]["resourceVersion"] = "9999"
    target["metadata"]["annotations"]["deployment.kubernetes.io/revision"] = "8"
    target["status"] = {}

    assert not needs_update(current, target)


def test_spec_change_needs_update():
    current = deployment_doc("api", "registry/api:v1")

    assert needs_update(current, deployment_doc("api", "registry/api:v1", replicas=3))
    assert needs_update(None, current)


def test_create_snapshot_records_minified_deployments():
    snapshot = snapshot_of(deployment_doc("api", "registry/api:v1"), deployment_doc("web", "registry/web:v3"))

    assert [entry.name for entry in snapshot.deployments] == ["api", "web"]
    assert "status" not in snapshot.deployments[0].data
    assert "uid" not in snapshot.deployments[0].data["metadata"]


def test_to_pod_reads_restarts_and_readiness():
    pod = to_pod(
        {
            "metadata": {"name": "api-1"},
            "spec": {"containers": [{"name": "api", "image": "registry/api:v1"}]},
            "status": {
                "containerStatuses": [{"restartCount": 2}],
                "conditions": [{"type": "Ready", "status": "True"}],
            },
        }
    )

    assert pod.name == "api-1"
    assert pod.image.tag == "v1"
    assert pod.restarts == 2
    assert pod.ready


# =============================================================================
# Snapshot apply
# =============================================================================


@pytest.mark.asyncio
async def test_apply_skips_deployments_that_are_already_equal():
    live_doc = deployment_doc("api", "registry/api:v1")
    writer = RecordingWriter()

    report = await apply_snapshot(snapshot_of(live_doc), {"api": live_doc}, "default", True, writer)

    assert writer.writes == []
    assert report.is_empty


@pytest.mark.asyncio
async def test_ignore_image_keeps_live_image():
    recorded = deployment_doc("api", "registry/api:v1", replicas=3)
    live_doc = deployment_doc("api", "registry/api:v7", replicas=1)
    writer = RecordingWriter()

    report = await apply_snapshot(snapshot_of(recorded), {"api": live_doc}, "default", True, writer)

    assert report.applied == ["Deployment api"]
    name, body, exists = writer.writes[0]
    assert exists
    assert body["spec"]["replicas"] == 3
    assert deployment_image(body).url == "registry/api:v7"


@pytest.mark.asyncio
async def test_image_only_difference_is_skipped_with_ignore_image():
    recorded = deployment_doc("api", "registry/api:v1")
    live_doc = deployment_doc("api", "registry/api:v7")
    writer = RecordingWriter()

    report = await apply_snapshot(snapshot_of(recorded), {"api": live_doc}, "default", True, writer)

    assert writer.writes == []
    assert report.is_empty


@pytest.mark.asyncio
async def test_recorded_image_applied_without_ignore_image():
    recorded = deployment_doc("api", "registry/api:v1")
    live_doc = deployment_doc("api", "registry/api:v7")
    writer = RecordingWriter()

    await apply_snapshot(snapshot_of(recorded), {"api": live_doc}, "default", False, writer)

    assert deployment_image(writer.writes[0][1]).url == "registry/api:v1"


@pytest.mark.asyncio
async def test_missing_deployment_is_created_in_target_namespace():
    recorded = deployment_doc("api", "registry/api:v1", namespace="staging")
    writer = RecordingWriter()

    report = await apply_snapshot(snapshot_of(recorded), {}, "web", True, writer)

    name, body, exists = writer.writes[0]
    assert not exists
    assert body["metadata"]["namespace"] == "web"
    assert deployment_image(body).url == "registry/api:v1"
    assert report.applied == ["Deployment api"]


@pytest.mark.asyncio
async def test_failure_of_one_deployment_does_not_stop_the_others():
    docs = [deployment_doc(name, f"registry/{name}:v1", replicas=2) for name in ("a", "b", "c")]
    live = {name: deployment_doc(name, f"registry/{name}:v1") for name in ("a", "b", "c")}
    writer = RecordingWriter(fail_on={"a"})

    report = await apply_snapshot(snapshot_of(*docs), live, "default", True, writer)

    assert report.errored == ["Deployment a"]
    assert report.applied == ["Deployment b", "Deployment c"]
    assert [write[0] for write in writer.writes] == ["b", "c"]


@pytest.mark.asyncio
async def test_snapshot_entries_are_applied_in_order():
    docs = [deployment_doc(name, f"registry/{name}:v1") for name in ("c", "a", "b")]
    writer = RecordingWriter()

    await apply_snapshot(ClusterSnapshot.model_validate(snapshot_of(*docs).model_dump()), {}, "default", True, writer)

    assert [write[0] for write in writer.writes] == ["c", "a", "b"]
