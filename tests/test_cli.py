import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from spacegun.cli import cli
from spacegun.errors import GatewayError
from spacegun.modules.api import ApplyReport, ClusterSnapshot, Deployment, Image


@pytest.fixture(autouse=True)
def no_logging_config():
    """Keep the test session's logging setup untouched."""
    with patch("spacegun.cli.configure_logging"):
        yield


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, context):
    """Invoke the CLI against the mock-wired standalone context."""

    def run(*args, **kwargs):
        with patch("spacegun.cli.build_context", return_value=context):
            return runner.invoke(cli, ["--config", "unused.yml", *args], **kwargs)

    return run


def test_missing_config_exits_non_zero(runner, tmp_path):
    result = runner.invoke(cli, ["--config", str(tmp_path / "missing.yml"), "pipelines"])

    assert result.exit_code != 0
    assert "does not exist" in result.output


def test_unknown_layer_is_rejected(runner):
    result = runner.invoke(cli, ["--layer", "edge", "pipelines"])

    assert result.exit_code == 2


def test_pipelines(invoke):
    result = invoke("pipelines")

    assert result.exit_code == 0, result.output
    assert [p["name"] for p in json.loads(result.output)] == ["develop", "promote"]


def test_plan_is_printed_as_json(invoke, cluster_repository, image_repository):
    image_repository.list.return_value = ["api"]
    image_repository.tags.return_value = ["v1", "v2"]
    image_repository.image.side_effect = lambda name, tag: Image.from_url(f"registry/{name}:{tag}")
    cluster_repository.deployments.return_value = [Deployment(name="api", image=Image.from_url("registry/api:v1"))]

    result = invoke("plan", "develop")

    assert result.exit_code == 0, result.output
    plan = json.loads(result.output)
    assert plan["actions"][0]["image"]["url"] == "registry/api:v2"
    cluster_repository.update_deployment.assert_not_called()


def test_apply_asks_for_confirmation(invoke, cluster_repository, image_repository):
    image_repository.list.return_value = ["api"]
    image_repository.tags.return_value = ["v2"]
    image_repository.image.side_effect = lambda name, tag: Image.from_url(f"registry/{name}:{tag}")
    cluster_repository.deployments.return_value = [Deployment(name="api", image=Image.from_url("registry/api:v1"))]

    declined = invoke("apply", "develop", input="n\n")
    accepted = invoke("apply", "develop", "--yes")

    assert declined.exit_code == 1
    assert accepted.exit_code == 0, accepted.output
    assert cluster_repository.update_deployment.await_count == 1


def test_apply_of_up_to_date_pipeline(invoke):
    result = invoke("apply", "develop")

    assert result.exit_code == 0
    assert "up to date" in result.output


def test_unknown_pipeline_exits_non_zero(invoke):
    result = invoke("run", "missing")

    assert result.exit_code == 1
    assert "Pipeline missing could not be found" in result.output


def test_gateway_errors_exit_non_zero(invoke, cluster_repository):
    cluster_repository.pods.side_effect = GatewayError("cluster unreachable")

    result = invoke("pods", "dev", "-n", "web")

    assert result.exit_code == 1
    assert "cluster unreachable" in result.output


def test_snapshot_is_written_as_yaml(invoke, cluster_repository, tmp_path):
    cluster_repository.take_snapshot.return_value = ClusterSnapshot(
        deployments=[{"name": "api", "data": {"metadata": {"name": "api"}}}]
    )
    output = tmp_path / "snapshot.yml"

    result = invoke("snapshot", "dev", "-o", str(output))

    assert result.exit_code == 0, result.output
    assert yaml.safe_load(output.read_text())["deployments"][0]["name"] == "api"


def test_restore_applies_snapshot_file(invoke, cluster_repository, tmp_path):
    snapshot_file = tmp_path / "snapshot.yml"
    snapshot_file.write_text(yaml.safe_dump({"deployments": [{"name": "api", "data": {"metadata": {"name": "api"}}}]}))
    cluster_repository.apply_snapshot.return_value = ApplyReport(applied=["Deployment api"])

    result = invoke("restore", "prod", str(snapshot_file), "--with-image")

    assert result.exit_code == 0, result.output
    group, snapshot, ignore_image = cluster_repository.apply_snapshot.await_args.args
    assert group.cluster == "prod"
    assert snapshot.deployments[0].name == "api"
    assert ignore_image is False


def test_restart_unknown_deployment(invoke):
    result = invoke("restart", "dev", "api")

    assert result.exit_code == 1
    assert "Deployment api not found" in result.output


def test_dashboard(invoke):
    result = invoke("dashboard")

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["errors"] == []
