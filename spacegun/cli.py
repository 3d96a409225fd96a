"""
Spacegun command line.

Every command goes through the dispatcher, so the same command works in a
standalone process and as a client of a running server (--layer client).
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import click
import yaml
from dotenv import load_dotenv
from pydantic import TypeAdapter

from spacegun import __version__
from spacegun.config import YamlConfigProvider
from spacegun.errors import SpacegunError
from spacegun.logging_config import configure_logging
from spacegun.main import AppContext, build_context, serve as serve_app
from spacegun.modules.api import ClusterSnapshot, JobPlan, Layer, ServerGroup
from spacegun.modules.cluster import operations as cluster_ops
from spacegun.modules.images import operations as image_ops
from spacegun.modules.jobs import operations as job_ops
from spacegun.modules.views import DashboardModule

load_dotenv()

_json = TypeAdapter(Any)


def _echo(data: Any) -> None:
    click.echo(json.dumps(_json.dump_python(data, mode="json"), indent=2))


class State:
    """Lazily built application context shared by all commands."""

    def __init__(self, provider: YamlConfigProvider, log_level: str):
        self.provider = provider
        self.log_level = log_level
        self._context: Optional[AppContext] = None

    @property
    def context(self) -> AppContext:
        if self._context is None:
            self._context = build_context(self.provider)
        return self._context

    def call(self, name: str, /, *args: Any, **kwargs: Any) -> Any:
        return self.run(lambda: self.context.dispatcher.call(name)(*args, **kwargs))

    def run(self, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Run a coroutine to completion, turning domain errors into CLI errors."""
        try:
            return asyncio.run(factory())
        except SpacegunError as e:
            raise click.ClickException(str(e))


pass_state = click.make_pass_decorator(State)

namespace_option = click.option("--namespace", "-n", default=None, help="Namespace (default: 'default')")


@click.group()
@click.version_option(__version__, prog_name="spacegun")
@click.option("--config", "config_path", default=None, help="Configuration file (env: SPACEGUN_CONFIG)")
@click.option(
    "--layer",
    type=click.Choice([layer.value for layer in Layer]),
    default=None,
    help="Runtime topology (env: LAYER, default: standalone)",
)
@click.option("--log-level", envvar="LOG_LEVEL", default="INFO", show_default=True)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], layer: Optional[str], log_level: str):
    """Spacegun - Continuous Delivery for Kubernetes."""
    try:
        provider = YamlConfigProvider(config_path, layer)
    except SpacegunError as e:
        raise click.ClickException(str(e))
    configure_logging(log_level, layer=provider.get_layer().value, cli=True)
    ctx.obj = State(provider, log_level)


@cli.command()
@click.option("--host", default=None, help="Listen address (default: server.host)")
@click.option("--port", type=int, default=None, help="Listen port (default: server.port)")
@pass_state
def serve(state: State, host: Optional[str], port: Optional[int]):
    """Serve the HTTP API, the dashboard and the cron scheduler."""
    try:
        context = state.context
        if context.layer == Layer.CLIENT:
            raise click.ClickException("serve requires the server or standalone layer")
        serve_app(context, host=host, port=port, log_level=state.log_level)
    except SpacegunError as e:
        raise click.ClickException(str(e))


@cli.command()
@pass_state
def clusters(state: State):
    """List configured clusters."""
    _echo(state.call(cluster_ops.CLUSTERS))


@cli.command()
@click.argument("cluster")
@pass_state
def namespaces(state: State, cluster: str):
    """List the namespaces of a cluster."""
    _echo(state.call(cluster_ops.NAMESPACES, cluster=cluster))


@cli.command()
@click.argument("cluster")
@namespace_option
@pass_state
def pods(state: State, cluster: str, namespace: Optional[str]):
    """List pods of a cluster namespace."""
    _echo(state.call(cluster_ops.PODS, cluster=cluster, namespace=namespace))


@cli.command()
@click.argument("cluster")
@namespace_option
@pass_state
def deployments(state: State, cluster: str, namespace: Optional[str]):
    """List deployments of a cluster namespace."""
    _echo(state.call(cluster_ops.DEPLOYMENTS, cluster=cluster, namespace=namespace))


@cli.command()
@click.argument("cluster")
@namespace_option
@pass_state
def scalers(state: State, cluster: str, namespace: Optional[str]):
    """List horizontal pod autoscalers of a cluster namespace."""
    _echo(state.call(cluster_ops.SCALERS, cluster=cluster, namespace=namespace))


@cli.command()
@click.argument("cluster")
@click.argument("deployment")
@namespace_option
@pass_state
def restart(state: State, cluster: str, deployment: str, namespace: Optional[str]):
    """Trigger a rolling restart of a deployment."""

    async def restart_deployment():
        group = ServerGroup(cluster=cluster, namespace=namespace)
        current = await state.context.dispatcher.call(cluster_ops.DEPLOYMENTS)(group)
        match = next((d for d in current if d.name == deployment), None)
        if match is None:
            raise click.ClickException(f"Deployment {deployment} not found in {cluster}/{group.get_namespace()}")
        return await state.context.dispatcher.call(cluster_ops.RESTART_DEPLOYMENT)(
            group=group, deployment=match
        )

    _echo(state.run(restart_deployment))


@cli.command()
@click.argument("cluster")
@namespace_option
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write YAML to a file")
@pass_state
def snapshot(state: State, cluster: str, namespace: Optional[str], output: Optional[str]):
    """Take a minified snapshot of all deployments of a namespace."""
    result = state.call(cluster_ops.TAKE_SNAPSHOT, cluster=cluster, namespace=namespace)
    document = yaml.safe_dump(result.model_dump(mode="json"), sort_keys=False)
    if output:
        with open(output, "w") as f:
            f.write(document)
        click.echo(f"Wrote {len(result.deployments)} deployment(s) to {output}")
    else:
        click.echo(document)


@cli.command()
@click.argument("cluster")
@click.argument("snapshot_file", type=click.Path(exists=True, dir_okay=False))
@namespace_option
@click.option("--with-image", is_flag=True, help="Also apply the images recorded in the snapshot")
@pass_state
def restore(state: State, cluster: str, snapshot_file: str, namespace: Optional[str], with_image: bool):
    """Apply a snapshot file to a cluster namespace."""
    with open(snapshot_file) as f:
        try:
            snapshot_data = ClusterSnapshot.model_validate(yaml.safe_load(f) or {})
        except (yaml.YAMLError, ValueError) as e:
            raise click.ClickException(f"Invalid snapshot file {snapshot_file}: {e}")
    _echo(
        state.call(
            cluster_ops.APPLY_SNAPSHOT,
            group=ServerGroup(cluster=cluster, namespace=namespace),
            snapshot=snapshot_data,
            ignore_image=not with_image,
        )
    )


@cli.command()
@pass_state
def images(state: State):
    """List image repositories of the registry."""
    _echo(state.call(image_ops.LIST))


@cli.command()
@click.argument("name")
@pass_state
def tags(state: State, name: str):
    """List tags of an image repository."""
    _echo(state.call(image_ops.TAGS, name=name))


@cli.command()
@pass_state
def pipelines(state: State):
    """List pipelines."""
    _echo(state.call(job_ops.PIPELINES))


@cli.command()
@click.argument("name")
@pass_state
def schedules(state: State, name: str):
    """Show the last and the upcoming runs of a pipeline."""
    _echo(state.call(job_ops.SCHEDULES, name=name))


@cli.command()
@click.argument("name")
@pass_state
def plan(state: State, name: str):
    """Compute what a pipeline would change, without changing anything."""
    _echo(state.call(job_ops.PLAN, name=name))


@cli.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Apply without confirmation")
@pass_state
def apply(state: State, name: str, yes: bool):
    """Plan a pipeline, confirm, then apply exactly that plan."""
    job_plan: JobPlan = state.call(job_ops.PLAN, name=name)
    _echo(job_plan)
    if not job_plan.actions:
        click.echo(f"Pipeline {name} is up to date")
        return
    if not yes:
        click.confirm(f"Apply {len(job_plan.actions)} action(s)?", abort=True)
    _echo(state.call(job_ops.APPLY, job_plan))


@cli.command()
@click.argument("name")
@pass_state
def run(state: State, name: str):
    """Plan and apply a pipeline in one go."""
    _echo(state.call(job_ops.RUN, name=name))


@cli.command()
@pass_state
def dashboard(state: State):
    """Show clusters, jobs and images at a glance."""
    _echo(state.run(lambda: DashboardModule(state.context.dispatcher).index()))


def main():
    cli()


if __name__ == "__main__":
    main()
