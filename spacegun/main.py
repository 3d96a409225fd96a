"""
Spacegun - Main Entry Point

This is the thin orchestration layer that:
1. Declares every module operation
2. Binds handlers where the gateways live (standalone and server layers)
3. Builds the HTTP application and the cron scheduler

All business logic is in the modules, following black box principles.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

import httpx
import uvicorn
from fastapi import FastAPI

from spacegun import __version__
from spacegun.config import ConfigProvider, SpacegunConfig
from spacegun.errors import ConfigError
from spacegun.logging_config import get_logging_config
from spacegun.modules import cluster, events, images, jobs
from spacegun.modules.api import Layer
from spacegun.modules.cluster import ClusterModule, ClusterRepository
from spacegun.modules.dispatcher import (
    Dispatcher,
    OperationRegistry,
    create_dispatch_router,
    install_error_handlers,
)
from spacegun.modules.events import EventSink, EventsModule, LoggingEventSink, SlackEventSink
from spacegun.modules.images import ImageRepository, ImagesModule
from spacegun.modules.jobs import CronScheduler, JobsModule
from spacegun.modules.views import DashboardModule, create_dashboard_router

logger = logging.getLogger("spacegun.main")


@dataclass
class AppContext:
    """Everything a process needs, built once at startup and passed explicitly."""

    layer: Layer
    config: SpacegunConfig
    registry: OperationRegistry
    dispatcher: Dispatcher
    jobs: Optional[JobsModule] = None
    scheduler: Optional[CronScheduler] = None


def declare_operations(registry: OperationRegistry) -> None:
    """Declare the operations of every module (identical in all layers)."""
    cluster.declare(registry)
    images.declare(registry)
    events.declare(registry)
    jobs.declare(registry)


def build_context(
    provider: ConfigProvider,
    cluster_repository: Optional[ClusterRepository] = None,
    image_repository: Optional[ImageRepository] = None,
    sinks: Optional[List[EventSink]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """
    Wire the modules for the configured layer.

    Args:
        provider: Configuration provider
        cluster_repository: Cluster gateway (Kubernetes from kubeconfig by default)
        image_repository: Image gateway (Docker registry by default)
        sinks: Event sinks (log, plus Slack when configured, by default)
        transport: httpx transport for client-layer dispatch

    Returns:
        AppContext. In the client layer nothing is bound and every call is
        sent to the server.
    """
    layer = provider.get_layer()
    config = provider.get_config()
    registry = OperationRegistry()
    declare_operations(registry)
    dispatcher = Dispatcher(registry, layer, config.server, transport=transport)
    context = AppContext(layer=layer, config=config, registry=registry, dispatcher=dispatcher)

    if layer == Layer.CLIENT:
        logger.info(f"Client layer, dispatching to {config.server.url}")
        return context

    if cluster_repository is None:
        from spacegun.modules.cluster.kubernetes import KubernetesClusterRepository

        cluster_repository = KubernetesClusterRepository.from_config(config.kube, config.namespaces)
    if image_repository is None:
        from spacegun.modules.images.docker import DockerImageRepository

        image_repository = DockerImageRepository(config.docker)
    if sinks is None:
        sinks = [LoggingEventSink()]
        if config.slack:
            sinks.append(SlackEventSink(config.slack))

    EventsModule(sinks).bind(registry)
    ClusterModule(cluster_repository, dispatcher).bind(registry)
    ImagesModule(image_repository).bind(registry)
    context.jobs = JobsModule(provider.get_pipelines(), dispatcher)
    context.jobs.bind(registry)
    context.scheduler = CronScheduler(context.jobs)

    logger.info(f"{layer.value.capitalize()} layer with {len(registry.bound())} local operations")
    return context


def create_app(context: AppContext) -> FastAPI:
    """
    Create the HTTP application of a standalone or server process.

    The cron scheduler runs for the lifetime of the application.
    """
    if context.layer == Layer.CLIENT:
        raise ConfigError("The client layer does not serve HTTP, use the server or standalone layer")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting Spacegun {__version__} ({context.layer.value} layer)...")
        if context.scheduler:
            context.scheduler.start()

        yield

        logger.info("Shutting down Spacegun...")
        if context.scheduler:
            await context.scheduler.stop()
        logger.info("Spacegun shutdown complete")

    app = FastAPI(
        title="Spacegun API",
        description="Spacegun - Continuous Delivery for Kubernetes",
        version=__version__,
        lifespan=lifespan,
    )
    install_error_handlers(app)
    app.include_router(create_dispatch_router(context.dispatcher, context.config.server))
    app.include_router(create_dashboard_router(DashboardModule(context.dispatcher)))

    @app.get("/health")
    async def health():
        return {"status": "healthy", "layer": context.layer.value, "version": __version__}

    return app


def serve(
    context: AppContext,
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: str = "INFO",
) -> None:
    """Run the HTTP application until interrupted."""
    server = context.config.server
    uvicorn.run(
        create_app(context),
        host=host or server.host,
        port=port or server.port,
        log_config=get_logging_config(log_level, layer=context.layer.value),
    )
