"""
Dashboard aggregation.

Each independent sub-query that fails adds an error message and leaves its
section empty; the rest of the dashboard is still returned.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from spacegun import __version__
from spacegun.modules.api import Image, PipelineDescription, Pod
from spacegun.modules.cluster import operations as cluster_ops
from spacegun.modules.dispatcher import Dispatcher
from spacegun.modules.images import operations as image_ops
from spacegun.modules.jobs import operations as job_ops

logger = logging.getLogger("spacegun.views")


class ClusterView(BaseModel):
    name: str
    namespaces: List[str]


class JobView(BaseModel):
    pipeline: PipelineDescription
    last_run: Optional[str] = None
    next_run: Optional[str] = None


class Dashboard(BaseModel):
    title: str = "Spacegun ∞ Dashboard"
    version: str = __version__
    clusters: Optional[List[ClusterView]] = None
    jobs: Optional[List[JobView]] = None
    images: Optional[List[str]] = None
    errors: List[str] = Field(default_factory=list)


class NamespacePods(BaseModel):
    name: str
    pods: List[Pod]


class PodsView(BaseModel):
    title: str
    name: str
    namespaces: List[NamespacePods]


class TaggedImage(BaseModel):
    name: str
    tag: str


class ImagesView(BaseModel):
    title: str
    name: str
    images: List[TaggedImage]
    focused_image: Optional[Image] = None


class DashboardModule:
    """Read-only views composed from dispatched operations."""

    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    async def index(self) -> Dashboard:
        dashboard = Dashboard()

        try:
            clusters = []
            for cluster in await self.dispatcher.call(cluster_ops.CLUSTERS)():
                namespaces = await self.dispatcher.call(cluster_ops.NAMESPACES)(cluster=cluster)
                clusters.append(ClusterView(name=cluster, namespaces=namespaces))
            dashboard.clusters = clusters
        except Exception as e:
            logger.warning(f"Clusters could not be loaded: {e}")
            dashboard.errors.append(f"Clusters could not be loaded: {e}")

        try:
            jobs = []
            for pipeline in await self.dispatcher.call(job_ops.PIPELINES)():
                cron = await self.dispatcher.call(job_ops.SCHEDULES)(name=pipeline.name)
                jobs.append(
                    JobView(
                        pipeline=pipeline,
                        last_run=cron.last_run.isoformat() if cron.last_run else None,
                        next_run=cron.next_runs[0].isoformat() if cron.next_runs else None,
                    )
                )
            dashboard.jobs = jobs
        except Exception as e:
            logger.warning(f"Jobs could not be loaded: {e}")
            dashboard.errors.append(f"Jobs could not be loaded: {e}")

        try:
            dashboard.images = await self.dispatcher.call(image_ops.LIST)()
        except Exception as e:
            logger.warning(f"Images could not be loaded: {e}")
            dashboard.errors.append(f"Images could not be loaded: {e}")

        return dashboard

    async def pods(self, cluster: str) -> PodsView:
        namespaces = []
        for namespace in await self.dispatcher.call(cluster_ops.NAMESPACES)(cluster=cluster):
            pods = await self.dispatcher.call(cluster_ops.PODS)(cluster=cluster, namespace=namespace)
            namespaces.append(NamespacePods(name=namespace, pods=pods))
        return PodsView(title=f"Spacegun ∞ Pods ∞ {cluster}", name=cluster, namespaces=namespaces)

    async def images(self, name: str, tag: Optional[str] = None) -> ImagesView:
        """Known tags of an image, with details of the focused tag when it exists."""
        tag = tag or "latest"
        tags = await self.dispatcher.call(image_ops.TAGS)(name=name)
        focused = None
        if tag in tags:
            focused = await self.dispatcher.call(image_ops.IMAGE)(name=name, tag=tag)
        return ImagesView(
            title=f"Spacegun ∞ Images ∞ {name}",
            name=name,
            images=[TaggedImage(name=name, tag=t) for t in tags],
            focused_image=focused,
        )
