"""
Plan computation.

A plan is a pure function of the current source and target state. Nothing
here mutates a cluster, so plans can be computed repeatedly and concurrently.
"""

import asyncio
import logging
import re
from typing import Dict, List, Optional

from spacegun.errors import ConfigError, SpacegunError
from spacegun.modules.api import (
    Deployment,
    DeploymentAction,
    Image,
    JobPlan,
    PipelineDescription,
    ServerGroup,
    SourceType,
)
from spacegun.modules.cluster import operations as cluster_ops
from spacegun.modules.dispatcher import Dispatcher
from spacegun.modules.images import operations as image_ops

from .versions import is_newer, newest

logger = logging.getLogger("spacegun.jobs")


def filter_tags(tags: List[str], expression: str) -> List[str]:
    """Tags matching the pipeline expression (re.search semantics)."""
    try:
        pattern = re.compile(expression)
    except re.error as e:
        raise ConfigError(f"Invalid tag expression {expression!r}: {e}")
    return [tag for tag in tags if pattern.search(tag)]


class Planner:
    def __init__(self, dispatcher: Dispatcher):
        self.dispatcher = dispatcher

    async def plan(self, pipeline: PipelineDescription) -> JobPlan:
        """
        Compute the actions a pipeline would take.

        Args:
            pipeline: Pipeline description

        Returns:
            JobPlan for the pipeline's target group
        """
        group = pipeline.group
        if pipeline.source.type == SourceType.IMAGE:
            actions = await self._plan_from_images(group, pipeline.source.expression)
        else:
            actions = await self._plan_from_cluster(group, pipeline.source.expression)

        logger.info(f"Planned pipeline {pipeline.name}: {len(actions)} action(s)")
        return JobPlan(pipeline=pipeline, group=group, actions=actions)

    async def _plan_from_images(self, group: ServerGroup, expression: str) -> List[DeploymentAction]:
        """
        Logic:
        1. Match target deployments to registry images by image name
        2. Keep the registry tags matching the expression
        3. Resolve the newest remaining tag
        4. Plan an update when it differs from the deployed tag
        """
        deployments, images = await asyncio.gather(
            self.dispatcher.call(cluster_ops.DEPLOYMENTS)(group),
            self.dispatcher.call(image_ops.LIST)(),
        )
        # Registry names may carry a path ("team/api"), deployed names never do
        repositories: Dict[str, str] = {}
        for image in images:
            name = image.rsplit("/", 1)[-1]
            if name in repositories:
                logger.warning(f"Repositories {repositories[name]} and {image} share the name {name}, ignoring {image}")
                continue
            repositories[name] = image

        actions = []
        for deployment in deployments:
            if deployment.image is None or deployment.image.name not in repositories:
                continue
            target = await self._resolve_newest(repositories[deployment.image.name], expression)
            if target is None:
                logger.debug(f"No tag of {deployment.image.name} matches {expression!r}")
                continue
            if target.tag != deployment.image.tag:
                actions.append(DeploymentAction(deployment=deployment, image=target))
        return actions

    async def _resolve_newest(self, repository: str, expression: str) -> Optional[Image]:
        tags = await self.dispatcher.call(image_ops.TAGS)(name=repository)
        candidates = filter_tags(tags, expression)
        if not candidates:
            return None
        results = await asyncio.gather(
            *(self.dispatcher.call(image_ops.IMAGE)(name=repository, tag=tag) for tag in candidates),
            return_exceptions=True,
        )
        images = []
        for tag, result in zip(candidates, results):
            if isinstance(result, SpacegunError):
                logger.warning(f"Skipping {repository}:{tag}, metadata unavailable: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                images.append(result)
        return newest(images)

    async def _plan_from_cluster(self, group: ServerGroup, source_cluster: str) -> List[DeploymentAction]:
        """Promote images of same-named deployments from the source cluster."""
        source_group = ServerGroup(cluster=source_cluster, namespace=group.namespace)
        targets, sources = await asyncio.gather(
            self.dispatcher.call(cluster_ops.DEPLOYMENTS)(group),
            self.dispatcher.call(cluster_ops.DEPLOYMENTS)(source_group),
        )
        source_by_name: Dict[str, Deployment] = {d.name: d for d in sources}

        actions = []
        for target in targets:
            source = source_by_name.get(target.name)
            if source is None or source.image is None:
                continue
            if is_newer(source.image, target.image):
                actions.append(DeploymentAction(deployment=target, image=source.image))
        return actions
