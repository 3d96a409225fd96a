"""
Shared pytest fixtures for Spacegun tests.

This module provides common fixtures including:
- AsyncMock cluster and image gateways
- A recording event sink
- A static configuration provider and a fully wired standalone context
- Kubernetes-shaped deployment documents
"""

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from spacegun.config import ServerConfig, SpacegunConfig
from spacegun.main import build_context
from spacegun.modules.api import (
    ApplyReport,
    Event,
    Layer,
    PipelineDescription,
    PipelineSource,
    SourceType,
)


# =============================================================================
# Builders
# =============================================================================


def deployment_doc(
    name: str,
    image: str,
    namespace: str = "default",
    replicas: int = 1,
    annotations: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """A deployment as returned by the Kubernetes API (JSON form)."""
    metadata = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{name}",
        "resourceVersion": "4711",
        "generation": 3,
        "creationTimestamp": "2024-01-01T00:00:00Z",
        "annotations": {"deployment.kubernetes.io/revision": "7"},
    }
    if annotations:
        metadata["annotations"].update(annotations)
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": metadata,
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {"containers": [{"name": name, "image": image}]},
            },
        },
        "status": {"replicas": replicas, "readyReplicas": replicas},
    }


def image_pipeline(name: str = "develop", expression: str = "^(?!.*latest).*$", **kwargs) -> PipelineDescription:
    return PipelineDescription(
        name=name,
        cluster=kwargs.pop("cluster", "dev"),
        source=PipelineSource(type=SourceType.IMAGE, expression=expression),
        **kwargs,
    )


def cluster_pipeline(name: str = "promote", source: str = "dev", **kwargs) -> PipelineDescription:
    return PipelineDescription(
        name=name,
        cluster=kwargs.pop("cluster", "prod"),
        source=PipelineSource(type=SourceType.CLUSTER, expression=source),
        **kwargs,
    )


# =============================================================================
# Fakes
# =============================================================================


class RecordingSink:
    """Event sink keeping every event it receives."""

    def __init__(self, topic: Optional[str] = None):
        self.topic = topic
        self.events: List[Event] = []

    async def log(self, event: Event) -> None:
        self.events.append(event)


@dataclass
class StaticConfigProvider:
    """Configuration provider returning fixed values."""

    layer: Layer = Layer.STANDALONE
    config: SpacegunConfig = field(
        default_factory=lambda: SpacegunConfig(
            docker="https://registry.example.com",
            kube="/dev/null",
            server=ServerConfig(host="spacegun.test", port=3000),
        )
    )
    pipelines: List[PipelineDescription] = field(default_factory=list)

    def get_layer(self) -> Layer:
        return self.layer

    def get_config(self) -> SpacegunConfig:
        return self.config

    def get_pipelines(self) -> List[PipelineDescription]:
        return self.pipelines


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cluster_repository():
    """Create a mock cluster gateway with two clusters."""
    repository = MagicMock()
    repository.clusters = ["dev", "prod"]
    repository.namespaces = AsyncMock(return_value=["default", "web"])
    repository.pods = AsyncMock(return_value=[])
    repository.deployments = AsyncMock(return_value=[])
    repository.scalers = AsyncMock(return_value=[])
    repository.update_deployment = AsyncMock(
        side_effect=lambda group, deployment, image: deployment.model_copy(update={"image": image})
    )
    repository.restart_deployment = AsyncMock(side_effect=lambda group, deployment: deployment)
    repository.take_snapshot = AsyncMock()
    repository.apply_snapshot = AsyncMock(return_value=ApplyReport())
    return repository


@pytest.fixture
def image_repository():
    """Create a mock image gateway with an empty registry."""
    repository = MagicMock()
    repository.list = AsyncMock(return_value=[])
    repository.tags = AsyncMock(return_value=[])
    repository.image = AsyncMock()
    return repository


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def pipelines():
    return [image_pipeline(), cluster_pipeline()]


@pytest.fixture
def provider(pipelines):
    return StaticConfigProvider(pipelines=pipelines)


@pytest.fixture
def context(provider, cluster_repository, image_repository, sink):
    """Standalone context wired to the mock gateways."""
    return build_context(
        provider,
        cluster_repository=cluster_repository,
        image_repository=image_repository,
        sinks=[sink],
    )


@pytest.fixture
def dispatcher(context):
    return context.dispatcher

