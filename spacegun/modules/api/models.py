"""
Spacegun shared data models.

These models define the structure of all data passed between
modules, and between the client and server layers over the wire.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_NAMESPACE = "default"


# Enums


class Layer(str, Enum):
    """Runtime topology of the process."""

    STANDALONE = "standalone"
    CLIENT = "client"
    SERVER = "server"


class SourceType(str, Enum):
    """Where a pipeline takes its target images from."""

    IMAGE = "image"
    CLUSTER = "cluster"


class PipelineState(str, Enum):
    """Execution state of a single pipeline."""

    IDLE = "idle"
    PLANNING = "planning"
    APPLYING = "applying"


# Cluster and image models


class ServerGroup(BaseModel):
    """A target within a cluster."""

    model_config = ConfigDict(frozen=True)

    cluster: str = Field(..., description="Cluster (kubeconfig context) name", min_length=1)
    namespace: Optional[str] = Field(None, description="Namespace, 'default' when unset")

    def get_namespace(self) -> str:
        return self.namespace or DEFAULT_NAMESPACE


class Image(BaseModel):
    """A container image reference."""

    model_config = ConfigDict(frozen=True)

    url: str
    name: str
    tag: Optional[str] = None
    last_updated: Optional[datetime] = None

    @classmethod
    def from_url(cls, url: str, last_updated: Optional[datetime] = None) -> "Image":
        """
        Build an image from a full reference.

        The registry host and repository path are stripped from the name, as
        is the tag or digest suffix:

            >>> Image.from_url("registry:5000/team/api:v2").name
            'api'
        """
        reference = url.split("@", 1)[0]
        last_segment = reference.rsplit("/", 1)[-1]
        if ":" in last_segment:
            name, tag = last_segment.split(":", 1)
        else:
            name, tag = last_segment, None
        return cls(url=url, name=name, tag=tag, last_updated=last_updated)


class Deployment(BaseModel):
    """One workload unit in a cluster."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: Optional[Image] = None


class Pod(BaseModel):
    name: str
    image: Optional[Image] = None
    restarts: Optional[int] = None
    ready: bool = False


class Replicas(BaseModel):
    current: Optional[int] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None


class Scaler(BaseModel):
    name: str
    replicas: Replicas


class DeploymentSnapshot(BaseModel):
    """A single minified deployment inside a snapshot."""

    name: str
    data: Dict[str, Any]


class ClusterSnapshot(BaseModel):
    deployments: List[DeploymentSnapshot] = Field(default_factory=list)


class ApplyReport(BaseModel):
    """Outcome of a batch where each item may fail independently."""

    applied: List[str] = Field(default_factory=list)
    errored: List[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.applied and not self.errored


# Pipeline models


class PipelineSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: SourceType
    expression: str = Field(
        ...,
        description="Tag filter regex for image sources, source cluster name for cluster sources",
    )


class PipelineDescription(BaseModel):
    """A named promotion rule from a source to a target cluster."""

    model_config = ConfigDict(frozen=True)

    name: str
    cluster: str = Field(..., description="Target cluster")
    namespace: Optional[str] = None
    cron: Optional[str] = None
    source: PipelineSource

    @property
    def group(self) -> ServerGroup:
        return ServerGroup(cluster=self.cluster, namespace=self.namespace)


class Cron(BaseModel):
    name: str
    last_run: Optional[datetime] = None
    next_runs: List[datetime] = Field(default_factory=list)


class DeploymentAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    deployment: Deployment
    image: Image


class JobPlan(BaseModel):
    """Side-effect free list of updates a pipeline would perform."""

    model_config = ConfigDict(frozen=True)

    pipeline: PipelineDescription
    group: ServerGroup
    actions: List[DeploymentAction] = Field(default_factory=list)


# Events


class EventField(BaseModel):
    title: str
    value: str


class Event(BaseModel):
    message: str
    timestamp: datetime
    topics: List[str] = Field(default_factory=list)
    description: str = ""
    fields: List[EventField] = Field(default_factory=list)


# Operation parameters


class NoParams(BaseModel):
    """Parameters of operations that take none."""


class ClusterParams(BaseModel):
    cluster: str = Field(..., min_length=1)


class UpdateDeploymentParams(BaseModel):
    group: ServerGroup
    deployment: Deployment
    image: Image


class RestartDeploymentParams(BaseModel):
    group: ServerGroup
    deployment: Deployment


class ApplySnapshotParams(BaseModel):
    group: ServerGroup
    snapshot: ClusterSnapshot
    ignore_image: bool = True


class TagsParams(BaseModel):
    name: str = Field(..., min_length=1)


class ImageParams(BaseModel):
    name: str = Field(..., min_length=1)
    tag: str = Field("latest", min_length=1)


class PipelineParams(BaseModel):
    name: str = Field(..., min_length=1)
