"""
API Module - Shared Models

Purpose: Data contract shared by all modules and by client/server layers
Interface: pydantic models (wire format is their JSON serialization)
"""

from .models import (
    DEFAULT_NAMESPACE,
    ApplyReport,
    ApplySnapshotParams,
    ClusterParams,
    ClusterSnapshot,
    Cron,
    Deployment,
    DeploymentAction,
    DeploymentSnapshot,
    Event,
    EventField,
    Image,
    ImageParams,
    JobPlan,
    Layer,
    NoParams,
    PipelineDescription,
    PipelineParams,
    PipelineSource,
    PipelineState,
    Pod,
    Replicas,
    RestartDeploymentParams,
    Scaler,
    ServerGroup,
    SourceType,
    TagsParams,
    UpdateDeploymentParams,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "ApplyReport",
    "ApplySnapshotParams",
    "ClusterParams",
    "ClusterSnapshot",
    "Cron",
    "Deployment",
    "DeploymentAction",
    "DeploymentSnapshot",
    "Event",
    "EventField",
    "Image",
    "ImageParams",
    "JobPlan",
    "Layer",
    "NoParams",
    "PipelineDescription",
    "PipelineParams",
    "PipelineSource",
    "PipelineState",
    "Pod",
    "Replicas",
    "RestartDeploymentParams",
    "Scaler",
    "ServerGroup",
    "SourceType",
    "TagsParams",
    "UpdateDeploymentParams",
]
