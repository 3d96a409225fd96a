"""
Cluster Module - Black Box Interface

Purpose: Read and mutate deployments of the configured clusters
Interface: cluster.* operations (clusters, namespaces, pods, deployments,
           scalers, update_deployment, restart_deployment, take_snapshot,
           apply_snapshot)
Hidden: Kubernetes client, kubeconfig contexts, minification

Can be replaced with any gateway implementing ClusterRepository.
"""

from . import module as operations
from .module import ClusterModule, declare
from .repository import ClusterRepository

__all__ = ["ClusterModule", "ClusterRepository", "declare", "operations"]
