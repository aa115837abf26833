"""Kubernetes API access for the deployment exporter."""

from deployment_exporter.kube.client import (
    KubernetesOrchestratorClient,
    OrchestratorClient,
    WatchEvent,
    load_kube_config,
)

__all__ = [
    "KubernetesOrchestratorClient",
    "OrchestratorClient",
    "WatchEvent",
    "load_kube_config",
]
