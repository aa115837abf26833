"""Orchestrator client - the exporter's only Kubernetes touchpoint.

OrchestratorClient is the narrow capability the feeders and tracker need.
KubernetesOrchestratorClient implements it on top of the official
`kubernetes` client: AppsV1Api for Deployments, CoreV1Api for pods and
CustomObjectsApi for metrics.k8s.io pod metrics.

An empty namespace means "all namespaces" throughout.

Usage:
    client = KubernetesOrchestratorClient.from_config(kubeconfig=None)
    for deployment in client.list_deployments("prod"):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Protocol

from kubernetes import client as k8s
from kubernetes import config as k8s_config
from kubernetes import watch as k8s_watch
from kubernetes.client.exceptions import ApiException

from deployment_exporter.utils.exceptions import KubeConfigError, MetricsUnavailableError

logger = logging.getLogger(__name__)

METRICS_GROUP = "metrics.k8s.io"
METRICS_VERSION = "v1beta1"

# Watch event types as sent by the API server
EVENT_BOOKMARK = "BOOKMARK"
EVENT_ERROR = "ERROR"


@dataclass
class WatchEvent:
    """One decoded change event from a watch stream."""

    type: str
    object: Any
    raw_object: Optional[dict] = None

    @property
    def is_error(self) -> bool:
        return self.type == EVENT_ERROR


class OrchestratorClient(Protocol):
    """Capabilities consumed from the orchestration API."""

    def list_deployments(self, namespace: str) -> list[Any]:
        ...

    def watch_deployments(self, namespace: str) -> Iterator[WatchEvent]:
        ...

    def list_pods(self, namespace: str, selector: str) -> list[Any]:
        ...

    def list_pod_metrics(self, namespace: str, selector: str) -> list[dict]:
        """Raises MetricsUnavailableError when metrics.k8s.io is not served."""
        ...


def load_kube_config(kubeconfig: Optional[str] = None) -> None:
    """Load client configuration into the kubernetes module defaults.

    Without an explicit path, in-cluster config is tried first and the
    kubeconfig file ($KUBECONFIG or ~/.kube/config) second.

    Raises:
        KubeConfigError: If neither source yields a usable config.
    """
    if not kubeconfig:
        try:
            k8s_config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
            return
        except k8s_config.ConfigException:
            logger.info("In-cluster config failed, trying kubeconfig file")

    try:
        k8s_config.load_kube_config(config_file=kubeconfig or None)
    except (k8s_config.ConfigException, OSError) as e:
        raise KubeConfigError(f"Error creating kubernetes config: {e}") from e
    logger.info(f"Loaded kubeconfig {kubeconfig or '(default location)'}")


class KubernetesOrchestratorClient:
    """OrchestratorClient backed by the official kubernetes client."""

    def __init__(
        self,
        apps_api: Optional[k8s.AppsV1Api] = None,
        core_api: Optional[k8s.CoreV1Api] = None,
        custom_api: Optional[k8s.CustomObjectsApi] = None,
        request_timeout: Optional[float] = None,
        watch_timeout: int = 0,
    ) -> None:
        self.apps_api = apps_api or k8s.AppsV1Api()
        self.core_api = core_api or k8s.CoreV1Api()
        self.custom_api = custom_api or k8s.CustomObjectsApi()
        self.request_timeout = request_timeout
        self.watch_timeout = watch_timeout

    @classmethod
    def from_config(
        cls,
        kubeconfig: Optional[str] = None,
        request_timeout: Optional[float] = None,
        watch_timeout: int = 0,
    ) -> KubernetesOrchestratorClient:
        load_kube_config(kubeconfig)
        return cls(request_timeout=request_timeout, watch_timeout=watch_timeout)

    def _request_kwargs(self) -> dict[str, Any]:
        if self.request_timeout is None:
            return {}
        return {"_request_timeout": self.request_timeout}

    def list_deployments(self, namespace: str) -> list[Any]:
        if namespace:
            result = self.apps_api.list_namespaced_deployment(namespace, **self._request_kwargs())
        else:
            result = self.apps_api.list_deployment_for_all_namespaces(**self._request_kwargs())
        return list(result.items or [])

    def watch_deployments(self, namespace: str) -> Iterator[WatchEvent]:
        """Stream Deployment change events until the server closes the watch.

        ApiExceptions raised for error events by the kubernetes client
        propagate to the caller, as do transport errors.
        """
        watcher = k8s_watch.Watch()
        kwargs: dict[str, Any] = {}
        if self.watch_timeout:
            kwargs["timeout_seconds"] = self.watch_timeout

        if namespace:
            stream = watcher.stream(
                self.apps_api.list_namespaced_deployment, namespace, **kwargs
            )
        else:
            stream = watcher.stream(self.apps_api.list_deployment_for_all_namespaces, **kwargs)

        try:
            for event in stream:
                yield WatchEvent(
                    type=str(event.get("type", "")),
                    object=event.get("object"),
                    raw_object=event.get("raw_object"),
                )
        finally:
            watcher.stop()

    def list_pods(self, namespace: str, selector: str) -> list[Any]:
        result = self.core_api.list_namespaced_pod(
            namespace, label_selector=selector, **self._request_kwargs()
        )
        return list(result.items or [])

    def list_pod_metrics(self, namespace: str, selector: str) -> list[dict]:
        try:
            result = self.custom_api.list_namespaced_custom_object(
                METRICS_GROUP,
                METRICS_VERSION,
                namespace,
                "pods",
                label_selector=selector,
                **self._request_kwargs(),
            )
        except ApiException as e:
            if e.status in (404, 503):
                raise MetricsUnavailableError(
                    f"{METRICS_GROUP}/{METRICS_VERSION} not available ({e.status})"
                ) from e
            raise
        return list((result or {}).get("items") or [])
