"""Prometheus metrics for the deployment exporter.

The transition engine never touches prometheus_client directly: it emits
MetricIntents, and a MetricSink records them. PrometheusMetricSink registers
every metric below on a CollectorRegistry handed to it at construction, so
tests can use an isolated registry and the process uses one shared registry
rendered by the /metrics endpoint.

All per-deployment metrics are labeled by (namespace, deployment); a few
carry extra labels (see METRIC_SPECS).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Final, Iterable, Optional, Protocol, Union

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from deployment_exporter.models import MetricIntent, MetricKind

logger = logging.getLogger(__name__)

BASE_LABELS: Final[tuple[str, ...]] = ("namespace", "deployment")

# Availability
STATUS: Final = "k8s_deployment_status"
HEARTBEAT: Final = "k8s_deployment_heartbeat_timestamp_seconds"
DOWNTIME_START: Final = "k8s_deployment_downtime_start_timestamp_seconds"
DOWNTIME_DURATION: Final = "k8s_deployment_downtime_duration_seconds"
RECOVERY_TIME_MS: Final = "k8s_deployment_recovery_time_milliseconds"
RESTART_TOTAL: Final = "k8s_deployment_restart_total"
CONDITION_STATUS: Final = "k8s_deployment_condition_status"
AVAILABILITY_RATIO: Final = "k8s_deployment_availability_ratio"

# Replicas
REPLICAS_DESIRED: Final = "k8s_deployment_replicas_desired"
REPLICAS_READY: Final = "k8s_deployment_replicas_ready"
REPLICAS_AVAILABLE: Final = "k8s_deployment_replicas_available"
REPLICAS_UNAVAILABLE: Final = "k8s_deployment_replicas_unavailable"
REPLICAS_UPDATED: Final = "k8s_deployment_replicas_updated"

# Metadata
CREATED_TIMESTAMP: Final = "k8s_deployment_created_timestamp_seconds"
GENERATION: Final = "k8s_deployment_metadata_generation"
OBSERVED_GENERATION: Final = "k8s_deployment_status_observed_generation"

# Resources
CPU_REQUEST: Final = "k8s_deployment_cpu_request_millicores"
CPU_LIMIT: Final = "k8s_deployment_cpu_limit_millicores"
CPU_USAGE: Final = "k8s_deployment_cpu_usage_millicores"
CPU_USAGE_PERCENT: Final = "k8s_deployment_cpu_usage_percent"
MEMORY_REQUEST: Final = "k8s_deployment_memory_request_mebibytes"
MEMORY_LIMIT: Final = "k8s_deployment_memory_limit_mebibytes"
MEMORY_USAGE: Final = "k8s_deployment_memory_usage_mebibytes"
MEMORY_USAGE_PERCENT: Final = "k8s_deployment_memory_usage_percent"


@dataclass(frozen=True)
class MetricSpec:
    kind: MetricKind
    documentation: str
    extra_labels: tuple[str, ...] = ()

    @property
    def labelnames(self) -> tuple[str, ...]:
        return BASE_LABELS + self.extra_labels


def _gauge(documentation: str, *extra_labels: str) -> MetricSpec:
    return MetricSpec(MetricKind.GAUGE, documentation, extra_labels)


METRIC_SPECS: Final[dict[str, MetricSpec]] = {
    STATUS: _gauge("Current deployment status (1=ready, 0=not ready)"),
    HEARTBEAT: _gauge("Timestamp of last heartbeat check (Unix epoch)"),
    DOWNTIME_START: _gauge("Unix timestamp when the deployment went down"),
    DOWNTIME_DURATION: _gauge(
        "Duration in seconds that a deployment was down (from not ready to ready)"
    ),
    RECOVERY_TIME_MS: _gauge(
        "Time taken for deployment to recover from down state in milliseconds"
    ),
    RESTART_TOTAL: MetricSpec(MetricKind.COUNTER, "Total number of deployment restarts"),
    CONDITION_STATUS: _gauge(
        "Deployment condition status (1=true, 0=false, -1=unknown)", "condition", "status"
    ),
    AVAILABILITY_RATIO: _gauge(
        "Deployment availability ratio (ready/desired)", "available", "desired"
    ),
    REPLICAS_DESIRED: _gauge("Number of desired replicas for deployment"),
    REPLICAS_READY: _gauge("Number of ready replicas for deployment"),
    REPLICAS_AVAILABLE: _gauge("Number of available replicas for deployment"),
    REPLICAS_UNAVAILABLE: _gauge("Number of unavailable replicas for deployment"),
    REPLICAS_UPDATED: _gauge("Number of updated replicas for deployment"),
    CREATED_TIMESTAMP: _gauge("Unix timestamp when the deployment was created"),
    GENERATION: _gauge(
        "Sequence number representing a specific generation of the desired state"
    ),
    OBSERVED_GENERATION: _gauge("The generation observed by the deployment controller"),
    CPU_REQUEST: _gauge("Total CPU requests in millicores for all pods in the deployment"),
    CPU_LIMIT: _gauge("Total CPU limits in millicores for all pods in the deployment"),
    CPU_USAGE: _gauge("Total CPU usage in millicores for all pods in the deployment"),
    CPU_USAGE_PERCENT: _gauge("CPU usage as percentage of request"),
    MEMORY_REQUEST: _gauge("Total memory requests in MiB for all pods in the deployment"),
    MEMORY_LIMIT: _gauge("Total memory limits in MiB for all pods in the deployment"),
    MEMORY_USAGE: _gauge("Total memory usage in MiB for all pods in the deployment"),
    MEMORY_USAGE_PERCENT: _gauge("Memory usage as percentage of request"),
}


class MetricSink(Protocol):
    """Write-only time-series register."""

    def set_gauge(self, name: str, labels: dict[str, str], value: float) -> None:
        ...

    def inc_counter(self, name: str, labels: dict[str, str], value: float = 1.0) -> None:
        ...


def emit(sink: MetricSink, intents: Iterable[MetricIntent]) -> None:
    """Record every intent on the sink, in order."""
    for intent in intents:
        if intent.kind is MetricKind.COUNTER:
            sink.inc_counter(intent.name, intent.labels, intent.value)
        else:
            sink.set_gauge(intent.name, intent.labels, intent.value)


class PrometheusMetricSink:
    """MetricSink backed by prometheus_client gauges and counters.

    Usage:
        registry = CollectorRegistry()
        sink = PrometheusMetricSink(registry)
        sink.set_gauge(STATUS, {"namespace": "prod", "deployment": "api"}, 1)
        text = sink.render()
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: dict[str, Union[Gauge, Counter]] = {}
        for name, spec in METRIC_SPECS.items():
            metric_cls = Counter if spec.kind is MetricKind.COUNTER else Gauge
            self._metrics[name] = metric_cls(
                name,
                spec.documentation,
                labelnames=spec.labelnames,
                registry=self.registry,
            )
        self._lock = threading.Lock()
        self._unknown_names: set[str] = set()

    def _child(self, name: str, labels: dict[str, str], kind: MetricKind):
        metric = self._metrics.get(name)
        if metric is None or METRIC_SPECS[name].kind is not kind:
            self._warn_unknown(name)
            return None
        return metric.labels(**labels)

    def _warn_unknown(self, name: str) -> None:
        with self._lock:
            if name in self._unknown_names:
                return
            self._unknown_names.add(name)
        logger.warning(f"Dropping update for unregistered metric {name}")

    def set_gauge(self, name: str, labels: dict[str, str], value: float) -> None:
        child = self._child(name, labels, MetricKind.GAUGE)
        if child is not None:
            child.set(value)

    def inc_counter(self, name: str, labels: dict[str, str], value: float = 1.0) -> None:
        child = self._child(name, labels, MetricKind.COUNTER)
        if child is not None:
            child.inc(value)

    def sample_value(self, name: str, labels: dict[str, str]) -> Optional[float]:
        """Current value of one series, None if never written."""
        spec = METRIC_SPECS.get(name)
        if spec is not None and spec.kind is MetricKind.COUNTER and not name.endswith("_total"):
            name = f"{name}_total"
        return self.registry.get_sample_value(name, labels)

    def render(self) -> bytes:
        """Prometheus text exposition of every registered metric."""
        return generate_latest(self.registry)


__all__ = [
    "METRIC_SPECS",
    "MetricSink",
    "MetricSpec",
    "PrometheusMetricSink",
    "emit",
]
