"""Shared pytest fixtures for exporter tests.

Provides factories for Kubernetes objects, a recording metric sink, a
controllable clock, and a MagicMock orchestrator client.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import pytest
from kubernetes import client as k8s
from prometheus_client import CollectorRegistry

from deployment_exporter.availability.state_store import AvailabilityStateStore
from deployment_exporter.availability.tracker import DeploymentTracker
from deployment_exporter.metrics import PrometheusMetricSink
from deployment_exporter.models import NANOS_PER_SECOND

# =============================================================================
# OBJECT FACTORIES
# =============================================================================


def make_deployment(
    name: str = "api",
    namespace: str = "prod",
    desired: Optional[int] = 3,
    ready: Optional[int] = 3,
    available: Optional[int] = None,
    unavailable: Optional[int] = 0,
    updated: Optional[int] = None,
    generation: int = 1,
    observed_generation: Optional[int] = 1,
    conditions: Optional[list[tuple[str, str]]] = None,
    match_labels: Optional[dict[str, str]] = None,
    created: Optional[datetime] = None,
) -> k8s.V1Deployment:
    """Build a V1Deployment with the given rollout status."""
    if conditions is None:
        conditions = [("Available", "True"), ("Progressing", "True")]
    return k8s.V1Deployment(
        metadata=k8s.V1ObjectMeta(
            name=name,
            namespace=namespace,
            generation=generation,
            creation_timestamp=created or datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
        spec=k8s.V1DeploymentSpec(
            replicas=desired,
            selector=k8s.V1LabelSelector(match_labels=match_labels or {"app": name}),
            template=k8s.V1PodTemplateSpec(),
        ),
        status=k8s.V1DeploymentStatus(
            ready_replicas=ready,
            available_replicas=ready if available is None else available,
            unavailable_replicas=unavailable,
            updated_replicas=ready if updated is None else updated,
            observed_generation=observed_generation,
            conditions=[
                k8s.V1DeploymentCondition(type=ctype, status=cstatus)
                for ctype, cstatus in conditions
            ],
        ),
    )


def make_pod(containers: list[tuple[dict, dict]]) -> k8s.V1Pod:
    """Build a pod from (requests, limits) pairs, one per container."""
    return k8s.V1Pod(
        spec=k8s.V1PodSpec(
            containers=[
                k8s.V1Container(
                    name=f"c{i}",
                    resources=k8s.V1ResourceRequirements(requests=requests, limits=limits),
                )
                for i, (requests, limits) in enumerate(containers)
            ]
        )
    )


def make_pod_metrics(usages: list[dict]) -> dict:
    """Build one metrics.k8s.io PodMetrics item, one usage dict per container."""
    return {
        "metadata": {"name": "pod"},
        "containers": [{"name": f"c{i}", "usage": usage} for i, usage in enumerate(usages)],
    }


# =============================================================================
# TEST DOUBLES
# =============================================================================


class RecordingSink:
    """MetricSink that keeps every write, for assertions."""

    def __init__(self) -> None:
        self.gauges: dict[tuple, float] = {}
        self.counters: dict[tuple, float] = {}
        self.writes: list[tuple[str, str, dict, float]] = []
        self._lock = threading.Lock()

    @staticmethod
    def _key(name: str, labels: dict[str, str]) -> tuple:
        return (name, tuple(sorted(labels.items())))

    def set_gauge(self, name: str, labels: dict[str, str], value: float) -> None:
        with self._lock:
            self.gauges[self._key(name, labels)] = value
            self.writes.append(("gauge", name, dict(labels), value))

    def inc_counter(self, name: str, labels: dict[str, str], value: float = 1.0) -> None:
        with self._lock:
            key = self._key(name, labels)
            self.counters[key] = self.counters.get(key, 0.0) + value
            self.writes.append(("counter", name, dict(labels), value))

    def gauge(self, name: str, **labels: str) -> Optional[float]:
        return self.gauges.get(self._key(name, labels))

    def counter(self, name: str, **labels: str) -> float:
        return self.counters.get(self._key(name, labels), 0.0)

    def count_writes(self, name: str) -> int:
        return sum(1 for _, n, _, _ in self.writes if n == name)


def ns(seconds: float) -> int:
    """Unix seconds to the integer nanoseconds the clocks return."""
    return round(seconds * NANOS_PER_SECOND)


def at(seconds: float):
    """A clock frozen at `seconds`."""
    value = ns(seconds)
    return lambda: value


class FakeClock:
    """Manually advanced clock returning Unix epoch nanoseconds.

    `now` is read and written in seconds to keep tests readable.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now_ns = ns(start)

    @property
    def now(self) -> float:
        return self.now_ns / NANOS_PER_SECOND

    @now.setter
    def now(self, seconds: float) -> None:
        self.now_ns = ns(seconds)

    def __call__(self) -> int:
        return self.now_ns

    def advance(self, seconds: float) -> None:
        self.now_ns += ns(seconds)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return AvailabilityStateStore()


@pytest.fixture
def registry():
    """Isolated Prometheus registry per test."""
    return CollectorRegistry()


@pytest.fixture
def prometheus_sink(registry):
    return PrometheusMetricSink(registry)


@pytest.fixture
def mock_client():
    """Orchestrator client with empty listings and no metrics API answer."""
    client = MagicMock()
    client.list_deployments.return_value = []
    client.list_pods.return_value = []
    client.list_pod_metrics.return_value = []
    client.watch_deployments.return_value = iter([])
    return client


@pytest.fixture
def tracker(mock_client, recording_sink, store, clock):
    return DeploymentTracker(mock_client, recording_sink, store, clock=clock)
