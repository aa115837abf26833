"""Value types shared by the availability pipeline.

- EntityKey: canonical namespace/name identity of a monitored Deployment
- Snapshot: one observation of a Deployment, consumed once by the engine
- ResourceFigures: aggregated CPU/memory request/limit/usage across pods
- DowntimeRecord: the store's marker that an entity is currently down
- Recovery: a claimed Down -> Up transition with its elapsed time
- MetricIntent: a (kind, name, labels, value) tuple for the metric sink
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLISECOND = 1_000_000


@dataclass(frozen=True, order=True)
class EntityKey:
    """Identity of a monitored workload."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    def labels(self) -> dict[str, str]:
        """Base label pair carried by every per-entity metric."""
        return {"namespace": self.namespace, "deployment": self.name}


@dataclass(frozen=True)
class ResourceFigures:
    """CPU figures in millicores, memory figures in MiB.

    Usage fields are None when the metrics API did not answer.
    """

    cpu_request_millicores: float = 0.0
    cpu_limit_millicores: float = 0.0
    memory_request_mebibytes: float = 0.0
    memory_limit_mebibytes: float = 0.0
    cpu_usage_millicores: Optional[float] = None
    memory_usage_mebibytes: Optional[float] = None

    @property
    def has_usage(self) -> bool:
        return (
            self.cpu_usage_millicores is not None
            and self.memory_usage_mebibytes is not None
        )

    @property
    def cpu_usage_percent(self) -> Optional[float]:
        """CPU usage as a percentage of request, None without usage or request."""
        if self.cpu_usage_millicores is None or self.cpu_request_millicores <= 0:
            return None
        return self.cpu_usage_millicores / self.cpu_request_millicores * 100

    @property
    def memory_usage_percent(self) -> Optional[float]:
        """Memory usage as a percentage of request, None without usage or request."""
        if self.memory_usage_mebibytes is None or self.memory_request_mebibytes <= 0:
            return None
        return self.memory_usage_mebibytes / self.memory_request_mebibytes * 100


@dataclass(frozen=True)
class Snapshot:
    """A single observation of a Deployment's rollout state."""

    desired_replicas: Optional[int] = None  # None: spec.replicas unset
    ready_replicas: int = 0
    available_replicas: int = 0
    unavailable_replicas: int = 0
    updated_replicas: int = 0
    created_at: Optional[float] = None  # Unix epoch seconds
    generation: int = 0
    observed_generation: int = 0
    conditions: tuple[tuple[str, str], ...] = ()
    resources: Optional[ResourceFigures] = None


@dataclass(frozen=True)
class DowntimeRecord:
    """Marks an entity as down since `down_since_ns` (Unix epoch nanoseconds)."""

    down_since_ns: int

    @property
    def down_since(self) -> float:
        """Downtime start in Unix epoch seconds."""
        return self.down_since_ns / NANOS_PER_SECOND


@dataclass(frozen=True)
class Recovery:
    """A claimed Down -> Up transition.

    Elapsed time is computed in integer nanoseconds and never negative: a
    wall clock stepping backwards reads as an instant recovery.
    """

    down_since_ns: int
    recovered_at_ns: int

    @property
    def elapsed_ns(self) -> int:
        return max(0, self.recovered_at_ns - self.down_since_ns)

    @property
    def elapsed_seconds(self) -> float:
        return self.elapsed_ns / NANOS_PER_SECOND

    @property
    def elapsed_milliseconds(self) -> int:
        """Elapsed time in whole milliseconds, truncated."""
        return self.elapsed_ns // NANOS_PER_MILLISECOND


class MetricKind(str, Enum):
    """How the sink should record an intent."""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricIntent:
    """A metric update emitted by the transition engine."""

    kind: MetricKind
    name: str
    labels: dict[str, str] = field(default_factory=dict, hash=False)
    value: float = 0.0

    @classmethod
    def gauge(cls, name: str, labels: dict[str, str], value: float) -> MetricIntent:
        return cls(MetricKind.GAUGE, name, labels, float(value))

    @classmethod
    def counter(cls, name: str, labels: dict[str, str], value: float = 1.0) -> MetricIntent:
        return cls(MetricKind.COUNTER, name, labels, float(value))
