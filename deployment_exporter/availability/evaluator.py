"""Snapshot evaluator - turns orchestrator objects into Snapshots.

Everything here is a pure function of its arguments: no API calls, no
metric updates, no state. The tracker fetches pods and pod metrics and
hands them in; this module only decodes and aggregates.

Readiness rule: a Deployment is ready iff
    ready_replicas == desired_replicas
    and desired_replicas > 0
    and unavailable_replicas == 0
An unset spec.replicas counts as 0, so a scaled-to-zero Deployment is
never ready.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Optional

from kubernetes.utils import parse_quantity

from deployment_exporter.models import EntityKey, ResourceFigures, Snapshot
from deployment_exporter.utils.exceptions import PARSE_ERRORS, InvalidObjectError

logger = logging.getLogger(__name__)

MEBIBYTE = Decimal(1024 * 1024)

CONDITION_VALUES: dict[str, float] = {
    "True": 1.0,
    "False": 0.0,
}


def entity_key(deployment: Any) -> EntityKey:
    """Extract the namespace/name identity of a Deployment.

    Raises:
        InvalidObjectError: If metadata, namespace or name is missing.
    """
    metadata = getattr(deployment, "metadata", None)
    if metadata is None:
        raise InvalidObjectError("object has no metadata")
    namespace = getattr(metadata, "namespace", None)
    name = getattr(metadata, "name", None)
    if not namespace or not name:
        raise InvalidObjectError(
            f"object is missing identity fields (namespace={namespace!r}, name={name!r})"
        )
    return EntityKey(namespace=namespace, name=name)


def condition_value(status: Optional[str]) -> float:
    """Map a condition status string to 1 (True), 0 (False) or -1 (anything else)."""
    return CONDITION_VALUES.get(status or "", -1.0)


def is_ready(snap: Snapshot) -> bool:
    desired = snap.desired_replicas or 0
    return (
        snap.ready_replicas == desired
        and desired > 0
        and snap.unavailable_replicas == 0
    )


def snapshot_from_deployment(
    deployment: Any,
    pods: Optional[Iterable[Any]] = None,
    pod_metrics: Optional[Iterable[dict]] = None,
) -> Snapshot:
    """Decode a Deployment (plus optional pods and pod metrics) into a Snapshot.

    Args:
        deployment: A V1Deployment (or any object with the same attributes)
        pods: Pods matched by the Deployment's selector; None skips resources
        pod_metrics: metrics.k8s.io PodMetrics items; None omits usage figures

    Raises:
        InvalidObjectError: If the Deployment lacks identity fields.
    """
    entity_key(deployment)

    metadata = deployment.metadata
    spec = getattr(deployment, "spec", None)
    status = getattr(deployment, "status", None)

    created = getattr(metadata, "creation_timestamp", None)
    conditions = tuple(
        (str(c.type), str(c.status))
        for c in (getattr(status, "conditions", None) or [])
        if getattr(c, "type", None)
    )

    return Snapshot(
        desired_replicas=getattr(spec, "replicas", None),
        ready_replicas=_count(status, "ready_replicas"),
        available_replicas=_count(status, "available_replicas"),
        unavailable_replicas=_count(status, "unavailable_replicas"),
        updated_replicas=_count(status, "updated_replicas"),
        created_at=created.timestamp() if created is not None else None,
        generation=getattr(metadata, "generation", None) or 0,
        observed_generation=_count(status, "observed_generation"),
        conditions=conditions,
        resources=aggregate_resources(pods, pod_metrics) if pods is not None else None,
    )


def _count(status: Any, field: str) -> int:
    # Kubernetes omits zero counts from status, so None means 0
    return getattr(status, field, None) or 0


# =============================================================================
# Resource aggregation
# =============================================================================


def aggregate_resources(
    pods: Iterable[Any],
    pod_metrics: Optional[Iterable[dict]] = None,
) -> ResourceFigures:
    """Sum container requests/limits across pods, and usage across pod metrics.

    Zero-valued and unparseable quantities are treated as absent.
    """
    cpu_request = Decimal(0)
    cpu_limit = Decimal(0)
    memory_request = Decimal(0)
    memory_limit = Decimal(0)

    for pod in pods:
        for container in getattr(getattr(pod, "spec", None), "containers", None) or []:
            resources = getattr(container, "resources", None)
            requests = getattr(resources, "requests", None) or {}
            limits = getattr(resources, "limits", None) or {}
            cpu_request += _quantity(requests.get("cpu"))
            memory_request += _quantity(requests.get("memory"))
            cpu_limit += _quantity(limits.get("cpu"))
            memory_limit += _quantity(limits.get("memory"))

    cpu_usage: Optional[float] = None
    memory_usage: Optional[float] = None
    if pod_metrics is not None:
        cpu_total = Decimal(0)
        memory_total = Decimal(0)
        for item in pod_metrics:
            for container in item.get("containers") or []:
                usage = container.get("usage") or {}
                cpu_total += _quantity(usage.get("cpu"))
                memory_total += _quantity(usage.get("memory"))
        cpu_usage = _millicores(cpu_total)
        memory_usage = _mebibytes(memory_total)

    return ResourceFigures(
        cpu_request_millicores=_millicores(cpu_request),
        cpu_limit_millicores=_millicores(cpu_limit),
        memory_request_mebibytes=_mebibytes(memory_request),
        memory_limit_mebibytes=_mebibytes(memory_limit),
        cpu_usage_millicores=cpu_usage,
        memory_usage_mebibytes=memory_usage,
    )


def _quantity(raw: Any) -> Decimal:
    if raw is None or raw == "":
        return Decimal(0)
    try:
        value = parse_quantity(raw)
    except PARSE_ERRORS as e:
        logger.warning(f"Ignoring unparseable resource quantity {raw!r}: {e}")
        return Decimal(0)
    if value <= 0:
        return Decimal(0)
    return value


def _millicores(cores: Decimal) -> float:
    return float(cores * 1000)


def _mebibytes(num_bytes: Decimal) -> float:
    return float(num_bytes / MEBIBYTE)


# =============================================================================
# Label selectors
# =============================================================================


def format_label_selector(selector: Any) -> str:
    """Render a V1LabelSelector in the API's string selector syntax.

    Requirements are sorted by key, matching the API server's canonical form.
    Returns an empty string for a missing or empty selector.
    """
    if selector is None:
        return ""

    requirements: list[tuple[str, str]] = []
    for key, value in sorted((getattr(selector, "match_labels", None) or {}).items()):
        requirements.append((key, f"{key}={value}"))

    for expr in getattr(selector, "match_expressions", None) or []:
        key = expr.key
        values = ",".join(sorted(expr.values or []))
        operator = expr.operator
        if operator == "In":
            requirements.append((key, f"{key} in ({values})"))
        elif operator == "NotIn":
            requirements.append((key, f"{key} notin ({values})"))
        elif operator == "Exists":
            requirements.append((key, key))
        elif operator == "DoesNotExist":
            requirements.append((key, f"!{key}"))
        else:
            raise InvalidObjectError(f"unknown label selector operator {operator!r}")

    requirements.sort(key=lambda r: r[0])
    return ",".join(text for _, text in requirements)
