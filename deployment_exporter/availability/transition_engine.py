"""Transition engine - the per-Deployment availability state machine.

Two states per EntityKey:
- Up: no DowntimeRecord in the store (also the initial state)
- Down: a DowntimeRecord is present

Up -> Down creates the record and emits the downtime start timestamp.
Down -> Up removes the record and emits downtime duration, recovery time
and one restart increment. Self-transitions only refresh the gauges that
are emitted on every observation (heartbeat, replicas, conditions, ...).

Transitions are decided with the store's atomic helpers, so a watch event
and a poll tick observing the same change concurrently produce exactly one
transition between them. Transition timestamps are read from the clock
inside those helpers, in integer nanoseconds; recovery milliseconds are
truncated from the nanosecond difference.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from deployment_exporter import metrics as m
from deployment_exporter.availability.evaluator import condition_value, is_ready
from deployment_exporter.availability.state_store import AvailabilityStateStore, Clock
from deployment_exporter.models import (
    NANOS_PER_SECOND,
    EntityKey,
    MetricIntent,
    ResourceFigures,
    Snapshot,
)

logger = logging.getLogger(__name__)


class TransitionEngine:
    """Applies observations to the availability state store."""

    def __init__(self, store: AvailabilityStateStore) -> None:
        self.store = store

    def apply(self, key: EntityKey, snap: Snapshot, clock: Clock) -> list[MetricIntent]:
        """Apply one observation of `key`.

        Args:
            key: Entity the snapshot belongs to
            snap: The observation
            clock: Returns Unix epoch nanoseconds; read once for the
                heartbeat and again inside any state transition

        Returns:
            Metric intents to record, in emission order.
        """
        labels = key.labels()
        now = clock() / NANOS_PER_SECOND
        intents = self._observation_gauges(labels, snap, now)

        if is_ready(snap):
            intents.append(MetricIntent.gauge(m.STATUS, labels, 1))
            recovery = self.store.clear(key, clock)
            if recovery is not None:
                elapsed = recovery.elapsed_seconds
                elapsed_ms = recovery.elapsed_milliseconds
                intents.append(MetricIntent.gauge(m.DOWNTIME_DURATION, labels, elapsed))
                intents.append(MetricIntent.gauge(m.RECOVERY_TIME_MS, labels, elapsed_ms))
                intents.append(MetricIntent.counter(m.RESTART_TOTAL, labels))
                recovered_at = recovery.recovered_at_ns / NANOS_PER_SECOND
                logger.info(
                    f"[{_utc(recovered_at)}] Deployment {key} recovered after "
                    f"{elapsed:.2f}s ({elapsed_ms}ms)"
                )
        else:
            intents.append(MetricIntent.gauge(m.STATUS, labels, 0))
            record = self.store.mark_down(key, clock)
            if record is not None:
                intents.append(MetricIntent.gauge(m.DOWNTIME_START, labels, record.down_since))
                logger.info(f"[{_utc(record.down_since)}] Deployment {key} went down")

        return intents

    def _observation_gauges(
        self, labels: dict[str, str], snap: Snapshot, now: float
    ) -> list[MetricIntent]:
        intents = [MetricIntent.gauge(m.HEARTBEAT, labels, now)]

        if snap.created_at is not None:
            intents.append(MetricIntent.gauge(m.CREATED_TIMESTAMP, labels, snap.created_at))
        intents.append(MetricIntent.gauge(m.GENERATION, labels, snap.generation))
        intents.append(
            MetricIntent.gauge(m.OBSERVED_GENERATION, labels, snap.observed_generation)
        )

        if snap.desired_replicas is not None:
            intents.append(MetricIntent.gauge(m.REPLICAS_DESIRED, labels, snap.desired_replicas))
        intents.append(MetricIntent.gauge(m.REPLICAS_READY, labels, snap.ready_replicas))
        intents.append(MetricIntent.gauge(m.REPLICAS_AVAILABLE, labels, snap.available_replicas))
        intents.append(
            MetricIntent.gauge(m.REPLICAS_UNAVAILABLE, labels, snap.unavailable_replicas)
        )
        intents.append(MetricIntent.gauge(m.REPLICAS_UPDATED, labels, snap.updated_replicas))

        if snap.desired_replicas is not None:
            desired = snap.desired_replicas
            ratio = snap.ready_replicas / desired if desired > 0 else 0.0
            ratio_labels = {
                **labels,
                "available": str(snap.ready_replicas),
                "desired": str(desired),
            }
            intents.append(MetricIntent.gauge(m.AVAILABILITY_RATIO, ratio_labels, ratio))

        for condition_type, condition_status in snap.conditions:
            condition_labels = {
                **labels,
                "condition": condition_type,
                "status": condition_status,
            }
            intents.append(
                MetricIntent.gauge(
                    m.CONDITION_STATUS, condition_labels, condition_value(condition_status)
                )
            )

        if snap.resources is not None:
            intents.extend(_resource_gauges(labels, snap.resources))

        return intents


def _resource_gauges(labels: dict[str, str], res: ResourceFigures) -> list[MetricIntent]:
    intents = [
        MetricIntent.gauge(m.CPU_REQUEST, labels, res.cpu_request_millicores),
        MetricIntent.gauge(m.MEMORY_REQUEST, labels, res.memory_request_mebibytes),
        MetricIntent.gauge(m.CPU_LIMIT, labels, res.cpu_limit_millicores),
        MetricIntent.gauge(m.MEMORY_LIMIT, labels, res.memory_limit_mebibytes),
    ]
    if res.has_usage:
        intents.append(MetricIntent.gauge(m.CPU_USAGE, labels, res.cpu_usage_millicores))
        intents.append(MetricIntent.gauge(m.MEMORY_USAGE, labels, res.memory_usage_mebibytes))
        if res.cpu_usage_percent is not None:
            intents.append(MetricIntent.gauge(m.CPU_USAGE_PERCENT, labels, res.cpu_usage_percent))
        if res.memory_usage_percent is not None:
            intents.append(
                MetricIntent.gauge(m.MEMORY_USAGE_PERCENT, labels, res.memory_usage_percent)
            )
    return intents


def _utc(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y/%m/%d %H:%M:%S UTC")
