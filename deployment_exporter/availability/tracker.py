"""Deployment tracker - runs one observation through the pipeline.

Both feeders hand Deployment objects to DeploymentTracker.process(), which:
1. Optionally looks up pods and pod metrics for resource figures
2. Decodes the object into a Snapshot
3. Applies the Snapshot to the transition engine with the tracker's clock
4. Records the resulting intents on the metric sink

The store lock is held only inside the engine's atomic store calls, never
while the sink is written.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from deployment_exporter.availability.evaluator import (
    entity_key,
    format_label_selector,
    snapshot_from_deployment,
)
from deployment_exporter.availability.state_store import AvailabilityStateStore, Clock
from deployment_exporter.availability.transition_engine import TransitionEngine
from deployment_exporter.kube.client import OrchestratorClient
from deployment_exporter.metrics import MetricSink, emit
from deployment_exporter.models import EntityKey, MetricIntent
from deployment_exporter.utils.exceptions import (
    KUBE_API_ERRORS,
    ExceptionContext,
    InvalidObjectError,
    MetricsUnavailableError,
)

logger = logging.getLogger(__name__)


class DeploymentTracker:
    """Shared processing path for watch and poll observations."""

    def __init__(
        self,
        client: OrchestratorClient,
        sink: MetricSink,
        store: Optional[AvailabilityStateStore] = None,
        clock: Clock = time.time_ns,
    ) -> None:
        self.client = client
        self.sink = sink
        self.store = store if store is not None else AvailabilityStateStore()
        self.engine = TransitionEngine(self.store)
        self.clock = clock
        self._metrics_api_missing = False
        self._flag_lock = threading.Lock()

    def process(self, deployment: Any, with_resources: bool = False) -> list[MetricIntent]:
        """Observe one Deployment and record the resulting metrics.

        Args:
            deployment: V1Deployment from a watch event or list call
            with_resources: Also look up pods and pod metrics

        Returns:
            The intents recorded on the sink.

        Raises:
            InvalidObjectError: If the object lacks identity fields.
        """
        key = entity_key(deployment)

        pods = pod_metrics = None
        if with_resources:
            pods, pod_metrics = self._collect_resources(key, deployment)

        snap = snapshot_from_deployment(deployment, pods, pod_metrics)
        intents = self.engine.apply(key, snap, self.clock)
        emit(self.sink, intents)
        return intents

    def _collect_resources(self, key: EntityKey, deployment: Any):
        """Fetch pods and pod metrics; failures degrade to fewer metrics."""
        try:
            selector = format_label_selector(getattr(deployment.spec, "selector", None))
        except InvalidObjectError as e:
            logger.warning(f"[Tracker] Skipping resources for {key}: {e}")
            return None, None
        if not selector:
            logger.debug(f"[Tracker] {key} has no selector, skipping resources")
            return None, None

        pods = None
        with ExceptionContext(f"pods {key}", logger, KUBE_API_ERRORS):
            pods = self.client.list_pods(key.namespace, selector)
        if pods is None:
            return None, None

        pod_metrics = None
        try:
            pod_metrics = self.client.list_pod_metrics(key.namespace, selector)
        except MetricsUnavailableError as e:
            self._note_metrics_missing(e)
        except KUBE_API_ERRORS as e:
            logger.debug(f"[Tracker] Pod metrics unavailable for {key}: {e}")
        else:
            self._note_metrics_present()

        return pods, pod_metrics

    def _note_metrics_missing(self, e: Exception) -> None:
        with self._flag_lock:
            if self._metrics_api_missing:
                return
            self._metrics_api_missing = True
        logger.info(f"[Tracker] Metrics API unavailable, resource usage will not be exported: {e}")

    def _note_metrics_present(self) -> None:
        with self._flag_lock:
            if not self._metrics_api_missing:
                return
            self._metrics_api_missing = False
        logger.info("[Tracker] Metrics API available again")

    @property
    def metrics_api_available(self) -> bool:
        return not self._metrics_api_missing
