"""Poll feeder - fixed-interval reconciliation of every Deployment in scope.

Every `interval` seconds the feeder lists all Deployments and runs each one
through the tracker with resource lookups enabled. This keeps heartbeats
and gauges fresh when the watch stream stalls or drops events, and it is
the only source of resource request/limit/usage metrics.

A failed list call is logged and that tick is skipped; the next tick
retries at the normal interval.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from deployment_exporter.availability.tracker import DeploymentTracker
from deployment_exporter.feeders.base import FeederBase
from deployment_exporter.kube.client import OrchestratorClient
from deployment_exporter.utils.exceptions import KUBE_API_ERRORS

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 15.0


class PollFeeder(FeederBase):
    """Drives the tracker from periodic full listings."""

    def __init__(
        self,
        client: OrchestratorClient,
        tracker: DeploymentTracker,
        namespace: str = "",
        interval: float = DEFAULT_POLL_INTERVAL,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        super().__init__("PollFeeder", client, tracker, namespace, stop_event, sleep)
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._ticks = 0
        self._failed_ticks = 0
        self._last_tick_duration: Optional[float] = None

    def tick(self) -> int:
        """List and process every Deployment once.

        Returns:
            Number of Deployments processed (0 when the list call failed).
        """
        self._ticks += 1
        started = time.monotonic()
        try:
            deployments = self.client.list_deployments(self.namespace)
        except KUBE_API_ERRORS as e:
            self._failed_ticks += 1
            self._last_error = f"{type(e).__name__}: {e}"
            logger.warning(f"[{self.name}] Error listing deployments: {e}")
            return 0

        processed = 0
        for deployment in deployments:
            if self._process(deployment, with_resources=True):
                processed += 1

        self._last_tick_duration = time.monotonic() - started
        logger.debug(
            f"[{self.name}] Processed {processed}/{len(deployments)} deployments "
            f"in {self._last_tick_duration:.2f}s"
        )
        return processed

    def run_forever(self) -> None:
        while not self.stop_event.is_set():
            self._sleep(self.interval)
            if self.stop_event.is_set():
                break
            try:
                self.tick()
            except Exception as e:
                self._last_error = f"{type(e).__name__}: {e}"
                logger.exception(f"[{self.name}] Unexpected error during poll: {e}")

    def get_status(self) -> dict[str, Any]:
        status = super().get_status()
        status.update(
            {
                "interval_seconds": self.interval,
                "ticks": self._ticks,
                "failed_ticks": self._failed_ticks,
                "last_tick_duration_seconds": self._last_tick_duration,
            }
        )
        return status
