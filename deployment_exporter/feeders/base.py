"""Base class for feeders - long-running observation loops.

A feeder owns one daemon thread that runs `run_forever()` until the shared
stop event is set. Waiting goes through an injectable `sleep` callable
(default: `stop_event.wait`) so shutdown interrupts waits and tests can
drive many iterations without real delay.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from deployment_exporter.availability.tracker import DeploymentTracker
from deployment_exporter.kube.client import OrchestratorClient
from deployment_exporter.utils.exceptions import PARSE_ERRORS, InvalidObjectError

logger = logging.getLogger(__name__)


class FeederBase(ABC):
    """Abstract feeder driving the tracker from one observation source."""

    def __init__(
        self,
        name: str,
        client: OrchestratorClient,
        tracker: DeploymentTracker,
        namespace: str = "",
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.name = name
        self.client = client
        self.tracker = tracker
        self.namespace = namespace
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self._sleep = sleep if sleep is not None else self.stop_event.wait
        self._thread: Optional[threading.Thread] = None
        self._events_processed = 0
        self._events_dropped = 0
        self._last_error: Optional[str] = None

    @property
    def scope(self) -> str:
        return self.namespace or "all namespaces"

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @abstractmethod
    def run_forever(self) -> None:
        """Run the feeder loop until the stop event is set."""

    def start(self) -> None:
        """Start the loop on a daemon thread."""
        if self.is_running:
            logger.warning(f"[{self.name}] already running")
            return
        self._thread = threading.Thread(target=self.run_forever, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"[{self.name}] started for {self.scope}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Signal the loop to stop and wait for it.

        A watch blocked on a socket read only notices the stop event once
        the next event or stream end arrives, so the join is bounded.
        """
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning(f"[{self.name}] did not stop within {timeout}s")
        logger.info(f"[{self.name}] stopped")

    def _process(self, deployment: Any, with_resources: bool = False) -> bool:
        """Run one object through the tracker; drop it if it is malformed."""
        try:
            self.tracker.process(deployment, with_resources=with_resources)
        except InvalidObjectError as e:
            self._events_dropped += 1
            logger.warning(f"[{self.name}] Dropping malformed {e.obj_kind}: {e}")
            return False
        except PARSE_ERRORS as e:
            self._events_dropped += 1
            logger.warning(
                f"[{self.name}] Dropping event that failed processing: {type(e).__name__}: {e}"
            )
            return False
        self._events_processed += 1
        return True

    def get_status(self) -> dict[str, Any]:
        """Current status of this feeder."""
        return {
            "name": self.name,
            "scope": self.scope,
            "running": self.is_running,
            "events_processed": self._events_processed,
            "events_dropped": self._events_dropped,
            "last_error": self._last_error,
        }
