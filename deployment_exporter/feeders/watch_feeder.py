"""Watch feeder - push-based observation of Deployment changes.

Keeps a watch subscription open against the API server for the configured
scope and runs every received Deployment through the tracker.

Reconnection:
- Opening the watch fails -> log, back off, reopen
- An ERROR event or a transport error mid-stream -> abandon, back off, reopen
- The server closes the stream cleanly -> treated exactly like an error
- Processing a single event fails -> only that event is dropped

The backoff comes from the injected RetryStrategy (flat 5s by default).
The loop only ends when the stop event is set.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from deployment_exporter.availability.tracker import DeploymentTracker
from deployment_exporter.feeders.base import FeederBase
from deployment_exporter.feeders.retry import FixedBackoffStrategy, RetryContext, RetryStrategy
from deployment_exporter.kube.client import EVENT_BOOKMARK, OrchestratorClient
from deployment_exporter.utils.exceptions import KUBE_API_ERRORS, log_and_continue

logger = logging.getLogger(__name__)

# Errors that end the current subscription; ValueError covers events the
# client could not deserialize.
STREAM_ERRORS: tuple[type[BaseException], ...] = KUBE_API_ERRORS + (ValueError,)


class WatchFeeder(FeederBase):
    """Drives the tracker from a Deployment watch stream."""

    def __init__(
        self,
        client: OrchestratorClient,
        tracker: DeploymentTracker,
        namespace: str = "",
        strategy: Optional[RetryStrategy] = None,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        super().__init__("WatchFeeder", client, tracker, namespace, stop_event, sleep)
        self.strategy = strategy if strategy is not None else FixedBackoffStrategy(5.0)
        self.retry_ctx = RetryContext(target=self.scope, operation="watch_deployments")
        self._subscriptions = 0

    def run_once(self) -> None:
        """Run one subscription from open to close, error, or stop.

        Only opening and reading the stream can end the subscription; an
        error while processing a single event drops that event.
        """
        self._subscriptions += 1
        logger.info(f"[{self.name}] Started watching deployments in {self.scope}")
        try:
            events = iter(self.client.watch_deployments(self.namespace))
        except STREAM_ERRORS as e:
            self._stream_failed(e)
            return

        try:
            while True:
                try:
                    event = next(events)
                except StopIteration:
                    break
                except STREAM_ERRORS as e:
                    self._stream_failed(e)
                    return
                if self.stop_event.is_set():
                    return
                if event.is_error:
                    self._record_failure(f"Watch error: {event.raw_object or event.object}")
                    logger.warning(f"[{self.name}] {self._last_error}")
                    return
                if event.type == EVENT_BOOKMARK:
                    continue
                self._process(event.object)
                self.retry_ctx.record_success()
        finally:
            close = getattr(events, "close", None)
            if close is not None:
                close()

        # Stream exhausted without error: reopen like any failure
        self.retry_ctx.record_failure(None)
        logger.info(f"[{self.name}] Watcher stopped, restarting...")

    def run_forever(self) -> None:
        while not self.stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                # The loop must outlive any single subscription
                self._record_failure(f"{type(e).__name__}: {e}", e)
                logger.exception(f"[{self.name}] Unexpected error in watch loop: {e}")

            if self.stop_event.is_set():
                break
            if not self.strategy.should_retry(self.retry_ctx):
                logger.error(
                    f"[{self.name}] Giving up after {self.retry_ctx.attempt} consecutive failures"
                    f" (last error: {self.retry_ctx.last_error})"
                )
                break

            delay = self.strategy.get_delay(self.retry_ctx)
            self.strategy.on_retry(self.retry_ctx, delay)
            self._sleep(delay)

    def _stream_failed(self, error: BaseException) -> None:
        self._record_failure(f"{type(error).__name__}: {error}", error)
        log_and_continue(error, f"{self.name} stream", logger)

    def _record_failure(self, message: str, error: Optional[BaseException] = None) -> None:
        self._last_error = message
        self.retry_ctx.record_failure(error)

    def get_status(self) -> dict[str, Any]:
        status = super().get_status()
        status.update(
            {
                "subscriptions": self._subscriptions,
                "consecutive_failures": self.retry_ctx.attempt,
                "total_failures": self.retry_ctx.total_failures,
                "backoff_seconds": self.strategy.get_delay(self.retry_ctx),
                "total_backoff_seconds": self.retry_ctx.total_delay,
            }
        )
        return status
