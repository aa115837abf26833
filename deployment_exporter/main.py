"""
Deployment Exporter - FastAPI Application
Exposes Deployment availability metrics for Prometheus scraping
"""

from __future__ import annotations

import logging
import sys
import threading
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry
from pydantic import BaseModel

from deployment_exporter import __version__
from deployment_exporter.availability.state_store import AvailabilityStateStore
from deployment_exporter.availability.tracker import DeploymentTracker
from deployment_exporter.config.exporter_config import ExporterConfig
from deployment_exporter.feeders.poll_feeder import PollFeeder
from deployment_exporter.feeders.retry import FixedBackoffStrategy
from deployment_exporter.feeders.watch_feeder import WatchFeeder
from deployment_exporter.kube.client import KubernetesOrchestratorClient, OrchestratorClient
from deployment_exporter.metrics import PrometheusMetricSink
from deployment_exporter.utils.exceptions import ExporterError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class StatusResponse(BaseModel):
    """Response model for the service status endpoint"""
    service: str
    version: str
    scope: str
    deployments_down: int
    metrics_api_available: bool
    feeders: List[Dict[str, Any]]


class ExporterService:
    """Wires the store, tracker, sink and both feeders for one process."""

    def __init__(
        self,
        config: ExporterConfig,
        client: OrchestratorClient,
        registry: Optional[CollectorRegistry] = None,
    ) -> None:
        self.config = config
        self.client = client
        self.sink = PrometheusMetricSink(registry)
        self.store = AvailabilityStateStore()
        self.tracker = DeploymentTracker(client, self.sink, self.store)
        self.stop_event = threading.Event()
        self.watch_feeder = WatchFeeder(
            client,
            self.tracker,
            namespace=config.namespace,
            strategy=FixedBackoffStrategy(config.watch_backoff_seconds),
            stop_event=self.stop_event,
        )
        self.poll_feeder = PollFeeder(
            client,
            self.tracker,
            namespace=config.namespace,
            interval=config.poll_interval_seconds,
            stop_event=self.stop_event,
        )

    def start(self) -> None:
        self.watch_feeder.start()
        self.poll_feeder.start()

    def stop(self) -> None:
        self.stop_event.set()
        self.watch_feeder.stop(timeout=1.0)
        self.poll_feeder.stop(timeout=1.0)

    def status(self) -> StatusResponse:
        return StatusResponse(
            service="Deployment Exporter",
            version=__version__,
            scope=self.config.scope_label,
            deployments_down=len(self.store),
            metrics_api_available=self.tracker.metrics_api_available,
            feeders=[self.watch_feeder.get_status(), self.poll_feeder.get_status()],
        )


def create_app(service: ExporterService, start_feeders: bool = True) -> FastAPI:
    """Build the HTTP surface around a service.

    Feeders start with the application and stop on shutdown unless
    `start_feeders` is False.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_feeders:
            service.start()
        try:
            yield
        finally:
            if start_feeders:
                service.stop()

    app = FastAPI(
        title="Deployment Exporter",
        description="Kubernetes Deployment availability and recovery metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    @app.get("/", response_model=StatusResponse)
    async def root():
        """Service and feeder status"""
        return service.status()

    @app.get("/metrics")
    async def metrics():
        """Prometheus text exposition"""
        return Response(content=service.sink.render(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", response_class=PlainTextResponse)
    async def health_check():
        """Liveness check for container orchestration"""
        return "OK"

    return app


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = ExporterConfig.from_args(argv)

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    try:
        client = KubernetesOrchestratorClient.from_config(
            config.kubeconfig,
            request_timeout=config.request_timeout_seconds,
            watch_timeout=config.watch_timeout_seconds,
        )
    except ExporterError as e:
        logger.error(f"Error creating kubernetes client: {e}")
        return 1

    service = ExporterService(config, client)
    app = create_app(service)

    logger.info(
        f"Starting Deployment Exporter on {config.metrics_host}:{config.metrics_port}"
    )
    logger.info(f"Monitoring namespace: {config.scope_label}")

    import uvicorn
    uvicorn.run(app, host=config.metrics_host, port=config.metrics_port, log_level="warning")
    return 0


if __name__ == "__main__":
    sys.exit(main())
