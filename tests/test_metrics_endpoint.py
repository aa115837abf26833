"""Smoke tests for the HTTP surface: /metrics, /health and the status page."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry
from prometheus_client.parser import text_string_to_metric_families

from deployment_exporter import main as main_module
from deployment_exporter.config.exporter_config import ExporterConfig
from deployment_exporter.main import ExporterService, create_app, main
from deployment_exporter.utils.exceptions import KubeConfigError
from tests.conftest import make_deployment


def sample_values(text: str, name: str) -> list:
    """(labels, value) pairs for `name` parsed from exposition text."""
    return [
        (sample.labels, sample.value)
        for family in text_string_to_metric_families(text)
        for sample in family.samples
        if sample.name == name
    ]


@pytest.fixture
def service(mock_client) -> ExporterService:
    config = ExporterConfig(namespace="prod")
    return ExporterService(config, mock_client, registry=CollectorRegistry())


@pytest.fixture
def http(service) -> TestClient:
    return TestClient(create_app(service, start_feeders=False))


def test_health_returns_ok(http) -> None:
    response = http.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"


def test_metrics_endpoint_exposes_deployment_metrics(service, http) -> None:
    """Observations made by the tracker show up in the scrape output."""
    service.tracker.process(make_deployment(ready=0, unavailable=3))

    response = http.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert sample_values(body, "k8s_deployment_status") == [
        ({"namespace": "prod", "deployment": "api"}, 0.0)
    ]
    assert "k8s_deployment_downtime_start_timestamp_seconds" in body
    assert "k8s_deployment_restart_total" in body


def test_status_page(service, http) -> None:
    service.tracker.process(make_deployment(ready=0, unavailable=3))

    data = http.get("/").json()

    assert data["service"] == "Deployment Exporter"
    assert data["scope"] == "prod"
    assert data["deployments_down"] == 1
    assert data["metrics_api_available"] is True
    assert [f["name"] for f in data["feeders"]] == ["WatchFeeder", "PollFeeder"]


def test_lifespan_starts_and_stops_feeders(service, mock_client) -> None:
    mock_client.watch_deployments.side_effect = lambda ns: iter([])

    with TestClient(create_app(service)) as http:
        assert http.get("/health").status_code == 200
        assert service.watch_feeder.is_running
        assert service.poll_feeder.is_running

    assert service.stop_event.is_set()
    assert not service.poll_feeder.is_running


def test_main_exits_nonzero_without_kube_config(monkeypatch) -> None:
    monkeypatch.delenv("DEPLOYMENT_EXPORTER_METRICS_ADDR", raising=False)
    with patch.object(
        main_module.KubernetesOrchestratorClient,
        "from_config",
        side_effect=KubeConfigError("no config"),
    ):
        assert main(["--namespace", "prod"]) == 1


def test_main_serves_on_configured_address() -> None:
    with patch.object(
        main_module.KubernetesOrchestratorClient, "from_config", return_value=MagicMock()
    ), patch("uvicorn.run") as run:
        assert main(["--metrics-addr", "127.0.0.1:9555"]) == 0

    _, kwargs = run.call_args
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9555


def test_main_rejects_bad_metrics_addr_as_usage_error(capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--metrics-addr", "9101"])

    assert exc_info.value.code == 2
    assert "metrics" in capsys.readouterr().err
