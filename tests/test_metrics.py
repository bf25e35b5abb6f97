"""Tests for Prometheus metrics endpoint and custom business metrics."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratecard.observability.metrics import (
    PRICING_REQUESTS,
    VERSION_CONFLICTS,
    setup_metrics,
)


@pytest.fixture()
def metrics_app() -> FastAPI:
    """Create a minimal FastAPI app with Prometheus instrumentation."""
    app = FastAPI()

    @app.get("/hello")
    async def hello():
        return {"msg": "hello"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready():
        return {"status": "ready"}

    setup_metrics(app)
    return app


@pytest.fixture()
def metrics_client(metrics_app: FastAPI) -> TestClient:
    """TestClient for the metrics-enabled app."""
    return TestClient(metrics_app)


def test_metrics_endpoint_returns_prometheus_format(metrics_client: TestClient) -> None:
    """GET /metrics returns 200 with Prometheus-format text containing expected metrics."""
    metrics_client.get("/hello")
    resp = metrics_client.get("/metrics")
    assert resp.status_code == 200
    body = resp.text
    assert "http_request" in body
    assert "ratecard_version_conflicts_total" in body
    assert "ratecard_public_views_total" in body


def test_excluded_handlers_not_in_metrics(metrics_client: TestClient) -> None:
    """/health and /ready do NOT appear in metrics output (excluded_handlers works)."""
    metrics_client.get("/health")
    metrics_client.get("/ready")
    body = metrics_client.get("/metrics").text
    lines = [
        line
        for line in body.splitlines()
        if "http_request_duration" in line and 'handler="' in line
    ]
    for line in lines:
        assert '/health"' not in line, f"/health found in metrics: {line}"
        assert '/ready"' not in line, f"/ready found in metrics: {line}"


def test_version_conflicts_counter_increments(metrics_client: TestClient) -> None:
    """VERSION_CONFLICTS increments are reflected in /metrics output."""
    initial = _extract_counter_value(
        metrics_client.get("/metrics").text, "ratecard_version_conflicts_total"
    )

    VERSION_CONFLICTS.inc()

    new_value = _extract_counter_value(
        metrics_client.get("/metrics").text, "ratecard_version_conflicts_total"
    )
    assert new_value == initial + 1.0


def test_pricing_requests_labelled_by_source(
    metrics_client: TestClient, service, owner, sample_metrics
) -> None:
    """Creating a catalog without an advisory client counts a fallback pricing run."""
    metric = 'ratecard_pricing_requests_total{source="fallback"}'
    PRICING_REQUESTS.labels(source="fallback")
    before = _extract_counter_value(metrics_client.get("/metrics").text, metric)

    service.create_catalog(owner, sample_metrics)

    after = _extract_counter_value(metrics_client.get("/metrics").text, metric)
    assert after == before + 1.0


def _extract_counter_value(text: str, metric_name: str) -> float:
    """Extract the numeric value of a counter from Prometheus text output."""
    for line in text.splitlines():
        if line.startswith(metric_name) and not line.startswith(metric_name + "_"):
            parts = line.rsplit(" ", 1)
            if len(parts) == 2 and parts[0] == metric_name:
                return float(parts[1])
    raise ValueError(f"Metric {metric_name} not found in output")
