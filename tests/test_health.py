"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with in-memory SQLite connections to verify
liveness and readiness probes without external dependencies.
"""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from ratecard.health import register_health_routes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_app(services: dict | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


def _advisory(enabled: bool) -> MagicMock:
    advisory = MagicMock()
    advisory.enabled = enabled
    return advisory


# ---------------------------------------------------------------------------
# /health (liveness)
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        client = TestClient(_make_app())

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# /ready (readiness)
# ---------------------------------------------------------------------------

class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_returns_200_when_database_ok(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        app = _make_app({"db_conn": conn, "advisory_client": _advisory(True)})
        client = TestClient(app)

        response = client.get("/ready")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ready"
        assert body["checks"] == {"database": "ok", "advisory": "ok"}

        conn.close()

    def test_disabled_advisory_does_not_gate_readiness(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        app = _make_app({"db_conn": conn, "advisory_client": _advisory(False)})

        response = TestClient(app).get("/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["advisory"] == "disabled"
        conn.close()

    def test_ready_returns_503_when_db_missing(self) -> None:
        app = _make_app({"db_conn": None})

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["database"] == "fail"

    def test_ready_returns_503_when_db_closed(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        conn.close()
        app = _make_app({"db_conn": conn})

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] == "fail"
