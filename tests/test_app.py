"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import inspect
import sqlite3
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import SecretStr

from ratecard.app import configure_logging, create_app, initialize_services
from ratecard.config import Settings
from ratecard.service import RateCardService
from ratecard.store.schema import close_ratecard_db


def _reset_structlog() -> None:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()


def _base_settings(tmp_path: Path, **overrides) -> Settings:
    """Build a Settings instance pointing the database to tmp_path.

    By default the advisory key is empty so no external client is created.
    Pass keyword overrides to customise.
    """
    defaults = {
        "_env_file": None,
        "database_path": tmp_path / "ratecards.db",
        "anthropic_api_key": SecretStr(""),
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


def _shutdown(services: dict) -> None:
    services["advisory_executor"].shutdown(wait=False)
    services["view_executor"].shutdown(wait=False)
    close_ratecard_db(services["db_conn"])


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)

    def test_production_mode_uses_json_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)

    def test_sentry_processor_added_when_enabled(self) -> None:
        from structlog_sentry import SentryProcessor

        _reset_structlog()
        configure_logging(production=True, sentry_enabled=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, SentryProcessor) for p in processors)

    def test_service_name_bound(self) -> None:
        _reset_structlog()
        configure_logging()
        assert structlog.contextvars.get_contextvars()["service"] == "ratecard-engine"


class TestInitializeServices:
    """Tests for service initialization."""

    def test_creates_database_file(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        settings = _base_settings(tmp_path, database_path=tmp_path / "nested" / "cards.db")

        services = initialize_services(settings)

        assert (tmp_path / "nested" / "cards.db").exists()
        assert isinstance(services["ratecard_service"], RateCardService)
        _shutdown(services)

    def test_advisory_disabled_without_key(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)

        services = initialize_services(_base_settings(tmp_path))

        assert services["advisory_client"].enabled is False
        _shutdown(services)

    def test_anthropic_client_initialized_with_api_key(self, tmp_path: Path) -> None:
        """Anthropic client is created when anthropic_api_key is set."""
        _reset_structlog()
        configure_logging(production=False)
        settings = _base_settings(tmp_path, anthropic_api_key=SecretStr("test-key"))

        mock_client = MagicMock()
        with patch("ratecard.app.get_anthropic_client", return_value=mock_client) as factory:
            services = initialize_services(settings)

        factory.assert_called_once_with("test-key", settings.advisory_timeout_seconds)
        assert services["advisory_client"].enabled is True
        _shutdown(services)


class TestCreateApp:
    """Tests for FastAPI app creation."""

    def test_returns_fastapi_instance(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        assert isinstance(app, FastAPI)
        assert app.router.lifespan_context is not None
        assert isinstance(app.state.settings, Settings)
        _shutdown(services)

    def test_no_deprecated_on_event(self) -> None:
        """Verify deprecated on_event pattern is not used in create_app."""
        assert "on_event" not in inspect.getsource(create_app)

    def test_routes_registered(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        route_paths = {route.path for route in app.routes}
        for path in (
            "/rate-cards",
            "/rate-cards/{catalog_id}",
            "/rate-cards/{catalog_id}/history/{history_id}/restore",
            "/card/{public_id}",
            "/health",
            "/ready",
            "/metrics",
        ):
            assert path in route_paths
        _shutdown(services)

    def test_lifespan_closes_database(self, tmp_path: Path) -> None:
        services = initialize_services(_base_settings(tmp_path))
        app = create_app(services)

        with TestClient(app) as client:
            assert client.get("/ready").status_code == 200

        with pytest.raises(sqlite3.ProgrammingError):
            services["db_conn"].execute("SELECT 1")


class TestMainImport:
    """Test that main() can be imported without side effects."""

    def test_main_importable(self) -> None:
        from ratecard.app import main, run

        assert callable(main)
        assert callable(run)
