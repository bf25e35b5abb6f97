"""Application entry point for the rate card pricing and versioning service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding through structlog-sentry (when a DSN is set)
- **SQLite** catalog store, cache coordinator and version store
- **Advisory client** on the Anthropic API (when an API key is set), with
  local market-model pricing as the fallback
- **FastAPI** router, request-context middleware, ``/metrics``, ``/health``
  and ``/ready``
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from ratecard.advisory.client import AdvisoryClient, get_anthropic_client
from ratecard.api import register_error_handlers, router
from ratecard.cache.backend import MemoryCache
from ratecard.cache.coordinator import CacheCoordinator
from ratecard.config import Settings, get_settings, validate_credentials
from ratecard.health import register_health_routes
from ratecard.observability.metrics import setup_metrics
from ratecard.observability.middleware import SERVICE_NAME, RequestContextMiddleware
from ratecard.observability.sentry import get_sentry_processor, init_sentry
from ratecard.pricing.engine import PricingEngine
from ratecard.service import RateCardService
from ratecard.store.repository import CatalogRepository
from ratecard.store.schema import close_ratecard_db, init_ratecard_db
from ratecard.versioning.store import VersionStore

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Creates the SQLite catalog store, the cache coordinator, the advisory
    client (if an API key is available), the pricing engine, the version
    store and the ``RateCardService`` facade.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. SQLite catalog store
    db_conn = init_ratecard_db(settings.database_path)
    services["db_conn"] = db_conn
    repository = CatalogRepository(db_conn)
    services["repository"] = repository

    # b. Cache coordinator over the in-process backend
    cache = CacheCoordinator(
        MemoryCache(),
        advisory_ttl=settings.advisory_cache_ttl_seconds,
        catalog_ttl=settings.catalog_cache_ttl_seconds,
        list_ttl=settings.list_cache_ttl_seconds,
        public_ttl=settings.public_cache_ttl_seconds,
    )
    services["cache"] = cache

    # c. Advisory client (if anthropic_api_key is set)
    anthropic_client = None
    api_key = settings.anthropic_api_key.get_secret_value()
    if api_key:
        anthropic_client = get_anthropic_client(api_key, settings.advisory_timeout_seconds)
        logger.info("anthropic_client_initialized", model=settings.advisory_model)
    else:
        logger.info("advisory_disabled", reason="ANTHROPIC_API_KEY not set")
    advisory_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="advisory")
    services["advisory_executor"] = advisory_executor
    advisory_client = AdvisoryClient(
        anthropic_client,
        model=settings.advisory_model,
        timeout_seconds=settings.advisory_timeout_seconds,
        max_tokens=settings.advisory_max_tokens,
        executor=advisory_executor,
    )
    services["advisory_client"] = advisory_client

    # d. Pricing engine, version store and service facade
    pricing = PricingEngine(
        advisory_client, cache, seasonal_pricing=settings.apply_seasonal_pricing
    )
    versions = VersionStore(repository, cache)
    view_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="view-tracking")
    services["view_executor"] = view_executor
    services["ratecard_service"] = RateCardService(
        repository=repository,
        versions=versions,
        pricing=pricing,
        cache=cache,
        base_url=settings.base_url,
        public_expiry_days=settings.public_expiry_days,
        view_executor=view_executor,
    )

    logger.info(
        "services_initialized",
        database=str(settings.database_path),
        advisory_enabled=advisory_client.enabled,
        seasonal_pricing=settings.apply_seasonal_pricing,
    )
    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: drains the background executors and closes the database.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    logger.info("ratecard_service_starting")
    yield
    for name in ("view_executor", "advisory_executor"):
        executor = services.get(name)
        if executor is not None:
            executor.shutdown(wait=True)
    db_conn = services.get("db_conn")
    if db_conn is not None:
        close_ratecard_db(db_conn)
        logger.info("database_connection_closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, router, metrics and health routes.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Rate Card Engine", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestContextMiddleware)
    register_error_handlers(fastapi_app)
    fastapi_app.include_router(router)
    setup_metrics(fastapi_app)
    register_health_routes(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Load settings, initialize services and serve the API until stopped."""
    settings = get_settings()
    init_sentry(settings.sentry_dsn, "production" if settings.production else "development")
    configure_logging(production=settings.production, sentry_enabled=bool(settings.sentry_dsn))
    validate_credentials(settings)

    services = initialize_services(settings)
    app = create_app(services)

    config = uvicorn.Config(app, host="0.0.0.0", port=settings.port, log_level="info")
    server = uvicorn.Server(config)
    logger.info("ratecard_service_listening", port=settings.port)
    await server.serve()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
