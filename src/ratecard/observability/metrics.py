"""Prometheus metrics instrumentation for the rate card engine.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the business
  counters below.
- ``PRICING_REQUESTS``: Counter of pricing runs by source (advisory, fallback).
- ``MUTATIONS_COMMITTED``: Counter of committed catalog mutations by change type.
- ``VERSION_CONFLICTS``: Counter of commits rejected by compare-and-swap.
- ``QUOTA_REJECTIONS``: Counter of catalog creations refused by the tier quota.
- ``PUBLIC_VIEWS``: Counter of recorded public rate card views.

Counters are updated where the event happens, never by polling the database.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

PRICING_REQUESTS: Counter = Counter(
    "ratecard_pricing_requests_total",
    "Number of pricing runs, labelled by where the prices came from",
    ["source"],
)

MUTATIONS_COMMITTED: Counter = Counter(
    "ratecard_mutations_committed_total",
    "Number of committed rate card mutations",
    ["change_type"],
)

VERSION_CONFLICTS: Counter = Counter(
    "ratecard_version_conflicts_total",
    "Number of commits rejected because the stored version had advanced",
)

QUOTA_REJECTIONS: Counter = Counter(
    "ratecard_quota_rejections_total",
    "Number of rate card creations refused by the subscription tier limit",
    ["tier"],
)

PUBLIC_VIEWS: Counter = Counter(
    "ratecard_public_views_total",
    "Number of recorded views of public rate cards",
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
