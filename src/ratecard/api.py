"""HTTP surface for the rate card service.

A thin FastAPI router: every route resolves the caller identity from the
headers set by the upstream auth service, delegates to ``RateCardService``
and serializes the result.  Domain errors are mapped to
``{"error": {"code", "message", "details"}}`` bodies by
``register_error_handlers``.

Routes are plain ``def`` functions: the service does blocking sqlite and
advisory I/O, so FastAPI runs them in its worker threadpool.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ratecard.domain.errors import RateCardError, ValidationFailedError
from ratecard.domain.models import Catalog, CatalogPage, Identity, ViewContext
from ratecard.domain.types import SubscriptionTier
from ratecard.service import RateCardService

logger = structlog.get_logger()

router = APIRouter()

# Owner-only secrets that never leave the service, even to the owner
_CATALOG_EXCLUDE: dict[str, Any] = {"sharing": {"password_hash"}}


def get_service(request: Request) -> RateCardService:
    return request.app.state.services["ratecard_service"]


def resolve_identity(owner_id: str | None, subscription_tier: str | None) -> Identity:
    """Build the caller identity from the auth headers.

    Raises:
        HTTPException: 401 when either header is missing.
        ValidationFailedError: When the tier is not a known subscription tier.
    """
    if not owner_id or not subscription_tier:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    try:
        tier = SubscriptionTier(subscription_tier.strip().lower())
    except ValueError:
        raise ValidationFailedError.for_field(
            "subscription_tier", subscription_tier, "unknown subscription tier"
        ) from None
    return Identity(owner_id=owner_id, subscription_tier=tier)


def serialize_catalog(catalog: Catalog) -> dict[str, Any]:
    return catalog.model_dump(mode="json", exclude=_CATALOG_EXCLUDE)


def serialize_page(page: CatalogPage) -> dict[str, Any]:
    return page.model_dump(mode="json", exclude={"catalogs": {"__all__": _CATALOG_EXCLUDE}})


def register_error_handlers(app: FastAPI) -> None:
    """Map every ``RateCardError`` to its JSON error body and status code."""

    @app.exception_handler(RateCardError)
    async def handle_rate_card_error(request: Request, exc: RateCardError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, code=exc.code)
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.to_dict()},
            headers=headers,
        )


# ---------------------------------------------------------------------------
# Owner routes
# ---------------------------------------------------------------------------


@router.post("/rate-cards", status_code=201)
def create_rate_card(
    request: Request,
    body: dict[str, Any] = Body(...),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    """Price and store a new rate card from the creator's metrics."""
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).create_catalog(
        identity,
        body.get("metrics") or {},
        title=body.get("title"),
        description=body.get("description"),
    )
    return serialize_catalog(catalog)


@router.get("/rate-cards")
def list_rate_cards(
    request: Request,
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=50),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    result = get_service(request).list_catalogs(identity, status=status, page=page, limit=limit)
    return serialize_page(result)


@router.get("/rate-cards/{catalog_id}")
def get_rate_card(
    request: Request,
    catalog_id: str,
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    service = get_service(request)
    catalog = service.get_catalog(identity, catalog_id)
    data = serialize_catalog(catalog)
    data["effective_status"] = str(service.catalog_status(identity, catalog_id))
    return data


@router.put("/rate-cards/{catalog_id}/metrics")
def update_metrics(
    request: Request,
    catalog_id: str,
    body: dict[str, Any] = Body(...),
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    """Replace the creator metrics; ``reset_prices`` discards chosen prices."""
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).update_metrics(
        identity,
        catalog_id,
        body.get("metrics") or {},
        expected_version=expected_version,
        reset_prices=bool(body.get("reset_prices", False)),
    )
    return serialize_catalog(catalog)


@router.put("/rate-cards/{catalog_id}/rates")
def update_rates(
    request: Request,
    catalog_id: str,
    body: dict[str, Any] = Body(...),
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    rates = body.get("rates")
    if not isinstance(rates, list):
        raise ValidationFailedError.for_field("rates", rates, "rates must be a list")
    catalog = get_service(request).update_rates(
        identity, catalog_id, rates, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.post("/rate-cards/{catalog_id}/packages", status_code=201)
def create_package(
    request: Request,
    catalog_id: str,
    body: dict[str, Any] = Body(...),
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).create_package(
        identity, catalog_id, body, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.put("/rate-cards/{catalog_id}/packages/{package_id}")
def update_package(
    request: Request,
    catalog_id: str,
    package_id: str,
    body: dict[str, Any] = Body(...),
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).update_package(
        identity, catalog_id, package_id, body, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.delete("/rate-cards/{catalog_id}/packages/{package_id}")
def delete_package(
    request: Request,
    catalog_id: str,
    package_id: str,
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).delete_package(
        identity, catalog_id, package_id, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.put("/rate-cards/{catalog_id}/terms")
def update_terms(
    request: Request,
    catalog_id: str,
    body: dict[str, Any] = Body(...),
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).update_terms(
        identity, catalog_id, body, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.post("/rate-cards/{catalog_id}/publish")
def publish(
    request: Request,
    catalog_id: str,
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).publish(
        identity, catalog_id, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.put("/rate-cards/{catalog_id}/sharing")
def update_share_settings(
    request: Request,
    catalog_id: str,
    body: dict[str, Any] = Body(...),
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).update_share_settings(
        identity, catalog_id, body, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.get("/rate-cards/{catalog_id}/history")
def get_history(
    request: Request,
    catalog_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    result = get_service(request).get_history(identity, catalog_id, page=page, limit=limit)
    return result.model_dump(mode="json")


@router.post("/rate-cards/{catalog_id}/history/{history_id}/restore")
def restore(
    request: Request,
    catalog_id: str,
    history_id: str,
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, Any]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    catalog = get_service(request).restore(
        identity, catalog_id, history_id, expected_version=expected_version
    )
    return serialize_catalog(catalog)


@router.delete("/rate-cards/{catalog_id}")
def delete_rate_card(
    request: Request,
    catalog_id: str,
    expected_version: int | None = Query(default=None, ge=1),
    x_owner_id: str | None = Header(default=None),
    x_subscription_tier: str | None = Header(default=None),
) -> dict[str, str]:
    identity = resolve_identity(x_owner_id, x_subscription_tier)
    get_service(request).delete_catalog(identity, catalog_id, expected_version=expected_version)
    return {"status": "deleted", "id": catalog_id}


# ---------------------------------------------------------------------------
# Public route
# ---------------------------------------------------------------------------


@router.get("/card/{public_id}")
def get_public_rate_card(
    request: Request,
    public_id: str,
    password: str | None = Query(default=None),
    x_ratecard_password: str | None = Header(default=None),
    user_agent: str | None = Header(default=None),
    referer: str | None = Header(default=None),
) -> dict[str, Any]:
    """Public, unauthenticated view of a published rate card."""
    view = ViewContext(
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent,
        referrer=referer,
    )
    return get_service(request).get_public_catalog(
        public_id, password=x_ratecard_password or password, view=view
    )
