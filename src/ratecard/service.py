"""RateCardService: the operations exposed to collaborators.

Each mutating operation follows the same shape:

1. read the caller's catalog and the version it is at,
2. do any slow work (pricing, which may call the advisory service) with no
   lock held,
3. commit through the VersionStore, which fails with a version conflict if
   another editor committed in between.

Every operation returns the committed Catalog or raises a ``RateCardError``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from ratecard.cache.coordinator import CacheCoordinator
from ratecard.domain.errors import (
    AlreadyPublishedError,
    CatalogExpiredError,
    CatalogNotFoundError,
    IncompleteCatalogError,
    PasswordRequiredError,
    RateCardError,
    ValidationFailedError,
)
from ratecard.domain.models import (
    AdvisoryMetadata,
    Catalog,
    CatalogPage,
    CreatorMetrics,
    HistoryPage,
    Identity,
    PackageInput,
    PackageUpdate,
    ProfessionalTerms,
    RateInput,
    ShareSettingsUpdate,
    ViewContext,
)
from ratecard.domain.types import CatalogStatus, ChangeType, PaymentTerms
from ratecard.observability.metrics import PRICING_REQUESTS, PUBLIC_VIEWS
from ratecard.pricing.engine import PricingEngine, PricingOutcome, acceptance_rate
from ratecard.pricing.packages import build_package, remove_package, revise_package
from ratecard.quota import authorize
from ratecard.sharing import (
    generate_public_id,
    hash_password,
    public_projection,
    public_url,
    record_view,
    verify_password,
)
from ratecard.store.repository import CatalogRepository
from ratecard.versioning.store import Clock, VersionStore, utc_now
from ratecard.versioning.transitions import CatalogEvent, effective_status

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 50
PUBLIC_ID_ATTEMPTS = 10


def parse_input(model: type[M], data: M | Mapping[str, Any], prefix: str = "") -> M:
    """Validate caller input into *model*, raising the domain error on failure.

    Raises:
        ValidationFailedError: With one entry per offending field, paths
            prefixed by *prefix*.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailedError.from_validation_error(exc, prefix) from exc


class RateCardService:
    """Catalog lifecycle operations for authenticated owners.

    Args:
        repository: Catalog persistence.
        versions: Versioned mutation store over the same repository.
        pricing: Pricing engine (advisory + local market model).
        cache: Cache coordinator, or None to disable read caching.
        clock: Source of the current time.
        base_url: Public base URL used to build share links.
        public_expiry_days: Days a published catalog stays publicly visible.
        view_executor: Executor running fire-and-forget view tracking.
    """

    def __init__(
        self,
        *,
        repository: CatalogRepository,
        versions: VersionStore,
        pricing: PricingEngine,
        cache: CacheCoordinator | None = None,
        clock: Clock = utc_now,
        base_url: str = "http://localhost:8000",
        public_expiry_days: int = 180,
        view_executor: Executor | None = None,
    ) -> None:
        self._repo = repository
        self._versions = versions
        self._pricing = pricing
        self._cache = cache
        self._clock = clock
        self._base_url = base_url
        self._public_expiry = timedelta(days=public_expiry_days)
        self._view_executor = view_executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="view-tracking"
        )

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    def create_catalog(
        self,
        identity: Identity,
        metrics: CreatorMetrics | Mapping[str, Any],
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Catalog:
        """Price a new catalog for *metrics* and store it at version 1.

        Raises:
            ValidationFailedError: If the metrics are malformed.
            QuotaExceededError: If the owner's tier limit is reached.
        """
        metrics = parse_input(CreatorMetrics, metrics, "metrics")
        authorize(identity.subscription_tier, self._repo.count_active(identity.owner_id))

        now = self._clock()
        outcome = self._price(metrics, now)
        fields: dict[str, Any] = {
            "owner_id": identity.owner_id,
            "subscription_tier": identity.subscription_tier,
            "metrics": metrics,
            "rates": outcome.rates,
            "packages": outcome.packages,
            "advisory": self._advisory_metadata(outcome, now, outcome.rates),
            "last_edited_by": identity.owner_id,
            "created_at": now,
            "updated_at": now,
        }
        if title is not None:
            fields["title"] = title
        if description is not None:
            fields["description"] = description
        try:
            catalog = Catalog(**fields)
        except ValidationError as exc:
            raise ValidationFailedError.from_validation_error(exc) from exc
        return self._versions.create(catalog)

    def get_catalog(self, identity: Identity, catalog_id: str) -> Catalog:
        """Return one of the caller's catalogs, served from cache when fresh.

        Raises:
            CatalogNotFoundError: If missing, deleted, or owned by someone else.
        """
        catalog = self._cache.get_catalog(catalog_id) if self._cache is not None else None
        if catalog is None:
            token = self._cache.catalog_token(catalog_id) if self._cache is not None else 0
            catalog = self._versions.load(catalog_id)
            if self._cache is not None:
                self._cache.put_catalog(catalog, token)
        if catalog.owner_id != identity.owner_id:
            raise CatalogNotFoundError(catalog_id)
        return catalog

    def list_catalogs(
        self,
        identity: Identity,
        *,
        status: CatalogStatus | str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> CatalogPage:
        """List the caller's catalogs, optionally filtered by stored status."""
        try:
            status_filter = CatalogStatus(status) if status is not None else None
        except ValueError:
            raise ValidationFailedError.for_field(
                "status", status, "unknown rate card status"
            ) from None
        if status_filter is CatalogStatus.EXPIRED:
            raise ValidationFailedError.for_field(
                "status", status, "expired is derived and cannot be filtered on"
            )

        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_LIMIT)
        partition = str(status_filter) if status_filter is not None else "all"
        if self._cache is not None:
            cached = self._cache.get_list(identity.owner_id, partition, page, limit)
            if cached is not None:
                return cached
        token = self._cache.list_token(identity.owner_id) if self._cache is not None else 0

        catalogs, total = self._repo.list_for_owner(
            identity.owner_id, status=status_filter, offset=(page - 1) * limit, limit=limit
        )
        result = CatalogPage(
            catalogs=catalogs,
            total=total,
            page=page,
            pages=-(-total // limit),
            limit=limit,
        )
        if self._cache is not None:
            self._cache.put_list(identity.owner_id, partition, page, limit, result, token)
        return result

    def get_history(
        self, identity: Identity, catalog_id: str, page: int = 1, limit: int = 20
    ) -> HistoryPage:
        self._owned(identity, catalog_id)
        return self._versions.history(catalog_id, page, limit)

    # ------------------------------------------------------------------
    # Versioned mutations
    # ------------------------------------------------------------------

    def update_metrics(
        self,
        identity: Identity,
        catalog_id: str,
        metrics: CreatorMetrics | Mapping[str, Any],
        *,
        expected_version: int | None = None,
        reset_prices: bool = False,
    ) -> Catalog:
        """Replace the creator metrics wholesale and re-price.

        Existing chosen prices are kept unless *reset_prices* is set.
        Packages are not touched.
        """
        metrics = parse_input(CreatorMetrics, metrics, "metrics")
        current = self._owned(identity, catalog_id)
        now = self._clock()
        outcome = self._pricing.reprice(
            metrics, current.rates, month=now.month, reset_prices=reset_prices
        )
        PRICING_REQUESTS.labels(source=outcome.source).inc()

        def apply(catalog: Catalog) -> Catalog:
            return catalog.model_copy(
                update={
                    "metrics": metrics,
                    "rates": outcome.rates,
                    "advisory": self._advisory_metadata(outcome, now, outcome.rates),
                }
            )

        return self._versions.commit(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            change_type=ChangeType.METRICS_UPDATE,
            mutate=apply,
            summary="Updated creator metrics",
            editor=identity.owner_id,
        )

    def update_rates(
        self,
        identity: Identity,
        catalog_id: str,
        rates: Sequence[RateInput | Mapping[str, Any]],
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        """Replace the catalog's rates with caller-chosen prices.

        Existing packages keep their stored ``individual_total``.

        Raises:
            ValidationFailedError: For malformed or duplicate rates, with
                paths such as ``rates.2.chosen_price``.
        """
        inputs = [parse_input(RateInput, rate, f"rates.{i}") for i, rate in enumerate(rates)]
        seen: set[tuple[str, str]] = set()
        for i, rate in enumerate(inputs):
            key = (rate.platform, rate.deliverable_type)
            if key in seen:
                raise ValidationFailedError.for_field(
                    f"rates.{i}", f"{key[0]}:{key[1]}", "deliverable is priced more than once"
                )
            seen.add(key)

        current = self._owned(identity, catalog_id)
        month = self._clock().month

        def apply(catalog: Catalog) -> Catalog:
            new_rates = self._pricing.classify_rates(
                catalog.metrics, inputs, catalog.rates, month
            )
            advisory = catalog.advisory.model_copy(
                update={"acceptance_rate": acceptance_rate(new_rates)}
            )
            return catalog.model_copy(update={"rates": new_rates, "advisory": advisory})

        return self._versions.commit(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            change_type=ChangeType.PRICING_CHANGE,
            mutate=apply,
            summary=f"Updated {len(inputs)} rates",
            editor=identity.owner_id,
        )

    def create_package(
        self,
        identity: Identity,
        catalog_id: str,
        package: PackageInput | Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        """Add a package priced against the catalog's current rates.

        Raises:
            DuplicatePackageError: If the name is already used.
            IncompletePackageError: If no item matches a priced deliverable.
        """
        data = parse_input(PackageInput, package, "package")
        current = self._owned(identity, catalog_id)

        def apply(catalog: Catalog) -> Catalog:
            new_package = build_package(
                catalog,
                data.name,
                data.items,
                data.package_price,
                description=data.description,
                validity_days=data.validity_days,
                is_popular=data.is_popular,
            )
            return catalog.model_copy(update={"packages": [*catalog.packages, new_package]})

        return self._versions.commit(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            change_type=ChangeType.PACKAGE_UPDATE,
            mutate=apply,
            summary=f"Added package '{data.name}'",
            editor=identity.owner_id,
        )

    def update_package(
        self,
        identity: Identity,
        catalog_id: str,
        package_id: str,
        update: PackageUpdate | Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        """Edit a package; supplying items recomputes its individual total."""
        data = parse_input(PackageUpdate, update, "package")
        current = self._owned(identity, catalog_id)

        def apply(catalog: Catalog) -> Catalog:
            revised = revise_package(catalog, package_id, data)
            packages = [revised if p.id == package_id else p for p in catalog.packages]
            return catalog.model_copy(update={"packages": packages})

        return self._versions.commit(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            change_type=ChangeType.PACKAGE_UPDATE,
            mutate=apply,
            summary="Updated package",
            editor=identity.owner_id,
        )

    def delete_package(
        self,
        identity: Identity,
        catalog_id: str,
        package_id: str,
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        current = self._owned(identity, catalog_id)

        def apply(catalog: Catalog) -> Catalog:
            return catalog.model_copy(update={"packages": remove_package(catalog, package_id)})

        return self._versions.commit(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            change_type=ChangeType.PACKAGE_UPDATE,
            mutate=apply,
            summary="Deleted package",
            editor=identity.owner_id,
        )

    def update_terms(
        self,
        identity: Identity,
        catalog_id: str,
        terms: ProfessionalTerms | Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        """Replace the professional terms (payment, usage rights, policies)."""
        data = parse_input(ProfessionalTerms, terms, "terms")
        if data.payment_terms == PaymentTerms.CUSTOM and not data.custom_terms:
            raise ValidationFailedError.for_field(
                "terms.custom_terms", None, "custom payment terms must be described"
            )
        current = self._owned(identity, catalog_id)

        return self._versions.commit(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            change_type=ChangeType.TERMS_UPDATE,
            mutate=lambda catalog: catalog.model_copy(update={"terms": data}),
            summary="Updated professional terms",
            editor=identity.owner_id,
        )

    def restore(
        self,
        identity: Identity,
        catalog_id: str,
        history_id: str,
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        """Restore metrics, rates, packages and terms from a history entry."""
        current = self._owned(identity, catalog_id)
        return self._versions.restore(
            catalog_id,
            history_id,
            expected_version=self._expected(current, expected_version),
            editor=identity.owner_id,
        )

    # ------------------------------------------------------------------
    # Unversioned mutations
    # ------------------------------------------------------------------

    def publish(
        self, identity: Identity, catalog_id: str, *, expected_version: int | None = None
    ) -> Catalog:
        """Make the catalog public and active.

        Raises:
            IncompleteCatalogError: If the catalog has no rates.
            AlreadyPublishedError: If it is already active and public.
        """
        current = self._owned(identity, catalog_id)
        now = self._clock()

        def apply(catalog: Catalog) -> Catalog:
            if not catalog.rates:
                raise IncompleteCatalogError(catalog.id)
            if catalog.version.status == CatalogStatus.ACTIVE and catalog.sharing.is_public:
                raise AlreadyPublishedError(catalog.id)
            public_id = catalog.sharing.public_id or self._new_public_id()
            sharing = catalog.sharing.model_copy(
                update={
                    "is_public": True,
                    "public_id": public_id,
                    "public_url": public_url(self._base_url, public_id),
                    "expires_at": now + self._public_expiry,
                }
            )
            version = catalog.version.model_copy(update={"published_at": now})
            return catalog.model_copy(update={"sharing": sharing, "version": version})

        committed = self._versions.commit_unversioned(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            mutate=apply,
            editor=identity.owner_id,
            event=CatalogEvent.PUBLISH,
        )
        logger.info(
            "catalog_published", catalog_id=catalog_id, public_id=committed.sharing.public_id
        )
        return committed

    def update_share_settings(
        self,
        identity: Identity,
        catalog_id: str,
        settings: ShareSettingsUpdate | Mapping[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Catalog:
        """Change download, contact-form, password and expiry settings."""
        data = parse_input(ShareSettingsUpdate, settings, "sharing")
        current = self._owned(identity, catalog_id)
        now = self._clock()
        password_hash = hash_password(data.password) if data.password else None

        def apply(catalog: Catalog) -> Catalog:
            sharing = catalog.sharing
            update: dict[str, Any] = {}
            if data.allow_download is not None:
                update["allow_download"] = data.allow_download
            if data.show_contact_form is not None:
                update["show_contact_form"] = data.show_contact_form
            if password_hash is not None:
                update["password_hash"] = password_hash
            if data.require_password is not None:
                update["require_password"] = data.require_password
                if not data.require_password:
                    update["password_hash"] = None
            if update.get("require_password") and not (
                update.get("password_hash") or sharing.password_hash
            ):
                raise ValidationFailedError.for_field(
                    "sharing.password", None, "a password is required to protect the rate card"
                )
            if data.expiry_days is not None:
                update["expires_at"] = now + timedelta(days=data.expiry_days)
            return catalog.model_copy(update={"sharing": sharing.model_copy(update=update)})

        return self._versions.commit_unversioned(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            mutate=apply,
            editor=identity.owner_id,
        )

    def delete_catalog(
        self, identity: Identity, catalog_id: str, *, expected_version: int | None = None
    ) -> Catalog:
        """Soft-delete: archive, unpublish and hide the catalog."""
        current = self._owned(identity, catalog_id)
        now = self._clock()

        def apply(catalog: Catalog) -> Catalog:
            version = catalog.version.model_copy(update={"archived_at": now})
            sharing = catalog.sharing.model_copy(update={"is_public": False})
            return catalog.model_copy(
                update={
                    "is_deleted": True,
                    "deleted_at": now,
                    "version": version,
                    "sharing": sharing,
                }
            )

        committed = self._versions.commit_unversioned(
            catalog_id,
            expected_version=self._expected(current, expected_version),
            mutate=apply,
            editor=identity.owner_id,
            event=CatalogEvent.ARCHIVE,
        )
        logger.info("catalog_deleted", catalog_id=catalog_id, owner_id=identity.owner_id)
        return committed

    # ------------------------------------------------------------------
    # Public projection
    # ------------------------------------------------------------------

    def get_public_catalog(
        self,
        public_id: str,
        *,
        password: str | None = None,
        view: ViewContext | None = None,
    ) -> dict[str, Any]:
        """Return the public projection of a published catalog.

        Expiry and password are enforced on every read, cached or not.  The
        view is recorded in the background; tracking never delays or fails
        the read.

        Raises:
            CatalogNotFoundError: If no public catalog has this identifier.
            CatalogExpiredError: If the catalog's public expiry has passed.
            PasswordRequiredError: If a password is required and not matched.
        """
        public_id = public_id.strip().upper()
        now = self._clock()
        record = self._cache.get_public(public_id) if self._cache is not None else None
        if record is None:
            token = self._cache.public_token(public_id) if self._cache is not None else 0
            catalog = self._repo.get_by_public_id(public_id)
            if catalog is None or not catalog.sharing.is_public:
                raise CatalogNotFoundError(public_id)
            record = {
                "catalog_id": catalog.id,
                "status": catalog.version.status,
                "expires_at": catalog.sharing.expires_at,
                "require_password": catalog.sharing.require_password,
                "password_hash": catalog.sharing.password_hash,
                "projection": public_projection(catalog),
            }
            if self._cache is not None:
                self._cache.put_public(public_id, record, token)

        expires_at = record["expires_at"]
        expired = expires_at is not None and expires_at <= now
        if record["status"] == CatalogStatus.ACTIVE and expired:
            raise CatalogExpiredError(public_id)
        password_hash = record["password_hash"]
        if record["require_password"] and not (
            password and password_hash and verify_password(password, password_hash)
        ):
            raise PasswordRequiredError(public_id)

        self._schedule_view(record["catalog_id"], view or ViewContext(), now)
        return record["projection"]

    def catalog_status(self, identity: Identity, catalog_id: str) -> CatalogStatus:
        """Return the effective status, ``expired`` included."""
        return effective_status(self.get_catalog(identity, catalog_id), self._clock())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _owned(self, identity: Identity, catalog_id: str) -> Catalog:
        catalog = self._versions.load(catalog_id)
        if catalog.owner_id != identity.owner_id:
            raise CatalogNotFoundError(catalog_id)
        return catalog

    @staticmethod
    def _expected(current: Catalog, expected_version: int | None) -> int:
        return expected_version if expected_version is not None else current.version.current

    def _price(self, metrics: CreatorMetrics, now: datetime) -> PricingOutcome:
        outcome = self._pricing.price_catalog(metrics, month=now.month)
        PRICING_REQUESTS.labels(source=outcome.source).inc()
        return outcome

    @staticmethod
    def _advisory_metadata(
        outcome: PricingOutcome, now: datetime, rates: Sequence[Any]
    ) -> AdvisoryMetadata:
        return AdvisoryMetadata(
            source=outcome.source,
            confidence=outcome.confidence,
            generated_at=now,
            market_insights=outcome.market_insights.model_dump(mode="json"),
            acceptance_rate=acceptance_rate(rates),
        )

    def _new_public_id(self) -> str:
        for _ in range(PUBLIC_ID_ATTEMPTS):
            candidate = generate_public_id()
            if not self._repo.public_id_exists(candidate):
                return candidate
        raise RateCardError("Could not allocate a public identifier")

    def _schedule_view(self, catalog_id: str, view: ViewContext, now: datetime) -> None:
        try:
            self._view_executor.submit(self._track_view, catalog_id, view, now)
        except RuntimeError:
            logger.warning("view_tracking_unavailable", catalog_id=catalog_id)

    def _track_view(self, catalog_id: str, view: ViewContext, now: datetime) -> None:
        """Count one public view; failures are logged, never raised."""
        try:
            with self._repo.transaction():
                catalog = self._repo.get(catalog_id)
                if catalog is None:
                    return
                updated = catalog.model_copy(
                    update={"sharing": record_view(catalog.sharing, view, now)}
                )
                self._repo.compare_and_swap(updated, catalog.version.current)
            PUBLIC_VIEWS.inc()
        except (RateCardError, OSError, ValueError) as exc:
            logger.warning("view_tracking_failed", catalog_id=catalog_id, error=str(exc))
        except Exception:
            logger.exception("view_tracking_failed", catalog_id=catalog_id)
