"""VersionStore: atomic, versioned mutations with append-only history.

Every versioned mutation is one all-or-nothing unit:

1. write a HistorySnapshot of the pre-mutation state, tagged with the
   current version and a change type,
2. apply the mutation,
3. increment ``version.current`` by exactly 1 with a compare-and-swap on the
   version the caller read.

Cache invalidation runs only after the unit commits, on every commit path
including restore.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError

from ratecard.cache.coordinator import CacheCoordinator
from ratecard.domain.errors import (
    CatalogNotFoundError,
    HistoryNotFoundError,
    RateCardError,
    TransactionFailedError,
    ValidationFailedError,
    VersionConflictError,
)
from ratecard.domain.models import Catalog, HistoryPage, HistorySnapshot
from ratecard.domain.types import ChangeType
from ratecard.observability.metrics import MUTATIONS_COMMITTED, VERSION_CONFLICTS
from ratecard.store.repository import CatalogRepository
from ratecard.versioning.transitions import CatalogEvent, next_status

logger = structlog.get_logger()

Mutation = Callable[[Catalog], Catalog]
Clock = Callable[[], datetime]

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class VersionStore:
    """Serialises catalog mutations through the version counter.

    Args:
        repository: Catalog persistence.
        cache: Coordinator invalidated after each commit, or None.
        clock: Source of the current time.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        cache: CacheCoordinator | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repository
        self._cache = cache
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load(self, catalog_id: str) -> Catalog:
        """Load a live catalog.

        Raises:
            CatalogNotFoundError: If it does not exist or was soft-deleted.
        """
        catalog = self._repo.get(catalog_id)
        if catalog is None or catalog.is_deleted:
            raise CatalogNotFoundError(catalog_id)
        return catalog

    def history(
        self, catalog_id: str, page: int = 1, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> HistoryPage:
        """Return one page of history, highest version first."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_HISTORY_LIMIT)
        entries, total = self._repo.list_history(
            catalog_id, offset=(page - 1) * limit, limit=limit
        )
        return HistoryPage(
            entries=entries,
            total=total,
            page=page,
            pages=math.ceil(total / limit) if total else 0,
            limit=limit,
        )

    def snapshot(self, catalog_id: str, history_id: str) -> HistorySnapshot:
        """Look up one history entry belonging to *catalog_id*.

        Raises:
            HistoryNotFoundError: If the entry is missing or belongs elsewhere.
        """
        entry = self._repo.get_history_entry(history_id)
        if entry is None or entry.catalog_id != catalog_id:
            raise HistoryNotFoundError(history_id)
        return entry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, catalog: Catalog) -> Catalog:
        """Persist a new catalog at version 1 with empty history."""
        with self._repo.transaction():
            self._repo.insert(catalog)
        if self._cache is not None:
            self._cache.invalidate_owner_lists(catalog.owner_id)
        logger.info("catalog_created", catalog_id=catalog.id, owner_id=catalog.owner_id)
        return catalog

    def commit(
        self,
        catalog_id: str,
        *,
        expected_version: int,
        change_type: ChangeType,
        mutate: Mutation,
        summary: str = "",
        editor: str | None = None,
    ) -> Catalog:
        """Apply a versioned mutation atomically.

        Args:
            catalog_id: The catalog to mutate.
            expected_version: The version the caller read and intends to
                increment.
            change_type: Tag recorded on the history snapshot.
            mutate: Pure function from the current catalog to the new one.
                Must not perform I/O.
            summary: Human-readable description stored with the snapshot.
            editor: Identity of the caller making the change.

        Returns:
            The committed catalog at ``expected_version + 1``.

        Raises:
            CatalogNotFoundError: If the catalog is missing or deleted.
            VersionConflictError: If the stored version is not
                *expected_version*.
            InvalidTransitionError: If the catalog is archived.
            TransactionFailedError: If anything else fails inside the unit.
        """
        return self._run(
            catalog_id,
            expected_version=expected_version,
            mutate=mutate,
            editor=editor,
            change_type=change_type,
            summary=summary,
        )

    def commit_unversioned(
        self,
        catalog_id: str,
        *,
        expected_version: int,
        mutate: Mutation,
        editor: str | None = None,
        event: CatalogEvent = CatalogEvent.EDIT,
    ) -> Catalog:
        """Apply a non-priced change (publish, sharing, delete) atomically.

        No snapshot is written and the version stays the same, but the write
        still goes through compare-and-swap and invalidates caches.
        """
        return self._run(
            catalog_id,
            expected_version=expected_version,
            mutate=mutate,
            editor=editor,
            event=event,
        )

    def restore(
        self,
        catalog_id: str,
        history_id: str,
        *,
        expected_version: int,
        editor: str | None = None,
    ) -> Catalog:
        """Copy a snapshot's fields back onto the catalog as a new mutation.

        A pre-restore snapshot is written first, so history stays append-only
        and the restore itself can be undone.

        Raises:
            HistoryNotFoundError: If the entry does not belong to the catalog.
        """
        entry = self.snapshot(catalog_id, history_id)
        state = entry.snapshot

        def apply(current: Catalog) -> Catalog:
            return current.model_copy(
                update={
                    "metrics": state.metrics,
                    "rates": list(state.rates),
                    "packages": list(state.packages),
                    "terms": state.terms,
                }
            )

        return self.commit(
            catalog_id,
            expected_version=expected_version,
            change_type=ChangeType.RESTORE,
            mutate=apply,
            summary=f"Restored to version {entry.version}",
            editor=editor,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        catalog_id: str,
        *,
        expected_version: int,
        mutate: Mutation,
        editor: str | None,
        change_type: ChangeType | None = None,
        summary: str = "",
        event: CatalogEvent = CatalogEvent.EDIT,
    ) -> Catalog:
        now = self._clock()
        previous_public_id: str | None = None
        try:
            with self._repo.transaction():
                current = self.load(catalog_id)
                if current.version.current != expected_version:
                    raise VersionConflictError(
                        catalog_id, expected_version, current.version.current
                    )
                status = next_status(current.version.status, event)
                previous_public_id = current.sharing.public_id

                version = current.version.current
                if change_type is not None:
                    self._repo.append_history(
                        HistorySnapshot(
                            catalog_id=catalog_id,
                            version=version,
                            change_type=change_type,
                            change_summary=summary[:500],
                            edited_by=editor,
                            snapshot=current.snapshot(),
                            created_at=now,
                        )
                    )
                    version += 1

                mutated = mutate(current)
                committed = Catalog.model_validate(
                    {
                        **mutated.model_dump(),
                        "version": mutated.version.model_copy(
                            update={"current": version, "status": status}
                        ),
                        "updated_at": now,
                        "last_edited_by": editor or mutated.last_edited_by,
                    }
                )
                self._repo.compare_and_swap(committed, expected_version)
        except VersionConflictError:
            VERSION_CONFLICTS.inc()
            logger.info(
                "version_conflict", catalog_id=catalog_id, expected_version=expected_version
            )
            raise
        except RateCardError:
            raise
        except ValidationError as exc:
            raise ValidationFailedError.from_validation_error(exc) from exc
        except Exception as exc:
            logger.error(
                "transaction_aborted",
                catalog_id=catalog_id,
                change_type=change_type,
                error=str(exc),
            )
            raise TransactionFailedError(catalog_id, str(exc)) from exc

        if self._cache is not None:
            self._cache.invalidate_catalog(committed, previous_public_id)
        if change_type is not None:
            MUTATIONS_COMMITTED.labels(change_type=change_type.value).inc()
        logger.info(
            "catalog_committed",
            catalog_id=catalog_id,
            version=committed.version.current,
            change_type=change_type,
        )
        return committed
