"""SQLite-backed catalog repository.

Document CRUD plus explicit transactions and a compare-and-swap write on the
version column.  Uses parameterized queries exclusively.  All access goes
through one re-entrant lock so the connection can be shared between request
handlers and background view tracking.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from ratecard.domain.errors import CatalogNotFoundError, VersionConflictError
from ratecard.domain.models import Catalog, CatalogSnapshot, HistorySnapshot
from ratecard.domain.types import CatalogStatus


def _timestamp(value: datetime) -> str:
    return value.isoformat()


class CatalogRepository:
    """Persist catalogs and their history in SQLite.

    Args:
        conn: An open connection whose database already has the rate card
            tables (see ``init_ratecard_db``), in autocommit mode.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()
        self._depth = 0

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed block as one all-or-nothing write transaction.

        Opens ``BEGIN IMMEDIATE`` so the write lock is taken up front.  Any
        exception rolls back and propagates.  Nested use joins the outer
        transaction.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._depth = 0

    # ------------------------------------------------------------------
    # Catalogs
    # ------------------------------------------------------------------

    def insert(self, catalog: Catalog) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO catalogs (
                    id, owner_id, status, version, public_id, is_deleted,
                    document, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    catalog.id,
                    catalog.owner_id,
                    catalog.version.status.value,
                    catalog.version.current,
                    catalog.sharing.public_id,
                    int(catalog.is_deleted),
                    catalog.model_dump_json(),
                    _timestamp(catalog.created_at),
                    _timestamp(catalog.updated_at),
                ),
            )

    def get(self, catalog_id: str) -> Catalog | None:
        """Load a catalog by id, including soft-deleted ones."""
        with self._lock:
            row = self._conn.execute(
                "SELECT document FROM catalogs WHERE id = ?", (catalog_id,)
            ).fetchone()
        return Catalog.model_validate_json(row[0]) if row else None

    def get_by_public_id(self, public_id: str) -> Catalog | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT document FROM catalogs WHERE public_id = ? AND is_deleted = 0",
                (public_id,),
            ).fetchone()
        return Catalog.model_validate_json(row[0]) if row else None

    def public_id_exists(self, public_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM catalogs WHERE public_id = ?", (public_id,)
            ).fetchone()
        return row is not None

    def current_version(self, catalog_id: str) -> int | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT version FROM catalogs WHERE id = ?", (catalog_id,)
            ).fetchone()
        return row[0] if row else None

    def count_active(self, owner_id: str) -> int:
        """Count the owner's catalogs that are neither deleted nor archived."""
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM catalogs WHERE owner_id = ? AND is_deleted = 0 "
                "AND status != ?",
                (owner_id, CatalogStatus.ARCHIVED.value),
            ).fetchone()
        return int(row[0])

    def list_for_owner(
        self,
        owner_id: str,
        *,
        status: CatalogStatus | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Catalog], int]:
        """List the owner's non-deleted catalogs, most recently updated first.

        Returns:
            The page of catalogs and the total number matching.
        """
        conditions = ["owner_id = ?", "is_deleted = 0"]
        params: list[str | int] = [owner_id]
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        where_clause = " AND ".join(conditions)

        with self._lock:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM catalogs WHERE {where_clause}", params
            ).fetchone()[0]
            rows = self._conn.execute(
                f"SELECT document FROM catalogs WHERE {where_clause} "
                "ORDER BY updated_at DESC, id LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return [Catalog.model_validate_json(r[0]) for r in rows], int(total)

    def compare_and_swap(self, catalog: Catalog, expected_version: int) -> None:
        """Write *catalog* only if the stored version equals *expected_version*.

        Raises:
            VersionConflictError: If the stored version has moved on.
            CatalogNotFoundError: If the catalog row does not exist.
        """
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE catalogs
                SET status = ?, version = ?, public_id = ?, is_deleted = ?,
                    document = ?, updated_at = ?
                WHERE id = ? AND version = ?
                """,
                (
                    catalog.version.status.value,
                    catalog.version.current,
                    catalog.sharing.public_id,
                    int(catalog.is_deleted),
                    catalog.model_dump_json(),
                    _timestamp(catalog.updated_at),
                    catalog.id,
                    expected_version,
                ),
            )
            if cursor.rowcount == 1:
                return
            actual = self.current_version(catalog.id)
        if actual is None:
            raise CatalogNotFoundError(catalog.id)
        raise VersionConflictError(catalog.id, expected_version, actual)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def append_history(self, entry: HistorySnapshot) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO catalog_history (
                    id, catalog_id, version, change_type, change_summary,
                    edited_by, snapshot, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.catalog_id,
                    entry.version,
                    entry.change_type.value,
                    entry.change_summary,
                    entry.edited_by,
                    entry.snapshot.model_dump_json(),
                    _timestamp(entry.created_at),
                ),
            )

    def get_history_entry(self, history_id: str) -> HistorySnapshot | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, catalog_id, version, change_type, change_summary, edited_by, "
                "snapshot, created_at FROM catalog_history WHERE id = ?",
                (history_id,),
            ).fetchone()
        return _history_from_row(row) if row else None

    def list_history(
        self, catalog_id: str, *, offset: int = 0, limit: int = 20
    ) -> tuple[list[HistorySnapshot], int]:
        """Return a page of history entries, highest version first."""
        with self._lock:
            total = self._conn.execute(
                "SELECT COUNT(*) FROM catalog_history WHERE catalog_id = ?", (catalog_id,)
            ).fetchone()[0]
            rows = self._conn.execute(
                "SELECT id, catalog_id, version, change_type, change_summary, edited_by, "
                "snapshot, created_at FROM catalog_history WHERE catalog_id = ? "
                "ORDER BY version DESC LIMIT ? OFFSET ?",
                (catalog_id, limit, offset),
            ).fetchall()
        return [_history_from_row(r) for r in rows], int(total)


def _history_from_row(row: tuple[Any, ...]) -> HistorySnapshot:
    history_id, catalog_id, version, change_type, summary, edited_by, snapshot, created = row
    return HistorySnapshot(
        id=history_id,
        catalog_id=catalog_id,
        version=version,
        change_type=change_type,
        change_summary=summary,
        edited_by=edited_by,
        snapshot=CatalogSnapshot.model_validate_json(snapshot),
        created_at=created,
    )
