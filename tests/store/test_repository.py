"""Tests for the SQLite catalog repository."""

from __future__ import annotations

from datetime import timedelta

import pytest

from ratecard.domain.errors import CatalogNotFoundError, VersionConflictError
from ratecard.domain.models import CatalogSnapshot, HistorySnapshot, Sharing, VersionInfo
from ratecard.domain.types import CatalogStatus, ChangeType


def _history(catalog, version: int, clock) -> HistorySnapshot:
    return HistorySnapshot(
        catalog_id=catalog.id,
        version=version,
        change_type=ChangeType.PRICING_CHANGE,
        change_summary=f"v{version}",
        snapshot=catalog.snapshot(),
        created_at=clock(),
    )


class TestCatalogs:
    def test_insert_and_get_round_trip(self, repository, make_catalog):
        catalog = make_catalog()
        repository.insert(catalog)
        assert repository.get(catalog.id) == catalog
        assert repository.current_version(catalog.id) == 1

    def test_get_missing(self, repository):
        assert repository.get("missing") is None
        assert repository.current_version("missing") is None

    def test_public_id_lookup_skips_deleted(self, repository, make_catalog):
        live = make_catalog(sharing=Sharing(is_public=True, public_id="LIVE01"))
        gone = make_catalog(
            sharing=Sharing(public_id="GONE01"), is_deleted=True
        )
        repository.insert(live)
        repository.insert(gone)

        assert repository.get_by_public_id("LIVE01").id == live.id
        assert repository.get_by_public_id("GONE01") is None
        assert repository.public_id_exists("GONE01") is True
        assert repository.public_id_exists("NOPE00") is False


class TestCompareAndSwap:
    def test_writes_when_version_matches(self, repository, make_catalog):
        catalog = make_catalog()
        repository.insert(catalog)
        updated = catalog.model_copy(
            update={"title": "Updated", "version": VersionInfo(current=2)}
        )

        repository.compare_and_swap(updated, expected_version=1)

        assert repository.get(catalog.id).title == "Updated"
        assert repository.current_version(catalog.id) == 2

    def test_stale_version_conflicts(self, repository, make_catalog):
        catalog = make_catalog()
        repository.insert(catalog)
        with pytest.raises(VersionConflictError) as exc_info:
            repository.compare_and_swap(catalog, expected_version=3)
        assert exc_info.value.actual_version == 1
        assert exc_info.value.expected_version == 3

    def test_missing_catalog(self, repository, make_catalog):
        with pytest.raises(CatalogNotFoundError):
            repository.compare_and_swap(make_catalog(), expected_version=1)


class TestTransaction:
    def test_rollback_on_error(self, repository, make_catalog, clock):
        catalog = make_catalog()
        with pytest.raises(RuntimeError):
            with repository.transaction():
                repository.insert(catalog)
                repository.append_history(_history(catalog, 1, clock))
                raise RuntimeError("boom")

        assert repository.get(catalog.id) is None
        assert repository.list_history(catalog.id) == ([], 0)

    def test_nested_transaction_joins_outer(self, repository, make_catalog):
        first, second = make_catalog(), make_catalog()
        with pytest.raises(RuntimeError):
            with repository.transaction():
                repository.insert(first)
                with repository.transaction():
                    repository.insert(second)
                raise RuntimeError("boom")

        assert repository.get(first.id) is None
        assert repository.get(second.id) is None

    def test_commit(self, repository, make_catalog):
        catalog = make_catalog()
        with repository.transaction():
            repository.insert(catalog)
        assert repository.get(catalog.id) is not None


class TestListing:
    def test_list_for_owner_orders_by_update_and_filters(self, repository, make_catalog, clock):
        older = make_catalog(updated_at=clock() - timedelta(days=1))
        newer = make_catalog()
        active = make_catalog(version=VersionInfo(status=CatalogStatus.ACTIVE))
        deleted = make_catalog(is_deleted=True)
        foreign = make_catalog(owner_id="owner-2")
        for c in (older, newer, active, deleted, foreign):
            repository.insert(c)

        catalogs, total = repository.list_for_owner("owner-1")
        assert total == 3
        assert catalogs[-1].id == older.id

        drafts, total = repository.list_for_owner("owner-1", status=CatalogStatus.DRAFT)
        assert total == 2
        assert {c.id for c in drafts} == {older.id, newer.id}

    def test_pagination(self, repository, make_catalog):
        for _ in range(5):
            repository.insert(make_catalog())
        page, total = repository.list_for_owner("owner-1", offset=4, limit=2)
        assert total == 5
        assert len(page) == 1

    def test_count_active_excludes_archived_and_deleted(self, repository, make_catalog):
        repository.insert(make_catalog())
        repository.insert(make_catalog(version=VersionInfo(status=CatalogStatus.ACTIVE)))
        repository.insert(make_catalog(version=VersionInfo(status=CatalogStatus.ARCHIVED)))
        repository.insert(make_catalog(is_deleted=True))
        assert repository.count_active("owner-1") == 2


class TestHistory:
    def test_history_listed_newest_first(self, repository, make_catalog, clock):
        catalog = make_catalog()
        repository.insert(catalog)
        for version in (1, 2, 3):
            repository.append_history(_history(catalog, version, clock))

        entries, total = repository.list_history(catalog.id, limit=2)
        assert total == 3
        assert [e.version for e in entries] == [3, 2]

        entry = repository.get_history_entry(entries[0].id)
        assert entry.change_summary == "v3"
        assert isinstance(entry.snapshot, CatalogSnapshot)
        assert entry.snapshot.rates == catalog.rates

    def test_missing_entry(self, repository):
        assert repository.get_history_entry("missing") is None
