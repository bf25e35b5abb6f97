"""Tests for package bundling: totals, savings and name uniqueness."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from ratecard.domain.errors import (
    DuplicatePackageError,
    IncompletePackageError,
    PackageNotFoundError,
)
from ratecard.domain.models import Catalog, DeliverableRate, PackageItem, PackageUpdate
from ratecard.domain.types import DeliverableType, Platform, SubscriptionTier
from ratecard.pricing.packages import (
    build_package,
    compute_savings,
    individual_total,
    remove_package,
    revise_package,
)

NOW = datetime(2025, 6, 15, tzinfo=UTC)


def _rate(platform: Platform, dt: DeliverableType, price: str) -> DeliverableRate:
    return DeliverableRate(platform=platform, deliverable_type=dt, chosen_price=Decimal(price))


def _item(platform: Platform, dt: DeliverableType, quantity: int = 1) -> PackageItem:
    return PackageItem(platform=platform, deliverable_type=dt, quantity=quantity)


@pytest.fixture
def catalog(sample_metrics) -> Catalog:
    return Catalog(
        owner_id="owner-1",
        subscription_tier=SubscriptionTier.PRO,
        metrics=sample_metrics,
        rates=[
            _rate(Platform.INSTAGRAM, DeliverableType.REEL, "25000"),
            _rate(Platform.INSTAGRAM, DeliverableType.STORY, "5000"),
        ],
        created_at=NOW,
        updated_at=NOW,
    )


class TestIndividualTotal:
    def test_sums_quantity_times_price(self, catalog):
        total, unmatched = individual_total(
            catalog.rates,
            [
                _item(Platform.INSTAGRAM, DeliverableType.REEL, 2),
                _item(Platform.INSTAGRAM, DeliverableType.STORY, 3),
            ],
        )
        assert total == Decimal("65000")
        assert unmatched == []

    def test_unmatched_items_contribute_zero(self, catalog):
        total, unmatched = individual_total(
            catalog.rates,
            [
                _item(Platform.INSTAGRAM, DeliverableType.REEL),
                _item(Platform.YOUTUBE, DeliverableType.VIDEO, 2),
            ],
        )
        assert total == Decimal("25000")
        assert unmatched == ["youtube:video"]


class TestComputeSavings:
    def test_discount(self):
        savings = compute_savings(Decimal("65000"), Decimal("58500"))
        assert savings.amount == Decimal("6500")
        assert savings.percentage == 10

    def test_markup_is_negative(self):
        savings = compute_savings(Decimal("1000"), Decimal("1100"))
        assert savings.amount == Decimal("-100")
        assert savings.percentage == -10

    def test_zero_total(self):
        savings = compute_savings(Decimal("0"), Decimal("500"))
        assert savings.percentage == 0

    def test_percentage_rounds_half_up(self):
        # 125 / 1000 = 12.5%
        assert compute_savings(Decimal("1000"), Decimal("875")).percentage == 13


class TestBuildPackage:
    def test_builds_against_current_rates(self, catalog):
        package = build_package(
            catalog,
            "Starter",
            [
                _item(Platform.INSTAGRAM, DeliverableType.REEL),
                _item(Platform.INSTAGRAM, DeliverableType.STORY, 3),
            ],
            Decimal("36000"),
        )
        assert package.individual_total == Decimal("40000")
        assert package.savings.amount == Decimal("4000")
        assert package.savings.percentage == 10
        assert package.incomplete is False

    def test_duplicate_name_is_rejected(self, catalog):
        first = build_package(
            catalog, "Starter", [_item(Platform.INSTAGRAM, DeliverableType.REEL)], Decimal("1")
        )
        catalog = catalog.model_copy(update={"packages": [first]})

        with pytest.raises(DuplicatePackageError) as exc_info:
            build_package(
                catalog,
                "Starter",
                [_item(Platform.INSTAGRAM, DeliverableType.STORY)],
                Decimal("1"),
            )
        assert exc_info.value.details == {"name": "Starter"}

    def test_names_are_case_sensitive(self, catalog):
        first = build_package(
            catalog, "Starter", [_item(Platform.INSTAGRAM, DeliverableType.REEL)], Decimal("1")
        )
        catalog = catalog.model_copy(update={"packages": [first]})
        second = build_package(
            catalog, "starter", [_item(Platform.INSTAGRAM, DeliverableType.REEL)], Decimal("1")
        )
        assert second.name == "starter"

    def test_partially_matched_items_flag_incomplete(self, catalog):
        package = build_package(
            catalog,
            "Cross",
            [
                _item(Platform.INSTAGRAM, DeliverableType.REEL),
                _item(Platform.YOUTUBE, DeliverableType.VIDEO),
            ],
            Decimal("20000"),
        )
        assert package.incomplete is True
        assert package.individual_total == Decimal("25000")

    def test_no_matched_items_is_rejected(self, catalog):
        with pytest.raises(IncompletePackageError):
            build_package(
                catalog, "Empty", [_item(Platform.YOUTUBE, DeliverableType.VIDEO)], Decimal("1")
            )


class TestRevisePackage:
    @pytest.fixture
    def with_package(self, catalog) -> Catalog:
        package = build_package(
            catalog,
            "Starter",
            [_item(Platform.INSTAGRAM, DeliverableType.REEL)],
            Decimal("22500"),
        )
        return catalog.model_copy(update={"packages": [package]})

    def test_price_only_edit_keeps_stored_total(self, with_package):
        package_id = with_package.packages[0].id
        # Rates move after the package was built; the stored total must not.
        moved = with_package.model_copy(
            update={"rates": [_rate(Platform.INSTAGRAM, DeliverableType.REEL, "30000")]}
        )

        revised = revise_package(moved, package_id, PackageUpdate(package_price=Decimal("20000")))

        assert revised.id == package_id
        assert revised.individual_total == Decimal("25000")
        assert revised.savings.percentage == 20

    def test_items_edit_recomputes_total(self, with_package):
        package_id = with_package.packages[0].id
        revised = revise_package(
            with_package,
            package_id,
            PackageUpdate(items=[_item(Platform.INSTAGRAM, DeliverableType.STORY, 4)]),
        )
        assert revised.individual_total == Decimal("20000")
        assert revised.name == "Starter"

    def test_rename_to_existing_name_conflicts(self, with_package):
        other = build_package(
            with_package,
            "Stories",
            [_item(Platform.INSTAGRAM, DeliverableType.STORY)],
            Decimal("4000"),
        )
        catalog = with_package.model_copy(update={"packages": [*with_package.packages, other]})
        with pytest.raises(DuplicatePackageError):
            revise_package(catalog, other.id, PackageUpdate(name="Starter"))

    def test_unknown_package(self, with_package):
        with pytest.raises(PackageNotFoundError):
            revise_package(with_package, "missing", PackageUpdate(name="x"))


class TestRemovePackage:
    def test_removes_only_the_target(self, catalog):
        a = build_package(
            catalog, "A", [_item(Platform.INSTAGRAM, DeliverableType.REEL)], Decimal("1")
        )
        b = build_package(
            catalog, "B", [_item(Platform.INSTAGRAM, DeliverableType.STORY)], Decimal("1")
        )
        catalog = catalog.model_copy(update={"packages": [a, b]})
        assert [p.name for p in remove_package(catalog, a.id)] == ["B"]

    def test_unknown_package(self, catalog):
        with pytest.raises(PackageNotFoundError):
            remove_package(catalog, "missing")
