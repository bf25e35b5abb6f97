"""Package bundling: totals, savings, and consistency checks.

``individual_total`` is always computed from the catalog's committed
``chosen_price`` values at the time the package is built or explicitly
edited.  It is a stored value: later rate changes do not touch existing
packages, so a price already quoted to a client never shifts silently.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from ratecard.domain.errors import (
    DuplicatePackageError,
    IncompletePackageError,
    PackageNotFoundError,
)
from ratecard.domain.models import (
    Catalog,
    DeliverableRate,
    Package,
    PackageItem,
    PackageUpdate,
    Savings,
)


def individual_total(
    rates: Sequence[DeliverableRate], items: Sequence[PackageItem]
) -> tuple[Decimal, list[str]]:
    """Sum ``quantity x chosen_price`` over the items of a package.

    Items without a matching rate contribute 0.

    Returns:
        The total and the labels of items that matched no rate.
    """
    prices = {(r.platform, r.deliverable_type): r.chosen_price for r in rates}
    total = Decimal("0")
    unmatched: list[str] = []
    for item in items:
        price = prices.get((item.platform, item.deliverable_type))
        if price is None:
            unmatched.append(item.label)
            continue
        total += price * item.quantity
    return total, unmatched


def compute_savings(total: Decimal, package_price: Decimal) -> Savings:
    """Compute the discount of a package against its individual total.

    A negative amount signals a markup.  The percentage is 0 when the total
    is 0.
    """
    amount = total - package_price
    if total <= 0:
        return Savings(amount=amount, percentage=0)
    percentage = (amount / total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return Savings(amount=amount, percentage=int(percentage))


def ensure_unique_name(
    packages: Sequence[Package], name: str, exclude_id: str | None = None
) -> None:
    """Raise DuplicatePackageError if *name* is taken (case-sensitive)."""
    for package in packages:
        if package.id != exclude_id and package.name == name:
            raise DuplicatePackageError(name)


def build_package(
    catalog: Catalog,
    name: str,
    items: Sequence[PackageItem],
    package_price: Decimal,
    *,
    description: str = "",
    validity_days: int = 30,
    is_popular: bool = False,
    advisory_suggested: bool = False,
) -> Package:
    """Build a new package against the catalog's current rates.

    Args:
        catalog: The catalog the package will belong to.
        name: Package name, unique within the catalog.
        items: Deliverables bundled into the package.
        package_price: The bundle price offered to clients.

    Returns:
        The new Package; flagged ``incomplete`` when some items match no rate.

    Raises:
        DuplicatePackageError: If a package with this name already exists.
        IncompletePackageError: If no item matches a priced deliverable.
    """
    ensure_unique_name(catalog.packages, name)
    return price_package(
        catalog.rates,
        name=name,
        items=list(items),
        package_price=package_price,
        description=description,
        validity_days=validity_days,
        is_popular=is_popular,
        advisory_suggested=advisory_suggested,
    )


def revise_package(catalog: Catalog, package_id: str, update: PackageUpdate) -> Package:
    """Apply an explicit edit to an existing package.

    Supplying ``items`` recomputes ``individual_total`` from the current
    rates.  A price-only edit keeps the stored total and recomputes savings.

    Raises:
        PackageNotFoundError: If the package does not exist.
        DuplicatePackageError: If the new name collides with another package.
        IncompletePackageError: If new items match no priced deliverable.
    """
    existing = catalog.find_package(package_id)
    if existing is None:
        raise PackageNotFoundError(package_id)

    name = update.name.strip() if update.name is not None else existing.name
    if name != existing.name:
        ensure_unique_name(catalog.packages, name, exclude_id=package_id)

    package_price = (
        update.package_price if update.package_price is not None else existing.package_price
    )
    fields = {
        "id": existing.id,
        "name": name,
        "description": (
            update.description if update.description is not None else existing.description
        ),
        "package_price": package_price,
        "validity_days": (
            update.validity_days if update.validity_days is not None else existing.validity_days
        ),
        "is_popular": update.is_popular if update.is_popular is not None else existing.is_popular,
        "advisory_suggested": existing.advisory_suggested,
    }

    if update.items is not None:
        return price_package(catalog.rates, items=list(update.items), **fields)

    return Package(
        items=list(existing.items),
        individual_total=existing.individual_total,
        savings=compute_savings(existing.individual_total, package_price),
        incomplete=existing.incomplete,
        **fields,
    )


def remove_package(catalog: Catalog, package_id: str) -> list[Package]:
    """Return the catalog's packages without *package_id*.

    Raises:
        PackageNotFoundError: If the package does not exist.
    """
    if catalog.find_package(package_id) is None:
        raise PackageNotFoundError(package_id)
    return [p for p in catalog.packages if p.id != package_id]


def price_package(
    rates: Sequence[DeliverableRate],
    *,
    name: str,
    items: list[PackageItem],
    package_price: Decimal,
    **fields: object,
) -> Package:
    """Price a package against *rates* without checking name uniqueness.

    Raises:
        IncompletePackageError: If no item matches a priced deliverable.
    """
    total, unmatched = individual_total(rates, items)
    if len(unmatched) == len(items):
        raise IncompletePackageError(name, unmatched)
    return Package(
        name=name,
        items=items,
        individual_total=total,
        package_price=package_price,
        savings=compute_savings(total, package_price),
        incomplete=bool(unmatched),
        **fields,
    )
