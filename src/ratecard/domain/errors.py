"""Domain-specific exception classes for the rate card engine.

Every user-visible failure derives from :class:`RateCardError` and carries a
stable error ``code``, the HTTP-equivalent ``status_code`` and a structured
``details`` dict so callers can correct their input without re-deriving
server-side rules.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class RateCardError(Exception):
    """Base class for all domain errors in the rate card engine."""

    code = "RC5000"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-safe error body exposed to callers."""
        return {"code": self.code, "message": self.message, "details": self.details}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationFailedError(RateCardError):
    """Raised when input is malformed; always before any state change.

    Attributes:
        errors: A list of ``{"field", "value", "message"}`` dicts, one per
            offending field.  ``field`` is a dotted path such as
            ``rates.2.chosen_price``.
    """

    code = "RC4000"
    status_code = 400

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message, {"errors": self.errors})

    @classmethod
    def for_field(cls, field: str, value: Any, message: str) -> ValidationFailedError:
        """Build an error describing a single offending field."""
        return cls(message, [{"field": field, "value": value, "message": message}])

    @classmethod
    def from_validation_error(
        cls, exc: ValidationError, prefix: str = ""
    ) -> ValidationFailedError:
        """Convert a pydantic ``ValidationError`` into a domain error.

        Args:
            exc: The pydantic error raised while parsing caller input.
            prefix: Optional path prepended to every field location.

        Returns:
            A ``ValidationFailedError`` listing every failing field.
        """
        errors: list[dict[str, Any]] = []
        for err in exc.errors():
            parts = [prefix] if prefix else []
            parts.extend(str(p) for p in err.get("loc", ()))
            value = err.get("input")
            if not isinstance(value, str | int | float | bool | type(None)):
                value = repr(value)
            errors.append(
                {"field": ".".join(parts), "value": value, "message": err.get("msg", "")}
            )
        return cls("Validation failed", errors)


class IncompleteCatalogError(ValidationFailedError):
    """Raised when publishing a catalog that has no deliverable rates."""

    code = "RC4300"

    def __init__(self, catalog_id: str) -> None:
        super().__init__(
            "Rate card must have at least one deliverable",
            [{"field": "rates", "value": 0, "message": "at least one rate is required"}],
        )
        self.details["catalog_id"] = catalog_id


class IncompletePackageError(ValidationFailedError):
    """Raised when none of a package's items match a priced deliverable."""

    code = "RC4003"

    def __init__(self, package_name: str, unmatched: list[str]) -> None:
        super().__init__(
            f"Package '{package_name}' references no priced deliverables",
            [
                {"field": "items", "value": item, "message": "no matching deliverable rate"}
                for item in unmatched
            ],
        )


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------


class QuotaExceededError(RateCardError):
    """Raised before creation when the owner's tier ceiling is reached."""

    code = "RC4101"
    status_code = 403

    def __init__(self, tier: str, limit: int, current: int) -> None:
        self.tier = tier
        self.limit = limit
        self.current = current
        super().__init__(
            "Rate card limit reached for your plan",
            {"tier": tier, "limit": limit, "current": current},
        )


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(RateCardError):
    """Base class for missing entities."""

    code = "RC4200"
    status_code = 404
    entity = "entity"

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} not found", {"id": entity_id})


class CatalogNotFoundError(NotFoundError):
    code = "RC4200"
    entity = "rate card"


class PackageNotFoundError(NotFoundError):
    code = "RC4201"
    entity = "package"


class HistoryNotFoundError(NotFoundError):
    code = "RC4202"
    entity = "history record"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictError(RateCardError):
    """Base class for state conflicts the caller may retry or report."""

    code = "RC4090"
    status_code = 409


class VersionConflictError(ConflictError):
    """Raised when the stored version advanced past the one the caller read.

    Attributes:
        catalog_id: The catalog whose commit was rejected.
        expected_version: The version the caller intended to increment.
        actual_version: The version currently stored.
    """

    code = "RC4090"
    retryable = True

    def __init__(self, catalog_id: str, expected_version: int, actual_version: int) -> None:
        self.catalog_id = catalog_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Rate card {catalog_id} is at version {actual_version}, "
            f"expected {expected_version}",
            {
                "catalog_id": catalog_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )


class DuplicatePackageError(ConflictError):
    code = "RC4304"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__("Package with this name already exists", {"name": name})


class AlreadyPublishedError(ConflictError):
    code = "RC4301"

    def __init__(self, catalog_id: str) -> None:
        super().__init__("Rate card is already published", {"catalog_id": catalog_id})


class InvalidTransitionError(ConflictError):
    """Raised when a status transition is not allowed.

    Attributes:
        current_status: The status the catalog was in.
        event: The event that was rejected.
    """

    code = "RC4302"

    def __init__(self, current_status: str, event: str) -> None:
        self.current_status = current_status
        self.event = event
        super().__init__(
            f"Cannot apply event '{event}' in status '{current_status}'",
            {"status": current_status, "event": event},
        )


# ---------------------------------------------------------------------------
# Public projection
# ---------------------------------------------------------------------------


class CatalogExpiredError(RateCardError):
    code = "RC4303"
    status_code = 410

    def __init__(self, public_id: str) -> None:
        super().__init__("Rate card has expired", {"public_id": public_id})


class PasswordRequiredError(RateCardError):
    code = "RC4305"
    status_code = 401

    def __init__(self, public_id: str) -> None:
        super().__init__(
            "Password required to access this rate card", {"public_id": public_id}
        )


# ---------------------------------------------------------------------------
# Server-side
# ---------------------------------------------------------------------------


class TransactionFailedError(RateCardError):
    """Raised when the snapshot + mutate + increment unit aborts.

    The catalog is left exactly as it was before the call.
    """

    code = "RC5101"
    status_code = 500
    retryable = True

    def __init__(self, catalog_id: str, original_error: str) -> None:
        super().__init__(
            "Transaction failed, changes rolled back",
            {"catalog_id": catalog_id, "original_error": original_error},
        )


class AdvisoryUnavailableError(RateCardError):
    """Internal signal that the advisory service could not be used.

    Never propagates past the advisory client; converted to the
    ``UNAVAILABLE`` sentinel and absorbed into fallback pricing.
    """

    code = "RC5000"
    status_code = 503
