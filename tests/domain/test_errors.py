"""Tests for the domain error taxonomy and its JSON bodies."""

import pytest
from pydantic import BaseModel, Field, ValidationError

from ratecard.domain.errors import (
    CatalogExpiredError,
    CatalogNotFoundError,
    ConflictError,
    DuplicatePackageError,
    HistoryNotFoundError,
    IncompleteCatalogError,
    IncompletePackageError,
    NotFoundError,
    PasswordRequiredError,
    QuotaExceededError,
    RateCardError,
    TransactionFailedError,
    ValidationFailedError,
    VersionConflictError,
)


class _Price(BaseModel):
    chosen_price: int = Field(ge=0)


class TestErrorCodes:
    @pytest.mark.parametrize(
        "error,code,status",
        [
            (IncompleteCatalogError("c1"), "RC4300", 400),
            (IncompletePackageError("Starter", ["youtube:video"]), "RC4003", 400),
            (QuotaExceededError("pro", 3, 3), "RC4101", 403),
            (CatalogNotFoundError("c1"), "RC4200", 404),
            (HistoryNotFoundError("h1"), "RC4202", 404),
            (VersionConflictError("c1", 2, 3), "RC4090", 409),
            (DuplicatePackageError("Starter"), "RC4304", 409),
            (CatalogExpiredError("ABC123"), "RC4303", 410),
            (PasswordRequiredError("ABC123"), "RC4305", 401),
            (TransactionFailedError("c1", "boom"), "RC5101", 500),
        ],
        ids=lambda v: v if isinstance(v, str) else None,
    )
    def test_code_and_status(self, error, code, status):
        assert isinstance(error, RateCardError)
        assert error.code == code
        assert error.status_code == status

    def test_hierarchy(self):
        assert isinstance(CatalogNotFoundError("x"), NotFoundError)
        assert isinstance(VersionConflictError("x", 1, 2), ConflictError)
        assert isinstance(IncompletePackageError("p", []), ValidationFailedError)

    def test_retryable_flags(self):
        assert VersionConflictError("c1", 1, 2).retryable is True
        assert TransactionFailedError("c1", "boom").retryable is True
        assert CatalogNotFoundError("c1").retryable is False


class TestErrorBodies:
    def test_to_dict(self):
        error = QuotaExceededError("pro", 3, 3)
        assert error.to_dict() == {
            "code": "RC4101",
            "message": "Rate card limit reached for your plan",
            "details": {"tier": "pro", "limit": 3, "current": 3},
        }

    def test_version_conflict_details(self):
        error = VersionConflictError("c1", 2, 3)
        assert error.details == {"catalog_id": "c1", "expected_version": 2, "actual_version": 3}

    def test_for_field(self):
        error = ValidationFailedError.for_field("status", "bogus", "unknown status")
        assert error.errors == [{"field": "status", "value": "bogus", "message": "unknown status"}]
        assert error.details["errors"] == error.errors

    def test_from_validation_error_prefixes_paths(self):
        with pytest.raises(ValidationError) as exc_info:
            _Price.model_validate({"chosen_price": -5})

        error = ValidationFailedError.from_validation_error(exc_info.value, "rates.2")

        assert error.code == "RC4000"
        assert error.errors[0]["field"] == "rates.2.chosen_price"
        assert error.errors[0]["value"] == -5
