"""Tests for the exception hierarchy."""

from datetime import date
from uuid import uuid4

import pytest

from multicurrency_ledger.exceptions import (
    BudgetNotFoundError,
    ExchangeRateError,
    InvalidScopeError,
    MultiCurrencyLedgerError,
    PartialRefreshFailureError,
    RateNotFoundError,
    RateProviderError,
    RefreshNotConfiguredError,
    UnauthorizedRefreshError,
    ValidationError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            RateNotFoundError("USD", "EUR", date(2026, 1, 15)),
            RateProviderError("EUR", "timed out"),
            PartialRefreshFailureError(["EUR"], 0),
            UnauthorizedRefreshError(),
            RefreshNotConfiguredError(),
            BudgetNotFoundError(uuid4()),
            InvalidScopeError("bad scope"),
        ],
    )
    def test_all_derive_from_base(self, exc):
        assert isinstance(exc, MultiCurrencyLedgerError)

    def test_rate_errors_share_a_base(self):
        assert issubclass(RateNotFoundError, ExchangeRateError)
        assert issubclass(RateProviderError, ExchangeRateError)
        assert issubclass(InvalidScopeError, ValidationError)

    def test_rate_not_found_to_dict(self):
        exc = RateNotFoundError("USD", "EUR", date(2026, 1, 15))

        assert exc.to_dict() == {
            "error": "RATE_NOT_FOUND",
            "message": "No exchange rate found for USD/EUR on or before 2026-01-15",
            "context": {
                "from_currency": "USD",
                "to_currency": "EUR",
                "as_of": "2026-01-15",
            },
        }

    def test_status_codes(self):
        assert RateNotFoundError("USD", "EUR", date(2026, 1, 15)).status_code == 404
        assert RateProviderError("EUR", "x").status_code == 502
        assert UnauthorizedRefreshError().status_code == 401
        assert RefreshNotConfiguredError().status_code == 503
        assert InvalidScopeError("x").status_code == 422

    def test_overrides(self):
        exc = MultiCurrencyLedgerError(
            "boom", error_code="CUSTOM", status_code=418, context={"k": "v"}
        )
        assert exc.error_code == "CUSTOM"
        assert exc.status_code == 418
        assert exc.context == {"k": "v"}
        assert str(exc) == "boom"
