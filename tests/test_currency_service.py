"""Tests for rate resolution and conversion."""

from datetime import timedelta
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from multicurrency_ledger.domain.exchange_rates import (
    ExchangeRateSource,
    ResolutionMethod,
)
from multicurrency_ledger.domain.value_objects import Money
from multicurrency_ledger.exceptions import PermissionDeniedError, RateNotFoundError
from multicurrency_ledger.services.currency import CurrencyServiceImpl

from conftest import FIXED_NOW, TODAY


class TestResolveRate:
    def test_same_currency_is_identity(self, currency_service):
        resolved = currency_service.resolve_rate("eur", "EUR", TODAY)
        assert resolved.rate == Decimal("1")
        assert resolved.method == ResolutionMethod.IDENTITY

    def test_direct_rate(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.92")

        resolved = currency_service.resolve_rate("USD", "EUR", TODAY)

        assert resolved.rate == Decimal("0.920000")
        assert resolved.method == ResolutionMethod.DIRECT
        assert resolved.source == ExchangeRateSource.FETCHED
        assert not resolved.stale

    def test_uses_most_recent_rate_on_or_before_date(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.90", valid_date=TODAY - timedelta(days=7))
        store_rate("USD", "EUR", "0.95", valid_date=TODAY + timedelta(days=1))

        resolved = currency_service.resolve_rate("USD", "EUR", TODAY)

        assert resolved.rate == Decimal("0.900000")
        assert resolved.effective_date == TODAY - timedelta(days=7)

    def test_inverse_rate(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.8")

        resolved = currency_service.resolve_rate("EUR", "USD", TODAY)

        assert resolved.rate == Decimal("1.250000")
        assert resolved.method == ResolutionMethod.INVERSE

    def test_triangulates_through_anchor(self, currency_service, store_rate):
        store_rate("GBP", "USD", "1.25")
        store_rate("USD", "EUR", "0.92")

        resolved = currency_service.resolve_rate("GBP", "EUR", TODAY)

        assert resolved.pair == "GBP/EUR"
        assert resolved.rate == Decimal("1.150000")
        assert resolved.method == ResolutionMethod.TRIANGULATED

    def test_triangulation_with_inverted_leg(self, currency_service, store_rate):
        store_rate("USD", "GBP", "0.8")
        store_rate("USD", "EUR", "0.92")

        resolved = currency_service.resolve_rate("GBP", "EUR", TODAY)

        assert resolved.rate == Decimal("1.150000")

    def test_triangulation_keeps_small_reciprocals_exact(
        self, currency_service, store_rate
    ):
        # Both directions as the refresh job writes them; IDR/USD holds 0.000067.
        store_rate("USD", "IDR", "15000")
        store_rate("IDR", "USD", "0.000066666667")
        store_rate("USD", "EUR", "0.92")

        resolved = currency_service.resolve_rate("IDR", "EUR", TODAY)

        assert resolved.rate == Decimal("0.000061")
        assert resolved.method == ResolutionMethod.TRIANGULATED
        converted = currency_service.convert(Decimal("1000000"), "IDR", "EUR", TODAY)
        assert converted.converted.amount == Decimal("61.00")

    def test_newer_opposite_row_beats_older_anchor_quote(
        self, currency_service, store_rate
    ):
        store_rate("USD", "GBP", "0.8", valid_date=TODAY - timedelta(days=5))
        store_rate("GBP", "USD", "1.30")
        store_rate("USD", "EUR", "0.92")

        resolved = currency_service.resolve_rate("GBP", "EUR", TODAY)

        assert resolved.rate == Decimal("1.196000")

    def test_missing_rate_raises_and_logs(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.92")

        with capture_logs() as logs, pytest.raises(RateNotFoundError) as exc_info:
            currency_service.resolve_rate("EUR", "JPY", TODAY)

        assert exc_info.value.status_code == 404
        assert exc_info.value.context["from_currency"] == "EUR"
        assert any(
            log["event"] == "exchange_rate_not_found" and log["log_level"] == "warning"
            for log in logs
        )

    def test_never_falls_back_to_one(self, currency_service):
        with pytest.raises(RateNotFoundError):
            currency_service.convert(Decimal("100"), "USD", "CHF", TODAY)

    def test_old_fetched_rate_is_flagged_stale(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.92", recorded_at=FIXED_NOW - timedelta(hours=25))

        with capture_logs() as logs:
            resolved = currency_service.resolve_rate("USD", "EUR", TODAY)

        assert resolved.stale
        assert "stale_exchange_rate_used" in [log["event"] for log in logs]

    def test_stale_leg_makes_triangulated_rate_stale(self, currency_service, store_rate):
        store_rate("GBP", "USD", "1.25", recorded_at=FIXED_NOW - timedelta(days=3))
        store_rate("USD", "EUR", "0.92")

        assert currency_service.resolve_rate("GBP", "EUR", TODAY).stale


class TestConvert:
    def test_convert_rounds_to_two_places(self, currency_service, store_rate):
        store_rate("EUR", "USD", "1.0875")

        result = currency_service.convert(Decimal("33.33"), "EUR", "USD", TODAY)

        assert result.original == Money(Decimal("33.33"), "EUR")
        assert result.converted == Money(Decimal("36.25"), "USD")
        assert not result.stale

    def test_convert_accepts_money(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.92")

        result = currency_service.convert(
            Money(Decimal("100"), "USD"), "USD", "EUR", TODAY
        )

        assert result.converted.amount == Decimal("92.00")

    def test_round_trip_stays_within_rounding(self, currency_service, store_rate):
        store_rate("USD", "JPY", "149.5")

        there = currency_service.convert(Decimal("123.45"), "USD", "JPY", TODAY)
        back = currency_service.convert(there.converted, "JPY", "USD", TODAY)

        assert abs(back.converted.amount - Decimal("123.45")) <= Decimal("0.01")


class TestManualRates:
    def test_user_context_cannot_set_rate(self, currency_service, user_context):
        with pytest.raises(PermissionDeniedError):
            currency_service.set_manual_rate(
                "USD", "EUR", Decimal("0.9"), TODAY, user_context
            )

    def test_manual_rate_is_stored_both_ways(
        self, currency_service, rate_repo, service_context
    ):
        currency_service.set_manual_rate(
            "USD", "EUR", Decimal("0.8"), TODAY, service_context
        )

        assert rate_repo.get_rate("USD", "EUR", TODAY).source == ExchangeRateSource.MANUAL
        assert rate_repo.get_rate("EUR", "USD", TODAY).rate == Decimal("1.250000")

    def test_manual_rate_replaces_fetched_rate(
        self, currency_service, store_rate, service_context
    ):
        store_rate("USD", "EUR", "0.92")
        currency_service.set_manual_rate(
            "USD", "EUR", Decimal("0.90"), TODAY, service_context
        )

        assert currency_service.resolve_rate("USD", "EUR", TODAY).rate == Decimal(
            "0.900000"
        )

    def test_manual_rate_never_goes_stale(self, rate_repo, service_context):
        writer = CurrencyServiceImpl(rate_repo, clock=lambda: FIXED_NOW)
        writer.set_manual_rate("USD", "EUR", Decimal("0.9"), TODAY, service_context)
        later = CurrencyServiceImpl(
            rate_repo, clock=lambda: FIXED_NOW + timedelta(days=90)
        )

        assert not later.resolve_rate("USD", "EUR", TODAY).stale


class TestLatestAndListing:
    def test_latest_rate_ignores_date(self, currency_service, store_rate):
        store_rate("USD", "EUR", "0.95", valid_date=TODAY + timedelta(days=2))

        latest = currency_service.get_latest_rate("USD", "EUR")

        assert latest is not None
        assert latest.rate == Decimal("0.950000")
        assert currency_service.get_latest_rate("USD", "CHF") is None

    def test_list_rates_by_range(self, currency_service, store_rate):
        for days in (0, 1, 2):
            store_rate("usd", "eur", "0.9", valid_date=TODAY - timedelta(days=days))

        rates = currency_service.list_rates(
            "usd", "eur", start_date=TODAY - timedelta(days=1), end_date=TODAY
        )

        assert len(rates) == 2
