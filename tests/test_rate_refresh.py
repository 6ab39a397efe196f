"""Tests for the scheduled exchange rate refresh job."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from multicurrency_ledger.domain.exchange_rates import ExchangeRateSource
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.exceptions import (
    PartialRefreshFailureError,
    RateProviderError,
    RefreshNotConfiguredError,
    UnauthorizedRefreshError,
)
from multicurrency_ledger.repositories.sqlite import SQLiteExchangeRateRepository
from multicurrency_ledger.services.rate_provider import RateProvider
from multicurrency_ledger.services.rate_refresh import (
    RateRefreshJob,
    RefreshResult,
    verify_trigger_secret,
)

from conftest import FIXED_NOW, TODAY


class FakeProvider(RateProvider):
    name = "fake"

    def __init__(self, rates: dict[str, str], failing: tuple[str, ...] = ()) -> None:
        self.rates = rates
        self.failing = failing
        self.calls: list[tuple[str, str, date]] = []

    def fetch_rate(self, base: str, quote: str, on_date: date) -> Decimal:
        self.calls.append((base, quote, on_date))
        if quote in self.failing:
            raise RateProviderError(quote, "HTTP 503 from provider")
        return Decimal(self.rates[quote])


class ZeroWriteRepository(SQLiteExchangeRateRepository):
    def upsert(self, rate, context) -> int:
        super().upsert(rate, context)
        return 0


@pytest.fixture
def instruments(instrument_repo, owner_id):
    for currency in ("EUR", "GBP", "USD"):
        instrument_repo.add(
            PaymentInstrument(owner_id=owner_id, name=currency, currency=currency)
        )
    return instrument_repo


def _job(rate_repo, instrument_repo, provider, context) -> RateRefreshJob:
    return RateRefreshJob(
        rate_repo, instrument_repo, provider, context, clock=lambda: FIXED_NOW
    )


class TestRateRefreshJob:
    def test_requires_service_context(self, rate_repo, instruments, user_context):
        with pytest.raises(UnauthorizedRefreshError):
            _job(rate_repo, instruments, FakeProvider({}), user_context)

    def test_refreshes_non_anchor_currencies(
        self, rate_repo, instruments, service_context
    ):
        provider = FakeProvider({"EUR": "0.92", "GBP": "0.8"})

        result = _job(rate_repo, instruments, provider, service_context).refresh_all()

        assert result.valid_date == TODAY
        assert result.succeeded == 2
        assert result.refreshed == ["EUR", "GBP"]
        assert result.failed == []
        assert [call[1] for call in provider.calls] == ["EUR", "GBP"]

        stored = rate_repo.get_rate("USD", "EUR", TODAY)
        assert stored.source == ExchangeRateSource.FETCHED
        assert stored.provider == "fake"
        assert stored.recorded_at == FIXED_NOW
        assert rate_repo.get_rate("GBP", "USD", TODAY).rate == Decimal("1.250000")

    def test_inactive_instruments_are_skipped(
        self, rate_repo, instrument_repo, owner_id, service_context
    ):
        chf = PaymentInstrument(owner_id=owner_id, name="Swiss", currency="CHF")
        instrument_repo.add(chf)
        chf.deactivate()
        instrument_repo.update(chf)

        job = _job(rate_repo, instrument_repo, FakeProvider({}), service_context)

        assert job.currencies_to_refresh() == []
        assert job.refresh_all().is_success

    def test_rerun_on_same_date_is_idempotent(
        self, rate_repo, instruments, service_context
    ):
        provider = FakeProvider({"EUR": "0.92", "GBP": "0.8"})
        clock = [FIXED_NOW]
        job = RateRefreshJob(
            rate_repo, instruments, provider, service_context, clock=lambda: clock[0]
        )

        def snapshot():
            return [
                (rate.id, rate.pair, rate.rate, rate.source, rate.provider, rate.recorded_at)
                for rate in rate_repo.list_by_date(TODAY)
            ]

        first = job.refresh_all(TODAY)
        before = snapshot()
        clock[0] = FIXED_NOW + timedelta(hours=2)
        second = job.refresh_all(TODAY)

        assert first.succeeded == second.succeeded == 2
        assert len(before) == 4
        assert snapshot() == before
        assert all(row[-1] == FIXED_NOW for row in before)
        assert len(list(rate_repo.list_by_currency_pair("USD", "EUR"))) == 1

    def test_one_failure_does_not_block_others(
        self, rate_repo, instruments, service_context
    ):
        provider = FakeProvider({"GBP": "0.8"}, failing=("EUR",))

        result = _job(rate_repo, instruments, provider, service_context).refresh_all()

        assert result.failed == ["EUR"]
        assert result.refreshed == ["GBP"]
        assert result.is_success
        assert rate_repo.get_rate("USD", "EUR", TODAY) is None
        assert rate_repo.get_rate("USD", "GBP", TODAY) is not None

    def test_every_currency_failing_is_a_failure(
        self, rate_repo, instruments, service_context
    ):
        provider = FakeProvider({}, failing=("EUR", "GBP"))

        result = _job(rate_repo, instruments, provider, service_context).refresh_all()

        assert not result.is_success
        with pytest.raises(PartialRefreshFailureError) as exc_info:
            result.raise_for_failure()
        assert exc_info.value.status_code == 502
        assert exc_info.value.failed == ["EUR", "GBP"]

    def test_unverified_write_counts_as_failure(
        self, db, instruments, service_context
    ):
        provider = FakeProvider({"EUR": "0.92", "GBP": "0.8"})

        result = _job(
            ZeroWriteRepository(db), instruments, provider, service_context
        ).refresh_all()

        assert result.succeeded == 0
        assert result.failed == ["EUR", "GBP"]


class TestRefreshResult:
    def test_nothing_to_refresh_is_success(self):
        RefreshResult(valid_date=TODAY, succeeded=0).raise_for_failure()

    def test_to_dict(self):
        result = RefreshResult(TODAY, 1, failed=["GBP"], refreshed=["EUR"])
        assert result.to_dict() == {
            "valid_date": "2026-01-15",
            "succeeded": 1,
            "failed": ["GBP"],
            "refreshed": ["EUR"],
        }


class TestVerifyTriggerSecret:
    def test_unconfigured_secret(self):
        with pytest.raises(RefreshNotConfiguredError):
            verify_trigger_secret("anything", None)

    @pytest.mark.parametrize("provided", [None, "", "wrong"])
    def test_wrong_secret(self, provided):
        with pytest.raises(UnauthorizedRefreshError):
            verify_trigger_secret(provided, "s3cret")

    def test_matching_secret(self):
        verify_trigger_secret("s3cret", "s3cret")
