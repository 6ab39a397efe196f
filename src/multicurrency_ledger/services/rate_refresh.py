"""Scheduled refresh of the exchange rate store.

The job fetches ``ANCHOR -> X`` for every currency held on an active payment
instrument and stores both directions for the run date. It writes through a
service-scoped AccessContext handed to it at construction; user contexts are
refused outright rather than downgraded to a partial run.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from uuid import uuid4

from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ExchangeRateSource
from multicurrency_ledger.domain.value_objects import normalize_currency
from multicurrency_ledger.exceptions import (
    MultiCurrencyLedgerError,
    PartialRefreshFailureError,
    RefreshNotConfiguredError,
    UnauthorizedRefreshError,
)
from multicurrency_ledger.logging_config import LogContext, get_logger
from multicurrency_ledger.repositories.interfaces import (
    ExchangeRateRepository,
    PaymentInstrumentRepository,
)
from multicurrency_ledger.services.rate_provider import RateProvider

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def verify_trigger_secret(provided: str | None, expected: str | None) -> None:
    """Check the scheduler's bearer secret in constant time."""
    if not expected:
        raise RefreshNotConfiguredError()
    if not provided or not secrets.compare_digest(
        provided.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("rate_refresh_trigger_rejected")
        raise UnauthorizedRefreshError("Invalid or missing trigger secret")


@dataclass(frozen=True)
class RefreshResult:
    valid_date: date
    succeeded: int
    failed: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        """At least one currency refreshed, or there was nothing to refresh."""
        return self.succeeded > 0 or not self.failed

    def raise_for_failure(self) -> None:
        if not self.is_success:
            raise PartialRefreshFailureError(self.failed, self.succeeded)

    def to_dict(self) -> dict[str, object]:
        return {
            "valid_date": self.valid_date.isoformat(),
            "succeeded": self.succeeded,
            "failed": list(self.failed),
            "refreshed": list(self.refreshed),
        }


class RateRefreshJob:
    def __init__(
        self,
        exchange_rate_repo: ExchangeRateRepository,
        instrument_repo: PaymentInstrumentRepository,
        provider: RateProvider,
        context: AccessContext,
        anchor_currency: str = "USD",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._require_service(context)
        self._rates = exchange_rate_repo
        self._instruments = instrument_repo
        self._provider = provider
        self._context = context
        self._anchor = normalize_currency(anchor_currency)
        self._clock = clock

    @staticmethod
    def _require_service(context: AccessContext) -> None:
        if not context.is_service:
            logger.warning(
                "rate_refresh_unauthorized",
                scope=context.scope.value,
                actor=context.actor,
            )
            raise UnauthorizedRefreshError()

    def currencies_to_refresh(self) -> list[str]:
        return [
            currency
            for currency in self._instruments.list_active_currencies()
            if currency != self._anchor
        ]

    def refresh_all(self, on_date: date | None = None) -> RefreshResult:
        self._require_service(self._context)
        valid_date = on_date or self._clock().date()
        currencies = self.currencies_to_refresh()

        with LogContext(job_run_id=uuid4().hex, valid_date=valid_date.isoformat()):
            logger.info(
                "rate_refresh_started",
                anchor=self._anchor,
                currencies=currencies,
            )
            refreshed: list[str] = []
            failed: list[str] = []
            for currency in currencies:
                if self._refresh_currency(currency, valid_date):
                    refreshed.append(currency)
                else:
                    failed.append(currency)

            result = RefreshResult(
                valid_date=valid_date,
                succeeded=len(refreshed),
                failed=failed,
                refreshed=refreshed,
            )
            log = logger.info if result.is_success else logger.error
            log(
                "rate_refresh_completed",
                succeeded=result.succeeded,
                failed=result.failed,
            )
        return result

    def _refresh_currency(self, currency: str, valid_date: date) -> bool:
        try:
            value = self._provider.fetch_rate(self._anchor, currency, valid_date)
            rate = ExchangeRate(
                from_currency=self._anchor,
                to_currency=currency,
                rate=value,
                valid_date=valid_date,
                source=ExchangeRateSource.FETCHED,
                provider=self._provider.name,
                recorded_at=self._clock(),
            )
            written = self._rates.upsert(rate, self._context)
            written_inverse = self._rates.upsert(rate.inverse, self._context)
        except MultiCurrencyLedgerError as e:
            logger.warning(
                "rate_fetch_failed",
                currency=currency,
                error_code=e.error_code,
                error=e.message,
            )
            return False

        if written < 1 or written_inverse < 1:
            logger.error(
                "rate_write_unverified",
                currency=currency,
                rows_written=written,
                inverse_rows_written=written_inverse,
            )
            return False

        logger.debug("rate_refreshed", currency=currency, rate=str(rate.rate))
        return True
