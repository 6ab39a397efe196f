from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from uuid import UUID

from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.value_objects import normalize_currency, round_amount
from multicurrency_ledger.exceptions import RateNotFoundError
from multicurrency_ledger.logging_config import get_logger
from multicurrency_ledger.repositories.interfaces import (
    PaymentInstrumentRepository,
    TransactionRepository,
)
from multicurrency_ledger.services.interfaces import (
    BalanceService,
    BalanceSummary,
    CurrencyService,
    InstrumentBalance,
)

logger = get_logger(__name__)


class BalanceServiceImpl(BalanceService):
    """Derives instrument balances from transaction history.

    Native balances are converted with the rate as of ``as_of``. When no such
    rate exists the most recent rate on record is used and flagged stale; when
    the pair has never had a rate the instrument is reported as
    ``conversion_unavailable`` and left out of the total.
    """

    def __init__(
        self,
        instrument_repo: PaymentInstrumentRepository,
        transaction_repo: TransactionRepository,
        currency_service: CurrencyService,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._instruments = instrument_repo
        self._transactions = transaction_repo
        self._currency = currency_service
        self._today = today

    def native_balance(
        self, instrument: PaymentInstrument, as_of: date | None = None
    ) -> Decimal:
        txns = self._transactions.list_by_payment_instrument(instrument.id, as_of)
        return sum((txn.signed_native_amount for txn in txns), Decimal("0"))

    def instrument_balance(
        self,
        instrument: PaymentInstrument,
        reporting_currency: str,
        as_of: date | None = None,
    ) -> InstrumentBalance:
        as_of = as_of or self._today()
        reporting_currency = normalize_currency(reporting_currency)
        native = self.native_balance(instrument, as_of)

        try:
            result = self._currency.convert(
                native, instrument.currency, reporting_currency, as_of
            )
        except RateNotFoundError:
            latest = self._currency.get_latest_rate(
                instrument.currency, reporting_currency
            )
            if latest is None:
                logger.warning(
                    "balance_conversion_unavailable",
                    payment_instrument_id=str(instrument.id),
                    from_currency=instrument.currency,
                    to_currency=reporting_currency,
                )
                return InstrumentBalance(
                    payment_instrument_id=instrument.id,
                    name=instrument.name,
                    currency=instrument.currency,
                    native_balance=native,
                    reporting_amount=None,
                    conversion_unavailable=True,
                )
            rate = latest.as_stale()
            logger.warning(
                "stale_exchange_rate_used",
                pair=rate.pair,
                effective_date=rate.effective_date.isoformat(),
                payment_instrument_id=str(instrument.id),
            )
            return InstrumentBalance(
                payment_instrument_id=instrument.id,
                name=instrument.name,
                currency=instrument.currency,
                native_balance=native,
                reporting_amount=round_amount(native * rate.rate),
                rate=rate,
                stale=True,
            )

        return InstrumentBalance(
            payment_instrument_id=instrument.id,
            name=instrument.name,
            currency=instrument.currency,
            native_balance=native,
            reporting_amount=result.converted.amount,
            rate=result.rate,
            stale=result.stale,
        )

    def legacy_balance(self, owner_id: UUID, as_of: date | None = None) -> Decimal:
        txns = self._transactions.list_legacy_by_owner(owner_id, as_of)
        return round_amount(sum((txn.signed_amount for txn in txns), Decimal("0")))

    def total_balance(
        self,
        owner_id: UUID,
        reporting_currency: str,
        as_of: date | None = None,
    ) -> BalanceSummary:
        as_of = as_of or self._today()
        reporting_currency = normalize_currency(reporting_currency)

        instruments = [
            self.instrument_balance(instrument, reporting_currency, as_of)
            for instrument in self._instruments.list_by_owner(owner_id)
        ]
        legacy = self.legacy_balance(owner_id, as_of)
        total = legacy + sum(
            (
                item.reporting_amount
                for item in instruments
                if item.reporting_amount is not None
            ),
            Decimal("0"),
        )

        summary = BalanceSummary(
            owner_id=owner_id,
            reporting_currency=reporting_currency,
            as_of=as_of,
            total=round_amount(total),
            instruments=instruments,
            legacy_balance=legacy,
        )
        logger.debug(
            "balance_computed",
            owner_id=str(owner_id),
            reporting_currency=reporting_currency,
            instrument_count=len(instruments),
            has_stale_rates=summary.has_stale_rates,
        )
        return summary
