from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import (
    CurrencyConversion,
    Transaction,
    Transfer,
)
from multicurrency_ledger.domain.value_objects import (
    TransactionType,
    normalize_currency,
    round_amount,
    round_rate,
    to_decimal,
)
from multicurrency_ledger.exceptions import (
    InactivePaymentInstrumentError,
    InvalidAmountError,
    InvalidScopeError,
    PaymentInstrumentNotFoundError,
)
from multicurrency_ledger.logging_config import get_logger
from multicurrency_ledger.repositories.interfaces import (
    PaymentInstrumentRepository,
    TransactionRepository,
)
from multicurrency_ledger.services.interfaces import (
    CurrencyService,
    TransactionService,
)

logger = get_logger(__name__)


class TransactionServiceImpl(TransactionService):
    def __init__(
        self,
        transaction_repo: TransactionRepository,
        instrument_repo: PaymentInstrumentRepository,
        currency_service: CurrencyService,
    ) -> None:
        self._transactions = transaction_repo
        self._instruments = instrument_repo
        self._currency = currency_service

    def create_transaction(
        self,
        owner_id: UUID,
        reporting_currency: str,
        transaction_type: TransactionType,
        amount: Decimal,
        transaction_date: date,
        payment_instrument_id: UUID | None = None,
        category_id: UUID | None = None,
        tag_ids: Iterable[UUID] = (),
        description: str = "",
        manual_rate: Decimal | None = None,
    ) -> Transaction:
        """Record a transaction, converting its amount when it has an instrument.

        Without an instrument ``amount`` is taken to be in the reporting
        currency already. With one, ``amount`` is the native amount and the
        rate is ``manual_rate`` if given, otherwise the resolved rate for the
        transaction date. A missing rate raises RateNotFoundError.
        """
        reporting_currency = normalize_currency(reporting_currency)
        amount = to_decimal(amount)

        if payment_instrument_id is None:
            if manual_rate is not None:
                raise InvalidScopeError(
                    "A manual rate requires a payment instrument",
                    owner_id=str(owner_id),
                )
            txn = Transaction(
                owner_id=owner_id,
                transaction_type=transaction_type,
                amount=round_amount(amount),
                transaction_date=transaction_date,
                category_id=category_id,
                tag_ids=list(tag_ids),
                description=description,
            )
        else:
            instrument = self._active_instrument(owner_id, payment_instrument_id)

            if manual_rate is not None:
                rate = to_decimal(manual_rate)
                logger.info(
                    "manual_rate_applied",
                    payment_instrument_id=str(instrument.id),
                    pair=f"{instrument.currency}/{reporting_currency}",
                    rate=str(rate),
                )
            else:
                resolved = self._currency.resolve_rate(
                    instrument.currency, reporting_currency, transaction_date
                )
                rate = resolved.rate

            conversion = CurrencyConversion(
                native_amount=amount,
                exchange_rate_used=rate,
                reporting_currency_at_time=reporting_currency,
            )
            txn = Transaction(
                owner_id=owner_id,
                transaction_type=transaction_type,
                amount=conversion.reporting_amount,
                transaction_date=transaction_date,
                payment_instrument_id=instrument.id,
                conversion=conversion,
                category_id=category_id,
                tag_ids=list(tag_ids),
                description=description,
            )

        self._transactions.add(txn)
        logger.info(
            "transaction_recorded",
            transaction_id=str(txn.id),
            owner_id=str(owner_id),
            transaction_type=txn.transaction_type.value,
            amount=str(txn.amount),
            legacy=txn.is_legacy,
        )
        return txn

    def create_transfer(
        self,
        owner_id: UUID,
        reporting_currency: str,
        source_id: UUID,
        destination_id: UUID,
        amount: Decimal,
        transfer_date: date,
        manual_rate: Decimal | None = None,
        description: str = "",
    ) -> Transfer:
        """Move ``amount`` (source currency) from one instrument to another.

        ``manual_rate`` replaces the looked-up source -> destination rate.
        Each leg is also converted into the reporting currency. Every rate is
        resolved before anything is written, and both legs are stored in one
        database transaction.
        """
        reporting_currency = normalize_currency(reporting_currency)
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(str(amount), "transfer amount must be positive")
        if source_id == destination_id:
            raise InvalidScopeError(
                "Source and destination must be different payment instruments",
                payment_instrument_id=str(source_id),
            )

        source = self._active_instrument(owner_id, source_id)
        destination = self._active_instrument(owner_id, destination_id)

        if manual_rate is not None:
            rate = round_rate(to_decimal(manual_rate))
            if rate <= 0:
                raise InvalidAmountError(str(manual_rate), "exchange rate must be positive")
        else:
            rate = self._currency.resolve_rate(
                source.currency, destination.currency, transfer_date
            ).rate
        source_to_reporting = self._currency.resolve_rate(
            source.currency, reporting_currency, transfer_date
        ).rate
        destination_to_reporting = self._currency.resolve_rate(
            destination.currency, reporting_currency, transfer_date
        ).rate

        withdrawal_id, deposit_id = uuid4(), uuid4()
        withdrawal_conversion = CurrencyConversion(
            native_amount=-amount,
            exchange_rate_used=source_to_reporting,
            reporting_currency_at_time=reporting_currency,
        )
        deposit_conversion = CurrencyConversion(
            native_amount=round_amount(amount * rate),
            exchange_rate_used=destination_to_reporting,
            reporting_currency_at_time=reporting_currency,
        )
        withdrawal = Transaction(
            owner_id=owner_id,
            transaction_type=TransactionType.TRANSFER,
            amount=withdrawal_conversion.reporting_amount,
            transaction_date=transfer_date,
            id=withdrawal_id,
            payment_instrument_id=source.id,
            conversion=withdrawal_conversion,
            description=description or f"Transfer to {destination.name}",
            linked_transaction_id=deposit_id,
        )
        deposit = Transaction(
            owner_id=owner_id,
            transaction_type=TransactionType.TRANSFER,
            amount=deposit_conversion.reporting_amount,
            transaction_date=transfer_date,
            id=deposit_id,
            payment_instrument_id=destination.id,
            conversion=deposit_conversion,
            description=description or f"Transfer from {source.name}",
            linked_transaction_id=withdrawal_id,
        )

        self._transactions.add_transfer(withdrawal, deposit)
        transfer = Transfer(withdrawal=withdrawal, deposit=deposit, exchange_rate=rate)
        logger.info(
            "transfer_recorded",
            owner_id=str(owner_id),
            withdrawal_id=str(withdrawal_id),
            deposit_id=str(deposit_id),
            pair=f"{source.currency}/{destination.currency}",
            rate=str(rate),
            manual_rate=manual_rate is not None,
            source_amount=str(transfer.source_amount),
            destination_amount=str(transfer.destination_amount),
        )
        return transfer

    def _active_instrument(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        instrument = self._instruments.get(instrument_id)
        if instrument is None or instrument.owner_id != owner_id:
            raise PaymentInstrumentNotFoundError(instrument_id)
        if not instrument.is_active:
            raise InactivePaymentInstrumentError(instrument_id)
        return instrument
