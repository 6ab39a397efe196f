from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from multicurrency_ledger.domain.value_objects import (
    TransactionType,
    normalize_currency,
    round_amount,
    round_rate,
    to_decimal,
)
from multicurrency_ledger.exceptions import InvalidAmountError, InvalidScopeError


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class CurrencyConversion:
    """The native side of a transaction recorded against a payment instrument.

    The three fields only ever exist together; a transaction either carries
    a complete CurrencyConversion or none at all.
    """

    native_amount: Decimal
    exchange_rate_used: Decimal
    reporting_currency_at_time: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "native_amount", to_decimal(self.native_amount))
        rate = round_rate(to_decimal(self.exchange_rate_used))
        if rate <= 0:
            raise InvalidAmountError(
                str(self.exchange_rate_used), "exchange rate must be positive"
            )
        object.__setattr__(self, "exchange_rate_used", rate)
        object.__setattr__(
            self,
            "reporting_currency_at_time",
            normalize_currency(self.reporting_currency_at_time),
        )

    @property
    def reporting_amount(self) -> Decimal:
        return round_amount(self.native_amount * self.exchange_rate_used)


@dataclass
class Transaction:
    """A single income, expense or transfer leg.

    ``amount`` is always in the owner's reporting currency as of recording.
    Transactions without a payment instrument are legacy records and carry
    no conversion metadata.
    """

    owner_id: UUID
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: date
    id: UUID = field(default_factory=uuid4)
    payment_instrument_id: UUID | None = None
    conversion: CurrencyConversion | None = None
    category_id: UUID | None = None
    tag_ids: list[UUID] = field(default_factory=list)
    description: str = ""
    created_at: datetime = field(default_factory=_utc_now)
    linked_transaction_id: UUID | None = None

    def __post_init__(self) -> None:
        self.transaction_type = TransactionType(self.transaction_type)
        self.amount = to_decimal(self.amount)
        self.validate()

    @property
    def is_legacy(self) -> bool:
        return self.payment_instrument_id is None

    @property
    def native_amount(self) -> Decimal | None:
        return self.conversion.native_amount if self.conversion else None

    @property
    def exchange_rate_used(self) -> Decimal | None:
        return self.conversion.exchange_rate_used if self.conversion else None

    @property
    def reporting_currency_at_time(self) -> str | None:
        return self.conversion.reporting_currency_at_time if self.conversion else None

    @property
    def signed_amount(self) -> Decimal:
        """Reporting-currency amount with income positive and expenses negative."""
        return self._signed(self.amount)

    @property
    def signed_native_amount(self) -> Decimal:
        """Native-currency amount with the same sign convention."""
        if self.conversion is None:
            return self.signed_amount
        return self._signed(self.conversion.native_amount)

    def _signed(self, value: Decimal) -> Decimal:
        if self.transaction_type == TransactionType.EXPENSE:
            return -value
        return value

    def validate(self) -> None:
        if self.transaction_type == TransactionType.TRANSFER:
            if self.amount == 0:
                raise InvalidAmountError(str(self.amount), "transfer amount must be non-zero")
        elif self.amount <= 0:
            raise InvalidAmountError(
                str(self.amount),
                f"{self.transaction_type.value} amount must be positive",
            )

        if (
            self.linked_transaction_id is not None
            and self.transaction_type != TransactionType.TRANSFER
        ):
            raise InvalidScopeError(
                "Only transfer legs can be linked to another transaction",
                transaction_id=str(self.id),
            )

        if self.payment_instrument_id is None and self.conversion is not None:
            raise InvalidScopeError(
                "Conversion details require a payment instrument",
                transaction_id=str(self.id),
            )
        if self.payment_instrument_id is not None and self.conversion is None:
            raise InvalidScopeError(
                "Transactions on a payment instrument must record native_amount, "
                "exchange_rate_used and reporting_currency_at_time",
                transaction_id=str(self.id),
            )
        if self.conversion is not None:
            expected = self.conversion.reporting_amount
            if expected != self.amount:
                raise InvalidScopeError(
                    f"amount {self.amount} does not equal "
                    f"round(native_amount * exchange_rate_used, 2) = {expected}",
                    transaction_id=str(self.id),
                )


@dataclass(frozen=True)
class Transfer:
    """Two linked TRANSFER legs moving money between an owner's instruments.

    The withdrawal carries a negative native amount on the source instrument,
    the deposit a positive one on the destination. ``exchange_rate`` converts
    source units into destination units.
    """

    withdrawal: Transaction
    deposit: Transaction
    exchange_rate: Decimal

    @property
    def source_amount(self) -> Decimal:
        return -self.withdrawal.signed_native_amount

    @property
    def destination_amount(self) -> Decimal:
        return self.deposit.signed_native_amount
