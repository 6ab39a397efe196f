from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.budgets import Budget, BudgetBreakdown, BudgetProgress
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ResolvedRate
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import Transaction, Transfer
from multicurrency_ledger.domain.value_objects import (
    Money,
    PaymentInstrumentType,
    TransactionType,
)


@dataclass(frozen=True)
class ConversionResult:
    original: Money
    converted: Money
    rate: ResolvedRate

    @property
    def stale(self) -> bool:
        return self.rate.stale


@dataclass(frozen=True)
class InstrumentBalance:
    """One instrument's balance in its native currency and, when possible, in
    the reporting currency.

    ``reporting_amount`` is None exactly when ``conversion_unavailable`` is set.
    """

    payment_instrument_id: UUID
    name: str
    currency: str
    native_balance: Decimal
    reporting_amount: Decimal | None
    rate: ResolvedRate | None = None
    stale: bool = False
    conversion_unavailable: bool = False


@dataclass(frozen=True)
class BalanceSummary:
    owner_id: UUID
    reporting_currency: str
    as_of: date
    total: Decimal
    instruments: list[InstrumentBalance] = field(default_factory=list)
    legacy_balance: Decimal = Decimal("0.00")

    @property
    def has_stale_rates(self) -> bool:
        return any(item.stale for item in self.instruments)

    @property
    def unavailable_currencies(self) -> list[str]:
        return sorted(
            {item.currency for item in self.instruments if item.conversion_unavailable}
        )


@dataclass(frozen=True)
class BudgetAlert:
    budget: Budget
    threshold: int
    percent_used: Decimal


class CurrencyService(ABC):
    @abstractmethod
    def resolve_rate(
        self, from_currency: str, to_currency: str, on_date: date
    ) -> ResolvedRate:
        pass

    @abstractmethod
    def convert(
        self,
        amount: Decimal | Money,
        from_currency: str,
        to_currency: str,
        on_date: date,
    ) -> ConversionResult:
        pass

    @abstractmethod
    def get_latest_rate(
        self, from_currency: str, to_currency: str
    ) -> ResolvedRate | None:
        pass

    @abstractmethod
    def set_manual_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        valid_date: date,
        context: AccessContext,
    ) -> ExchangeRate:
        pass

    @abstractmethod
    def list_rates(
        self,
        from_currency: str,
        to_currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ExchangeRate]:
        pass


class BalanceService(ABC):
    @abstractmethod
    def instrument_balance(
        self,
        instrument: PaymentInstrument,
        reporting_currency: str,
        as_of: date | None = None,
    ) -> InstrumentBalance:
        pass

    @abstractmethod
    def total_balance(
        self,
        owner_id: UUID,
        reporting_currency: str,
        as_of: date | None = None,
    ) -> BalanceSummary:
        pass


class BudgetService(ABC):
    @abstractmethod
    def create_budget(
        self,
        owner_id: UUID,
        period: date,
        limit_amount: Money,
        category_id: UUID | None = None,
        tag_id: UUID | None = None,
        name: str = "",
    ) -> Budget:
        pass

    @abstractmethod
    def get_budget(self, budget_id: UUID) -> Budget:
        pass

    @abstractmethod
    def breakdown(self, budget_id: UUID) -> BudgetBreakdown:
        pass

    @abstractmethod
    def progress(self, budget_id: UUID) -> BudgetProgress:
        pass

    @abstractmethod
    def check_alerts(
        self,
        owner_id: UUID,
        period: date,
        thresholds: Sequence[int] = (80, 90, 100),
    ) -> list[BudgetAlert]:
        pass


class TransactionService(ABC):
    @abstractmethod
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
        pass

    @abstractmethod
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
        pass


class PaymentInstrumentService(ABC):
    @abstractmethod
    def create_instrument(
        self,
        owner_id: UUID,
        name: str,
        currency: str,
        instrument_type: PaymentInstrumentType = PaymentInstrumentType.OTHER,
        color: str | None = None,
        is_default: bool = False,
    ) -> PaymentInstrument:
        pass

    @abstractmethod
    def get_instrument(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        pass

    @abstractmethod
    def set_default(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        pass

    @abstractmethod
    def deactivate(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        pass

    @abstractmethod
    def list_active(self, owner_id: UUID) -> list[PaymentInstrument]:
        pass
