from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date
from uuid import UUID

from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.budgets import Budget
from multicurrency_ledger.domain.exchange_rates import ExchangeRate
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import Transaction


class ExchangeRateRepository(ABC):
    """Repository interface for the rate store.

    Reads are open to every caller. Writes take an explicit AccessContext
    and must refuse anything that is not service-scoped.
    """

    @abstractmethod
    def upsert(self, rate: ExchangeRate, context: AccessContext) -> int:
        """Insert or replace the rate for its (pair, valid_date).

        Returns the number of rows written.
        """
        pass

    @abstractmethod
    def get(self, rate_id: UUID) -> ExchangeRate | None:
        """Get exchange rate by ID."""
        pass

    @abstractmethod
    def get_rate(
        self,
        from_currency: str,
        to_currency: str,
        valid_date: date,
    ) -> ExchangeRate | None:
        """Get exchange rate for currency pair on exactly this date."""
        pass

    @abstractmethod
    def get_rate_as_of(
        self,
        from_currency: str,
        to_currency: str,
        as_of: date,
    ) -> ExchangeRate | None:
        """Get the most recent rate with valid_date on or before ``as_of``."""
        pass

    @abstractmethod
    def get_latest_rate(
        self,
        from_currency: str,
        to_currency: str,
    ) -> ExchangeRate | None:
        """Get most recent exchange rate for currency pair, whatever its date."""
        pass

    @abstractmethod
    def list_by_currency_pair(
        self,
        from_currency: str,
        to_currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[ExchangeRate]:
        """List exchange rates for currency pair within date range."""
        pass

    @abstractmethod
    def list_by_date(self, valid_date: date) -> Iterable[ExchangeRate]:
        """List all exchange rates for a specific date."""
        pass


class PaymentInstrumentRepository(ABC):
    @abstractmethod
    def add(self, instrument: PaymentInstrument) -> None:
        pass

    @abstractmethod
    def get(self, instrument_id: UUID) -> PaymentInstrument | None:
        pass

    @abstractmethod
    def list_by_owner(
        self, owner_id: UUID, include_inactive: bool = False
    ) -> Iterable[PaymentInstrument]:
        """List an owner's instruments in creation order."""
        pass

    @abstractmethod
    def list_active_currencies(self) -> list[str]:
        """Distinct currencies of active instruments across all owners."""
        pass

    @abstractmethod
    def update(self, instrument: PaymentInstrument) -> None:
        """Persist mutable fields; the currency column is never rewritten."""
        pass

    @abstractmethod
    def set_default(self, owner_id: UUID, instrument_id: UUID) -> None:
        """Make one instrument the owner's only default."""
        pass


class TransactionRepository(ABC):
    @abstractmethod
    def add(self, txn: Transaction) -> None:
        pass

    @abstractmethod
    def add_transfer(self, withdrawal: Transaction, deposit: Transaction) -> None:
        """Write both legs of a transfer atomically; neither is kept on failure."""
        pass

    @abstractmethod
    def get(self, txn_id: UUID) -> Transaction | None:
        pass

    @abstractmethod
    def list_by_owner(
        self,
        owner_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterable[Transaction]:
        pass

    @abstractmethod
    def list_by_payment_instrument(
        self, instrument_id: UUID, end_date: date | None = None
    ) -> Iterable[Transaction]:
        pass

    @abstractmethod
    def list_legacy_by_owner(
        self, owner_id: UUID, end_date: date | None = None
    ) -> Iterable[Transaction]:
        """Transactions of an owner that have no payment instrument."""
        pass

    @abstractmethod
    def list_for_budget(self, budget: Budget) -> Iterable[Transaction]:
        """Expense transactions in the budget's month matching its category or tag."""
        pass


class BudgetRepository(ABC):
    @abstractmethod
    def add(self, budget: Budget) -> None:
        pass

    @abstractmethod
    def get(self, budget_id: UUID) -> Budget | None:
        pass

    @abstractmethod
    def list_by_owner(
        self, owner_id: UUID, period: date | None = None
    ) -> Iterable[Budget]:
        pass

    @abstractmethod
    def delete(self, budget_id: UUID) -> None:
        pass
