from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ExchangeRateSource
from multicurrency_ledger.repositories.sqlite import (
    SQLiteBudgetRepository,
    SQLiteDatabase,
    SQLiteExchangeRateRepository,
    SQLitePaymentInstrumentRepository,
    SQLiteTransactionRepository,
)
from multicurrency_ledger.services.currency import CurrencyServiceImpl

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
TODAY = FIXED_NOW.date()


@pytest.fixture
def db() -> SQLiteDatabase:
    """Create an in-memory SQLite database for testing."""
    database = SQLiteDatabase(":memory:", check_same_thread=False)
    database.initialize()
    return database


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def service_context() -> AccessContext:
    return AccessContext.for_service(actor="test")


@pytest.fixture
def user_context(owner_id: UUID) -> AccessContext:
    return AccessContext.for_user(owner_id)


@pytest.fixture
def rate_repo(db: SQLiteDatabase) -> SQLiteExchangeRateRepository:
    return SQLiteExchangeRateRepository(db)


@pytest.fixture
def instrument_repo(db: SQLiteDatabase) -> SQLitePaymentInstrumentRepository:
    return SQLitePaymentInstrumentRepository(db)


@pytest.fixture
def transaction_repo(db: SQLiteDatabase) -> SQLiteTransactionRepository:
    return SQLiteTransactionRepository(db)


@pytest.fixture
def budget_repo(db: SQLiteDatabase) -> SQLiteBudgetRepository:
    return SQLiteBudgetRepository(db)


@pytest.fixture
def currency_service(rate_repo: SQLiteExchangeRateRepository) -> CurrencyServiceImpl:
    return CurrencyServiceImpl(
        rate_repo,
        anchor_currency="USD",
        rate_ttl=timedelta(hours=24),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def store_rate(rate_repo: SQLiteExchangeRateRepository, service_context: AccessContext):
    """Write a fetched rate recorded at FIXED_NOW unless told otherwise."""

    def _store(
        from_currency: str,
        to_currency: str,
        rate: str,
        valid_date: date = TODAY,
        source: ExchangeRateSource = ExchangeRateSource.FETCHED,
        recorded_at: datetime = FIXED_NOW,
    ) -> ExchangeRate:
        stored = ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=Decimal(rate),
            valid_date=valid_date,
            source=source,
            recorded_at=recorded_at,
        )
        rate_repo.upsert(stored, service_context)
        return stored

    return _store
