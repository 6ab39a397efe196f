from multicurrency_ledger.repositories.interfaces import (
    BudgetRepository,
    ExchangeRateRepository,
    PaymentInstrumentRepository,
    TransactionRepository,
)
from multicurrency_ledger.repositories.sqlite import (
    DEFAULT_SEED_RATES,
    SQLiteBudgetRepository,
    SQLiteDatabase,
    SQLiteExchangeRateRepository,
    SQLitePaymentInstrumentRepository,
    SQLiteTransactionRepository,
    seed_rates,
)

__all__ = [
    "BudgetRepository",
    "ExchangeRateRepository",
    "PaymentInstrumentRepository",
    "TransactionRepository",
    "DEFAULT_SEED_RATES",
    "SQLiteBudgetRepository",
    "SQLiteDatabase",
    "SQLiteExchangeRateRepository",
    "SQLitePaymentInstrumentRepository",
    "SQLiteTransactionRepository",
    "seed_rates",
]
