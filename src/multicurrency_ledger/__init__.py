from multicurrency_ledger.domain.budgets import Budget
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ExchangeRateSource
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import CurrencyConversion, Transaction
from multicurrency_ledger.domain.value_objects import Money, TransactionType

__all__ = [
    "Budget",
    "CurrencyConversion",
    "ExchangeRate",
    "ExchangeRateSource",
    "Money",
    "PaymentInstrument",
    "Transaction",
    "TransactionType",
]

__version__ = "0.1.0"
