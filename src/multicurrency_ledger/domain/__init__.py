from multicurrency_ledger.domain.access import AccessContext, AccessScope
from multicurrency_ledger.domain.budgets import (
    Budget,
    BudgetBreakdown,
    BudgetBreakdownItem,
    BudgetProgress,
)
from multicurrency_ledger.domain.exchange_rates import (
    ExchangeRate,
    ExchangeRateSource,
    ResolutionMethod,
    ResolvedRate,
)
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import (
    CurrencyConversion,
    Transaction,
    Transfer,
)
from multicurrency_ledger.domain.value_objects import (
    Money,
    PaymentInstrumentType,
    TransactionType,
)

__all__ = [
    "AccessContext",
    "AccessScope",
    "Budget",
    "BudgetBreakdown",
    "BudgetBreakdownItem",
    "BudgetProgress",
    "CurrencyConversion",
    "ExchangeRate",
    "ExchangeRateSource",
    "Money",
    "PaymentInstrument",
    "PaymentInstrumentType",
    "ResolutionMethod",
    "ResolvedRate",
    "Transaction",
    "TransactionType",
    "Transfer",
]
