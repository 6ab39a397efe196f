from multicurrency_ledger.services.balance import BalanceServiceImpl
from multicurrency_ledger.services.budget import BudgetServiceImpl
from multicurrency_ledger.services.currency import CurrencyServiceImpl
from multicurrency_ledger.services.interfaces import (
    BalanceService,
    BalanceSummary,
    BudgetAlert,
    BudgetService,
    ConversionResult,
    CurrencyService,
    InstrumentBalance,
    PaymentInstrumentService,
    TransactionService,
)
from multicurrency_ledger.services.payment_instruments import (
    PaymentInstrumentServiceImpl,
)
from multicurrency_ledger.services.rate_provider import HttpRateProvider, RateProvider
from multicurrency_ledger.services.rate_refresh import (
    RateRefreshJob,
    RefreshResult,
    verify_trigger_secret,
)
from multicurrency_ledger.services.transactions import TransactionServiceImpl

__all__ = [
    "BalanceService",
    "BalanceServiceImpl",
    "BalanceSummary",
    "BudgetAlert",
    "BudgetService",
    "BudgetServiceImpl",
    "ConversionResult",
    "CurrencyService",
    "CurrencyServiceImpl",
    "HttpRateProvider",
    "InstrumentBalance",
    "PaymentInstrumentService",
    "PaymentInstrumentServiceImpl",
    "RateProvider",
    "RateRefreshJob",
    "RefreshResult",
    "TransactionService",
    "TransactionServiceImpl",
    "verify_trigger_secret",
]
