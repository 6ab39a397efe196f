"""Dependency injection container for Multi-Currency Ledger.

Provides lazily built, cached access to the database, repositories and
services so the API, the CLI and tests wire things the same way.

Usage:
    from multicurrency_ledger.container import get_container

    container = get_container()
    summary = container.balance_service.total_balance(owner_id, "EUR")

The refresh job is the one object that writes exchange rates. It is built on
demand with an explicit service-scoped AccessContext rather than cached next
to the user-facing services.
"""

from datetime import timedelta
from functools import cached_property, lru_cache
from typing import TYPE_CHECKING

from multicurrency_ledger.config import Settings, get_settings
from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.logging_config import get_logger

if TYPE_CHECKING:
    from multicurrency_ledger.repositories.sqlite import (
        SQLiteBudgetRepository,
        SQLiteDatabase,
        SQLiteExchangeRateRepository,
        SQLitePaymentInstrumentRepository,
        SQLiteTransactionRepository,
    )
    from multicurrency_ledger.services.balance import BalanceServiceImpl
    from multicurrency_ledger.services.budget import BudgetServiceImpl
    from multicurrency_ledger.services.currency import CurrencyServiceImpl
    from multicurrency_ledger.services.payment_instruments import (
        PaymentInstrumentServiceImpl,
    )
    from multicurrency_ledger.services.rate_provider import RateProvider
    from multicurrency_ledger.services.rate_refresh import RateRefreshJob
    from multicurrency_ledger.services.transactions import TransactionServiceImpl

logger = get_logger(__name__)


class Container:
    """Dependency injection container.

    The container can be configured with custom settings, or an already
    initialized database, for testing:

        container = Container(settings=Settings(sqlite_path=":memory:"))
    """

    def __init__(
        self,
        settings: Settings | None = None,
        database: "SQLiteDatabase | None" = None,
    ) -> None:
        self._settings = settings or get_settings()
        if database is not None:
            self.__dict__["database"] = database
        logger.debug(
            "container_created",
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> "SQLiteDatabase":
        """SQLite database, initialized on first access."""
        from multicurrency_ledger.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)

        db = SQLiteDatabase(db_path, check_same_thread=False)
        db.initialize()
        return db

    @cached_property
    def exchange_rate_repository(self) -> "SQLiteExchangeRateRepository":
        from multicurrency_ledger.repositories.sqlite import (
            SQLiteExchangeRateRepository,
        )

        return SQLiteExchangeRateRepository(self.database)

    @cached_property
    def payment_instrument_repository(self) -> "SQLitePaymentInstrumentRepository":
        from multicurrency_ledger.repositories.sqlite import (
            SQLitePaymentInstrumentRepository,
        )

        return SQLitePaymentInstrumentRepository(self.database)

    @cached_property
    def transaction_repository(self) -> "SQLiteTransactionRepository":
        from multicurrency_ledger.repositories.sqlite import (
            SQLiteTransactionRepository,
        )

        return SQLiteTransactionRepository(self.database)

    @cached_property
    def budget_repository(self) -> "SQLiteBudgetRepository":
        from multicurrency_ledger.repositories.sqlite import SQLiteBudgetRepository

        return SQLiteBudgetRepository(self.database)

    @cached_property
    def currency_service(self) -> "CurrencyServiceImpl":
        """Rate lookup and conversion; read-only unless handed a service context."""
        from multicurrency_ledger.services.currency import CurrencyServiceImpl

        return CurrencyServiceImpl(
            self.exchange_rate_repository,
            anchor_currency=self._settings.anchor_currency,
            rate_ttl=timedelta(hours=self._settings.rate_ttl_hours),
        )

    @cached_property
    def balance_service(self) -> "BalanceServiceImpl":
        from multicurrency_ledger.services.balance import BalanceServiceImpl

        return BalanceServiceImpl(
            self.payment_instrument_repository,
            self.transaction_repository,
            self.currency_service,
        )

    @cached_property
    def budget_service(self) -> "BudgetServiceImpl":
        from multicurrency_ledger.services.budget import BudgetServiceImpl

        return BudgetServiceImpl(
            self.budget_repository,
            self.transaction_repository,
            self.payment_instrument_repository,
        )

    @cached_property
    def transaction_service(self) -> "TransactionServiceImpl":
        from multicurrency_ledger.services.transactions import TransactionServiceImpl

        return TransactionServiceImpl(
            self.transaction_repository,
            self.payment_instrument_repository,
            self.currency_service,
        )

    @cached_property
    def payment_instrument_service(self) -> "PaymentInstrumentServiceImpl":
        from multicurrency_ledger.services.payment_instruments import (
            PaymentInstrumentServiceImpl,
        )

        return PaymentInstrumentServiceImpl(self.payment_instrument_repository)

    @cached_property
    def rate_provider(self) -> "RateProvider":
        from multicurrency_ledger.services.rate_provider import HttpRateProvider

        return HttpRateProvider(
            base_url=self._settings.fx_provider_url,
            timeout=self._settings.fx_provider_timeout_seconds,
        )

    def rate_refresh_job(
        self,
        context: AccessContext,
        provider: "RateProvider | None" = None,
    ) -> "RateRefreshJob":
        """Build a refresh job bound to ``context``; user contexts are refused."""
        from multicurrency_ledger.services.rate_refresh import RateRefreshJob

        return RateRefreshJob(
            self.exchange_rate_repository,
            self.payment_instrument_repository,
            provider or self.rate_provider,
            context,
            anchor_currency=self._settings.anchor_currency,
        )

    def close(self) -> None:
        """Close all resources held by the container."""
        if "rate_provider" in self.__dict__:
            self.rate_provider.close()
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton.

    For testing, create a Container directly with custom settings instead
    of using this function.
    """
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset the global container, closing what it opened."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()
