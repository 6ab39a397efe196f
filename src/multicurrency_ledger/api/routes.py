"""API routes for Multi-Currency Ledger."""

from collections.abc import Iterator
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status

from multicurrency_ledger.api.schemas import (
    BalanceSummaryResponse,
    BudgetBreakdownItemResponse,
    BudgetBreakdownResponse,
    BudgetCreate,
    BudgetProgressResponse,
    BudgetResponse,
    CurrencyConvertResponse,
    ExchangeRateCreate,
    ExchangeRateListResponse,
    ExchangeRateResponse,
    HealthResponse,
    InstrumentBalanceResponse,
    PaymentInstrumentCreate,
    PaymentInstrumentResponse,
    RefreshResultResponse,
    ResolvedRateResponse,
    TransactionCreate,
    TransactionResponse,
    TransferCreate,
    TransferResponse,
)
from multicurrency_ledger.config import Settings, get_settings
from multicurrency_ledger.container import Container, get_container
from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.budgets import Budget
from multicurrency_ledger.domain.exchange_rates import ExchangeRate, ResolvedRate
from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.transactions import Transaction
from multicurrency_ledger.domain.value_objects import (
    Money,
    PaymentInstrumentType,
    TransactionType,
    to_decimal,
)
from multicurrency_ledger.repositories.sqlite import SQLiteDatabase
from multicurrency_ledger.services.interfaces import InstrumentBalance
from multicurrency_ledger.services.rate_provider import HttpRateProvider, RateProvider
from multicurrency_ledger.services.rate_refresh import verify_trigger_secret

# Create routers
health_router = APIRouter(tags=["health"])
currency_router = APIRouter(prefix="/currency", tags=["currency"])
owner_router = APIRouter(prefix="/owners", tags=["owners"])
instrument_router = APIRouter(prefix="/payment-instruments", tags=["payment-instruments"])
transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])
budget_router = APIRouter(prefix="/budgets", tags=["budgets"])
cron_router = APIRouter(prefix="/cron", tags=["cron"])


# Dependency injection functions
def get_db() -> SQLiteDatabase:
    """Database dependency; overridden in tests via app.dependency_overrides."""
    return get_container().database


def get_services(
    db: Annotated[SQLiteDatabase, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Container:
    """Container bound to the request's database and settings."""
    return Container(settings=settings, database=db)


def get_rate_provider(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Iterator[RateProvider]:
    provider = HttpRateProvider(
        base_url=settings.fx_provider_url,
        timeout=settings.fx_provider_timeout_seconds,
    )
    try:
        yield provider
    finally:
        provider.close()


def require_service_credential(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> AccessContext:
    """Accept ``Authorization: Bearer <refresh secret>`` as the service tier."""
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer ") :].strip()
    verify_trigger_secret(token, settings.refresh_secret)
    return AccessContext.for_service(actor="api")


Services = Annotated[Container, Depends(get_services)]
ServiceCredential = Annotated[AccessContext, Depends(require_service_credential)]


# Helper functions
def _rate_to_response(rate: ExchangeRate) -> ExchangeRateResponse:
    return ExchangeRateResponse(
        id=rate.id,
        from_currency=rate.from_currency,
        to_currency=rate.to_currency,
        rate=str(rate.rate),
        valid_date=rate.valid_date,
        source=rate.source.value,
        provider=rate.provider,
        recorded_at=rate.recorded_at,
    )


def _resolved_to_response(rate: ResolvedRate) -> ResolvedRateResponse:
    return ResolvedRateResponse(
        from_currency=rate.from_currency,
        to_currency=rate.to_currency,
        rate=str(rate.rate),
        effective_date=rate.effective_date,
        method=rate.method.value,
        source=rate.source.value if rate.source else None,
        recorded_at=rate.recorded_at,
        stale=rate.stale,
    )


def _instrument_to_response(instrument: PaymentInstrument) -> PaymentInstrumentResponse:
    return PaymentInstrumentResponse(
        id=instrument.id,
        owner_id=instrument.owner_id,
        name=instrument.name,
        currency=instrument.currency,
        instrument_type=instrument.instrument_type.value,
        color=instrument.color,
        is_active=instrument.is_active,
        is_default=instrument.is_default,
        created_at=instrument.created_at,
    )


def _balance_to_response(item: InstrumentBalance) -> InstrumentBalanceResponse:
    return InstrumentBalanceResponse(
        payment_instrument_id=item.payment_instrument_id,
        name=item.name,
        currency=item.currency,
        native_balance=str(item.native_balance),
        reporting_amount=(
            str(item.reporting_amount) if item.reporting_amount is not None else None
        ),
        rate=_resolved_to_response(item.rate) if item.rate else None,
        stale=item.stale,
        conversion_unavailable=item.conversion_unavailable,
    )


def _transaction_to_response(txn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=txn.id,
        owner_id=txn.owner_id,
        transaction_type=txn.transaction_type.value,
        amount=str(txn.amount),
        transaction_date=txn.transaction_date,
        payment_instrument_id=txn.payment_instrument_id,
        native_amount=str(txn.native_amount) if txn.conversion else None,
        exchange_rate_used=str(txn.exchange_rate_used) if txn.conversion else None,
        reporting_currency_at_time=txn.reporting_currency_at_time,
        category_id=txn.category_id,
        tag_ids=txn.tag_ids,
        description=txn.description,
        created_at=txn.created_at,
        linked_transaction_id=txn.linked_transaction_id,
    )


def _budget_to_response(budget: Budget) -> BudgetResponse:
    return BudgetResponse(
        id=budget.id,
        owner_id=budget.owner_id,
        name=budget.name,
        period=budget.period,
        limit_amount=str(budget.limit_amount.amount),
        currency=budget.currency,
        category_id=budget.category_id,
        tag_id=budget.tag_id,
        created_at=budget.created_at,
    )


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


# Currency endpoints
@currency_router.get("/rates/resolve", response_model=ResolvedRateResponse)
def resolve_rate(
    services: Services,
    from_currency: str = Query(..., min_length=3, max_length=3),
    to_currency: str = Query(..., min_length=3, max_length=3),
    on_date: date | None = Query(default=None),
) -> ResolvedRateResponse:
    """Resolve a rate, reporting how it was found and whether it is stale."""
    resolved = services.currency_service.resolve_rate(
        from_currency, to_currency, on_date or date.today()
    )
    return _resolved_to_response(resolved)


@currency_router.get("/convert", response_model=CurrencyConvertResponse)
def convert_amount(
    services: Services,
    amount: str = Query(...),
    from_currency: str = Query(..., min_length=3, max_length=3),
    to_currency: str = Query(..., min_length=3, max_length=3),
    on_date: date | None = Query(default=None),
) -> CurrencyConvertResponse:
    result = services.currency_service.convert(
        to_decimal(amount), from_currency, to_currency, on_date or date.today()
    )
    return CurrencyConvertResponse(
        original_amount=str(result.original.amount),
        original_currency=result.original.currency,
        converted_amount=str(result.converted.amount),
        converted_currency=result.converted.currency,
        rate=_resolved_to_response(result.rate),
    )


@currency_router.post(
    "/rates",
    response_model=ExchangeRateResponse,
    status_code=status.HTTP_201_CREATED,
)
def set_manual_rate(
    payload: ExchangeRateCreate,
    services: Services,
    context: ServiceCredential,
) -> ExchangeRateResponse:
    """Store a manual override for a pair and date (service credential only)."""
    rate = services.currency_service.set_manual_rate(
        payload.from_currency,
        payload.to_currency,
        to_decimal(payload.rate),
        payload.valid_date,
        context,
    )
    return _rate_to_response(rate)


@currency_router.get("/rates", response_model=ExchangeRateListResponse)
def list_rates(
    services: Services,
    from_currency: str = Query(..., min_length=3, max_length=3),
    to_currency: str = Query(..., min_length=3, max_length=3),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> ExchangeRateListResponse:
    rates = services.currency_service.list_rates(
        from_currency, to_currency, start_date, end_date
    )
    return ExchangeRateListResponse(
        rates=[_rate_to_response(r) for r in rates],
        total=len(rates),
    )


# Owner endpoints
@owner_router.get("/{owner_id}/balance", response_model=BalanceSummaryResponse)
def get_balance(
    owner_id: UUID,
    services: Services,
    reporting_currency: str | None = Query(default=None, min_length=3, max_length=3),
    as_of: date | None = Query(default=None),
) -> BalanceSummaryResponse:
    summary = services.balance_service.total_balance(
        owner_id,
        reporting_currency or services.settings.default_reporting_currency,
        as_of,
    )
    return BalanceSummaryResponse(
        owner_id=summary.owner_id,
        reporting_currency=summary.reporting_currency,
        as_of=summary.as_of,
        total=str(summary.total),
        legacy_balance=str(summary.legacy_balance),
        has_stale_rates=summary.has_stale_rates,
        unavailable_currencies=summary.unavailable_currencies,
        instruments=[_balance_to_response(item) for item in summary.instruments],
    )


@owner_router.get(
    "/{owner_id}/payment-instruments",
    response_model=list[PaymentInstrumentResponse],
)
def list_payment_instruments(
    owner_id: UUID,
    services: Services,
) -> list[PaymentInstrumentResponse]:
    instruments = services.payment_instrument_service.list_active(owner_id)
    return [_instrument_to_response(i) for i in instruments]


# Payment instrument endpoints
@instrument_router.post(
    "",
    response_model=PaymentInstrumentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_payment_instrument(
    payload: PaymentInstrumentCreate,
    services: Services,
) -> PaymentInstrumentResponse:
    instrument = services.payment_instrument_service.create_instrument(
        owner_id=payload.owner_id,
        name=payload.name,
        currency=payload.currency,
        instrument_type=PaymentInstrumentType(payload.instrument_type),
        color=payload.color,
        is_default=payload.is_default,
    )
    return _instrument_to_response(instrument)


# Transaction endpoints
@transaction_router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    payload: TransactionCreate,
    services: Services,
) -> TransactionResponse:
    txn = services.transaction_service.create_transaction(
        owner_id=payload.owner_id,
        reporting_currency=payload.reporting_currency,
        transaction_type=TransactionType(payload.transaction_type),
        amount=to_decimal(payload.amount),
        transaction_date=payload.transaction_date,
        payment_instrument_id=payload.payment_instrument_id,
        category_id=payload.category_id,
        tag_ids=payload.tag_ids,
        description=payload.description,
        manual_rate=(
            to_decimal(payload.manual_rate) if payload.manual_rate is not None else None
        ),
    )
    return _transaction_to_response(txn)


@transaction_router.post(
    "/transfers",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_transfer(
    payload: TransferCreate,
    services: Services,
) -> TransferResponse:
    """Move money between two of the owner's payment instruments."""
    transfer = services.transaction_service.create_transfer(
        owner_id=payload.owner_id,
        reporting_currency=payload.reporting_currency,
        source_id=payload.source_id,
        destination_id=payload.destination_id,
        amount=to_decimal(payload.amount),
        transfer_date=payload.transfer_date,
        manual_rate=(
            to_decimal(payload.manual_rate) if payload.manual_rate is not None else None
        ),
        description=payload.description,
    )
    return TransferResponse(
        withdrawal=_transaction_to_response(transfer.withdrawal),
        deposit=_transaction_to_response(transfer.deposit),
        exchange_rate=str(transfer.exchange_rate),
        source_amount=str(transfer.source_amount),
        destination_amount=str(transfer.destination_amount),
    )


# Budget endpoints
@budget_router.post(
    "",
    response_model=BudgetResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_budget(
    payload: BudgetCreate,
    services: Services,
) -> BudgetResponse:
    budget = services.budget_service.create_budget(
        owner_id=payload.owner_id,
        period=payload.period,
        limit_amount=Money(to_decimal(payload.limit_amount), payload.currency),
        category_id=payload.category_id,
        tag_id=payload.tag_id,
        name=payload.name,
    )
    return _budget_to_response(budget)


@budget_router.get("/{budget_id}/breakdown", response_model=BudgetBreakdownResponse)
def get_budget_breakdown(
    budget_id: UUID,
    services: Services,
) -> BudgetBreakdownResponse:
    """Spending per payment instrument, largest first."""
    result = services.budget_service.breakdown(budget_id)
    return BudgetBreakdownResponse(
        budget_id=result.budget.id,
        limit_amount=str(result.budget.limit_amount.amount),
        currency=result.budget.currency,
        total_spent=str(result.total_spent),
        total_percentage=str(result.total_percentage),
        items=[
            BudgetBreakdownItemResponse(
                payment_instrument_id=item.payment_instrument_id,
                name=item.name,
                currency=item.currency,
                amount_spent=str(item.amount_spent),
                transaction_count=item.transaction_count,
                percentage=str(item.percentage),
                instrument_currency=item.instrument_currency,
            )
            for item in result.items
        ],
    )


@budget_router.get("/{budget_id}/progress", response_model=BudgetProgressResponse)
def get_budget_progress(
    budget_id: UUID,
    services: Services,
) -> BudgetProgressResponse:
    progress = services.budget_service.progress(budget_id)
    return BudgetProgressResponse(
        budget_id=progress.budget.id,
        limit_amount=str(progress.limit),
        spent=str(progress.spent),
        remaining=str(progress.remaining),
        percent_used=str(progress.percent_used),
        is_over_budget=progress.is_over_budget,
    )


# Scheduler trigger
@cron_router.get("/refresh-rates", response_model=RefreshResultResponse)
def refresh_rates(
    services: Services,
    context: ServiceCredential,
    provider: Annotated[RateProvider, Depends(get_rate_provider)],
) -> RefreshResultResponse:
    """Refresh rates for every currency in use.

    Answers 502 only when every currency failed; partial success is 200 with
    the failed currencies listed.
    """
    job = services.rate_refresh_job(context, provider=provider)
    result = job.refresh_all()
    result.raise_for_failure()
    return RefreshResultResponse(**result.to_dict())
