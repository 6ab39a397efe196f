"""Pydantic v2 schemas for API request/response models."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    status: str


# Exchange Rate Schemas
class ExchangeRateCreate(BaseModel):
    """Schema for a manual exchange rate override."""

    from_currency: str = Field(..., min_length=3, max_length=3)
    to_currency: str = Field(..., min_length=3, max_length=3)
    rate: str  # Decimal as string
    valid_date: date


class ExchangeRateResponse(BaseModel):
    id: UUID
    from_currency: str
    to_currency: str
    rate: str
    valid_date: date
    source: str
    provider: str | None
    recorded_at: datetime


class ExchangeRateListResponse(BaseModel):
    rates: list[ExchangeRateResponse]
    total: int


class ResolvedRateResponse(BaseModel):
    """A looked-up rate with the provenance clients display next to it."""

    from_currency: str
    to_currency: str
    rate: str
    effective_date: date
    method: str
    source: str | None
    recorded_at: datetime | None
    stale: bool


class CurrencyConvertResponse(BaseModel):
    original_amount: str
    original_currency: str
    converted_amount: str
    converted_currency: str
    rate: ResolvedRateResponse


# Payment Instrument Schemas
class PaymentInstrumentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    owner_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(..., min_length=3, max_length=3)
    instrument_type: str = Field(
        default="other", pattern=r"^(debit|credit|cash|savings|other)$"
    )
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_default: bool = False


class PaymentInstrumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    name: str
    currency: str
    instrument_type: str
    color: str | None
    is_active: bool
    is_default: bool
    created_at: datetime


# Balance Schemas
class InstrumentBalanceResponse(BaseModel):
    payment_instrument_id: UUID
    name: str
    currency: str
    native_balance: str
    reporting_amount: str | None
    rate: ResolvedRateResponse | None
    stale: bool
    conversion_unavailable: bool


class BalanceSummaryResponse(BaseModel):
    owner_id: UUID
    reporting_currency: str
    as_of: date
    total: str
    legacy_balance: str
    has_stale_rates: bool
    unavailable_currencies: list[str]
    instruments: list[InstrumentBalanceResponse]


# Transaction Schemas
class TransactionCreate(BaseModel):
    """Schema for recording a transaction.

    ``amount`` is in the instrument's currency when ``payment_instrument_id``
    is given and in the reporting currency otherwise.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    owner_id: UUID
    reporting_currency: str = Field(..., min_length=3, max_length=3)
    transaction_type: str = Field(..., pattern=r"^(income|expense|transfer)$")
    amount: str  # Decimal as string
    transaction_date: date
    payment_instrument_id: UUID | None = None
    category_id: UUID | None = None
    tag_ids: list[UUID] = Field(default_factory=list)
    description: str = ""
    manual_rate: str | None = None


class TransactionResponse(BaseModel):
    id: UUID
    owner_id: UUID
    transaction_type: str
    amount: str
    transaction_date: date
    payment_instrument_id: UUID | None
    native_amount: str | None
    exchange_rate_used: str | None
    reporting_currency_at_time: str | None
    category_id: UUID | None
    tag_ids: list[UUID]
    description: str
    created_at: datetime
    linked_transaction_id: UUID | None = None


class TransferCreate(BaseModel):
    """``amount`` is in the source instrument's currency."""

    model_config = ConfigDict(str_strip_whitespace=True)

    owner_id: UUID
    reporting_currency: str = Field(..., min_length=3, max_length=3)
    source_id: UUID
    destination_id: UUID
    amount: str
    transfer_date: date
    manual_rate: str | None = None
    description: str = ""


class TransferResponse(BaseModel):
    withdrawal: TransactionResponse
    deposit: TransactionResponse
    exchange_rate: str
    source_amount: str
    destination_amount: str


# Budget Schemas
class BudgetCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    owner_id: UUID
    period: date
    limit_amount: str  # Decimal as string
    currency: str = Field(..., min_length=3, max_length=3)
    category_id: UUID | None = None
    tag_id: UUID | None = None
    name: str = ""


class BudgetResponse(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    period: date
    limit_amount: str
    currency: str
    category_id: UUID | None
    tag_id: UUID | None
    created_at: datetime


class BudgetBreakdownItemResponse(BaseModel):
    payment_instrument_id: UUID | None
    name: str
    currency: str
    amount_spent: str
    transaction_count: int
    percentage: str
    instrument_currency: str | None = None


class BudgetBreakdownResponse(BaseModel):
    budget_id: UUID
    limit_amount: str
    currency: str
    total_spent: str
    total_percentage: str
    items: list[BudgetBreakdownItemResponse]


class BudgetProgressResponse(BaseModel):
    budget_id: UUID
    limit_amount: str
    spent: str
    remaining: str
    percent_used: str
    is_over_budget: bool


# Refresh Schemas
class RefreshResultResponse(BaseModel):
    valid_date: date
    succeeded: int
    failed: list[str]
    refreshed: list[str]
