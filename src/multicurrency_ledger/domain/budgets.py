import calendar
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

from multicurrency_ledger.domain.value_objects import Money
from multicurrency_ledger.exceptions import InvalidAmountError, InvalidScopeError

PERCENT_PLACES = Decimal("0.01")
LEGACY_BUCKET_NAME = "Legacy Transactions"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def month_bounds(period: date) -> tuple[date, date]:
    """First and last calendar day of the month containing ``period``."""
    last_day = calendar.monthrange(period.year, period.month)[1]
    return period.replace(day=1), period.replace(day=last_day)


def percentage_of(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return Decimal("0.00")
    return (part / whole * 100).quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


@dataclass
class Budget:
    """Monthly spending limit for exactly one category or one tag."""

    owner_id: UUID
    period: date
    limit_amount: Money
    id: UUID = field(default_factory=uuid4)
    category_id: UUID | None = None
    tag_id: UUID | None = None
    name: str = ""
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.period = self.period.replace(day=1)
        self.validate()

    def validate(self) -> None:
        if (self.category_id is None) == (self.tag_id is None):
            raise InvalidScopeError(
                "Budget must be scoped to exactly one of category or tag",
                budget_id=str(self.id),
                category_id=str(self.category_id) if self.category_id else None,
                tag_id=str(self.tag_id) if self.tag_id else None,
            )
        if self.limit_amount.amount <= 0:
            raise InvalidAmountError(
                str(self.limit_amount.amount), "budget limit must be positive"
            )

    @property
    def currency(self) -> str:
        return self.limit_amount.currency

    @property
    def start_date(self) -> date:
        return month_bounds(self.period)[0]

    @property
    def end_date(self) -> date:
        return month_bounds(self.period)[1]

    @property
    def is_tag_scoped(self) -> bool:
        return self.tag_id is not None


@dataclass(frozen=True)
class BudgetBreakdownItem:
    """One spending bucket; ``amount_spent`` is in ``currency``, the budget's."""

    payment_instrument_id: UUID | None
    name: str
    currency: str
    amount_spent: Decimal
    transaction_count: int
    percentage: Decimal
    instrument_currency: str | None = None

    @property
    def is_legacy(self) -> bool:
        return self.payment_instrument_id is None


@dataclass(frozen=True)
class BudgetBreakdown:
    budget: Budget
    total_spent: Decimal
    items: list[BudgetBreakdownItem]

    @property
    def total_percentage(self) -> Decimal:
        return percentage_of(self.total_spent, self.budget.limit_amount.amount)


@dataclass(frozen=True)
class BudgetProgress:
    budget: Budget
    spent: Decimal

    @property
    def limit(self) -> Decimal:
        return self.budget.limit_amount.amount

    @property
    def remaining(self) -> Decimal:
        return self.limit - self.spent

    @property
    def percent_used(self) -> Decimal:
        return percentage_of(self.spent, self.limit)

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.limit


__all__ = [
    "LEGACY_BUCKET_NAME",
    "Budget",
    "BudgetBreakdown",
    "BudgetBreakdownItem",
    "BudgetProgress",
    "month_bounds",
    "percentage_of",
]
