from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from multicurrency_ledger.exceptions import InvalidAmountError, InvalidCurrencyError

AMOUNT_PLACES = Decimal("0.01")
RATE_PLACES = Decimal("0.000001")

# Minor-unit precision for display; anything not listed uses 2.
CURRENCY_DECIMALS: dict[str, int] = {
    "JPY": 0,
    "KRW": 0,
    "HUF": 0,
    "IDR": 0,
    "VND": 0,
    "KWD": 3,
    "BHD": 3,
    "OMR": 3,
}


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class PaymentInstrumentType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"
    CASH = "cash"
    SAVINGS = "savings"
    OTHER = "other"


def normalize_currency(code: str) -> str:
    """Return an upper-case ISO 4217 style code or raise InvalidCurrencyError."""
    if not isinstance(code, str):
        raise InvalidCurrencyError(str(code))
    normalized = code.strip().upper()
    if len(normalized) != 3 or not normalized.isascii() or not normalized.isalpha():
        raise InvalidCurrencyError(code)
    return normalized


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmountError(str(value), "not a number") from None
    if not result.is_finite():
        raise InvalidAmountError(str(value), "not a finite number")
    return result


def round_amount(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 places, half-up."""
    return value.quantize(AMOUNT_PLACES, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Round an exchange rate to its stored precision of 6 places, half-up."""
    return value.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def currency_decimals(code: str) -> int:
    return CURRENCY_DECIMALS.get(normalize_currency(code), 2)


def format_money(amount: Decimal, currency: str) -> str:
    """Render an amount with the currency's minor-unit precision, e.g. '1,234.50 EUR'."""
    places = currency_decimals(currency)
    quantum = Decimal(1).scaleb(-places)
    rounded = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{rounded:,.{places}f} {normalize_currency(currency)}"


@dataclass(frozen=True, slots=True)
class Money:
    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "currency", normalize_currency(self.currency))

    def __add__(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {self.currency} and {other.currency}")
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __lt__(self, other: "Money") -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency} and {other.currency}")
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        return self == other or self < other

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(Decimal("0"), currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    def rounded(self) -> "Money":
        return Money(round_amount(self.amount), self.currency)

    def __str__(self) -> str:
        return format_money(self.amount, self.currency)
