"""Exchange rate domain model for currency conversion."""

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from multicurrency_ledger.domain.value_objects import (
    normalize_currency,
    round_rate,
    to_decimal,
)
from multicurrency_ledger.exceptions import InvalidAmountError, InvalidCurrencyError


class ExchangeRateSource(str, Enum):
    """Provenance of a stored exchange rate."""

    SEED = "seed"
    MANUAL = "manual"
    FETCHED = "fetched"


class ResolutionMethod(str, Enum):
    """How a rate lookup arrived at its answer."""

    IDENTITY = "identity"
    DIRECT = "direct"
    INVERSE = "inverse"
    TRIANGULATED = "triangulated"


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """Immutable exchange rate value object.

    Amount of ``to_currency`` per one unit of ``from_currency``, valid for a
    calendar date. Rates are stored with six fractional digits.
    """

    from_currency: str
    to_currency: str
    rate: Decimal
    valid_date: date
    id: UUID = field(default_factory=uuid4)
    source: ExchangeRateSource = ExchangeRateSource.MANUAL
    provider: str | None = None
    recorded_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        """Normalise codes and coerce the rate to a positive 6-place Decimal."""
        from_currency = normalize_currency(self.from_currency)
        to_currency = normalize_currency(self.to_currency)
        if from_currency == to_currency:
            raise InvalidCurrencyError(
                f"{from_currency}/{to_currency} (identity rates are never stored)"
            )
        object.__setattr__(self, "from_currency", from_currency)
        object.__setattr__(self, "to_currency", to_currency)

        rate = round_rate(to_decimal(self.rate))
        if rate <= 0:
            raise InvalidAmountError(str(self.rate), "exchange rate must be positive")
        object.__setattr__(self, "rate", rate)
        object.__setattr__(self, "source", ExchangeRateSource(self.source))

    @property
    def inverse(self) -> "ExchangeRate":
        """Return the inverse exchange rate (to -> from) for the same date."""
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal("1") / self.rate,
            valid_date=self.valid_date,
            source=self.source,
            provider=self.provider,
            recorded_at=self.recorded_at,
        )

    @property
    def pair(self) -> str:
        """Return currency pair string like 'USD/EUR'."""
        return f"{self.from_currency}/{self.to_currency}"

    def is_stale(self, ttl: timedelta, now: datetime | None = None) -> bool:
        """Whether the rate was recorded longer ago than ``ttl``.

        Manual overrides are entered deliberately and never age out.
        """
        if self.source == ExchangeRateSource.MANUAL:
            return False
        now = now or _utc_now()
        return now - self.recorded_at > ttl


@dataclass(frozen=True, slots=True)
class ResolvedRate:
    """Result of a rate lookup, with the provenance consumers display."""

    from_currency: str
    to_currency: str
    rate: Decimal
    effective_date: date
    method: ResolutionMethod
    source: ExchangeRateSource | None = None
    recorded_at: datetime | None = None
    stale: bool = False
    # Unrounded value of ``rate``; differs only for reciprocals and chains.
    exact_rate: Decimal | None = field(default=None, compare=False, repr=False)

    @classmethod
    def identity(cls, currency: str, on_date: date) -> "ResolvedRate":
        return cls(
            from_currency=currency,
            to_currency=currency,
            rate=Decimal("1"),
            effective_date=on_date,
            method=ResolutionMethod.IDENTITY,
        )

    @classmethod
    def from_stored(
        cls,
        stored: ExchangeRate,
        ttl: timedelta,
        now: datetime | None = None,
        *,
        inverted: bool = False,
    ) -> "ResolvedRate":
        if inverted:
            from_currency, to_currency = stored.to_currency, stored.from_currency
            exact = Decimal("1") / stored.rate
        else:
            from_currency, to_currency = stored.from_currency, stored.to_currency
            exact = stored.rate
        return cls(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=round_rate(exact),
            effective_date=stored.valid_date,
            method=ResolutionMethod.INVERSE if inverted else ResolutionMethod.DIRECT,
            source=stored.source,
            recorded_at=stored.recorded_at,
            stale=stored.is_stale(ttl, now),
            exact_rate=exact,
        )

    @property
    def precise_rate(self) -> Decimal:
        return self.rate if self.exact_rate is None else self.exact_rate

    def chain(self, other: "ResolvedRate") -> "ResolvedRate":
        """Combine ``self`` (A -> anchor) with ``other`` (anchor -> B).

        The legs are multiplied unrounded and the product is rounded once.
        """
        if self.to_currency != other.from_currency:
            raise ValueError(f"Cannot chain {self.pair} with {other.pair}")
        older = self if self.effective_date <= other.effective_date else other
        exact = self.precise_rate * other.precise_rate
        return ResolvedRate(
            from_currency=self.from_currency,
            to_currency=other.to_currency,
            rate=round_rate(exact),
            effective_date=older.effective_date,
            method=ResolutionMethod.TRIANGULATED,
            source=older.source,
            recorded_at=older.recorded_at,
            stale=self.stale or other.stale,
            exact_rate=exact,
        )

    def as_stale(self) -> "ResolvedRate":
        return replace(self, stale=True)

    @property
    def pair(self) -> str:
        return f"{self.from_currency}/{self.to_currency}"
