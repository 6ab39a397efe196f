"""Rate lookup and conversion over the exchange rate store.

Lookups are pure reads. Nothing is cached in process; every call goes to the
repository, so rates written by the refresh job are visible immediately.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from multicurrency_ledger.domain.access import AccessContext
from multicurrency_ledger.domain.exchange_rates import (
    ExchangeRate,
    ExchangeRateSource,
    ResolvedRate,
)
from multicurrency_ledger.domain.value_objects import (
    Money,
    normalize_currency,
    round_amount,
)
from multicurrency_ledger.exceptions import RateNotFoundError
from multicurrency_ledger.logging_config import get_logger
from multicurrency_ledger.repositories.interfaces import ExchangeRateRepository
from multicurrency_ledger.services.interfaces import ConversionResult, CurrencyService

logger = get_logger(__name__)

RateFinder = Callable[[str, str], ExchangeRate | None]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CurrencyServiceImpl(CurrencyService):
    def __init__(
        self,
        exchange_rate_repo: ExchangeRateRepository,
        anchor_currency: str = "USD",
        rate_ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repo = exchange_rate_repo
        self._anchor = normalize_currency(anchor_currency)
        self._ttl = rate_ttl
        self._clock = clock

    @property
    def anchor_currency(self) -> str:
        return self._anchor

    def resolve_rate(
        self, from_currency: str, to_currency: str, on_date: date
    ) -> ResolvedRate:
        """Resolve the rate to convert ``from_currency`` into ``to_currency``.

        Tries identity, then the direct pair as of ``on_date``, then the
        inverse pair, then both legs through the anchor currency. Raises
        RateNotFoundError when none of them exist.
        """
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        if from_currency == to_currency:
            return ResolvedRate.identity(from_currency, on_date)

        resolved = self._lookup(
            from_currency,
            to_currency,
            lambda base, quote: self._repo.get_rate_as_of(base, quote, on_date),
        )
        if resolved is None:
            logger.warning(
                "exchange_rate_not_found",
                from_currency=from_currency,
                to_currency=to_currency,
                as_of=on_date.isoformat(),
            )
            raise RateNotFoundError(from_currency, to_currency, on_date)

        if resolved.stale:
            logger.warning(
                "stale_exchange_rate_used",
                pair=resolved.pair,
                effective_date=resolved.effective_date.isoformat(),
                source=resolved.source.value if resolved.source else None,
                method=resolved.method.value,
            )
        return resolved

    def convert(
        self,
        amount: Decimal | Money,
        from_currency: str,
        to_currency: str,
        on_date: date,
    ) -> ConversionResult:
        original = amount if isinstance(amount, Money) else Money(amount, from_currency)
        rate = self.resolve_rate(original.currency, to_currency, on_date)
        converted = Money(round_amount(original.amount * rate.rate), rate.to_currency)
        return ConversionResult(original=original, converted=converted, rate=rate)

    def get_latest_rate(
        self, from_currency: str, to_currency: str
    ) -> ResolvedRate | None:
        """Most recent rate for the pair regardless of date, or None."""
        from_currency = normalize_currency(from_currency)
        to_currency = normalize_currency(to_currency)
        if from_currency == to_currency:
            return ResolvedRate.identity(from_currency, self._clock().date())
        return self._lookup(from_currency, to_currency, self._repo.get_latest_rate)

    def set_manual_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        valid_date: date,
        context: AccessContext,
    ) -> ExchangeRate:
        """Store a manual override for both directions of the pair."""
        override = ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            valid_date=valid_date,
            source=ExchangeRateSource.MANUAL,
            recorded_at=self._clock(),
        )
        self._repo.upsert(override, context)
        self._repo.upsert(override.inverse, context)
        logger.info(
            "manual_exchange_rate_set",
            pair=override.pair,
            rate=str(override.rate),
            valid_date=valid_date.isoformat(),
            actor=context.actor,
        )
        return override

    def list_rates(
        self,
        from_currency: str,
        to_currency: str,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ExchangeRate]:
        return list(
            self._repo.list_by_currency_pair(
                normalize_currency(from_currency),
                normalize_currency(to_currency),
                start_date,
                end_date,
            )
        )

    def _lookup(
        self, from_currency: str, to_currency: str, find: RateFinder
    ) -> ResolvedRate | None:
        resolved = self._direct_or_inverse(from_currency, to_currency, find)
        if resolved is not None:
            return resolved
        if self._anchor in (from_currency, to_currency):
            return None

        first = self._anchor_leg(from_currency, find, into_anchor=True)
        if first is None:
            return None
        second = self._anchor_leg(to_currency, find, into_anchor=False)
        if second is None:
            return None
        return first.chain(second)

    def _anchor_leg(
        self, currency: str, find: RateFinder, *, into_anchor: bool
    ) -> ResolvedRate | None:
        """Resolve ``currency -> anchor`` (or ``anchor -> currency``).

        Rows quoted from the anchor are the provider's own figures and win
        over the opposite row for the same date; their reciprocal stays exact
        until the chained rate is rounded.
        """
        quoted = find(self._anchor, currency)
        opposite = find(currency, self._anchor)
        now = self._clock()
        if quoted is not None and (
            opposite is None or quoted.valid_date >= opposite.valid_date
        ):
            return ResolvedRate.from_stored(quoted, self._ttl, now, inverted=into_anchor)
        if opposite is not None:
            return ResolvedRate.from_stored(
                opposite, self._ttl, now, inverted=not into_anchor
            )
        return None

    def _direct_or_inverse(
        self, from_currency: str, to_currency: str, find: RateFinder
    ) -> ResolvedRate | None:
        now = self._clock()
        stored = find(from_currency, to_currency)
        if stored is not None:
            return ResolvedRate.from_stored(stored, self._ttl, now)
        stored = find(to_currency, from_currency)
        if stored is not None:
            return ResolvedRate.from_stored(stored, self._ttl, now, inverted=True)
        return None
