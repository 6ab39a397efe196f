"""HTTP client for a Frankfurter-compatible exchange rate provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from multicurrency_ledger.exceptions import RateProviderError
from multicurrency_ledger.logging_config import get_logger

logger = get_logger(__name__)


class RateProvider(ABC):
    name: str = "provider"

    @abstractmethod
    def fetch_rate(self, base: str, quote: str, on_date: date) -> Decimal:
        """Units of ``quote`` per one ``base`` on ``on_date``."""
        pass

    def close(self) -> None:
        pass


class HttpRateProvider(RateProvider):
    """Fetches rates with ``GET {base_url}/{date}?from=BASE&to=QUOTE``.

    Every request is bounded by ``timeout`` seconds. Transport failures,
    non-2xx answers, malformed payloads and non-positive rates all surface as
    RateProviderError for the quote currency.
    """

    name = "frankfurter"

    def __init__(
        self,
        base_url: str = "https://api.frankfurter.app",
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client if client is not None else httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def fetch_rate(self, base: str, quote: str, on_date: date) -> Decimal:
        url = f"{self._base_url}/{on_date.isoformat()}"
        try:
            response = self._client.get(
                url,
                params={"from": base, "to": quote},
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise RateProviderError(quote, f"timed out after {self._timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise RateProviderError(
                quote, f"HTTP {e.response.status_code} from provider"
            ) from e
        except httpx.HTTPError as e:
            raise RateProviderError(quote, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise RateProviderError(quote, "response is not valid JSON") from e

        rate = self._parse_rate(payload, quote)
        logger.debug(
            "exchange_rate_fetched",
            base=base,
            quote=quote,
            on_date=on_date.isoformat(),
            rate=str(rate),
        )
        return rate

    def _parse_rate(self, payload: Any, quote: str) -> Decimal:
        if not isinstance(payload, dict) or not isinstance(payload.get("rates"), dict):
            raise RateProviderError(quote, "response has no 'rates' object")
        raw = payload["rates"].get(quote)
        if raw is None:
            raise RateProviderError(quote, f"response has no rate for {quote}")
        try:
            rate = Decimal(str(raw))
        except InvalidOperation as e:
            raise RateProviderError(quote, f"rate {raw!r} is not a number") from e
        if not rate.is_finite() or rate <= 0:
            raise RateProviderError(quote, f"rate {raw!r} is not positive")
        return rate
