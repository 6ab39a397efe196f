"""Tests for the HTTP exchange rate provider."""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from multicurrency_ledger.exceptions import RateProviderError
from multicurrency_ledger.services.rate_provider import HttpRateProvider

ON_DATE = date(2026, 1, 15)


def _provider(handler) -> HttpRateProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpRateProvider(base_url="https://fx.test/", timeout=2.0, client=client)


class TestHttpRateProvider:
    def test_fetches_rate_for_date(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"amount": 1.0, "base": "USD", "date": "2026-01-15", "rates": {"EUR": 0.92}},
            )

        rate = _provider(handler).fetch_rate("USD", "EUR", ON_DATE)

        assert rate == Decimal("0.92")
        assert seen[0].url.path == "/2026-01-15"
        assert seen[0].url.params["from"] == "USD"
        assert seen[0].url.params["to"] == "EUR"

    def test_server_error(self):
        provider = _provider(lambda request: httpx.Response(500))

        with pytest.raises(RateProviderError) as exc_info:
            provider.fetch_rate("USD", "EUR", ON_DATE)

        assert exc_info.value.currency == "EUR"
        assert "HTTP 500" in exc_info.value.reason

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(RateProviderError, match="timed out"):
            _provider(handler).fetch_rate("USD", "EUR", ON_DATE)

    def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RateProviderError, match="connection refused"):
            _provider(handler).fetch_rate("USD", "EUR", ON_DATE)

    def test_body_is_not_json(self):
        provider = _provider(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(RateProviderError, match="not valid JSON"):
            provider.fetch_rate("USD", "EUR", ON_DATE)

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"base": "USD"},
            {"rates": {"GBP": 0.79}},
            {"rates": {"EUR": "abc"}},
            {"rates": {"EUR": 0}},
            {"rates": {"EUR": -0.5}},
        ],
    )
    def test_malformed_payload(self, payload):
        provider = _provider(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(RateProviderError):
            provider.fetch_rate("USD", "EUR", ON_DATE)
