"""Tests for settings loading and validation."""

import pytest
from pydantic import ValidationError

from multicurrency_ledger.config import Environment, Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MCL_ANCHOR_CURRENCY", raising=False)
        monkeypatch.delenv("MCL_REFRESH_SECRET", raising=False)
        settings = Settings(environment="testing")

        assert settings.anchor_currency == "USD"
        assert settings.rate_ttl_hours == 24
        assert settings.refresh_secret is None
        assert settings.is_testing

    def test_currency_codes_are_upper_cased(self):
        settings = Settings(
            environment="testing", anchor_currency="eur", default_reporting_currency=" gbp "
        )

        assert settings.anchor_currency == "EUR"
        assert settings.default_reporting_currency == "GBP"

    def test_invalid_currency_code(self):
        with pytest.raises(ValidationError):
            Settings(environment="testing", anchor_currency="EURO")

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(environment="testing", rate_ttl_hours=0)

    @pytest.mark.parametrize("environment", ["production", "staging"])
    def test_deployed_environment_requires_refresh_secret(self, environment):
        with pytest.raises(ValidationError, match="MCL_REFRESH_SECRET"):
            Settings(environment=environment)

    def test_production_with_secret(self):
        settings = Settings(environment="production", refresh_secret="abc")
        assert settings.is_production
        assert not settings.debug

    def test_development_enables_debug(self):
        assert Settings(environment=Environment.DEVELOPMENT, debug=False).debug

    def test_reads_environment_variables(self, monkeypatch):
        monkeypatch.setenv("MCL_ENVIRONMENT", "testing")
        monkeypatch.setenv("MCL_RATE_TTL_HOURS", "12")
        monkeypatch.setenv("MCL_ANCHOR_CURRENCY", "chf")
        get_settings.cache_clear()
        try:
            settings = get_settings()
            assert settings.rate_ttl_hours == 12
            assert settings.anchor_currency == "CHF"
            assert get_settings() is settings
        finally:
            get_settings.cache_clear()
