"""Tests for payment instrument management."""

from uuid import uuid4

import pytest

from multicurrency_ledger.domain.value_objects import PaymentInstrumentType
from multicurrency_ledger.exceptions import (
    InactivePaymentInstrumentError,
    PaymentInstrumentNotFoundError,
)
from multicurrency_ledger.services.payment_instruments import (
    PaymentInstrumentServiceImpl,
)


@pytest.fixture
def service(instrument_repo):
    return PaymentInstrumentServiceImpl(instrument_repo)


class TestPaymentInstrumentService:
    def test_first_instrument_becomes_default(self, service, instrument_repo, owner_id):
        first = service.create_instrument(owner_id, "Checking", "usd")
        second = service.create_instrument(
            owner_id, "Travel", "EUR", instrument_type=PaymentInstrumentType.CREDIT
        )

        assert first.is_default
        assert first.currency == "USD"
        assert not second.is_default
        assert instrument_repo.get(first.id).is_default

    def test_explicit_default_moves_flag(self, service, instrument_repo, owner_id):
        first = service.create_instrument(owner_id, "Checking", "USD")
        second = service.create_instrument(owner_id, "Travel", "EUR", is_default=True)

        assert not instrument_repo.get(first.id).is_default
        assert instrument_repo.get(second.id).is_default

    def test_set_default(self, service, instrument_repo, owner_id):
        service.create_instrument(owner_id, "Checking", "USD")
        wallet = service.create_instrument(owner_id, "Wallet", "GBP")

        service.set_default(owner_id, wallet.id)

        defaults = [i.name for i in service.list_active(owner_id) if i.is_default]
        assert defaults == ["Wallet"]

    def test_cannot_default_inactive_instrument(self, service, owner_id):
        service.create_instrument(owner_id, "Checking", "USD")
        old = service.create_instrument(owner_id, "Old Card", "EUR")
        service.deactivate(owner_id, old.id)

        with pytest.raises(InactivePaymentInstrumentError):
            service.set_default(owner_id, old.id)

    def test_deactivate_hides_from_active_list(self, service, owner_id):
        card = service.create_instrument(owner_id, "Card", "EUR")

        deactivated = service.deactivate(owner_id, card.id)

        assert not deactivated.is_active
        assert not deactivated.is_default
        assert service.list_active(owner_id) == []

    def test_other_owners_instrument_is_not_found(self, service, owner_id):
        card = service.create_instrument(owner_id, "Card", "EUR")

        with pytest.raises(PaymentInstrumentNotFoundError):
            service.get_instrument(uuid4(), card.id)
