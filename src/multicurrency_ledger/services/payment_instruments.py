from __future__ import annotations

from uuid import UUID

from multicurrency_ledger.domain.payment_instruments import PaymentInstrument
from multicurrency_ledger.domain.value_objects import PaymentInstrumentType
from multicurrency_ledger.exceptions import (
    InactivePaymentInstrumentError,
    PaymentInstrumentNotFoundError,
)
from multicurrency_ledger.logging_config import get_logger
from multicurrency_ledger.repositories.interfaces import PaymentInstrumentRepository
from multicurrency_ledger.services.interfaces import PaymentInstrumentService

logger = get_logger(__name__)


class PaymentInstrumentServiceImpl(PaymentInstrumentService):
    def __init__(self, instrument_repo: PaymentInstrumentRepository) -> None:
        self._repo = instrument_repo

    def create_instrument(
        self,
        owner_id: UUID,
        name: str,
        currency: str,
        instrument_type: PaymentInstrumentType = PaymentInstrumentType.OTHER,
        color: str | None = None,
        is_default: bool = False,
    ) -> PaymentInstrument:
        """Create an instrument; an owner's first active instrument becomes default."""
        instrument = PaymentInstrument(
            owner_id=owner_id,
            name=name,
            currency=currency,
            instrument_type=instrument_type,
            color=color,
        )
        make_default = is_default or not self.list_active(owner_id)
        self._repo.add(instrument)
        if make_default:
            self._repo.set_default(owner_id, instrument.id)
            instrument.is_default = True
        logger.info(
            "payment_instrument_created",
            payment_instrument_id=str(instrument.id),
            owner_id=str(owner_id),
            currency=instrument.currency,
            is_default=instrument.is_default,
        )
        return instrument

    def get_instrument(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        instrument = self._repo.get(instrument_id)
        if instrument is None or instrument.owner_id != owner_id:
            raise PaymentInstrumentNotFoundError(instrument_id)
        return instrument

    def set_default(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        instrument = self.get_instrument(owner_id, instrument_id)
        if not instrument.is_active:
            raise InactivePaymentInstrumentError(instrument_id)
        self._repo.set_default(owner_id, instrument_id)
        instrument.is_default = True
        return instrument

    def deactivate(self, owner_id: UUID, instrument_id: UUID) -> PaymentInstrument:
        instrument = self.get_instrument(owner_id, instrument_id)
        instrument.deactivate()
        self._repo.update(instrument)
        logger.info(
            "payment_instrument_deactivated",
            payment_instrument_id=str(instrument_id),
            owner_id=str(owner_id),
        )
        return instrument

    def list_active(self, owner_id: UUID) -> list[PaymentInstrument]:
        return list(self._repo.list_by_owner(owner_id))
