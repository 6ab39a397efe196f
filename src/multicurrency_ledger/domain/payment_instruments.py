import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from multicurrency_ledger.domain.value_objects import (
    PaymentInstrumentType,
    normalize_currency,
)

_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class PaymentInstrument:
    """A card, account or cash wallet holding money in one native currency.

    The balance is never stored; it is derived from the instrument's
    transactions. ``currency`` cannot be reassigned once set.
    """

    owner_id: UUID
    name: str
    currency: str
    id: UUID = field(default_factory=uuid4)
    instrument_type: PaymentInstrumentType = PaymentInstrumentType.OTHER
    color: str | None = None
    is_active: bool = True
    is_default: bool = False
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.name = self.name.strip()
        if not 1 <= len(self.name) <= 100:
            raise ValueError("Payment instrument name must be 1-100 characters")
        if self.color is not None and not _COLOR_PATTERN.match(self.color):
            raise ValueError(f"Invalid color: {self.color}")
        self.instrument_type = PaymentInstrumentType(self.instrument_type)

    def __setattr__(self, name: str, value: object) -> None:
        if name == "currency":
            if "currency" in self.__dict__:
                raise AttributeError(
                    "Payment instrument currency is immutable after creation"
                )
            value = normalize_currency(value)  # type: ignore[arg-type]
        super().__setattr__(name, value)

    def deactivate(self) -> None:
        self.is_active = False
        self.is_default = False
        self.updated_at = _utc_now()
