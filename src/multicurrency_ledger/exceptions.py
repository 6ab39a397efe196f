"""Domain exception hierarchy for Multi-Currency Ledger.

All domain-specific exceptions inherit from MultiCurrencyLedgerError.
This allows catching all application errors with a single base class
while preserving specificity for individual error types.
"""

from datetime import date
from typing import Any
from uuid import UUID


class MultiCurrencyLedgerError(Exception):
    """Base exception for all Multi-Currency Ledger errors.

    Includes optional error_code for API responses and extra context.
    """

    error_code: str = "MCL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Exchange Rate Errors
# =============================================================================


class ExchangeRateError(MultiCurrencyLedgerError):
    """Base exception for exchange rate errors."""

    error_code = "EXCHANGE_RATE_ERROR"
    status_code = 400


class RateNotFoundError(ExchangeRateError):
    """Raised when no direct, inverse, triangulated or historical rate exists.

    Callers must surface this to the user (or supply a manual rate); it is
    never replaced by a 1:1 default.
    """

    error_code = "RATE_NOT_FOUND"
    status_code = 404

    def __init__(self, from_currency: str, to_currency: str, as_of: date) -> None:
        super().__init__(
            f"No exchange rate found for {from_currency}/{to_currency} "
            f"on or before {as_of.isoformat()}",
            context={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "as_of": as_of.isoformat(),
            },
        )
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.as_of = as_of


class RateProviderError(ExchangeRateError):
    """Raised when the external rate provider fails or returns bad data."""

    error_code = "RATE_PROVIDER_ERROR"
    status_code = 502

    def __init__(self, currency: str, reason: str) -> None:
        super().__init__(
            f"Rate provider failed for {currency}: {reason}",
            context={"currency": currency, "reason": reason},
        )
        self.currency = currency
        self.reason = reason


# =============================================================================
# Refresh Job Errors
# =============================================================================


class RefreshError(MultiCurrencyLedgerError):
    """Base exception for rate refresh job errors."""

    error_code = "REFRESH_ERROR"
    status_code = 500


class PartialRefreshFailureError(RefreshError):
    """Raised when a refresh run wrote no rates although some were needed."""

    error_code = "PARTIAL_REFRESH_FAILURE"
    status_code = 502

    def __init__(self, failed: list[str], succeeded: int) -> None:
        super().__init__(
            f"Rate refresh failed for {', '.join(failed)} "
            f"({succeeded} currencies refreshed)",
            context={"failed": list(failed), "succeeded": succeeded},
        )
        self.failed = list(failed)
        self.succeeded = succeeded


class UnauthorizedRefreshError(RefreshError):
    """Raised when a refresh is attempted without the service credential."""

    error_code = "UNAUTHORIZED_REFRESH"
    status_code = 401

    def __init__(self, reason: str = "Service credential required") -> None:
        super().__init__(f"Unauthorized rate refresh: {reason}")


class RefreshNotConfiguredError(RefreshError):
    """Raised when the refresh trigger secret has not been configured."""

    error_code = "REFRESH_NOT_CONFIGURED"
    status_code = 503

    def __init__(self) -> None:
        super().__init__("Rate refresh trigger secret is not configured")


# =============================================================================
# Payment Instrument Errors
# =============================================================================


class PaymentInstrumentError(MultiCurrencyLedgerError):
    """Base exception for payment instrument errors."""

    error_code = "PAYMENT_INSTRUMENT_ERROR"
    status_code = 400


class PaymentInstrumentNotFoundError(PaymentInstrumentError):
    """Raised when a payment instrument cannot be found for its owner."""

    error_code = "PAYMENT_INSTRUMENT_NOT_FOUND"
    status_code = 404

    def __init__(self, instrument_id: UUID | str) -> None:
        super().__init__(
            f"Payment instrument not found: {instrument_id}",
            context={"payment_instrument_id": str(instrument_id)},
        )


class InactivePaymentInstrumentError(PaymentInstrumentError):
    """Raised when recording against a deactivated payment instrument."""

    error_code = "PAYMENT_INSTRUMENT_INACTIVE"
    status_code = 409

    def __init__(self, instrument_id: UUID | str) -> None:
        super().__init__(
            f"Payment instrument is inactive: {instrument_id}",
            context={"payment_instrument_id": str(instrument_id)},
        )


# =============================================================================
# Budget Errors
# =============================================================================


class BudgetError(MultiCurrencyLedgerError):
    """Base exception for budget errors."""

    error_code = "BUDGET_ERROR"
    status_code = 400


class BudgetNotFoundError(BudgetError):
    """Raised when a budget cannot be found."""

    error_code = "BUDGET_NOT_FOUND"
    status_code = 404

    def __init__(self, budget_id: UUID | str) -> None:
        super().__init__(
            f"Budget not found: {budget_id}",
            context={"budget_id": str(budget_id)},
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(MultiCurrencyLedgerError):
    """Base exception for validation errors."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class InvalidScopeError(ValidationError):
    """Raised when a budget or transaction breaks a field invariant.

    Covers mutually exclusive scopes (category vs. tag) and fields that
    must be set together (the multi-currency triple on a transaction).
    """

    error_code = "INVALID_SCOPE"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, context=context)


class InvalidCurrencyError(ValidationError):
    """Raised when an invalid currency code is provided."""

    error_code = "INVALID_CURRENCY"

    def __init__(self, currency_code: str) -> None:
        super().__init__(
            f"Invalid currency code: {currency_code}",
            context={"currency_code": currency_code},
        )


class InvalidAmountError(ValidationError):
    """Raised when an invalid monetary amount or rate is provided."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str) -> None:
        super().__init__(
            f"Invalid amount '{amount}': {reason}",
            context={"amount": amount, "reason": reason},
        )


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthorizationError(MultiCurrencyLedgerError):
    """Base exception for authorization errors."""

    error_code = "AUTHORIZATION_ERROR"
    status_code = 403


class PermissionDeniedError(AuthorizationError):
    """Raised when an access context lacks permission for an action."""

    error_code = "PERMISSION_DENIED"

    def __init__(self, action: str, resource: str) -> None:
        super().__init__(
            f"Permission denied: cannot {action} on {resource}",
            context={"action": action, "resource": resource},
        )
