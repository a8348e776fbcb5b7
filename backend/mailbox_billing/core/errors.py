"""Domain errors raised by the billing pipeline.

Each error carries a stable ``reason`` code that the HTTP layer exports
verbatim, so API consumers never have to parse messages.
"""


class BillingError(ValueError):
    """Base class for billing pipeline precondition and lookup failures."""

    reason = "billing_error"

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class InvalidPeriodError(BillingError):
    reason = "invalid_period"


class InvalidAmountError(BillingError):
    reason = "invalid_amount"


class InvalidCurrencyError(BillingError):
    reason = "invalid_currency"


class InvoiceNotFoundError(BillingError):
    reason = "invoice_not_found"


class SchemaStateError(BillingError):
    reason = "schema_unavailable"
