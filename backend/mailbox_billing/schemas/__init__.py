from mailbox_billing.schemas.billing_run import (
    FinalizationSummary,
    RepairSummary,
    UserOutcome,
    UserOutcomeStatus,
)
from mailbox_billing.schemas.charge import ChargeCreate, ChargeRecordResponse, ChargeResponse
from mailbox_billing.schemas.invoice import (
    GenerateInvoiceRequest,
    GenerateInvoiceResponse,
    InvoiceDetailResponse,
    InvoiceDocument,
    InvoiceResponse,
    ReconciliationResponse,
)

__all__ = [
    "ChargeCreate",
    "ChargeRecordResponse",
    "ChargeResponse",
    "FinalizationSummary",
    "GenerateInvoiceRequest",
    "GenerateInvoiceResponse",
    "InvoiceDetailResponse",
    "InvoiceDocument",
    "InvoiceResponse",
    "ReconciliationResponse",
    "RepairSummary",
    "UserOutcome",
    "UserOutcomeStatus",
]
