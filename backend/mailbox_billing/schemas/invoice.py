from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from mailbox_billing.models.invoice import BillingCadence
from mailbox_billing.schemas.charge import ChargeResponse


class InvoiceResponse(BaseModel):
    id: UUID
    user_id: UUID
    invoice_number: str
    number: str | None
    status: str
    amount_pence: int
    currency: str
    period_start: date
    period_end: date
    billing_interval: str
    payment_reference: str | None
    pdf_path: str | None
    email_sent_at: datetime | None
    email_send_error: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class InvoiceDetailResponse(BaseModel):
    invoice: InvoiceResponse
    items: list[ChargeResponse]


class GenerateInvoiceRequest(BaseModel):
    user_id: UUID
    period_start: date
    period_end: date
    billing_interval: BillingCadence
    currency: str = Field(default="GBP")
    payment_reference: str | None = Field(default=None, max_length=255)


class GenerateInvoiceResponse(BaseModel):
    invoice_id: UUID
    invoice_number: str
    amount_pence: int
    attached_count: int
    total_charges_pence: int
    created: bool
    frozen: bool


class ReconciliationResponse(BaseModel):
    invoice_id: UUID
    previous_amount_pence: int
    amount_pence: int
    mismatch: bool


class InvoiceDocument(BaseModel):
    """Payload handed to the PDF/email collaborator."""

    invoice_id: UUID
    invoice_number: str
    user_id: UUID
    amount_pence: int
    currency: str
    period_start: date
    period_end: date
    items: list[ChargeResponse] = Field(default_factory=list)
