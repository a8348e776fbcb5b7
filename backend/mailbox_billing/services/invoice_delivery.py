"""Hand-off of finalized invoices to the PDF and email collaborators.

Delivery runs after the invoice transaction committed, so a failure here is
recorded on the invoice (``email_send_error``) and never undoes billing state.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from mailbox_billing.core.errors import InvoiceNotFoundError
from mailbox_billing.models.invoice import Invoice
from mailbox_billing.models.shared import utc_now
from mailbox_billing.repositories.charge_repository import ChargeRepository
from mailbox_billing.repositories.invoice_repository import InvoiceRepository
from mailbox_billing.repositories.user_repository import UserRepository
from mailbox_billing.schemas.charge import ChargeResponse
from mailbox_billing.schemas.invoice import InvoiceDocument
from mailbox_billing.services.email_service import EmailService
from mailbox_billing.services.pdf_service import PdfService

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    SENT = "sent"
    ALREADY_SENT = "already_sent"
    FAILED = "failed"


@dataclass
class DeliveryResult:
    status: DeliveryStatus
    invoice_id: UUID
    pdf_path: str | None = None
    error: str | None = None


class InvoiceDeliveryService:
    def __init__(
        self,
        db: Session,
        pdf_service: PdfService | None = None,
        email_service: EmailService | None = None,
    ):
        self.db = db
        self.pdf_service = pdf_service or PdfService()
        self.email_service = email_service or EmailService()
        self.invoice_repo = InvoiceRepository(db)
        self.charge_repo = ChargeRepository(db)
        self.user_repo = UserRepository(db)

    def build_document(self, invoice: Invoice) -> InvoiceDocument:
        items = self.charge_repo.get_billed_for_invoice(UUID(str(invoice.id)))
        return InvoiceDocument(
            invoice_id=UUID(str(invoice.id)),
            invoice_number=str(invoice.invoice_number),
            user_id=UUID(str(invoice.user_id)),
            amount_pence=int(invoice.amount_pence or 0),
            currency=str(invoice.currency),
            period_start=invoice.period_start,  # type: ignore[arg-type]
            period_end=invoice.period_end,  # type: ignore[arg-type]
            items=[ChargeResponse.model_validate(item) for item in items],
        )

    async def deliver(self, invoice_id: UUID) -> DeliveryResult:
        """Render the PDF (once) and send the "invoice available" email (once)."""
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        if invoice.email_sent_at is not None:
            return DeliveryResult(
                status=DeliveryStatus.ALREADY_SENT,
                invoice_id=invoice_id,
                pdf_path=invoice.pdf_path,  # type: ignore[arg-type]
            )

        pdf_path: str | None = invoice.pdf_path  # type: ignore[assignment]
        try:
            user = self.user_repo.get_by_id(UUID(str(invoice.user_id)))
            if user is None:
                raise LookupError(f"User {invoice.user_id} not found")

            document = self.build_document(invoice)
            pdf_bytes: bytes | None = None
            if pdf_path:
                pdf_bytes = self.pdf_service.read_invoice_pdf(pdf_path)
                if pdf_bytes is None:
                    logger.warning("Stored PDF %s missing, rendering it again", pdf_path)
            if pdf_bytes is None:
                pdf_path, pdf_bytes = self.pdf_service.write_invoice_pdf(document, user)
                self.invoice_repo.set_pdf_path(invoice, pdf_path)

            await self.email_service.send_invoice_available_email(document, user, pdf_bytes)
        except Exception as e:
            logger.warning("Failed to deliver invoice %s: %s", invoice_id, e)
            self.db.rollback()
            self.invoice_repo.record_email_error(invoice, str(e))
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                invoice_id=invoice_id,
                pdf_path=pdf_path,
                error=str(e),
            )

        if not self.invoice_repo.mark_email_sent(invoice_id, utc_now()):
            # Another run delivered it between our read and this update
            logger.info("Invoice %s was marked sent concurrently", invoice_id)
            return DeliveryResult(
                status=DeliveryStatus.ALREADY_SENT, invoice_id=invoice_id, pdf_path=pdf_path
            )

        logger.info("Invoice %s delivered", invoice_id)
        return DeliveryResult(status=DeliveryStatus.SENT, invoice_id=invoice_id, pdf_path=pdf_path)
