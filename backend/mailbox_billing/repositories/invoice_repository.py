from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from mailbox_billing.core.database import upsert_insert
from mailbox_billing.models.invoice import Invoice, InvoiceStatus
from mailbox_billing.models.shared import generate_uuid


class InvoiceRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        return self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def get_for_period(self, user_id: UUID, period_start: date, period_end: date) -> Invoice | None:
        return (
            self.db.query(Invoice)
            .filter(
                Invoice.user_id == user_id,
                Invoice.period_start == period_start,
                Invoice.period_end == period_end,
            )
            .first()
        )

    def insert_for_period(self, **values: Any) -> bool:
        """Insert an invoice unless one already exists for the period key.

        Returns True when this call created the row.
        """
        values.setdefault("id", generate_uuid())
        stmt = (
            upsert_insert(self.db, Invoice.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["user_id", "period_start", "period_end"])
        )
        result = self.db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    def link_payment_reference(self, invoice_id: UUID, payment_reference: str) -> bool:
        """Store an external payment reference (marking the invoice paid) once."""
        stmt = (
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.payment_reference.is_(None))
            .values(payment_reference=payment_reference, status=InvoiceStatus.PAID.value)
            .execution_options(synchronize_session=False)
        )
        return bool(self.db.execute(stmt).rowcount)  # type: ignore[attr-defined]

    def set_amount(self, invoice: Invoice, amount_pence: int, currency: str) -> Invoice:
        invoice.amount_pence = amount_pence  # type: ignore[assignment]
        invoice.currency = currency  # type: ignore[assignment]
        self.db.flush()
        return invoice

    def set_pdf_path(self, invoice: Invoice, pdf_path: str) -> Invoice:
        invoice.pdf_path = pdf_path  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def record_email_error(self, invoice: Invoice, error: str) -> Invoice:
        invoice.email_send_error = error  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def mark_email_sent(self, invoice_id: UUID, sent_at: datetime) -> bool:
        """Set the email-sent marker once. Returns False if it was already set."""
        stmt = (
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.email_sent_at.is_(None))
            .values(email_sent_at=sent_at, email_send_error=None)
            .execution_options(synchronize_session=False)
        )
        updated = bool(self.db.execute(stmt).rowcount)  # type: ignore[attr-defined]
        self.db.commit()
        return updated
