from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import exists, func, select, update
from sqlalchemy.orm import Session

from mailbox_billing.core.database import upsert_insert
from mailbox_billing.models.charge import Charge, ChargeStatus
from mailbox_billing.models.invoice import Invoice
from mailbox_billing.models.shared import generate_uuid


class ChargeRepository:
    """Data access for the charge ledger.

    Methods only flush statements; committing is the caller's job so a whole
    invoice run can live in one transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, charge_id: UUID) -> Charge | None:
        return self.db.query(Charge).filter(Charge.id == charge_id).first()

    def get_by_related(
        self, charge_type: str, related_type: str, related_id: int
    ) -> Charge | None:
        return (
            self.db.query(Charge)
            .filter(
                Charge.type == charge_type,
                Charge.related_type == related_type,
                Charge.related_id == related_id,
            )
            .first()
        )

    def insert_if_absent(self, **values: Any) -> bool:
        """Insert a pending charge unless its (type, related pair) already exists.

        Returns True when a row was inserted. A duplicate is a silent no-op.
        """
        values.setdefault("id", generate_uuid())
        values.setdefault("status", ChargeStatus.PENDING.value)
        stmt = (
            upsert_insert(self.db, Charge.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["type", "related_type", "related_id"])
        )
        result = self.db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    def claim_pending(
        self,
        user_id: UUID,
        invoice_id: UUID,
        period_end: date,
        billed_at: datetime,
    ) -> int:
        """Attach every eligible pending charge of a user to an invoice.

        The WHERE clause re-checks ``status`` and ``invoice_id`` at write time,
        so of two overlapping runs only one can claim a given charge. It also
        re-checks the target invoice, so nothing is attached once another run
        has emailed it or linked a payment.
        """
        invoice_open = exists().where(
            Invoice.id == invoice_id,
            Invoice.email_sent_at.is_(None),
            Invoice.payment_reference.is_(None),
        )
        stmt = (
            update(Charge)
            .where(
                Charge.user_id == user_id,
                Charge.status == ChargeStatus.PENDING.value,
                Charge.invoice_id.is_(None),
                Charge.service_date <= period_end,
                invoice_open,
            )
            .values(
                invoice_id=invoice_id,
                status=ChargeStatus.BILLED.value,
                billed_at=billed_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return int(result.rowcount)  # type: ignore[attr-defined]

    def sum_billed_for_invoice(self, invoice_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(Charge.amount_pence), 0)).where(
            Charge.invoice_id == invoice_id,
            Charge.status == ChargeStatus.BILLED.value,
        )
        return int(self.db.execute(stmt).scalar_one())

    def get_billed_for_invoice(self, invoice_id: UUID) -> list[Charge]:
        return (
            self.db.query(Charge)
            .filter(
                Charge.invoice_id == invoice_id,
                Charge.status == ChargeStatus.BILLED.value,
            )
            .order_by(Charge.service_date.asc(), Charge.created_at.asc())
            .all()
        )

    def reset_orphans(self) -> int:
        """Return billed charges without an invoice to the pending state."""
        stmt = (
            update(Charge)
            .where(
                Charge.status == ChargeStatus.BILLED.value,
                Charge.invoice_id.is_(None),
            )
            .values(status=ChargeStatus.PENDING.value, billed_at=None)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return int(result.rowcount)  # type: ignore[attr-defined]
