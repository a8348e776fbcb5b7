import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from mailbox_billing.core.errors import InvoiceNotFoundError
from mailbox_billing.core.schema_state import SchemaState, detect_schema_state
from mailbox_billing.repositories.charge_repository import ChargeRepository
from mailbox_billing.repositories.invoice_repository import InvoiceRepository

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    invoice_id: UUID
    previous_amount_pence: int
    amount_pence: int

    @property
    def mismatch(self) -> bool:
        return self.previous_amount_pence != self.amount_pence


class InvoiceReconciliationService:
    """Recomputes invoice totals from the charge ledger.

    The stored ``amount_pence`` is only ever compared against, never trusted.
    """

    def __init__(self, db: Session, schema_state: SchemaState | None = None):
        self.db = db
        self.schema_state = schema_state or detect_schema_state(db.get_bind())
        self.invoice_repo = InvoiceRepository(db)
        self.charge_repo = ChargeRepository(db)

    def reconcile(
        self,
        invoice_id: UUID,
        currency: str,
        commit: bool = True,
        expect_change: bool = False,
    ) -> ReconciliationResult:
        """Recompute and persist an invoice amount, reporting drift.

        Args:
            invoice_id: Invoice to recompute.
            currency: Currency to store alongside the amount.
            commit: Commit the write. Callers running a larger transaction pass False.
            expect_change: Charges were just attached, so a changed total is not drift.

        Returns:
            The previous and recomputed amounts.
        """
        invoice = self.invoice_repo.get_by_id(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        previous = int(invoice.amount_pence or 0)
        if self.schema_state.has_charge_table:
            total = self.charge_repo.sum_billed_for_invoice(invoice_id)
        else:
            logger.warning("charge table missing, invoice %s recomputed as 0", invoice_id)
            total = 0

        result = ReconciliationResult(
            invoice_id=invoice_id,
            previous_amount_pence=previous,
            amount_pence=total,
        )
        if result.mismatch and expect_change:
            logger.info("Invoice %s amount updated %d -> %d", invoice_id, previous, total)
        elif result.mismatch:
            logger.warning(
                "invoice_amount_mismatch invoice=%s stored=%d recomputed=%d",
                invoice_id,
                previous,
                total,
            )

        self.invoice_repo.set_amount(invoice, total, currency)
        if commit:
            self.db.commit()
        return result

    def recompute(self, invoice_id: UUID, currency: str, commit: bool = True) -> int:
        """Return the authoritative total (in pence) after persisting it."""
        return self.reconcile(invoice_id, currency, commit=commit).amount_pence
