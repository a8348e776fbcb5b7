from sqlalchemy.orm import Session

from mailbox_billing.core.database import upsert_insert
from mailbox_billing.models.invoice_sequence import InvoiceSequence
from mailbox_billing.models.shared import utc_now


class InvoiceSequenceRepository:
    def __init__(self, db: Session):
        self.db = db

    def next_sequence(self, year: int) -> int:
        """Atomically increment and return the invoice counter for ``year``."""
        now = utc_now()
        table = InvoiceSequence.__table__
        stmt = (
            upsert_insert(self.db, table)
            .values(year=year, sequence=1, created_at=now, updated_at=now)
            .on_conflict_do_update(
                index_elements=["year"],
                set_={"sequence": table.c.sequence + 1, "updated_at": now},
            )
            .returning(table.c.sequence)
        )
        return int(self.db.execute(stmt).scalar_one())

    def get_current(self, year: int) -> int:
        row = self.db.query(InvoiceSequence).filter(InvoiceSequence.year == year).first()
        return int(row.sequence) if row else 0
