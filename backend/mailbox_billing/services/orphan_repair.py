import logging

from sqlalchemy.orm import Session

from mailbox_billing.core.schema_state import SchemaState, detect_schema_state
from mailbox_billing.repositories.charge_repository import ChargeRepository

logger = logging.getLogger(__name__)


class OrphanChargeRepairService:
    """Self-healing job for charges marked billed without an invoice.

    Such rows are unreachable through the generator's single-statement claim
    but can appear after partial failures, manual fixes or migrations.
    Resetting them to pending makes them eligible for the next generator run.
    """

    def __init__(self, db: Session, schema_state: SchemaState | None = None):
        self.db = db
        self.schema_state = schema_state or detect_schema_state(db.get_bind())
        self.charge_repo = ChargeRepository(db)

    def repair(self) -> int:
        if not self.schema_state.has_charge_table:
            logger.warning("charge table missing, skipping orphan charge repair")
            return 0

        try:
            repaired = self.charge_repo.reset_orphans()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if repaired:
            logger.warning("Repaired %d orphaned billed charges", repaired)
        else:
            logger.info("No orphaned billed charges found")
        return repaired
