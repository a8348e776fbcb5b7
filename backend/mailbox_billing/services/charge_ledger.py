import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mailbox_billing.core.errors import InvalidAmountError
from mailbox_billing.models.charge import Charge
from mailbox_billing.repositories.charge_repository import ChargeRepository
from mailbox_billing.schemas.charge import ChargeCreate
from mailbox_billing.services.period_invoice import normalize_currency

logger = logging.getLogger(__name__)


class ChargeLedgerService:
    """Entry point for collaborators recording billable events."""

    def __init__(self, db: Session):
        self.db = db
        self.charge_repo = ChargeRepository(db)

    def record_charge(self, data: ChargeCreate) -> tuple[Charge, bool]:
        """Record a pending charge, deduplicated by (type, related_type, related_id).

        Returns:
            The stored charge and whether this call created it.
        """
        if data.amount_pence <= 0:
            raise InvalidAmountError(f"Charge amount must be positive, got {data.amount_pence}")
        currency = normalize_currency(data.currency)

        if data.related_type is None or data.related_id is None:
            # No dedup pair: every call records a new charge
            charge = Charge(
                user_id=data.user_id,
                amount_pence=data.amount_pence,
                currency=currency,
                type=data.type.value,
                description=data.description,
                service_date=data.service_date,
                related_type=data.related_type,
                related_id=data.related_id,
            )
            self.db.add(charge)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise
            self.db.refresh(charge)
            return charge, True

        try:
            created = self.charge_repo.insert_if_absent(
                user_id=data.user_id,
                amount_pence=data.amount_pence,
                currency=currency,
                type=data.type.value,
                description=data.description,
                service_date=data.service_date,
                related_type=data.related_type,
                related_id=data.related_id,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        charge = self.charge_repo.get_by_related(
            data.type.value, data.related_type, data.related_id
        )
        if charge is None:
            raise RuntimeError(
                f"Charge {data.type.value}/{data.related_type}/{data.related_id} "
                "missing after insert"
            )
        if not created:
            logger.info(
                "Duplicate %s charge for %s %s ignored",
                data.type.value,
                data.related_type,
                data.related_id,
            )
        return charge, created

    def list_invoice_items(self, invoice_id: UUID) -> list[Charge]:
        return self.charge_repo.get_billed_for_invoice(invoice_id)
