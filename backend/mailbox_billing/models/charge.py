from enum import Enum

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)

from mailbox_billing.core.database import Base
from mailbox_billing.models.shared import UUIDType, generate_uuid


class ChargeStatus(str, Enum):
    PENDING = "pending"
    BILLED = "billed"


class ChargeType(str, Enum):
    SUBSCRIPTION_FEE = "subscription_fee"
    FORWARDING_FEE = "forwarding_fee"
    OTHER = "other"


# related_type used for subscription fees keyed by the period idempotency key
SUBSCRIPTION_PERIOD_RELATED_TYPE = "subscription_period"


class Charge(Base):
    """A single billable ledger entry.

    ``status == billed`` always comes with ``invoice_id`` and ``billed_at``
    set; ``pending`` with both null. The pairing is maintained by the
    invoice generator and the orphan repair job, never column by column.
    """

    __tablename__ = "charge"
    __table_args__ = (
        UniqueConstraint("type", "related_type", "related_id", name="uq_charge_type_related"),
        Index("ix_charge_user_status_service_date", "user_id", "status", "service_date"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount_pence = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    type = Column(String(50), nullable=False)
    description = Column(String(500), nullable=True)
    service_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=ChargeStatus.PENDING.value)
    invoice_id = Column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    billed_at = Column(DateTime(timezone=True), nullable=True)
    related_type = Column(String(50), nullable=True)
    related_id = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
