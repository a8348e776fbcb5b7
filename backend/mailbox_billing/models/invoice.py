from enum import Enum

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)

from mailbox_billing.core.database import Base
from mailbox_billing.models.shared import UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    ISSUED = "issued"
    PAID = "paid"


class BillingCadence(str, Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "period_start", "period_end", name="uq_invoices_user_period"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    invoice_number = Column(String(100), unique=True, index=True, nullable=False)
    number = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.ISSUED.value, index=True)

    # Derived from attached billed charges; never written from anywhere else
    amount_pence = Column(BigInteger, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="GBP")

    # Billing period (inclusive dates)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    billing_interval = Column(String(20), nullable=False, default=BillingCadence.MONTHLY.value)

    # External payment collector reference (direct-debit payment id)
    payment_reference = Column(String(255), nullable=True, index=True)

    # Finalization
    pdf_path = Column(String(500), nullable=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    email_send_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def is_frozen(self) -> bool:
        """An emailed or paid invoice never receives further charges."""
        return self.email_sent_at is not None or self.payment_reference is not None
