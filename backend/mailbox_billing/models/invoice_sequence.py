from sqlalchemy import Column, DateTime, Integer, func

from mailbox_billing.core.database import Base


class InvoiceSequence(Base):
    """Per-year invoice number counter."""

    __tablename__ = "invoices_seq"

    year = Column(Integer, primary_key=True, autoincrement=False)
    sequence = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
