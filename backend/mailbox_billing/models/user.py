from sqlalchemy import Column, DateTime, String, func

from mailbox_billing.core.database import Base
from mailbox_billing.models.shared import UUIDType, generate_uuid


class User(Base):
    """Account holder. Owned by the accounts service; read-only for billing."""

    __tablename__ = "users"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    business_name = Column(String(255), nullable=True)
    trading_name = Column(String(255), nullable=True)
    plan_status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def display_name(self) -> str:
        parts = [str(p) for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or "Customer"
