from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from mailbox_billing.core.database import Base
from mailbox_billing.models.shared import UUIDType, generate_uuid


class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


class Subscription(Base):
    """A user's mailbox plan subscription, maintained by the payments service."""

    __tablename__ = "subscription"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    plan_id = Column(
        UUIDType,
        ForeignKey("plans.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status = Column(
        String(20), nullable=False, default=SubscriptionStatus.PENDING.value, index=True
    )
    # Direct-debit mandate reference from the payment collector
    mandate_id = Column(String(255), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
