from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from mailbox_billing.core.database import Base
from mailbox_billing.models.shared import UUIDType, generate_uuid


class PlanInterval(str, Enum):
    MONTH = "month"
    YEAR = "year"


class Plan(Base):
    __tablename__ = "plans"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=True)
    interval = Column(String(10), nullable=False, default=PlanInterval.MONTH.value)
    price_pence = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="GBP")
    active = Column(Boolean, nullable=False, default=True)
    sort = Column(Integer, nullable=False, default=0)
    retired_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
