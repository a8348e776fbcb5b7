from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from mailbox_billing.models.charge import ChargeType


class ChargeCreate(BaseModel):
    user_id: UUID
    amount_pence: int
    currency: str = Field(default="GBP", min_length=3, max_length=3)
    type: ChargeType = ChargeType.FORWARDING_FEE
    description: str | None = Field(default=None, max_length=500)
    service_date: date
    related_type: str | None = Field(default=None, max_length=50)
    related_id: int | None = Field(default=None, ge=0)


class ChargeResponse(BaseModel):
    id: UUID
    user_id: UUID
    amount_pence: int
    currency: str
    type: str
    description: str | None
    service_date: date
    status: str
    invoice_id: UUID | None
    billed_at: datetime | None
    related_type: str | None
    related_id: int | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class ChargeRecordResponse(BaseModel):
    charge: ChargeResponse
    created: bool
