from mailbox_billing.models.charge import (
    SUBSCRIPTION_PERIOD_RELATED_TYPE,
    Charge,
    ChargeStatus,
    ChargeType,
)
from mailbox_billing.models.invoice import BillingCadence, Invoice, InvoiceStatus
from mailbox_billing.models.invoice_sequence import InvoiceSequence
from mailbox_billing.models.plan import Plan, PlanInterval
from mailbox_billing.models.subscription import Subscription, SubscriptionStatus
from mailbox_billing.models.user import User

__all__ = [
    "BillingCadence",
    "Charge",
    "ChargeStatus",
    "ChargeType",
    "Invoice",
    "InvoiceSequence",
    "InvoiceStatus",
    "Plan",
    "PlanInterval",
    "SUBSCRIPTION_PERIOD_RELATED_TYPE",
    "Subscription",
    "SubscriptionStatus",
    "User",
]
