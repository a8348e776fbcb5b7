from mailbox_billing.repositories.charge_repository import ChargeRepository
from mailbox_billing.repositories.invoice_repository import InvoiceRepository
from mailbox_billing.repositories.invoice_sequence_repository import InvoiceSequenceRepository
from mailbox_billing.repositories.plan_repository import PlanRepository
from mailbox_billing.repositories.subscription_repository import SubscriptionRepository
from mailbox_billing.repositories.user_repository import UserRepository

__all__ = [
    "ChargeRepository",
    "InvoiceRepository",
    "InvoiceSequenceRepository",
    "PlanRepository",
    "SubscriptionRepository",
    "UserRepository",
]
