from uuid import UUID

from sqlalchemy.orm import Session

from mailbox_billing.models.plan import Plan
from mailbox_billing.models.subscription import Subscription, SubscriptionStatus
from mailbox_billing.models.user import User


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_active_with_plans(self) -> list[tuple[Subscription, Plan | None]]:
        """Active subscriptions with their plan (``None`` when the plan is gone)."""
        rows = (
            self.db.query(Subscription, Plan)
            .join(User, User.id == Subscription.user_id)
            .outerjoin(Plan, Plan.id == Subscription.plan_id)
            .filter(Subscription.status == SubscriptionStatus.ACTIVE.value)
            .order_by(Subscription.created_at.asc())
            .all()
        )
        return [(sub, plan) for sub, plan in rows]

    def has_active_subscription(self, user_id: UUID) -> bool:
        return (
            self.db.query(Subscription.id)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .first()
            is not None
        )
