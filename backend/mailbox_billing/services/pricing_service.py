import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailbox_billing.core.config import settings
from mailbox_billing.models.invoice import BillingCadence
from mailbox_billing.repositories.plan_repository import PlanRepository
from mailbox_billing.services.billing_periods import interval_for_cadence

logger = logging.getLogger(__name__)


class PricingService:
    """Subscription fee lookup per billing cadence."""

    def __init__(self, db: Session):
        self.db = db
        self.plan_repo = PlanRepository(db)

    def fallback_price_pence(self, cadence: BillingCadence) -> int:
        if cadence == BillingCadence.ANNUAL:
            return settings.DEFAULT_ANNUAL_PRICE_PENCE
        return settings.DEFAULT_MONTHLY_PRICE_PENCE

    def get_price_pence(self, cadence: BillingCadence) -> int:
        """Price of the first active plan for the cadence, or the configured fallback.

        The fallback also covers an unreachable plans table.
        """
        interval = interval_for_cadence(cadence)
        try:
            plan = self.plan_repo.get_active_by_interval(interval)
        except SQLAlchemyError:
            logger.warning(
                "Plan pricing lookup failed for interval %s, using fallback", interval,
                exc_info=True,
            )
            self.db.rollback()
            return self.fallback_price_pence(cadence)

        if plan is None:
            return self.fallback_price_pence(cadence)
        return int(plan.price_pence)
