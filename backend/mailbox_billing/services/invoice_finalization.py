"""Periodic invoice finalization across all active subscribers.

Users are processed one after another, each in its own transaction. A failure
for one user is recorded in the run summary and never stops the run.
"""

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from mailbox_billing.core.config import settings
from mailbox_billing.core.schema_state import SchemaState, detect_schema_state
from mailbox_billing.models.plan import Plan
from mailbox_billing.models.subscription import Subscription
from mailbox_billing.repositories.subscription_repository import SubscriptionRepository
from mailbox_billing.schemas.billing_run import (
    FinalizationSummary,
    UserOutcome,
    UserOutcomeStatus,
)
from mailbox_billing.services.billing_periods import cadence_for_interval, last_ended_period
from mailbox_billing.services.invoice_delivery import DeliveryStatus, InvoiceDeliveryService
from mailbox_billing.services.period_invoice import PeriodInvoiceService

logger = logging.getLogger(__name__)


class InvoiceFinalizationService:
    def __init__(
        self,
        db: Session,
        schema_state: SchemaState | None = None,
        delivery: InvoiceDeliveryService | None = None,
    ):
        self.db = db
        self.schema_state = schema_state or detect_schema_state(db.get_bind())
        self.subscription_repo = SubscriptionRepository(db)
        self.generator = PeriodInvoiceService(db, self.schema_state)
        self.delivery = delivery or InvoiceDeliveryService(db)

    async def finalize_due_invoices(self, now: datetime | None = None) -> FinalizationSummary:
        """Generate and deliver the last ended period's invoice for every active subscriber.

        Args:
            now: Reference time for period selection, defaults to the current UTC time.

        Returns:
            Per-user outcomes plus generated/skipped/errored counters.
        """
        run_at = now or datetime.now(UTC)
        tolerance = timedelta(minutes=settings.PERIOD_END_TOLERANCE_MINUTES)
        eligible = self.subscription_repo.get_active_with_plans()
        summary = FinalizationSummary(run_at=run_at, eligible=len(eligible))

        for subscription, plan in eligible:
            outcome = await self._finalize_user(subscription, plan, run_at, tolerance)
            summary.add(outcome)

        logger.info(
            "Invoice finalization finished: eligible=%d generated=%d skipped=%d errored=%d",
            summary.eligible,
            summary.generated_count,
            summary.skipped_count,
            summary.errored_count,
        )
        return summary

    async def _finalize_user(
        self,
        subscription: Subscription,
        plan: Plan | None,
        run_at: datetime,
        tolerance: timedelta,
    ) -> UserOutcome:
        user_id = UUID(str(subscription.user_id))

        if not subscription.mandate_id:
            return UserOutcome(
                user_id=user_id, status=UserOutcomeStatus.SKIPPED, reason="missing_mandate"
            )
        if plan is None or not plan.active or plan.retired_at is not None:
            return UserOutcome(
                user_id=user_id, status=UserOutcomeStatus.SKIPPED, reason="missing_plan"
            )

        cadence = cadence_for_interval(str(plan.interval))
        period_start, period_end = last_ended_period(run_at, cadence, tolerance)
        started_at = subscription.started_at
        if started_at is not None and started_at.date() > period_end:
            return UserOutcome(
                user_id=user_id,
                status=UserOutcomeStatus.SKIPPED,
                reason="period_not_ended_yet",
                period_start=period_start,
                period_end=period_end,
            )

        try:
            result = self.generator.generate_for_period(
                user_id, period_start, period_end, cadence, currency=str(plan.currency or "")
            )
        except Exception as e:
            # generate_for_period already rolled back this user's transaction
            logger.exception("Invoice generation failed for user %s", user_id)
            return UserOutcome(
                user_id=user_id,
                status=UserOutcomeStatus.ERRORED,
                reason=f"generation_failed:{e}",
                period_start=period_start,
                period_end=period_end,
            )

        outcome = UserOutcome(
            user_id=user_id,
            status=UserOutcomeStatus.GENERATED,
            invoice_id=result.invoice_id,
            invoice_number=result.invoice_number,
            amount_pence=result.total_charged_pence,
            attached_count=result.attached_count,
            period_start=period_start,
            period_end=period_end,
        )

        try:
            delivery = await self.delivery.deliver(result.invoice_id)
        except Exception as e:
            logger.exception("Invoice delivery crashed for invoice %s", result.invoice_id)
            outcome.status = UserOutcomeStatus.ERRORED
            outcome.reason = f"delivery_failed:{e}"
            return outcome

        if delivery.status == DeliveryStatus.ALREADY_SENT:
            outcome.status = UserOutcomeStatus.SKIPPED
            outcome.reason = "already_sent"
        elif delivery.status == DeliveryStatus.FAILED:
            outcome.status = UserOutcomeStatus.ERRORED
            outcome.reason = f"delivery_failed:{delivery.error}"
        return outcome
