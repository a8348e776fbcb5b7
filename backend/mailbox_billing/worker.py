import logging
from typing import Any

from arq import cron

from mailbox_billing.core.config import settings
from mailbox_billing.core.database import SessionLocal, engine
from mailbox_billing.core.schema_state import SchemaState, check_schema_state
from mailbox_billing.services.invoice_finalization import InvoiceFinalizationService
from mailbox_billing.services.orphan_repair import OrphanChargeRepairService
from mailbox_billing.tasks import redis_settings

logger = logging.getLogger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Detect the billing schema once per worker process."""
    ctx["schema_state"] = check_schema_state(engine, allow_degraded=not settings.is_production)


def _schema_state(ctx: dict[str, Any]) -> SchemaState | None:
    state: SchemaState | None = ctx.get("schema_state")
    return state


async def finalize_invoices_task(ctx: dict[str, Any]) -> dict[str, int]:
    """Background task: generate and deliver invoices for the last ended period.

    Runs daily.
    """
    db = SessionLocal()
    try:
        service = InvoiceFinalizationService(db, _schema_state(ctx))
        summary = await service.finalize_due_invoices()
        if summary.errored_count > 0:
            logger.warning("Invoice finalization had %d errored users", summary.errored_count)
        return {
            "eligible": summary.eligible,
            "generated": summary.generated_count,
            "skipped": summary.skipped_count,
            "errored": summary.errored_count,
        }
    finally:
        db.close()


async def repair_orphan_charges_task(ctx: dict[str, Any]) -> int:
    """Background task: reset billed charges that lost their invoice.

    Runs weekly.
    """
    db = SessionLocal()
    try:
        return OrphanChargeRepairService(db, _schema_state(ctx)).repair()
    finally:
        db.close()


class WorkerSettings:
    functions = [
        finalize_invoices_task,
        repair_orphan_charges_task,
    ]
    cron_jobs = [
        cron(finalize_invoices_task, hour=2, minute=0),  # daily at 02:00
        cron(repair_orphan_charges_task, weekday=6, hour=3, minute=0),  # Sundays at 03:00
    ]
    on_startup = startup
    redis_settings = redis_settings
