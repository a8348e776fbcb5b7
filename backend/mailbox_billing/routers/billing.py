from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from mailbox_billing.core.auth import require_billing_secret
from mailbox_billing.core.config import settings
from mailbox_billing.core.database import get_db
from mailbox_billing.core.errors import BillingError, InvoiceNotFoundError
from mailbox_billing.core.schema_state import SchemaState, detect_schema_state
from mailbox_billing.repositories.invoice_repository import InvoiceRepository
from mailbox_billing.schemas.billing_run import FinalizationSummary, RepairSummary
from mailbox_billing.schemas.charge import ChargeCreate, ChargeRecordResponse, ChargeResponse
from mailbox_billing.schemas.invoice import (
    GenerateInvoiceRequest,
    GenerateInvoiceResponse,
    InvoiceDetailResponse,
    InvoiceResponse,
    ReconciliationResponse,
)
from mailbox_billing.services.charge_ledger import ChargeLedgerService
from mailbox_billing.services.invoice_finalization import InvoiceFinalizationService
from mailbox_billing.services.invoice_reconciliation import InvoiceReconciliationService
from mailbox_billing.services.orphan_repair import OrphanChargeRepairService
from mailbox_billing.services.period_invoice import PeriodInvoiceService

router = APIRouter(dependencies=[Depends(require_billing_secret)])

_AUTH_RESPONSES: dict[int | str, dict[str, str]] = {
    401: {"description": "Unauthorized – invalid or missing billing secret"},
    500: {"description": "BILLING_CRON_SECRET is not configured"},
}


def get_schema_state(request: Request, db: Session = Depends(get_db)) -> SchemaState:
    """Schema capabilities detected at startup, or detected now if startup was skipped."""
    state: SchemaState | None = getattr(request.app.state, "schema_state", None)
    if state is None:
        state = detect_schema_state(db.get_bind(), allow_degraded=not settings.is_production)
    return state


def _billing_http_error(error: BillingError) -> HTTPException:
    status_code = 404 if isinstance(error, InvoiceNotFoundError) else 400
    return HTTPException(
        status_code=status_code, detail={"error": error.reason, "message": str(error)}
    )


@router.post(
    "/finalize-invoices",
    response_model=FinalizationSummary,
    summary="Finalize invoices for the last ended period",
    responses=_AUTH_RESPONSES,
)
async def finalize_invoices(
    db: Session = Depends(get_db),
    schema_state: SchemaState = Depends(get_schema_state),
) -> FinalizationSummary:
    """Generate and deliver invoices for every active subscriber.

    Per-user failures are reported in the summary, the request itself succeeds.
    """
    try:
        service = InvoiceFinalizationService(db, schema_state)
    except BillingError as e:
        raise _billing_http_error(e) from None
    return await service.finalize_due_invoices()


@router.post(
    "/repair-orphan-charges",
    response_model=RepairSummary,
    summary="Reset billed charges without an invoice",
    responses=_AUTH_RESPONSES,
)
async def repair_orphan_charges(
    db: Session = Depends(get_db),
    schema_state: SchemaState = Depends(get_schema_state),
) -> RepairSummary:
    repaired = OrphanChargeRepairService(db, schema_state).repair()
    return RepairSummary(repaired_count=repaired)


@router.post(
    "/generate-invoice",
    response_model=GenerateInvoiceResponse,
    summary="Generate the invoice for one user and period",
    responses={400: {"description": "Invalid period, amount or currency"}, **_AUTH_RESPONSES},
)
async def generate_invoice(
    data: GenerateInvoiceRequest,
    db: Session = Depends(get_db),
    schema_state: SchemaState = Depends(get_schema_state),
) -> GenerateInvoiceResponse:
    try:
        result = PeriodInvoiceService(db, schema_state).generate_for_period(
            user_id=data.user_id,
            period_start=data.period_start,
            period_end=data.period_end,
            billing_interval=data.billing_interval,
            currency=data.currency,
            payment_reference=data.payment_reference,
        )
    except BillingError as e:
        raise _billing_http_error(e) from None

    return GenerateInvoiceResponse(
        invoice_id=result.invoice_id,
        invoice_number=result.invoice_number,
        amount_pence=result.total_charged_pence,
        attached_count=result.attached_count,
        total_charges_pence=result.total_charged_pence,
        created=result.created,
        frozen=result.frozen,
    )


@router.post(
    "/invoices/{invoice_id}/recompute",
    response_model=ReconciliationResponse,
    summary="Recompute an invoice amount from its charges",
    responses={404: {"description": "Invoice not found"}, **_AUTH_RESPONSES},
)
async def recompute_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    schema_state: SchemaState = Depends(get_schema_state),
) -> ReconciliationResponse:
    invoice = InvoiceRepository(db).get_by_id(invoice_id)
    if invoice is None:
        raise _billing_http_error(InvoiceNotFoundError(f"Invoice {invoice_id} not found"))

    result = InvoiceReconciliationService(db, schema_state).reconcile(
        invoice_id, str(invoice.currency)
    )
    return ReconciliationResponse(
        invoice_id=result.invoice_id,
        previous_amount_pence=result.previous_amount_pence,
        amount_pence=result.amount_pence,
        mismatch=result.mismatch,
    )


@router.get(
    "/invoices/{invoice_id}",
    response_model=InvoiceDetailResponse,
    summary="Get invoice with billed items",
    responses={404: {"description": "Invoice not found"}, **_AUTH_RESPONSES},
)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceDetailResponse:
    invoice = InvoiceRepository(db).get_by_id(invoice_id)
    if invoice is None:
        raise _billing_http_error(InvoiceNotFoundError(f"Invoice {invoice_id} not found"))

    items = ChargeLedgerService(db).list_invoice_items(invoice_id)
    return InvoiceDetailResponse(
        invoice=InvoiceResponse.model_validate(invoice),
        items=[ChargeResponse.model_validate(item) for item in items],
    )


@router.post(
    "/charges",
    response_model=ChargeRecordResponse,
    summary="Record a pending charge",
    responses={
        200: {"description": "Duplicate charge, existing row returned"},
        201: {"description": "Charge recorded"},
        400: {"description": "Invalid amount or currency"},
        **_AUTH_RESPONSES,
    },
)
async def record_charge(
    data: ChargeCreate,
    response: Response,
    db: Session = Depends(get_db),
) -> ChargeRecordResponse:
    try:
        charge, created = ChargeLedgerService(db).record_charge(data)
    except BillingError as e:
        raise _billing_http_error(e) from None

    response.status_code = 201 if created else 200
    return ChargeRecordResponse(charge=ChargeResponse.model_validate(charge), created=created)
