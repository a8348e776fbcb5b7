"""Period invoice generation.

For one user and one billing period, ensure exactly one invoice row exists,
attach every eligible pending charge to it and recompute its amount from the
ledger. Safe to call repeatedly and from overlapping runs: every cross-run
guarantee is a conditional write, so no process-local locking is involved.
"""

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from mailbox_billing.core.config import settings
from mailbox_billing.core.errors import (
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidPeriodError,
    SchemaStateError,
)
from mailbox_billing.core.schema_state import SchemaState, detect_schema_state
from mailbox_billing.models.charge import SUBSCRIPTION_PERIOD_RELATED_TYPE, ChargeType
from mailbox_billing.models.invoice import BillingCadence, Invoice, InvoiceStatus
from mailbox_billing.models.shared import utc_now
from mailbox_billing.repositories.charge_repository import ChargeRepository
from mailbox_billing.repositories.invoice_repository import InvoiceRepository
from mailbox_billing.repositories.invoice_sequence_repository import InvoiceSequenceRepository
from mailbox_billing.repositories.subscription_repository import SubscriptionRepository
from mailbox_billing.services.idempotency_keys import derive_period_key
from mailbox_billing.services.invoice_reconciliation import InvoiceReconciliationService
from mailbox_billing.services.pricing_service import PricingService

logger = logging.getLogger(__name__)


@dataclass
class PeriodInvoiceResult:
    invoice_id: UUID
    invoice_number: str
    attached_count: int
    total_charged_pence: int
    created: bool
    frozen: bool


def normalize_currency(currency: str | None) -> str:
    value = (currency or settings.BILLING_CURRENCY).strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise InvalidCurrencyError(f"Invalid currency code: {currency!r}")
    return value


class PeriodInvoiceService:
    """Materializes one invoice per (user, period) from the charge ledger."""

    def __init__(self, db: Session, schema_state: SchemaState | None = None):
        self.db = db
        self.schema_state = schema_state or detect_schema_state(db.get_bind())
        if not self.schema_state.has_invoice_table:
            raise SchemaStateError("invoices table is missing")
        self.invoice_repo = InvoiceRepository(db)
        self.charge_repo = ChargeRepository(db)
        self.sequence_repo = InvoiceSequenceRepository(db)
        self.subscription_repo = SubscriptionRepository(db)
        self.pricing = PricingService(db)
        self.reconciliation = InvoiceReconciliationService(db, self.schema_state)

    def generate_for_period(
        self,
        user_id: UUID,
        period_start: date,
        period_end: date,
        billing_interval: BillingCadence | str,
        currency: str | None = None,
        payment_reference: str | None = None,
    ) -> PeriodInvoiceResult:
        """Generate (or refresh) the invoice for a user's billing period.

        Args:
            user_id: Owner of the charges and the invoice.
            period_start: First day of the period (inclusive).
            period_end: Last day of the period (inclusive).
            billing_interval: Cadence used for the subscription fee price.
            currency: Invoice currency, defaults to ``BILLING_CURRENCY``.
            payment_reference: Optional external payment id to link (marks paid).

        Returns:
            The invoice id and number, how many charges this call attached,
            and the recomputed total.

        Raises:
            InvalidPeriodError: ``period_start`` is not before ``period_end``.
            InvalidCurrencyError: ``currency`` is not a three letter code.
            InvalidAmountError: the subscription fee price is not positive.
        """
        if period_start >= period_end:
            raise InvalidPeriodError(
                f"period_start ({period_start}) must be before period_end ({period_end})"
            )
        cadence = BillingCadence(billing_interval)
        currency = normalize_currency(currency)

        try:
            result = self._generate(
                user_id, period_start, period_end, cadence, currency, payment_reference
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Invoice %s ready for user %s (%s..%s): attached=%d total=%d created=%s frozen=%s",
            result.invoice_number,
            user_id,
            period_start,
            period_end,
            result.attached_count,
            result.total_charged_pence,
            result.created,
            result.frozen,
        )
        return result

    def _generate(
        self,
        user_id: UUID,
        period_start: date,
        period_end: date,
        cadence: BillingCadence,
        currency: str,
        payment_reference: str | None,
    ) -> PeriodInvoiceResult:
        invoice = self.invoice_repo.get_for_period(user_id, period_start, period_end)
        frozen = invoice is not None and invoice.is_frozen

        # Reads and validation first, so a rejected call mutates nothing
        fee_pence: int | None = None
        if not frozen and self._subscription_fee_applies(user_id):
            fee_pence = self.pricing.get_price_pence(cadence)
            if fee_pence <= 0:
                raise InvalidAmountError(
                    f"Subscription fee for {cadence.value} billing must be positive, "
                    f"got {fee_pence}"
                )

        if fee_pence is not None:
            self._ensure_subscription_fee(
                user_id, period_start, period_end, cadence, currency, fee_pence
            )

        created = False
        if invoice is None:
            invoice, created = self._create_invoice(
                user_id, period_start, period_end, cadence, currency
            )
            if not created:
                frozen = invoice.is_frozen

        invoice_id = UUID(str(invoice.id))
        attached = 0
        if frozen:
            logger.info("Invoice %s is frozen, no charges attached", invoice.invoice_number)
        elif not self.schema_state.has_charge_table:
            logger.warning("charge table missing, skipping charge attachment for user %s", user_id)
        else:
            attached = self.charge_repo.claim_pending(
                user_id=user_id,
                invoice_id=invoice_id,
                period_end=period_end,
                billed_at=utc_now(),
            )

        if payment_reference and invoice.payment_reference is None:
            # Linked after the claim: the claim predicate skips paid invoices
            self.invoice_repo.link_payment_reference(invoice_id, payment_reference)

        reconciled = self.reconciliation.reconcile(
            invoice_id, currency, commit=False, expect_change=attached > 0
        )

        return PeriodInvoiceResult(
            invoice_id=invoice_id,
            invoice_number=str(invoice.invoice_number),
            attached_count=attached,
            total_charged_pence=reconciled.amount_pence,
            created=created,
            frozen=frozen,
        )

    def _subscription_fee_applies(self, user_id: UUID) -> bool:
        if not self.schema_state.can_ensure_subscription_fee:
            logger.warning(
                "charge deduplication unavailable, not ensuring subscription fee for user %s",
                user_id,
            )
            return False
        return self.subscription_repo.has_active_subscription(user_id)

    def _ensure_subscription_fee(
        self,
        user_id: UUID,
        period_start: date,
        period_end: date,
        cadence: BillingCadence,
        currency: str,
        amount_pence: int,
    ) -> bool:
        inserted = self.charge_repo.insert_if_absent(
            user_id=user_id,
            amount_pence=amount_pence,
            currency=currency,
            type=ChargeType.SUBSCRIPTION_FEE.value,
            description=(
                f"Mailbox plan subscription ({cadence.value}) "
                f"{period_start.isoformat()} to {period_end.isoformat()}"
            ),
            service_date=period_start,
            related_type=SUBSCRIPTION_PERIOD_RELATED_TYPE,
            related_id=derive_period_key(user_id, period_start, period_end),
        )
        if inserted:
            logger.info(
                "Subscription fee of %d recorded for user %s (%s..%s)",
                amount_pence,
                user_id,
                period_start,
                period_end,
            )
        return inserted

    def _allocate_invoice_number(
        self, user_id: UUID, period_start: date, period_end: date
    ) -> tuple[str, str]:
        """Return (raw number, formatted invoice number)."""
        if not self.schema_state.has_sequence_table:
            logger.warning(
                "invoices_seq missing, using fallback invoice number for user %s", user_id
            )
            number = f"{user_id}-{period_start.isoformat()}-{period_end.isoformat()}"
            return number, f"INV-{number}"

        year = period_end.year
        sequence = self.sequence_repo.next_sequence(year)
        return str(sequence), f"{settings.INVOICE_NUMBER_PREFIX}-{year}-{sequence:06d}"

    def _create_invoice(
        self,
        user_id: UUID,
        period_start: date,
        period_end: date,
        cadence: BillingCadence,
        currency: str,
    ) -> tuple[Invoice, bool]:
        number, invoice_number = self._allocate_invoice_number(
            user_id, period_start, period_end
        )
        created = self.invoice_repo.insert_for_period(
            user_id=user_id,
            invoice_number=invoice_number,
            number=number,
            amount_pence=0,
            currency=currency,
            period_start=period_start,
            period_end=period_end,
            billing_interval=cadence.value,
            status=InvoiceStatus.ISSUED.value,
            created_at=utc_now(),
        )
        if not created:
            # A concurrent run created the row between our read and insert
            logger.info(
                "Invoice for user %s (%s..%s) created concurrently, reusing it",
                user_id,
                period_start,
                period_end,
            )

        invoice = self.invoice_repo.get_for_period(user_id, period_start, period_end)
        if invoice is None:
            raise RuntimeError(
                f"Invoice for user {user_id} ({period_start}..{period_end}) vanished after insert"
            )
        return invoice, created
