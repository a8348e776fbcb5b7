"""Startup capability check for the billing tables.

Older deployments may be mid-migration: the ``charge`` or ``invoices_seq``
tables can be missing, or ``charge`` may predate the deduplication columns.
The check runs once when the API or worker boots. Production refuses to run
against an incomplete schema; development and staging run degraded.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import inspect
from sqlalchemy.engine import Connection, Engine

from mailbox_billing.core.errors import SchemaStateError

logger = logging.getLogger(__name__)

CHARGE_TABLE = "charge"
INVOICE_TABLE = "invoices"
SEQUENCE_TABLE = "invoices_seq"
DEDUP_COLUMNS = frozenset({"related_type", "related_id"})


@dataclass(frozen=True)
class SchemaState:
    has_charge_table: bool = True
    has_invoice_table: bool = True
    has_sequence_table: bool = True
    has_charge_dedup_columns: bool = True
    allow_degraded: bool = False
    missing: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_complete(self) -> bool:
        return not self.missing

    @property
    def can_ensure_subscription_fee(self) -> bool:
        return self.has_charge_table and self.has_charge_dedup_columns


def detect_schema_state(bind: Engine | Connection, allow_degraded: bool = False) -> SchemaState:
    """Inspect the database and report which billing capabilities exist."""
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    has_charge = CHARGE_TABLE in tables
    has_invoices = INVOICE_TABLE in tables
    has_sequence = SEQUENCE_TABLE in tables
    has_dedup = False
    if has_charge:
        columns = {col["name"] for col in inspector.get_columns(CHARGE_TABLE)}
        has_dedup = DEDUP_COLUMNS <= columns

    missing: list[str] = []
    if not has_invoices:
        missing.append(INVOICE_TABLE)
    if not has_charge:
        missing.append(CHARGE_TABLE)
    elif not has_dedup:
        missing.append(f"{CHARGE_TABLE}.related_type/related_id")
    if not has_sequence:
        missing.append(SEQUENCE_TABLE)

    return SchemaState(
        has_charge_table=has_charge,
        has_invoice_table=has_invoices,
        has_sequence_table=has_sequence,
        has_charge_dedup_columns=has_dedup,
        allow_degraded=allow_degraded,
        missing=tuple(missing),
    )


def require_schema_state(state: SchemaState) -> SchemaState:
    """Fail fast on an incomplete schema unless degraded mode is allowed.

    A missing ``invoices`` table is fatal in every environment.
    """
    if state.is_complete:
        return state

    missing = ", ".join(state.missing)
    if not state.has_invoice_table or not state.allow_degraded:
        raise SchemaStateError(f"Billing schema is incomplete, missing: {missing}")

    logger.warning("Billing schema incomplete, running degraded (missing: %s)", missing)
    return state


def check_schema_state(bind: Engine | Connection, allow_degraded: bool) -> SchemaState:
    """Detect and validate the schema in one step (used at process startup)."""
    return require_schema_state(detect_schema_state(bind, allow_degraded=allow_degraded))
