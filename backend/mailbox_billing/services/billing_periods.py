"""Calendar billing periods per cadence."""

import calendar as cal
from datetime import UTC, date, datetime, timedelta

from mailbox_billing.models.invoice import BillingCadence
from mailbox_billing.models.plan import PlanInterval

MAX_PERIOD_END_TOLERANCE = timedelta(hours=1)


def cadence_for_interval(interval: str | None) -> BillingCadence:
    """Map a plan interval (``month``/``year``) to a billing cadence."""
    value = (interval or "").lower()
    if value in (PlanInterval.YEAR.value, "annual", "yearly"):
        return BillingCadence.ANNUAL
    return BillingCadence.MONTHLY


def interval_for_cadence(cadence: BillingCadence) -> str:
    if cadence == BillingCadence.ANNUAL:
        return PlanInterval.YEAR.value
    return PlanInterval.MONTH.value


def period_containing(day: date, cadence: BillingCadence) -> tuple[date, date]:
    """Return the inclusive (start, end) calendar period containing ``day``."""
    if cadence == BillingCadence.ANNUAL:
        return date(day.year, 1, 1), date(day.year, 12, 31)
    last_day = cal.monthrange(day.year, day.month)[1]
    return date(day.year, day.month, 1), date(day.year, day.month, last_day)


def previous_period(period_start: date, cadence: BillingCadence) -> tuple[date, date]:
    return period_containing(period_start - timedelta(days=1), cadence)


def last_ended_period(
    now: datetime,
    cadence: BillingCadence,
    tolerance: timedelta = timedelta(0),
) -> tuple[date, date]:
    """Return the most recent period that has ended as of ``now``.

    A period ends at midnight UTC after its last day. ``tolerance`` only
    absorbs scheduler jitter: a run firing that much before the boundary
    treats the closing period as ended. It is capped at an hour so a run
    on the last day of a period never bills that period.
    """
    if tolerance < timedelta(0) or tolerance > MAX_PERIOD_END_TOLERANCE:
        raise ValueError(
            f"Period end tolerance must be between 0 and {MAX_PERIOD_END_TOLERANCE}, "
            f"got {tolerance}"
        )
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    shifted = (now + tolerance).astimezone(UTC).date()
    current_start, _ = period_containing(shifted, cadence)
    return previous_period(current_start, cadence)
