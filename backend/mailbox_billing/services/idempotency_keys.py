"""Deterministic deduplication keys for recurring charges."""

import hashlib
from datetime import date, datetime
from uuid import UUID

# 15 hex digits = 60 bits, always below the signed 63-bit ceiling
_KEY_HEX_DIGITS = 15
_SEPARATOR = "|"


def _date_part(value: date | datetime | str) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return date.fromisoformat(value).isoformat()
    raise ValueError(f"Expected a date, got {type(value).__name__}")


def derive_period_key(
    user_id: UUID | int | str,
    period_start: date | datetime | str,
    period_end: date | datetime | str,
) -> int:
    """Derive the subscription-fee key for one user and billing period.

    Pure: the same (user, start, end) always yields the same non-negative
    integer, across processes and restarts. Malformed dates raise ValueError.
    """
    material = _SEPARATOR.join(
        (str(user_id), _date_part(period_start), _date_part(period_end))
    )
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return int(digest[:_KEY_HEX_DIGITS], 16)
