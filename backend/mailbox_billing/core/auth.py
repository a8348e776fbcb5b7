import hmac

from fastapi import HTTPException, Request

from mailbox_billing.core.config import settings


def _extract_secret(request: Request) -> str:
    header = request.headers.get("X-Billing-Cron-Secret") or request.headers.get("X-Cron-Secret")
    if header:
        return header.strip()

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return ""


def require_billing_secret(request: Request) -> None:
    """Authorize scheduler and operator calls with the shared billing secret.

    Accepts ``X-Billing-Cron-Secret``, ``X-Cron-Secret`` or a bearer token.
    A missing server-side secret is a configuration error, not an auth failure.
    """
    expected = settings.BILLING_CRON_SECRET.strip()
    if not expected:
        raise HTTPException(status_code=500, detail="BILLING_CRON_SECRET is not set")

    provided = _extract_secret(request)
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="unauthorized")
