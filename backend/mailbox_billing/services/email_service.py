"""Email service for sending billing emails via SMTP."""

from __future__ import annotations

import html
import logging
from datetime import date
from email.message import EmailMessage
from typing import TYPE_CHECKING

from mailbox_billing.core.config import settings
from mailbox_billing.services.pdf_service import format_pence

if TYPE_CHECKING:
    from mailbox_billing.models.user import User
    from mailbox_billing.schemas.invoice import InvoiceDocument

logger = logging.getLogger(__name__)


class MissingRecipientError(ValueError):
    """The invoice owner has no email address on file."""


def format_billing_period(period_start: date, period_end: date) -> str:
    """Human readable period, e.g. ``1-31 January 2025``."""
    if (period_start.year, period_start.month) == (period_end.year, period_end.month):
        return f"{period_start.day}-{period_end.day} {period_end:%B %Y}"
    if period_start.year == period_end.year:
        return f"{period_start.day} {period_start:%B} - {period_end.day} {period_end:%B %Y}"
    return f"{period_start.day} {period_start:%B %Y} - {period_end.day} {period_end:%B %Y}"


class EmailService:
    """Service for sending transactional emails via SMTP."""

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: list[tuple[str, bytes, str]] | None = None,
    ) -> bool:
        """Send an email via SMTP.

        Args:
            to: Recipient email address.
            subject: Email subject line.
            html_body: HTML content of the email.
            attachments: Optional list of (filename, content_bytes, mime_type) tuples.

        Returns:
            True if sent successfully (or no-op when SMTP unconfigured).
        """
        if not settings.SMTP_HOST:
            logger.info("SMTP not configured, skipping email to %s: %s", to, subject)
            return True

        import aiosmtplib

        msg = EmailMessage()
        msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Please view this email in an HTML-capable client.")
        msg.add_alternative(html_body, subtype="html")

        for filename, content, mime_type in attachments or []:
            maintype, _, subtype = mime_type.partition("/")
            msg.add_attachment(
                content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=filename,
            )

        await aiosmtplib.send(
            msg,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME or None,
            password=settings.SMTP_PASSWORD or None,
            start_tls=settings.SMTP_USE_TLS,
        )
        logger.info("Email sent to %s: %s", to, subject)
        return True

    async def send_invoice_available_email(
        self,
        document: InvoiceDocument,
        user: User,
        pdf_bytes: bytes | None = None,
    ) -> bool:
        """Tell the customer a new invoice is ready, attaching the PDF when given.

        Raises:
            MissingRecipientError: the user has no email address.
        """
        if not user.email:
            raise MissingRecipientError(f"User {user.id} has no email address")

        billing_period = format_billing_period(document.period_start, document.period_end)
        amount = format_pence(document.amount_pence, document.currency)
        invoices_url = html.escape(f"{settings.APP_URL.rstrip('/')}/billing#invoices")
        invoice_number = html.escape(document.invoice_number)
        first_name = html.escape(user.first_name or "there")

        html_body = (
            f"<h2>Your invoice {invoice_number} is ready</h2>"
            f"<p>Hi {first_name},</p>"
            f"<p>Your invoice for {billing_period} is now available.</p>"
            f"<table>"
            f"<tr><td><strong>Invoice #:</strong></td><td>{invoice_number}</td></tr>"
            f"<tr><td><strong>Billing period:</strong></td><td>{billing_period}</td></tr>"
            f"<tr><td><strong>Amount:</strong></td><td>{amount}</td></tr>"
            f"</table>"
            f'<p><a href="{invoices_url}">View your invoices</a></p>'
            f"<p>Thank you for using {html.escape(settings.COMPANY_NAME)}.</p>"
        )

        attachments: list[tuple[str, bytes, str]] | None = None
        if pdf_bytes is not None:
            attachments = [
                (f"invoice-{document.invoice_number}.pdf", pdf_bytes, "application/pdf")
            ]

        return await self.send_email(
            to=str(user.email),
            subject=f"Your invoice {document.invoice_number} is available",
            html_body=html_body,
            attachments=attachments,
        )
