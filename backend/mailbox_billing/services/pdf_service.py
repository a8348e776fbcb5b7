"""PDF rendering for period invoices."""

from __future__ import annotations

import html
import logging
from pathlib import Path
from string import Template
from typing import TYPE_CHECKING

from mailbox_billing.core.config import settings

if TYPE_CHECKING:
    from mailbox_billing.models.user import User
    from mailbox_billing.schemas.invoice import InvoiceDocument

logger = logging.getLogger(__name__)

_INVOICE_TEMPLATE = Template("""\
<!DOCTYPE html>
<html>
<head>
<style>
  body { font-family: Helvetica, Arial, sans-serif; font-size: 12px; color: #333; margin: 40px; }
  h1 { font-size: 24px; margin-bottom: 4px; }
  .header { display: flex; justify-content: space-between; margin-bottom: 30px; }
  .header-left, .header-right { width: 48%; }
  .meta { margin-bottom: 20px; }
  .meta td { padding: 2px 8px 2px 0; }
  table.items { width: 100%; border-collapse: collapse; margin-bottom: 20px; }
  table.items th { text-align: left; border-bottom: 2px solid #333; padding: 6px 8px; }
  table.items td { padding: 6px 8px; border-bottom: 1px solid #ddd; }
  table.items .right { text-align: right; }
  .totals { width: 300px; margin-left: auto; }
  .totals td { padding: 4px 8px; }
  .totals .label { text-align: right; }
  .totals .total-row { font-weight: bold; border-top: 2px solid #333; }
</style>
</head>
<body>
<div class="header">
  <div class="header-left">
    <h1>${company_name}</h1>
  </div>
  <div class="header-right" style="text-align: right;">
    <h1>INVOICE</h1>
  </div>
</div>
<table class="meta">
  <tr><td><strong>Invoice #:</strong></td><td>${invoice_number}</td></tr>
  <tr><td><strong>Billing Period:</strong></td><td>${billing_period}</td></tr>
</table>
<table class="meta">
  <tr><td><strong>Bill To:</strong></td></tr>
  <tr><td>${customer_name}</td></tr>
  <tr><td>${customer_email}</td></tr>
</table>
<table class="items">
  <thead>
    <tr>
      <th>Date</th>
      <th>Description</th>
      <th class="right">Amount</th>
    </tr>
  </thead>
  <tbody>
    ${item_rows}
  </tbody>
</table>
<table class="totals">
  <tr class="total-row"><td class="label">Total:</td><td class="right">${total}</td></tr>
</table>
</body>
</html>
""")

_ITEM_ROW_TEMPLATE = Template(
    '<tr><td>${service_date}</td><td>${description}</td><td class="right">${amount}</td></tr>'
)

_CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$"}


def format_pence(amount_pence: int | None, currency: str) -> str:
    """Format an integer minor-unit amount, e.g. 999 GBP -> £9.99."""
    pence = int(amount_pence or 0)
    sign = "-" if pence < 0 else ""
    pounds, remainder = divmod(abs(pence), 100)
    symbol = _CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{sign}{symbol}{pounds:,}.{remainder:02d}"
    return f"{sign}{pounds:,}.{remainder:02d} {currency.upper()}"


def invoice_relative_path(document: InvoiceDocument) -> str:
    return (
        f"/invoices/{document.period_end.year}/{document.user_id}/"
        f"invoice-{document.invoice_id}.pdf"
    )


class PdfService:
    """Renders invoice documents with WeasyPrint and stores them on disk."""

    def __init__(self, invoices_dir: str | None = None):
        self.invoices_dir = Path(invoices_dir or settings.INVOICES_DIR)

    def generate_invoice_pdf(self, document: InvoiceDocument, user: User) -> bytes:
        item_rows = "\n    ".join(
            _ITEM_ROW_TEMPLATE.substitute(
                service_date=item.service_date.isoformat(),
                description=html.escape(item.description or item.type),
                amount=format_pence(item.amount_pence, item.currency),
            )
            for item in document.items
        )

        rendered = _INVOICE_TEMPLATE.substitute(
            company_name=html.escape(settings.COMPANY_NAME),
            invoice_number=html.escape(document.invoice_number),
            billing_period=(
                f"{document.period_start.isoformat()} to {document.period_end.isoformat()}"
            ),
            customer_name=html.escape(user.display_name),
            customer_email=html.escape(str(user.email or "")),
            item_rows=item_rows,
            total=format_pence(document.amount_pence, document.currency),
        )

        import weasyprint

        pdf_bytes: bytes = weasyprint.HTML(string=rendered).write_pdf()
        return pdf_bytes

    def write_invoice_pdf(self, document: InvoiceDocument, user: User) -> tuple[str, bytes]:
        """Render and store the invoice PDF.

        Returns:
            The public relative path (``/invoices/<year>/<user>/invoice-<id>.pdf``)
            and the PDF bytes.
        """
        pdf_bytes = self.generate_invoice_pdf(document, user)
        relative_path = invoice_relative_path(document)
        target = self.invoices_dir / relative_path.removeprefix("/invoices/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(pdf_bytes)
        logger.info("Invoice PDF written to %s", target)
        return relative_path, pdf_bytes

    def read_invoice_pdf(self, relative_path: str) -> bytes | None:
        """Load a previously stored invoice PDF, or None if the file is gone."""
        target = self.invoices_dir / relative_path.removeprefix("/invoices/")
        if not target.is_file():
            return None
        return target.read_bytes()
