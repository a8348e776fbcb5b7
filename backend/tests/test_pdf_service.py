"""Tests for PdfService – invoice PDF rendering and storage."""

import sys
import uuid
from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from mailbox_billing.schemas.charge import ChargeResponse
from mailbox_billing.schemas.invoice import InvoiceDocument
from mailbox_billing.services.pdf_service import PdfService, format_pence, invoice_relative_path

USER_ID = uuid.UUID("5b0f3c1e-8f2a-4d1b-9c4e-2a7d6e1f0b93")
INVOICE_ID = uuid.UUID("c1d2e3f4-a5b6-4c7d-8e9f-0a1b2c3d4e5f")


def _make_user(**overrides):  # type: ignore[no-untyped-def]
    defaults = {
        "id": USER_ID,
        "email": "ada@example.com",
        "first_name": "Ada",
        "display_name": "Ada Lovelace",
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _make_item(**overrides):  # type: ignore[no-untyped-def]
    defaults = {
        "id": uuid.uuid4(),
        "user_id": USER_ID,
        "amount_pence": 999,
        "currency": "GBP",
        "type": "subscription_fee",
        "description": "Mailbox plan subscription (monthly) 2025-01-01 to 2025-01-31",
        "service_date": date(2025, 1, 1),
        "status": "billed",
        "invoice_id": INVOICE_ID,
        "billed_at": None,
        "related_type": None,
        "related_id": None,
        "created_at": None,
    }
    defaults.update(overrides)
    return ChargeResponse(**defaults)


def _make_document(**overrides):  # type: ignore[no-untyped-def]
    defaults = {
        "invoice_id": INVOICE_ID,
        "invoice_number": "VAH-2025-000001",
        "user_id": USER_ID,
        "amount_pence": 1249,
        "currency": "GBP",
        "period_start": date(2025, 1, 1),
        "period_end": date(2025, 1, 31),
        "items": [
            _make_item(),
            _make_item(
                amount_pence=250,
                type="forwarding_fee",
                description="Forwarded <letter> to Leeds",
                service_date=date(2025, 1, 12),
            ),
        ],
    }
    defaults.update(overrides)
    return InvoiceDocument(**defaults)


def _patch_weasyprint(pdf_bytes: bytes = b"%PDF-1.4 fake"):  # type: ignore[no-untyped-def]
    mock_weasyprint = MagicMock()
    mock_weasyprint.HTML.return_value.write_pdf.return_value = pdf_bytes
    return patch.dict(sys.modules, {"weasyprint": mock_weasyprint}), mock_weasyprint


class TestFormatPence:
    def test_gbp(self):
        assert format_pence(999, "GBP") == "£9.99"

    def test_thousands_separator(self):
        assert format_pence(123456, "gbp") == "£1,234.56"

    def test_none_is_zero(self):
        assert format_pence(None, "GBP") == "£0.00"

    def test_negative(self):
        assert format_pence(-550, "EUR") == "-€5.50"

    def test_unknown_currency_uses_code(self):
        assert format_pence(1000, "CHF") == "10.00 CHF"


class TestInvoiceRelativePath:
    def test_path_layout(self):
        assert invoice_relative_path(_make_document()) == (
            f"/invoices/2025/{USER_ID}/invoice-{INVOICE_ID}.pdf"
        )


class TestGenerateInvoicePdf:
    def test_renders_html_with_items_and_total(self):
        ctx, mock_weasyprint = _patch_weasyprint()
        with ctx:
            result = PdfService().generate_invoice_pdf(_make_document(), _make_user())

        assert result == b"%PDF-1.4 fake"
        html = mock_weasyprint.HTML.call_args.kwargs["string"]
        assert "VAH-2025-000001" in html
        assert "2025-01-01 to 2025-01-31" in html
        assert "Ada Lovelace" in html
        assert "ada@example.com" in html
        assert "£9.99" in html
        assert "£2.50" in html
        assert "£12.49" in html

    def test_escapes_descriptions(self):
        ctx, mock_weasyprint = _patch_weasyprint()
        with ctx:
            PdfService().generate_invoice_pdf(_make_document(), _make_user())

        html = mock_weasyprint.HTML.call_args.kwargs["string"]
        assert "Forwarded &lt;letter&gt; to Leeds" in html

    def test_empty_invoice(self):
        ctx, mock_weasyprint = _patch_weasyprint()
        with ctx:
            PdfService().generate_invoice_pdf(
                _make_document(items=[], amount_pence=0), _make_user(email=None)
            )

        html = mock_weasyprint.HTML.call_args.kwargs["string"]
        assert "£0.00" in html


class TestWriteInvoicePdf:
    def test_writes_file_and_returns_relative_path(self, tmp_path):
        ctx, _ = _patch_weasyprint(b"%PDF-bytes")
        with ctx:
            path, pdf_bytes = PdfService(str(tmp_path)).write_invoice_pdf(
                _make_document(), _make_user()
            )

        assert path == f"/invoices/2025/{USER_ID}/invoice-{INVOICE_ID}.pdf"
        assert pdf_bytes == b"%PDF-bytes"
        stored = tmp_path / "2025" / str(USER_ID) / f"invoice-{INVOICE_ID}.pdf"
        assert stored.read_bytes() == b"%PDF-bytes"

    def test_defaults_to_configured_directory(self):
        from mailbox_billing.core.config import settings

        assert str(PdfService().invoices_dir) == settings.INVOICES_DIR


class TestReadInvoicePdf:
    def test_reads_back_written_pdf(self, tmp_path):
        service = PdfService(str(tmp_path))
        ctx, _ = _patch_weasyprint(b"%PDF-bytes")
        with ctx:
            path, _ = service.write_invoice_pdf(_make_document(), _make_user())

        assert service.read_invoice_pdf(path) == b"%PDF-bytes"

    def test_missing_file_returns_none(self, tmp_path):
        assert PdfService(str(tmp_path)).read_invoice_pdf("/invoices/2025/x/missing.pdf") is None
