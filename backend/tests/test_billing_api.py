"""API tests for the internal billing trigger endpoints."""

import sys
import uuid
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from mailbox_billing.core import database as db_module
from mailbox_billing.core.config import settings
from mailbox_billing.core.errors import SchemaStateError
from mailbox_billing.core.schema_state import SchemaState
from mailbox_billing.main import app
from mailbox_billing.models.charge import ChargeStatus
from mailbox_billing.models.invoice import Invoice

BASE = "/api/internal/billing"


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def auth_headers(billing_secret):
    return {"X-Billing-Cron-Secret": billing_secret}


def _generate(client, auth_headers, user, **overrides):  # type: ignore[no-untyped-def]
    payload = {
        "user_id": str(user.id),
        "period_start": "2025-01-01",
        "period_end": "2025-01-31",
        "billing_interval": "monthly",
    }
    payload.update(overrides)
    return client.post(f"{BASE}/generate-invoice", json=payload, headers=auth_headers)


class TestRoot:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["app"] == settings.APP_NAME
        assert data["status"] == "running"


class TestLifespan:
    def test_schema_state_detected_on_startup(self):
        with patch("mailbox_billing.main.engine", db_module.engine), TestClient(app) as client:
            assert client.get("/").status_code == 200
            assert isinstance(app.state.schema_state, SchemaState)
            assert app.state.schema_state.is_complete
        del app.state.schema_state

    def test_production_refuses_incomplete_schema(self, monkeypatch):
        monkeypatch.setattr(settings, "APP_ENV", "production")
        incomplete = SchemaState(has_charge_table=False, missing=("charge",))

        with (
            patch("mailbox_billing.core.schema_state.detect_schema_state", return_value=incomplete),
            pytest.raises(SchemaStateError),
            TestClient(app),
        ):
            pass


class TestAuthentication:
    def test_missing_server_secret_is_500(self, client, monkeypatch):
        monkeypatch.setattr(settings, "BILLING_CRON_SECRET", "")

        response = client.post(f"{BASE}/repair-orphan-charges")

        assert response.status_code == 500
        assert response.json()["detail"] == "BILLING_CRON_SECRET is not set"

    def test_missing_credentials_is_401(self, client):
        response = client.post(f"{BASE}/repair-orphan-charges")
        assert response.status_code == 401
        assert response.json()["detail"] == "unauthorized"

    def test_wrong_secret_is_401(self, client):
        response = client.post(
            f"{BASE}/repair-orphan-charges", headers={"X-Billing-Cron-Secret": "nope"}
        )
        assert response.status_code == 401

    @pytest.mark.parametrize(
        "header_name,template",
        [
            ("X-Billing-Cron-Secret", "{}"),
            ("X-Cron-Secret", "{}"),
            ("Authorization", "Bearer {}"),
        ],
    )
    def test_accepted_credential_headers(self, client, billing_secret, header_name, template):
        response = client.post(
            f"{BASE}/repair-orphan-charges",
            headers={header_name: template.format(billing_secret)},
        )
        assert response.status_code == 200


class TestFinalizeInvoicesEndpoint:
    def test_empty_run(self, client, auth_headers):
        response = client.post(f"{BASE}/finalize-invoices", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["eligible"] == 0
        assert data["results"] == []

    def test_run_renders_and_reports_per_user(
        self, client, auth_headers, make_user, make_plan, make_subscription, tmp_path
    ):
        plan = make_plan()
        make_subscription(make_user(), plan)
        make_subscription(make_user(email="nomandate@example.com"), plan, mandate_id=None)
        mock_weasyprint = MagicMock()
        mock_weasyprint.HTML.return_value.write_pdf.return_value = b"%PDF"

        with patch.dict(sys.modules, {"weasyprint": mock_weasyprint}):
            response = client.post(f"{BASE}/finalize-invoices", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["eligible"] == 2
        assert data["generated_count"] == 1
        assert data["skipped_count"] == 1
        reasons = sorted(r["reason"] or "" for r in data["results"])
        assert reasons == ["", "missing_mandate"]


class TestRepairEndpoint:
    def test_repairs_orphans(self, client, auth_headers, make_user, make_charge):
        user = make_user()
        make_charge(user, 100, status=ChargeStatus.BILLED.value)

        response = client.post(f"{BASE}/repair-orphan-charges", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"ok": True, "repaired_count": 1}


class TestGenerateInvoiceEndpoint:
    def test_generates_invoice(self, client, auth_headers, make_user, make_charge):
        user = make_user()
        make_charge(user, 200, date(2025, 1, 3))
        make_charge(user, 200, date(2025, 1, 9))

        response = _generate(client, auth_headers, user)

        assert response.status_code == 200
        data = response.json()
        assert data["attached_count"] == 2
        assert data["amount_pence"] == 400
        assert data["total_charges_pence"] == 400
        assert data["created"] is True
        assert data["frozen"] is False
        assert data["invoice_number"] == "VAH-2025-000001"

    def test_invalid_period_is_400(self, client, auth_headers, make_user):
        user = make_user()

        response = _generate(
            client, auth_headers, user, period_start="2025-01-31", period_end="2025-01-01"
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error"] == "invalid_period"
        assert "period_start" in detail["message"]

    def test_invalid_currency_is_400(self, client, auth_headers, make_user):
        response = _generate(client, auth_headers, make_user(), currency="XX")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_currency"

    def test_unknown_cadence_is_422(self, client, auth_headers, make_user):
        response = _generate(client, auth_headers, make_user(), billing_interval="weekly")
        assert response.status_code == 422


class TestInvoiceEndpoints:
    def test_get_invoice_with_items(self, client, auth_headers, make_user, make_charge):
        user = make_user()
        make_charge(user, 150, date(2025, 1, 20), description="Scan of letter")
        invoice_id = _generate(client, auth_headers, user).json()["invoice_id"]

        response = client.get(f"{BASE}/invoices/{invoice_id}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["invoice"]["id"] == invoice_id
        assert data["invoice"]["amount_pence"] == 150
        assert data["invoice"]["period_start"] == "2025-01-01"
        assert [item["description"] for item in data["items"]] == ["Scan of letter"]

    def test_get_unknown_invoice_is_404(self, client, auth_headers):
        response = client.get(f"{BASE}/invoices/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "invoice_not_found"

    def test_recompute_reports_drift(
        self, client, auth_headers, db_session, make_user, make_charge
    ):
        user = make_user()
        make_charge(user, 400)
        invoice_id = _generate(client, auth_headers, user).json()["invoice_id"]
        invoice = db_session.get(Invoice, uuid.UUID(invoice_id))
        invoice.amount_pence = 1
        db_session.commit()

        response = client.post(f"{BASE}/invoices/{invoice_id}/recompute", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {
            "invoice_id": invoice_id,
            "previous_amount_pence": 1,
            "amount_pence": 400,
            "mismatch": True,
        }

    def test_recompute_unknown_invoice_is_404(self, client, auth_headers):
        response = client.post(
            f"{BASE}/invoices/{uuid.uuid4()}/recompute", headers=auth_headers
        )
        assert response.status_code == 404


class TestChargesEndpoint:
    def _payload(self, user, **overrides):  # type: ignore[no-untyped-def]
        payload = {
            "user_id": str(user.id),
            "amount_pence": 180,
            "type": "forwarding_fee",
            "description": "Forwarding to Bristol",
            "service_date": "2025-01-18",
            "related_type": "forwarding_request",
            "related_id": 9001,
        }
        payload.update(overrides)
        return payload

    def test_created_then_duplicate(self, client, auth_headers, make_user):
        user = make_user()

        first = client.post(f"{BASE}/charges", json=self._payload(user), headers=auth_headers)
        second = client.post(f"{BASE}/charges", json=self._payload(user), headers=auth_headers)

        assert first.status_code == 201
        assert first.json()["created"] is True
        assert first.json()["charge"]["status"] == "pending"
        assert second.status_code == 200
        assert second.json()["created"] is False
        assert second.json()["charge"]["id"] == first.json()["charge"]["id"]

    def test_non_positive_amount_is_400(self, client, auth_headers, make_user):
        response = client.post(
            f"{BASE}/charges",
            json=self._payload(make_user(), amount_pence=0),
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_amount"

    def test_requires_auth(self, client, make_user):
        response = client.post(f"{BASE}/charges", json=self._payload(make_user()))
        assert response.status_code == 401
