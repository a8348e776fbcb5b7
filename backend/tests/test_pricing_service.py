"""Tests for PricingService plan price lookup and fallbacks."""

from datetime import UTC, datetime
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from mailbox_billing.models.invoice import BillingCadence
from mailbox_billing.services.pricing_service import PricingService


class TestGetPricePence:
    def test_uses_first_active_plan_for_interval(self, db_session, make_plan):
        make_plan(name="Premium", price_pence=1999, sort=2)
        make_plan(name="Standard", price_pence=999, sort=1)
        make_plan(name="Annual", interval="year", price_pence=8999)

        service = PricingService(db_session)
        assert service.get_price_pence(BillingCadence.MONTHLY) == 999
        assert service.get_price_pence(BillingCadence.ANNUAL) == 8999

    def test_ties_on_sort_break_by_price(self, db_session, make_plan):
        make_plan(name="Pricier", price_pence=1500, sort=0)
        make_plan(name="Cheaper", price_pence=1200, sort=0)

        assert PricingService(db_session).get_price_pence(BillingCadence.MONTHLY) == 1200

    def test_skips_inactive_and_retired_plans(self, db_session, make_plan):
        make_plan(name="Inactive", price_pence=100, active=False)
        make_plan(name="Retired", price_pence=200, retired_at=datetime(2024, 1, 1, tzinfo=UTC))
        make_plan(name="Current", price_pence=1299, sort=5)

        assert PricingService(db_session).get_price_pence(BillingCadence.MONTHLY) == 1299

    def test_falls_back_when_no_plan_matches(self, db_session):
        service = PricingService(db_session)
        assert service.get_price_pence(BillingCadence.MONTHLY) == 999
        assert service.get_price_pence(BillingCadence.ANNUAL) == 8999

    def test_falls_back_on_database_error(self, db_session, caplog):
        service = PricingService(db_session)
        with patch.object(
            service.plan_repo,
            "get_active_by_interval",
            side_effect=OperationalError("SELECT", {}, Exception("no such table: plans")),
        ):
            assert service.get_price_pence(BillingCadence.ANNUAL) == 8999
        assert "Plan pricing lookup failed" in caplog.text
