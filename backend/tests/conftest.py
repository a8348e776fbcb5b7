"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, date, datetime

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mailbox_billing.models  # noqa: F401
from mailbox_billing.core import database as db_module
from mailbox_billing.core.config import settings
from mailbox_billing.core.database import Base, get_db
from mailbox_billing.models.charge import Charge, ChargeStatus, ChargeType
from mailbox_billing.models.plan import Plan, PlanInterval
from mailbox_billing.models.subscription import Subscription, SubscriptionStatus
from mailbox_billing.models.user import User

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

TEST_BILLING_SECRET = "test-billing-secret"


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture(autouse=True)
def billing_settings(monkeypatch, tmp_path):
    """Pin settings that tests rely on, independent of the environment."""
    monkeypatch.setattr(settings, "BILLING_CRON_SECRET", TEST_BILLING_SECRET)
    monkeypatch.setattr(settings, "BILLING_CURRENCY", "GBP")
    monkeypatch.setattr(settings, "INVOICE_NUMBER_PREFIX", "VAH")
    monkeypatch.setattr(settings, "PERIOD_END_TOLERANCE_MINUTES", 15)
    monkeypatch.setattr(settings, "DEFAULT_MONTHLY_PRICE_PENCE", 999)
    monkeypatch.setattr(settings, "DEFAULT_ANNUAL_PRICE_PENCE", 8999)
    monkeypatch.setattr(settings, "INVOICES_DIR", str(tmp_path / "invoices"))
    monkeypatch.setattr(settings, "SMTP_HOST", "")
    monkeypatch.setattr(settings, "APP_ENV", "development")


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def billing_secret():
    return TEST_BILLING_SECRET


@pytest.fixture
def make_user(db_session):
    def _make_user(**overrides):  # type: ignore[no-untyped-def]
        values = {"email": "holder@example.com", "first_name": "Ada", "last_name": "Lovelace"}
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_plan(db_session):
    def _make_plan(**overrides):  # type: ignore[no-untyped-def]
        values = {
            "name": "Virtual Mailbox Monthly",
            "interval": PlanInterval.MONTH.value,
            "price_pence": 999,
            "currency": "GBP",
            "active": True,
        }
        values.update(overrides)
        plan = Plan(**values)
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan

    return _make_plan


@pytest.fixture
def make_subscription(db_session):
    def _make_subscription(user, plan=None, **overrides):  # type: ignore[no-untyped-def]
        values = {
            "user_id": user.id,
            "plan_id": plan.id if plan is not None else None,
            "status": SubscriptionStatus.ACTIVE.value,
            "mandate_id": "MD000123",
            "started_at": datetime(2024, 6, 1, tzinfo=UTC),
        }
        values.update(overrides)
        subscription = Subscription(**values)
        db_session.add(subscription)
        db_session.commit()
        db_session.refresh(subscription)
        return subscription

    return _make_subscription


@pytest.fixture
def make_charge(db_session):
    def _make_charge(  # type: ignore[no-untyped-def]
        user, amount_pence, service_date=date(2025, 1, 10), **overrides
    ):
        values = {
            "user_id": user.id,
            "amount_pence": amount_pence,
            "currency": "GBP",
            "type": ChargeType.FORWARDING_FEE.value,
            "description": "Mail forwarding",
            "service_date": service_date,
            "status": ChargeStatus.PENDING.value,
        }
        values.update(overrides)
        charge = Charge(**values)
        db_session.add(charge)
        db_session.commit()
        db_session.refresh(charge)
        return charge

    return _make_charge
