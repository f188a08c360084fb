"""
Shared fixtures: an in-memory SQLite database rebuilt for every test, a
recording notification channel and small factories for marketplace rows.
"""
import itertools
import os

# Settings are read at import time, so the environment must be set first.
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "trademart-test-secret-key-0123456789abcdef"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATION_BACKEND"] = "log"
os.environ["SEED_DEMO"] = "false"
os.environ.pop("ADMIN_BOOTSTRAP_EMAIL", None)
os.environ.pop("ADMIN_BOOTSTRAP_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from trademart.db.session import Base, SessionLocal, engine
from trademart.db.models import (
    User, Supplier, RFQ, EscrowAccount,
    UserRole, RFQStatus, EscrowStatus,
)
from trademart.services.notifications import (
    NotificationDispatcher, RecordingNotificationChannel, get_notifier,
)
from trademart.services.quote_lifecycle import QuoteLifecycleManager

# Not a usable bcrypt hash; factory users authenticate with minted tokens.
FAKE_HASH = "$2b$12$test_hash"


# ============= DATABASE =============

@pytest.fixture(scope="function")
def db() -> Session:
    """Fresh schema per test, dropped afterwards."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ============= NOTIFICATIONS =============

@pytest.fixture
def recorder() -> RecordingNotificationChannel:
    return RecordingNotificationChannel()


@pytest.fixture
def notifier(recorder: RecordingNotificationChannel) -> NotificationDispatcher:
    return NotificationDispatcher(recorder)


# ============= HTTP =============

@pytest.fixture
def client(db: Session, notifier: NotificationDispatcher):
    from trademart.main import app

    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============= FACTORIES =============

@pytest.fixture
def make_user(db: Session):
    counter = itertools.count(1)

    def _make(role: UserRole = UserRole.BUYER, name: str = None) -> User:
        n = next(counter)
        user = User(
            email=f"{role.value}{n}@trademart.example.com",
            hashed_password=FAKE_HASH,
            name=name or f"{role.value.title()} {n}",
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_supplier(db: Session, make_user):
    def _make(company_name: str = "Acme Components") -> Supplier:
        user = make_user(UserRole.SUPPLIER)
        supplier = Supplier(user_id=user.id, company_name=company_name, industry="Electronics")
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        return supplier

    return _make


@pytest.fixture
def make_rfq(db: Session):
    def _make(buyer: User, title: str = "Custom PCB Assembly", status: RFQStatus = RFQStatus.OPEN) -> RFQ:
        rfq = RFQ(
            buyer_id=buyer.id,
            title=title,
            description="Two-layer boards, 500 units",
            category="Electronics",
            quantity=500,
            unit="pcs",
            budget=150.0,
            currency="INR",
            status=status,
        )
        db.add(rfq)
        db.commit()
        db.refresh(rfq)
        return rfq

    return _make


@pytest.fixture
def buyer(make_user) -> User:
    return make_user(UserRole.BUYER, name="John Smith")


@pytest.fixture
def supplier(make_supplier) -> Supplier:
    return make_supplier("TechCorp Electronics")


@pytest.fixture
def rfq(make_rfq, buyer: User) -> RFQ:
    return make_rfq(buyer)


@pytest.fixture
def accepted_deal(db: Session, notifier, buyer: User, supplier: Supplier, rfq: RFQ):
    """RFQ with one accepted quote: returns the QuoteDecision (quote, transaction, order)."""
    manager = QuoteLifecycleManager(db, notifier)
    quote = manager.submit_quote(supplier.user_id, rfq.id, 100.0, 10)
    return manager.decide_quote(buyer.id, quote.id, "accepted")


@pytest.fixture
def make_escrow(db: Session):
    def _make(order, status: EscrowStatus = EscrowStatus.FUNDED) -> EscrowAccount:
        account = EscrowAccount(
            order_id=order.id,
            account_number=f"ESCTEST{order.id:04d}",
            amount=order.amount,
            currency=order.currency,
            status=status,
            qc_passed=False,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make
