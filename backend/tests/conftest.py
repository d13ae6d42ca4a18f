"""
Pytest fixtures for udhaar backend tests.

Provides test database setup, a merchant with customers and products,
and an authenticated test client.
"""

from datetime import timedelta

import pytest
from udhaar import create_app
from udhaar.extensions import db
from udhaar.models import Merchant, Customer, Product, Invoice
from udhaar.services.session_service import create_session
from udhaar.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def merchant(db_session):
    m = Merchant(
        name="Sharma Kirana",
        code="SHARMA",
        business_name="Sharma Kirana Store",
        business_phone="9800000000",
        business_address="12 Market Road",
        is_active=True,
    )
    db_session.add(m)
    db_session.commit()
    return m


@pytest.fixture(scope='function')
def other_merchant(db_session):
    m = Merchant(name="Gupta General", code="GUPTA", is_active=True)
    db_session.add(m)
    db_session.commit()
    return m


@pytest.fixture(scope='function')
def customer(db_session, merchant):
    c = Customer(merchant_id=merchant.id, name="Google Traders", phone="9811111111", advance_balance_cents=0)
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def products(db_session, merchant):
    """Rice (plenty of stock) and sugar (only 5 left)."""
    rice = Product(
        merchant_id=merchant.id, sku="RICE-5KG", name="Rice 5kg", category="Grocery",
        unit="bag", price_cents=50000, cost_price_cents=42000, stock=100,
    )
    sugar = Product(
        merchant_id=merchant.id, sku="SUGAR-1KG", name="Sugar 1kg", category="Grocery",
        unit="kg", price_cents=4500, cost_price_cents=4000, stock=5,
    )
    db_session.add_all([rice, sugar])
    db_session.commit()
    return rice, sugar


@pytest.fixture(scope='function')
def make_invoice(db_session, merchant):
    """
    Seed an older invoice directly (bypassing checkout) with a given due.

    Invoices are spaced a day apart in creation order so oldest-first
    ordering is unambiguous.
    """
    counter = {"n": 0}

    def _make(customer, total_cents, due_cents, days_ago=None, prefix="OLD"):
        counter["n"] += 1
        seq = counter["n"]
        paid = total_cents - due_cents
        invoice = Invoice(
            merchant_id=merchant.id,
            customer_id=customer.id,
            customer_name=customer.name,
            customer_phone=customer.phone,
            invoice_prefix=prefix,
            invoice_sequence=seq,
            full_invoice_number=f"{prefix}-{seq}",
            sale_mode="wholesale",
            payment_method="Credit",
            payment_status="paid" if due_cents <= 1 else "partial",
            total_amount_cents=total_cents,
            paid_amount_cents=paid,
            due_amount_cents=due_cents,
            created_at=utcnow() - timedelta(days=days_ago if days_ago is not None else 30 - seq),
        )
        db_session.add(invoice)
        db_session.commit()
        return invoice

    return _make


@pytest.fixture(scope='function')
def auth_token(db_session, merchant):
    _, token = create_session(merchant.id, terminal="counter-1")
    return token


@pytest.fixture(scope='function')
def auth_headers(auth_token):
    return {'Authorization': f'Bearer {auth_token}'}
