"""
Pytest fixtures for back-office tests.

Provides the app on an in-memory database, a fresh schema per test, and
catalog/customer fixtures shared by the service and route tests.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import FREE_SIZE, Customer, Product, ProductSizeStock


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SETTLEMENT_LOCK_TIMEOUT_SECONDS': 0.5,
        'SALE_TAX_RATE_BPS': 0,
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

        # Cleanup after test
        db.session.rollback()


def make_product(session, name, sizes, *, price_cents=5000, free_size=False):
    """Product with one stock row per size; `sizes` maps label -> quantity."""
    product = Product(
        name=name,
        free_size=free_size,
        cost_price_cents=price_cents // 2,
        selling_price_cents=price_cents,
        is_active=True,
    )
    session.add(product)
    session.flush()
    for label, quantity in sizes.items():
        session.add(ProductSizeStock(product_id=product.id, size=label, quantity=quantity))
    session.commit()
    return product


def stock_of(session, product_id, size):
    session.expire_all()
    row = session.query(ProductSizeStock).filter_by(product_id=product_id, size=size).first()
    return row.quantity


def balance_of(session, customer_id):
    session.expire_all()
    customer = session.get(Customer, customer_id)
    return customer.total_debt_cents, customer.total_advance_cents


@pytest.fixture(scope='function')
def shirt(db_session):
    """Sized product: S=5, M=5, L=2 at 50.00."""
    return make_product(db_session, "Oxford Shirt", {"S": 5, "M": 5, "L": 2}, price_cents=5000)


@pytest.fixture(scope='function')
def scarf(db_session):
    """Free-size product with 10 on hand at 20.00."""
    return make_product(db_session, "Wool Scarf", {FREE_SIZE: 10}, price_cents=2000, free_size=True)


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(
        name="Dana Reyes",
        phone="555-0100",
        total_debt_cents=0,
        total_advance_cents=0,
        total_purchases_cents=0,
        total_paid_cents=0,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_with_advance(db_session):
    customer = Customer(
        name="Sam Okafor",
        phone="555-0101",
        total_debt_cents=0,
        total_advance_cents=3000,
        total_purchases_cents=0,
        total_paid_cents=0,
    )
    db_session.add(customer)
    db_session.commit()
    return customer
