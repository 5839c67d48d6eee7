"""
Pytest fixtures for outlet-ledger backend tests.

Provides the test app on in-memory SQLite, a per-test table wipe, a seeded
outlet / chart of accounts / customer / products, and a test client.
"""

import pytest
from outlet_ledger import create_app
from outlet_ledger.extensions import db
from outlet_ledger.models import Customer, Outlet, Product
from outlet_ledger.services import event_service
from outlet_ledger.services.accounts_service import ensure_chart_of_accounts


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
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


@pytest.fixture(scope='function')
def outlet(db_session):
    """Outlet charging 5% tax with the default account mapping."""
    outlet = Outlet(name="Main Outlet", code="MAIN", tax_rate_bps=500)
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def chart(db_session):
    """Default chart of accounts."""
    ensure_chart_of_accounts()
    db_session.commit()


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Acme Ltd", email="billing@acme.test")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def widget(db_session):
    """Tracked product: 10 in stock at 100.00."""
    product = Product(sku="W-1", name="Widget", price_cents=10000, stock=10)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def gadget(db_session):
    """Tracked product: 3 in stock at 25.00."""
    product = Product(sku="G-1", name="Gadget", price_cents=2500, stock=3)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def installation(db_session):
    """Service item that does not track inventory."""
    product = Product(sku="SVC-1", name="Installation", price_cents=5000, stock=0, tracks_inventory=False)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def ledger(outlet, chart, customer, widget, gadget, installation):
    """Everything an invoice needs, keyed by name."""
    return {
        "outlet": outlet,
        "customer": customer,
        "widget": widget,
        "gadget": gadget,
        "installation": installation,
    }


@pytest.fixture(scope='function')
def published_events():
    """Capture boundary events published during the test."""
    received = []

    def _stock(payload):
        received.append((event_service.STOCK_CHANGED, payload))

    def _document(payload):
        received.append((event_service.DOCUMENT_CHANGED, payload))

    event_service.subscribe(event_service.STOCK_CHANGED, _stock)
    event_service.subscribe(event_service.DOCUMENT_CHANGED, _document)
    yield received
    event_service.unsubscribe(event_service.STOCK_CHANGED, _stock)
    event_service.unsubscribe(event_service.DOCUMENT_CHANGED, _document)
