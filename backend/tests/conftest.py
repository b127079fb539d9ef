"""
Pytest fixtures for the settlement core tests.

Provides an in-memory database, per-test table wipe, outlet/product/session
fixtures and the Flask test client.
"""

import pytest

from pos_core import create_app
from pos_core.extensions import db
from pos_core.services import catalog_service, inventory_service, register_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ORDER_NUMBER_PREFIX': 'CMD',
        'DEFAULT_TAX_RATE': '0.20',
        'LOW_STOCK_THRESHOLD': 5,
        'VARIANCE_ALERT_THRESHOLD': 1000,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def actor_headers():
    return {"X-User-Id": "7"}


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test; schema is kept."""
    # Core DELETE statements bypass the ORM immutability listeners
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def outlet(db_session):
    return catalog_service.create_outlet("DKR-01", "Dakar Plateau")


@pytest.fixture(scope='function')
def other_outlet(db_session):
    return catalog_service.create_outlet("THS-01", "Thies Centre")


@pytest.fixture(scope='function')
def product(db_session):
    """Trackable product, no stock yet."""
    return catalog_service.create_product("Riz 25kg", sku="RIZ-25", price=450000)


@pytest.fixture(scope='function')
def second_product(db_session):
    return catalog_service.create_product("Huile 1L", sku="HUI-1L", price=1500)


@pytest.fixture(scope='function')
def service_product(db_session):
    """Non-trackable item (delivery fee)."""
    return catalog_service.create_product("Livraison", sku="SRV-LIV", price=2000, is_trackable=False)


@pytest.fixture(scope='function')
def stocked_product(outlet, product):
    """product with 10 units received at outlet."""
    inventory_service.receive_stock(outlet.id, product.id, 10, reference_id="BL-0001")
    return product


@pytest.fixture(scope='function')
def open_session(outlet):
    """Today's OPEN drawer at outlet with a 50000 float."""
    return register_service.open_session(outlet.id, 50000, opened_by=1)
