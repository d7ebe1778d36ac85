"""
Pytest fixtures for Fluxa backend tests.

Provides test database setup, catalog fixtures, and an authenticated test client.
"""

from decimal import Decimal

import pytest
from fluxa import create_app
from fluxa.extensions import db
from fluxa.models import Supplier, Product, StockMovement, MovementType
from fluxa.services import auth_service
from fluxa.services.auth_service import register_user
from fluxa.services.products_service import create_product


TEST_PASSWORD = "secret123"


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


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    # Cost 12 makes every user fixture take ~0.3s
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(company_name="Acme Distribuidora", cnpj="12.345.678/0001-90")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def make_product(db_session, supplier):
    """Factory: products are created through the service so stock goes through the ledger."""
    def _make(
        title="Widget",
        quantity=10,
        sale_price="25.00",
        purchase_price="10.00",
        category="Tools",
        **extra,
    ) -> Product:
        patch = {
            "title": title,
            "category": category,
            "purchase_price": Decimal(purchase_price),
            "sale_price": Decimal(sale_price),
            "supplier_id": supplier.id,
            "quantity": quantity,
        }
        patch.update(extra)
        return create_product(patch=patch)

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product()


@pytest.fixture(scope='function')
def user(db_session):
    return register_user("clerk@fluxa.test", TEST_PASSWORD)


@pytest.fixture(scope='function')
def auth_headers(client, user):
    token = get_auth_token(client, user.email, TEST_PASSWORD)
    assert token, "login failed in fixture"
    return {'Authorization': f'Bearer {token}'}


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/users/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


@pytest.fixture
def movements_of(db_session):
    """Ledger rows of a product in insertion order, optionally of one type."""
    def _movements(product_id: int, movement_type: MovementType | None = None) -> list[StockMovement]:
        query = db_session.query(StockMovement).filter_by(product_id=product_id)
        if movement_type is not None:
            query = query.filter_by(type=movement_type)
        return query.order_by(StockMovement.id.asc()).all()

    return _movements


@pytest.fixture
def ledger_sum(movements_of):
    def _sum(product_id: int) -> int:
        return sum(m.quantity for m in movements_of(product_id))

    return _sum
