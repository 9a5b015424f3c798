"""
Pytest fixtures for ShopFlow backend tests.

Provides test database setup, users with each role, bearer tokens,
a product factory and the test client.
"""

import pytest
from shopflow import create_app
from shopflow.extensions import db
from shopflow.models import Product, User
from shopflow.models.auth import ROLE_ADMIN, ROLE_SHOPKEEPER
from shopflow.services.auth_service import Actor, create_user, hash_password
from shopflow.services.cart_service import CartItem


TEST_PASSWORD = "password123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'TRANSACTION_RETRY_BACKOFF': 0,
    'SHOP_TIMEZONE': 'UTC',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash) -> User:
    return create_user(
        email="admin@shop.test",
        password=TEST_PASSWORD,
        role=ROLE_ADMIN,
        display_name="Ayesha Admin",
        password_hash=password_hash,
    )


@pytest.fixture(scope='function')
def shopkeeper_user(db_session, password_hash) -> User:
    return create_user(
        email="keeper@shop.test",
        password=TEST_PASSWORD,
        role=ROLE_SHOPKEEPER,
        display_name="Kamran Keeper",
        password_hash=password_hash,
    )


@pytest.fixture(scope='function')
def admin(admin_user) -> Actor:
    return Actor.from_user(admin_user)


@pytest.fixture(scope='function')
def shopkeeper(shopkeeper_user) -> Actor:
    return Actor.from_user(shopkeeper_user)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(name, quantity, purchase, selling, barcode=None)."""
    def _make(name="Soap", quantity=10, purchase_price_cents=80, selling_price_cents=150, barcode=None):
        product = Product(
            name=name,
            barcode=barcode,
            quantity=quantity,
            purchase_price_cents=purchase_price_cents,
            selling_price_cents=selling_price_cents,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def cart_line(product: Product, quantity: int = 1) -> CartItem:
    """Cart item as a cashier would have scanned it just now."""
    return CartItem.from_product(product, quantity_in_cart=quantity)


def reload(obj):
    """Re-read a row after another session (e.g. a request) changed it."""
    db.session.expire_all()
    return db.session.get(type(obj), obj.id)


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user) -> dict:
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def shopkeeper_headers(client, shopkeeper_user) -> dict:
    return auth_headers(get_auth_token(client, shopkeeper_user.email))
