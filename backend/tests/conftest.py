"""
Pytest fixtures for shopledger backend tests.

Provides test database setup, owner/staff accounts with session tokens,
a product factory, and the test client.
"""

import cloudinary.uploader
import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Product, User
from shopledger.models.auth import ROLE_OWNER, ROLE_STAFF
from shopledger.services import session_service
from shopledger.services.auth_service import hash_password, hash_pin

OWNER_EMAIL = "owner@shop.test"
OWNER_PASSWORD = "Password123!"
STAFF_CODE = "S-01"
STAFF_PIN = "1234"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'CLOUDINARY_CLOUD_NAME': 'demo-cloud',
    'CLOUDINARY_API_KEY': '123456789',
    'CLOUDINARY_API_SECRET': 'test-secret',
    'UPLOAD_FOLDER': 'shop-products',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def storage_destroy(monkeypatch):
    """Object storage is never contacted from tests; image deletions are recorded instead."""
    destroyed = []

    def _destroy(public_id, **options):
        destroyed.append(public_id)
        return {"result": "ok"}

    monkeypatch.setattr(cloudinary.uploader, "destroy", _destroy)
    return destroyed


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
def secret_hashes():
    """bcrypt is slow on purpose; hash the test credentials once per run."""
    return {
        'password': hash_password(OWNER_PASSWORD),
        'pin': hash_pin(STAFF_PIN),
    }


@pytest.fixture(scope='function')
def owner(db_session, secret_hashes):
    user = User(
        name="Meera Owner",
        role=ROLE_OWNER,
        email=OWNER_EMAIL,
        password_hash=secret_hashes['password'],
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff(db_session, secret_hashes):
    user = User(
        name="Asha Staff",
        role=ROLE_STAFF,
        staff_code=STAFF_CODE,
        password_hash=secret_hashes['pin'],
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_headers(owner):
    _, token = session_service.create_session(owner.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def staff_headers(staff):
    _, token = session_service.create_session(staff.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory for IN_STOCK, visible products."""
    counter = {'n': 0}

    def _make(price_cents=100000, category="Men", sub_category="shirts", name=None):
        counter['n'] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            category=category,
            sub_category=sub_category,
            images=[{"url": f"https://cdn.test/p{counter['n']}.jpg", "public_id": f"shop-products/p{counter['n']}"}],
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
