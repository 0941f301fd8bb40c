"""
Pytest fixtures for the consignment backend tests.

Provides test database setup, admin/partner accounts with tokens,
catalog data, and item factories.
"""

import pytest
from consignment import create_app
from consignment.extensions import db
from consignment.access import Caller, Role
from consignment.models import Brand, Size, Item
from consignment.services import auth_service


PASSWORD = "Secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
def db_session(app):
    """Fresh data for each test (schema kept)."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user("Admin", "admin@loja.local", PASSWORD, role=Role.ADMIN)


@pytest.fixture(scope='function')
def admin(admin_user):
    """Caller for service-level tests."""
    return Caller.admin(admin_user.id)


@pytest.fixture(scope='function')
def partner_a(db_session):
    """Partner A at 50%."""
    return auth_service.create_partner_account(
        name="Partner A",
        email="a@parceiros.local",
        password=PASSWORD,
        commission_percent=50,
        phone="11 99999-0001",
    )


@pytest.fixture(scope='function')
def partner_b(db_session):
    """Partner B at 40%."""
    return auth_service.create_partner_account(
        name="Partner B",
        email="b@parceiros.local",
        password=PASSWORD,
        commission_percent=40,
    )


@pytest.fixture(scope='function')
def caller_a(partner_a):
    return Caller.partner(partner_a.user_id, partner_a.id)


@pytest.fixture(scope='function')
def brand(db_session):
    brand = Brand(name="Tip Top")
    db_session.add(brand)
    db_session.commit()
    return brand


@pytest.fixture(scope='function')
def size(db_session):
    size = Size(name="P", sort_order=1)
    db_session.add(size)
    db_session.commit()
    return size


@pytest.fixture(scope='function')
def make_item(db_session, brand, size):
    """Factory: make_item(partner, tag_code=..., cost_cents=..., list_price_cents=...)."""
    counter = {"n": 0}

    def _make(partner, tag_code=None, cost_cents=1000, list_price_cents=2000):
        counter["n"] += 1
        item = Item(
            tag_code=tag_code or f"TAG-{counter['n']:04d}",
            cost_cents=cost_cents,
            list_price_cents=list_price_cents,
            partner_id=partner.id,
            brand_id=brand.id,
            size_id=size.id,
            photos=[],
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
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
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def partner_a_headers(client, partner_a):
    return auth_headers(get_auth_token(client, partner_a.email))


@pytest.fixture(scope='function')
def login(client):
    """login(email) -> bearer token, or None when rejected."""
    def _login(email: str, password: str = PASSWORD):
        return get_auth_token(client, email, password)
    return _login
