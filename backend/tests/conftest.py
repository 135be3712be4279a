"""
Pytest fixtures for Madeh backend tests.

Provides a fresh in-memory database per test, admins for every role,
auth headers, and catalog fixtures.
"""

import pytest
from madeh import create_app
from madeh.extensions import db
from madeh.models import Admin, Product
from madeh.models.auth import ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_CASHIER, STATUS_ACTIVE
from madeh.services.auth_service import hash_password


PASSWORD = "secret123"


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
        'BACKUP_STORAGE_PATH': str(tmp_path / "backups"),
        'LOW_STOCK_THRESHOLD': 10,
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
    return db.session


@pytest.fixture(scope='function')
def make_admin(db_session):
    """Factory: create an admin directly in the database."""
    def _make(username, role, email=None, password=PASSWORD, status=STATUS_ACTIVE):
        admin = Admin(
            username=username,
            email=email or f"{username.lower()}@madeh.test",
            password_hash=hash_password(password),
            role=role,
            status=status,
        )
        db_session.add(admin)
        db_session.commit()
        return admin
    return _make


@pytest.fixture(scope='function')
def super_admin(make_admin):
    return make_admin("owner", ROLE_SUPER_ADMIN)


@pytest.fixture(scope='function')
def admin_user(make_admin):
    return make_admin("manager", ROLE_ADMIN)


@pytest.fixture(scope='function')
def cashier(make_admin):
    return make_admin("cashier", ROLE_CASHIER)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for an admin."""
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
def super_headers(client, super_admin):
    return auth_headers(get_auth_token(client, super_admin.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, cashier.email))


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create a product directly in the database."""
    def _make(name, price_cents, stock, category="Tools", cost_cents=0):
        product = Product(
            name=name,
            category=category,
            price_cents=price_cents,
            cost_cents=cost_cents,
            stock=stock,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def hammer(make_product):
    return make_product("Claw Hammer", 1599, 20, category="Tools", cost_cents=1000)


@pytest.fixture(scope='function')
def nails(make_product):
    return make_product("Nails 2in (1kg)", 875, 100, category="Fasteners", cost_cents=500)


@pytest.fixture(scope='function')
def cement(make_product):
    return make_product("Cement 50kg", 85000, 3, category="Building", cost_cents=70000)
