"""
Pytest fixtures for LabStock backend tests.

Provides test database setup, account/department/item factories, and test client.
"""

import pytest
from labstock import create_app
from labstock.extensions import db, limiter
from labstock.models import DepartmentPermission, InventoryItem, User
from labstock.models.auth import ROLE_ADMIN, ROLE_STAFF
from labstock.services.auth_service import hash_password

ADMIN_PASSWORD = "Adminset@lab01"
STAFF_PASSWORD = "Staffset@lab01"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'DB_RETRY_BACKOFF_SECONDS': 0,
    'DEFAULT_ADMIN_PASSWORD': ADMIN_PASSWORD,
    'DEFAULT_STAFF_PASSWORD': STAFF_PASSWORD,
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
        db.session.expunge_all()
        limiter.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_department(db_session):
    """Factory: register a department with explicit capability flags."""
    def _make(name, *, can_request=True, can_approve=False, can_edit_inventory=False):
        permission = DepartmentPermission(
            department=name,
            can_request=can_request,
            can_approve=can_approve,
            can_edit_inventory=can_edit_inventory,
        )
        db_session.add(permission)
        db_session.commit()
        return permission
    return _make


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: create an account directly (no audit entry)."""
    def _make(name, email, *, role=ROLE_STAFF, department="Laboratory", is_active=True, password=None):
        user = User(
            name=name,
            email=email,
            role=role,
            department=department,
            is_active=is_active,
            password_hash=hash_password(password or (ADMIN_PASSWORD if role == ROLE_ADMIN else STAFF_PASSWORD)),
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory: create an inventory item directly (no audit entry)."""
    def _make(name, *, department="Laboratory", current_stock=15, min_stock=10, unit="box", category="Consumables"):
        item = InventoryItem(
            name=name,
            category=category,
            department=department,
            current_stock=current_stock,
            min_stock=min_stock,
            unit=unit,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def departments(make_department):
    """Administration, Laboratory and Radiology departments."""
    return {
        "Administration": make_department("Administration"),
        "Laboratory": make_department("Laboratory"),
        "Radiology": make_department("Radiology"),
    }


@pytest.fixture(scope='function')
def admin(departments, make_user):
    return make_user("Ada Admin", "ada@lab.local", role=ROLE_ADMIN, department="Administration")


@pytest.fixture(scope='function')
def second_admin(departments, make_user):
    return make_user("Ben Admin", "ben@lab.local", role=ROLE_ADMIN, department="Radiology")


@pytest.fixture(scope='function')
def staff(departments, make_user):
    return make_user("Sam Staff", "sam@lab.local", department="Laboratory")


@pytest.fixture(scope='function')
def radiology_staff(departments, make_user):
    return make_user("Rita Staff", "rita@lab.local", department="Radiology")


@pytest.fixture(scope='function')
def item(departments, make_item):
    """Laboratory item with stock 15 and minimum 10."""
    return make_item("Glucose strips")


def get_auth_token(client, email: str, password: str) -> str:
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
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, "ada@lab.local", ADMIN_PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff):
    return auth_headers(get_auth_token(client, "sam@lab.local", STAFF_PASSWORD))
