"""
Pytest fixtures for Wingrow backend tests.

Provides the application on in-memory SQLite, per-test table wipe, test
client, users of both roles with bearer headers, and caller contexts for
service-level tests.
"""

import pytest

from wingrow import create_app
from wingrow.extensions import db
from wingrow.models import User, InventoryItem
from wingrow.services import session_service
from wingrow.services.auth_service import hash_password
from wingrow.services.identity import CallerContext, ROLE_MANAGER, ROLE_ORGANIZER


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'UPLOAD_FOLDER': str(tmp_path_factory.mktemp("uploads")),
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test, inside the session-wide app context."""
    # Clear all data but keep schema
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


def make_user(username: str, role: str, password_hash: str) -> User:
    user = User(username=username, password_hash=password_hash, role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers for a user."""
    _, token = session_service.create_session(user)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def organizer(db_session, password_hash):
    return make_user("u1", ROLE_ORGANIZER, password_hash)


@pytest.fixture(scope='function')
def other_organizer(db_session, password_hash):
    return make_user("u2", ROLE_ORGANIZER, password_hash)


@pytest.fixture(scope='function')
def manager(db_session, password_hash):
    return make_user("mgr1", ROLE_MANAGER, password_hash)


@pytest.fixture(scope='function')
def organizer_headers(organizer):
    return auth_headers(organizer)


@pytest.fixture(scope='function')
def other_organizer_headers(other_organizer):
    return auth_headers(other_organizer)


@pytest.fixture(scope='function')
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture(scope='function')
def organizer_caller():
    return CallerContext(user_id="u1", role=ROLE_ORGANIZER)


@pytest.fixture(scope='function')
def other_organizer_caller():
    return CallerContext(user_id="u2", role=ROLE_ORGANIZER)


@pytest.fixture(scope='function')
def manager_caller():
    return CallerContext(user_id="mgr1", role=ROLE_MANAGER)


@pytest.fixture(scope='function')
def tent(db_session):
    """Item with stock 20 and unit price 10.00."""
    item = InventoryItem(name="Tent", unit="pcs", stock=20, unit_price_cents=1000)
    db_session.add(item)
    db_session.commit()
    return item
