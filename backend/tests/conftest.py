"""
Pytest fixtures for propledger backend tests.

Provides the test app (in-memory SQLite), a clean database per test, the
seeded default chart of accounts, one user per role and auth headers.
"""

import pytest

from propledger import create_app
from propledger.config import TestConfig
from propledger.extensions import db
from propledger.models import Account
from propledger.services import account_service, session_service
from propledger.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
    """Fresh data for each test; schema is kept."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def chart(db_session):
    """Default chart of accounts, keyed by code."""
    account_service.seed_default_chart()
    return {a.code: a for a in db_session.query(Account).all()}


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("finance") -> User with that role."""
    def _make(role: str, username: str | None = None):
        username = username or f"{role}_user"
        return create_user(username, f"{username}@example.com", PASSWORD, role)
    return _make


@pytest.fixture(scope='function')
def finance_user(make_user):
    return make_user("finance")


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin")


def auth_headers(user) -> dict:
    """Authorization header for a fresh session of the given user."""
    _session, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def finance_headers(finance_user):
    return auth_headers(finance_user)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


def deactivate(*accounts):
    for account in accounts:
        account.is_active = False
    db.session.commit()
