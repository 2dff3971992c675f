"""
Shared pytest fixtures for the Intranet Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - store: the configured DocumentStore (SQL on in-memory SQLite)
    - auth_headers: factory minting Bearer headers for any email
    - admin_headers / user_headers: ready-made headers
    - collaborator: a collaborator record matching user_headers' email
"""

import pytest

from app import create_app
from app import collections as col
from app.models import db as _db
from app.services.identity_service import issue_token
from app.storage import get_store

ADMIN_EMAIL = "admin@portal.test"
USER_EMAIL = "ana.souza@portal.test"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def store():
    return get_store()


# ── Identity fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """Factory: ``auth_headers("x@portal.test")`` → Authorization header dict."""
    def _make(email, uid=None, **claims):
        token = issue_token(uid or email.split("@")[0], email, **claims)
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture()
def admin_headers(auth_headers):
    return auth_headers(ADMIN_EMAIL, uid="admin-uid")


@pytest.fixture()
def user_headers(auth_headers):
    return auth_headers(USER_EMAIL, uid="ana-uid")


@pytest.fixture()
def collaborator(store):
    """Collaborator record for USER_EMAIL (no special permissions)."""
    return store.add(col.COLLABORATORS, {
        "name": "Ana Souza",
        "email": USER_EMAIL,
        "axis": "Comercial",
        "area": "Investimentos",
        "position": "Assessora",
        "leader": "Carlos Lima",
        "segment": "Varejo",
        "city": "São Paulo",
        "id3a": "ANA",
        "permissions": {},
    })
