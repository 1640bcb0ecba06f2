"""
Shared pytest fixtures for the service desk test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - users: requester / manager / reviewer / technician / admin with a reporting line
    - ORM factory helpers live in factories.py (make_user, make_catalog, make_item,
      make_template, make_field, make_master_data, as_user)
"""

import pytest

from helpdesk import create_app
from helpdesk.models import db as _db
from factories import make_user


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


# ── Convenience fixtures ─────────────────────────────────────────────────


class Users:
    """Bag of pre-created users with a reporting line."""

    def __init__(self):
        self.admin = make_user("admin", role="admin", is_business_reviewer=True)
        self.manager = make_user("branch.manager", role="manager")
        self.reviewer = make_user("kasda.reviewer", role="manager", is_business_reviewer=True)
        self.technician = make_user("it.technician", role="technician")
        self.other_technician = make_user("it.technician2", role="technician")
        self.requester = make_user("branch.staff", manager=self.manager)
        self.gov_requester = make_user("kasda.user", manager=self.reviewer)
        self.outsider = make_user("other.manager", role="manager", is_business_reviewer=True)


@pytest.fixture()
def users():
    return Users()
