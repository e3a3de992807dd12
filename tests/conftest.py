import os

# Settings are read at import time, so these must exist before any app import
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('MONGO_URI', 'mongodb://localhost:27017/test')
os.environ.setdefault('FLASK_ENV', 'testing')

import pytest
from unittest.mock import MagicMock

from tutorhub.domain.identity import Identity
from tutorhub.domain.models.db_models import UserRole

TUTOR_ID = "tutor-1"
OTHER_TUTOR_ID = "tutor-2"
STUDENT_ID = "student-1"
PARENT_ID = "parent-1"
ADMIN_ID = "admin-1"


class FakeCursor:
    """Stands in for a pymongo cursor: chainable sort/skip/limit over fixed rows."""

    def __init__(self, rows):
        self.rows = list(rows)
        self.calls = []

    def sort(self, *args, **kwargs):
        self.calls.append(("sort", args))
        return self

    def skip(self, value):
        self.calls.append(("skip", value))
        return self

    def limit(self, value):
        self.calls.append(("limit", value))
        return self

    def __iter__(self):
        return iter(self.rows)


@pytest.fixture(scope='module')
def app():
    """Create and configure a new app instance for each test module."""
    from app import create_app
    app = create_app()
    app.config.update({
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
    })
    yield app


@pytest.fixture(scope='module')
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def mock_db():
    """Provides a mocked MongoDB database."""
    return MagicMock()


@pytest.fixture
def cursor():
    """Factory for fake cursors: `cursor([row, ...])`."""
    return FakeCursor


@pytest.fixture
def tutor():
    return Identity(id=TUTOR_ID, role=UserRole.TUTOR)


@pytest.fixture
def other_tutor():
    return Identity(id=OTHER_TUTOR_ID, role=UserRole.TUTOR)


@pytest.fixture
def student():
    return Identity(id=STUDENT_ID, role=UserRole.STUDENT)


@pytest.fixture
def parent():
    return Identity(id=PARENT_ID, role=UserRole.PARENT)


@pytest.fixture
def admin():
    return Identity(id=ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture
def auth_header():
    """Bearer header for an Identity: `auth_header(identity)`."""
    from tutorhub.services import auth_service

    def _header(identity):
        return {"Authorization": f"Bearer {auth_service.issue_token(identity)}"}
    return _header
