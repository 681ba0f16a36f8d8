import pytest

from livemarks import create_app
from livemarks.backend import EXTENSION_KEY, Backend, SessionUser
from livemarks.config import TestConfig
from livemarks.extensions import db
from livemarks.models import User
from livemarks.services.change_feed import ChangeFeed
from livemarks.services.repository import BookmarkRepository


class FakeSessionStore:
    """Session store double: the signed-in user lives on the object, not in a cookie."""

    def __init__(self):
        self.user = None
        self.user_after_exchange = SessionUser(id="user-1", email="u1@example.com")
        self.exchange_error = None
        self.exchange_calls = []

    def authorization_url(self, redirect_uri):
        return f"https://idp.test/authorize?redirect_uri={redirect_uri}"

    def exchange_code_for_session(self, code, state, redirect_uri):
        self.exchange_calls.append(
            {"code": code, "state": state, "redirect_uri": redirect_uri}
        )
        if self.exchange_error:
            raise self.exchange_error
        self.user = self.user_after_exchange
        return self.user

    def get_user(self):
        return self.user

    def sign_out(self):
        self.user = None


def create_user(user_id, email=None):
    user = User(id=user_id, email=email or f"{user_id}@example.com")
    db.session.add(user)
    db.session.commit()
    return SessionUser(id=user.id, email=user.email)


@pytest.fixture
def sessions():
    return FakeSessionStore()


@pytest.fixture
def app(sessions):
    repository = BookmarkRepository()
    backend = Backend(
        sessions=sessions, bookmarks=repository, feed=ChangeFeed(repository)
    )
    app = create_app(TestConfig, backend=backend)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def backend(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(user_id, email=None):
        with app.app_context():
            return create_user(user_id, email)

    return _make


@pytest.fixture
def signed_in(sessions, make_user):
    """Sign ``user-1`` in through the session store double."""
    sessions.user = make_user("user-1")
    return sessions.user
