from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from livemarks import create_app
from livemarks.config import TestConfig
from livemarks.backend import Backend
from livemarks.extensions import db
from livemarks.models import User
from livemarks.services.change_feed import ChangeFeed
from livemarks.services.repository import BookmarkRepository
from livemarks.services.session_store import OAuthSessionStore


class FakeProvider:
    def __init__(self):
        self.token_status = 200
        self.token_requests = []
        self.fail_with = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail_with:
            raise self.fail_with
        if request.url.path == "/token":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.token_requests.append(form)
            if self.token_status != 200:
                return httpx.Response(
                    self.token_status, json={"error": "invalid_grant", "detail": "internal trace"}
                )
            return httpx.Response(200, json={"access_token": "at-123", "token_type": "Bearer"})
        if request.url.path == "/userinfo":
            assert request.headers["Authorization"] == "Bearer at-123"
            return httpx.Response(
                200, json={"sub": "google-42", "email": "ada@example.com", "name": "Ada"}
            )
        return httpx.Response(404)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def oauth_app(provider):
    store = OAuthSessionStore(
        client_id=TestConfig.OAUTH_CLIENT_ID,
        client_secret=TestConfig.OAUTH_CLIENT_SECRET,
        authorize_url=TestConfig.OAUTH_AUTHORIZE_URL,
        token_url=TestConfig.OAUTH_TOKEN_URL,
        userinfo_url=TestConfig.OAUTH_USERINFO_URL,
        http_client=httpx.Client(transport=httpx.MockTransport(provider)),
    )
    repository = BookmarkRepository()
    app = create_app(
        TestConfig,
        backend=Backend(sessions=store, bookmarks=repository, feed=ChangeFeed(repository)),
    )
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def oauth_client(oauth_app):
    return oauth_app.test_client()


def _start_signin(client, next_path="/bookmarks"):
    response = client.get(f"/auth/signin?next={next_path}", follow_redirects=False)
    assert response.status_code == 302
    authorize = urlsplit(response.headers["Location"])
    params = {k: v[0] for k, v in parse_qs(authorize.query).items()}
    assert f"{authorize.scheme}://{authorize.netloc}{authorize.path}" == TestConfig.OAUTH_AUTHORIZE_URL
    assert params["prompt"] == "select_account"
    assert params["response_type"] == "code"
    return params


def _login_error(response):
    assert response.status_code == 302
    location = urlsplit(response.headers["Location"])
    assert location.path == "/login"
    return parse_qs(location.query)["error"][0]


def test_full_sign_in_establishes_cookie_session(oauth_app, oauth_client, provider):
    params = _start_signin(oauth_client)
    assert urlsplit(params["redirect_uri"]).path == "/auth/callback"

    response = oauth_client.get(
        "/auth/callback",
        query_string={"code": "abc", "state": params["state"], "next": "/bookmarks"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["Location"] == "/bookmarks"
    assert provider.token_requests[0]["code"] == "abc"
    assert provider.token_requests[0]["redirect_uri"] == params["redirect_uri"]

    with oauth_app.app_context():
        user = db.session.get(User, "google-42")
        assert user.email == "ada@example.com"
        assert user.last_sign_in_at is not None

    assert oauth_client.get("/api/v1/bookmarks").status_code == 200

    oauth_client.post("/auth/signout")
    assert oauth_client.get("/api/v1/bookmarks").status_code == 401


def test_state_mismatch_is_rejected(oauth_client, provider):
    _start_signin(oauth_client)
    response = oauth_client.get("/auth/callback?code=abc&state=forged")

    assert _login_error(response) == "Authentication failed: invalid state"
    assert provider.token_requests == []


def test_rejected_code_does_not_leak_provider_detail(oauth_client, provider):
    provider.token_status = 400
    params = _start_signin(oauth_client)
    response = oauth_client.get(
        "/auth/callback", query_string={"code": "stale", "state": params["state"]}
    )

    message = _login_error(response)
    assert message == "Authentication failed: code rejected"
    assert "internal trace" not in response.headers["Location"]
    assert oauth_client.get("/api/v1/bookmarks").status_code == 401


def test_unreachable_provider(oauth_client, provider):
    params = _start_signin(oauth_client)
    provider.fail_with = httpx.ConnectError("connection refused")
    response = oauth_client.get(
        "/auth/callback", query_string={"code": "abc", "state": params["state"]}
    )

    assert _login_error(response) == "Authentication failed: provider unavailable"
