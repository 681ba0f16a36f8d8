import pytest
from sqlalchemy.exc import OperationalError

from livemarks.backend import RepositoryError
from livemarks.extensions import db
from livemarks.models import Bookmark, BookmarkChange
from livemarks.services.bookmarks import (
    ERROR_AUTHORIZATION,
    ERROR_UPSTREAM,
    ERROR_VALIDATION,
    add_bookmark,
    create_delete_token,
    delete_bookmark,
    verify_delete_token,
)


@pytest.mark.parametrize(
    "title, url, message",
    [
        ("", "https://x.com", "Title is required"),
        ("   ", "https://x.com", "Title is required"),
        ("Title", "", "URL is required"),
        ("Title", "ftp://x.com", "URL must start with http(s)"),
        ("Title", "mailto:someone@x.com", "URL must start with http(s)"),
        ("Title", "x.com", "Invalid URL"),
        ("Title", "https://", "Invalid URL"),
        ("Title", "https://x.com:notaport/", "Invalid URL"),
    ],
)
def test_add_rejects_invalid_input_without_touching_repository(
    app, backend, signed_in, monkeypatch, title, url, message
):
    calls = []
    monkeypatch.setattr(backend.bookmarks, "insert", lambda *args: calls.append(args))

    with app.app_context():
        result = add_bookmark(backend, title, url)

    assert not result.ok
    assert result.error == message
    assert result.kind == ERROR_VALIDATION
    assert calls == []


def test_add_requires_authenticated_user(app, backend):
    with app.app_context():
        result = add_bookmark(backend, "Title", "https://x.com")
        assert Bookmark.query.count() == 0

    assert result.error == "Not authenticated"
    assert result.kind == ERROR_AUTHORIZATION


def test_add_inserts_one_row_owned_by_session_user(app, backend, signed_in):
    with app.app_context():
        result = add_bookmark(backend, "  Title  ", " https://x.com ")
        rows = Bookmark.query.all()
        changes = BookmarkChange.query.all()

    assert result.ok
    assert result.as_dict() == {"ok": True}
    assert len(rows) == 1
    assert rows[0].owner_id == signed_in.id
    assert rows[0].title == "Title"
    assert rows[0].url == "https://x.com"
    assert [change.action for change in changes] == ["insert"]


def test_add_hides_repository_failure_detail(app, backend, signed_in, monkeypatch):
    def _fail(*args):
        raise RepositoryError("database is locked at /var/lib/secret.db")

    monkeypatch.setattr(backend.bookmarks, "insert", _fail)
    with app.app_context():
        result = add_bookmark(backend, "Title", "https://x.com")

    assert result.error == "Could not save bookmark."
    assert result.kind == ERROR_UPSTREAM
    assert result.as_dict() == {"error": "Could not save bookmark."}


def test_delete_of_foreign_bookmark_reports_success_and_keeps_row(
    app, backend, sessions, make_user
):
    owner = make_user("owner")
    intruder = make_user("intruder")
    with app.app_context():
        bookmark_id = backend.bookmarks.insert(owner.id, "Mine", "https://mine.example").id

    sessions.user = intruder
    with app.app_context():
        result = delete_bookmark(backend, bookmark_id)
        remaining = Bookmark.query.filter_by(owner_id=owner.id).count()

    assert result.ok
    assert remaining == 1


def test_delete_own_bookmark_and_repeat_is_noop(app, backend, signed_in):
    with app.app_context():
        bookmark_id = backend.bookmarks.insert(signed_in.id, "A", "https://a.example").id
        first = delete_bookmark(backend, bookmark_id)
        second = delete_bookmark(backend, bookmark_id)
        assert Bookmark.query.count() == 0
        actions = [change.action for change in BookmarkChange.query.order_by(BookmarkChange.id)]

    assert first.ok and second.ok
    assert actions == ["insert", "delete"]


def test_delete_validates_id_then_session(app, backend):
    with app.app_context():
        missing = delete_bookmark(backend, "")
        anonymous = delete_bookmark(backend, "some-id")

    assert missing.error == "Missing id"
    assert anonymous.error == "Not authenticated"


def test_delete_token_is_bound_to_owner():
    token = create_delete_token("secret", "user-1", "bm-1")

    assert verify_delete_token("secret", token, max_age=60, owner_id="user-1") == "bm-1"
    assert verify_delete_token("secret", token, max_age=60, owner_id="user-2") is None
    assert verify_delete_token("other", token, max_age=60, owner_id="user-1") is None
    assert verify_delete_token("secret", token + "x", max_age=60, owner_id="user-1") is None
    assert verify_delete_token("secret", None, max_age=60, owner_id="user-1") is None


def test_repository_reads_wrap_database_errors(app, backend, signed_in, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    with app.app_context():
        monkeypatch.setattr(db.session, "query", broken_query)
        with pytest.raises(RepositoryError):
            backend.bookmarks.latest_cursor(signed_in.id)
