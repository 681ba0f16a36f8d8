from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from itsdangerous import BadData, URLSafeTimedSerializer

from livemarks.backend import Backend, RepositoryError
from livemarks.services.common import url_error


NOT_AUTHENTICATED = "Not authenticated"

ERROR_VALIDATION = "validation"
ERROR_AUTHORIZATION = "authorization"
ERROR_UPSTREAM = "upstream"


@dataclass
class ActionResult:
    ok: bool = False
    error: str | None = None
    kind: str | None = None

    def as_dict(self) -> dict:
        if self.ok:
            return {"ok": True}
        return {"error": self.error}


def add_bookmark(backend: Backend, title: str | None, url: str | None) -> ActionResult:
    title = str(title or "").strip()
    url = str(url or "").strip()

    if not title:
        return ActionResult(error="Title is required", kind=ERROR_VALIDATION)
    error = url_error(url)
    if error:
        return ActionResult(error=error, kind=ERROR_VALIDATION)

    user = backend.sessions.get_user()
    if not user:
        return ActionResult(error=NOT_AUTHENTICATED, kind=ERROR_AUTHORIZATION)

    try:
        backend.bookmarks.insert(user.id, title, url)
    except RepositoryError:
        current_app.logger.warning("Add bookmark failed for user %s", user.id)
        return ActionResult(error="Could not save bookmark.", kind=ERROR_UPSTREAM)
    return ActionResult(ok=True)


def delete_bookmark(backend: Backend, bookmark_id: str | None) -> ActionResult:
    bookmark_id = str(bookmark_id or "").strip()
    if not bookmark_id:
        return ActionResult(error="Missing id", kind=ERROR_VALIDATION)

    user = backend.sessions.get_user()
    if not user:
        return ActionResult(error=NOT_AUTHENTICATED, kind=ERROR_AUTHORIZATION)

    try:
        removed = backend.bookmarks.delete(bookmark_id, user.id)
    except RepositoryError:
        current_app.logger.warning(
            "Delete bookmark %s failed for user %s", bookmark_id, user.id
        )
        return ActionResult(error="Could not delete bookmark.", kind=ERROR_UPSTREAM)
    if not removed:
        current_app.logger.info(
            "Delete of %s by %s matched no rows", bookmark_id, user.id
        )
    return ActionResult(ok=True)


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt="bookmark-delete")


def create_delete_token(secret_key: str, owner_id: str, bookmark_id: str) -> str:
    return _serializer(secret_key).dumps(
        {"owner_id": owner_id, "bookmark_id": bookmark_id}
    )


def verify_delete_token(
    secret_key: str, token: str | None, max_age: int, owner_id: str
) -> str | None:
    if not token:
        return None
    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except BadData:
        return None
    if not isinstance(payload, dict) or payload.get("owner_id") != owner_id:
        return None
    return payload.get("bookmark_id") or None
