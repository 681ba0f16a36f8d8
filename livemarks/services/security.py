from functools import wraps

from flask import g, jsonify, redirect, request, url_for

from livemarks.backend import get_backend
from livemarks.services.bookmarks import NOT_AUTHENTICATED


def session_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        user = get_backend().sessions.get_user()
        if not user:
            return redirect(url_for("auth.login", next=request.path))
        g.session_user = user
        return func(*args, **kwargs)

    return wrapped


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        user = get_backend().sessions.get_user()
        if not user:
            return jsonify({"error": NOT_AUTHENTICATED}), 401
        g.api_user = user
        return func(*args, **kwargs)

    return wrapped
